"""Shared FastAPI dependencies (auth, store access, etc.)."""

from __future__ import annotations

import functools
import os
from typing import Annotated, Callable

from fastapi import Depends, Header, HTTPException, status

from api.background import JobManager, job_manager
from domain import LeagueData
from league_data import load_league_data_blocking
from search_fallback import SearchFallbackClient
from store import SessionStore
from teams import TeamDirectory, default_directory


class APISettings:
    """Runtime settings for the API layer."""

    def __init__(self) -> None:
        self.api_key = os.environ.get("SURVIVOR_API_KEY")


def get_api_settings() -> APISettings:
    return APISettings()


async def require_api_key(
    settings: Annotated[APISettings, Depends(get_api_settings)],
    x_api_key: str | None = Header(default=None, alias="X-API-Key"),
) -> None:
    """Validate the ``X-API-Key`` header if an API key is configured."""

    if settings.api_key is None:
        return
    if x_api_key != settings.api_key:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid API key")


@functools.lru_cache(maxsize=1)
def _default_store() -> SessionStore:
    return SessionStore()


def get_store() -> SessionStore:
    return _default_store()


def get_directory() -> TeamDirectory:
    return default_directory


def get_job_manager() -> JobManager:
    return job_manager


def get_league_loader() -> Callable[[], LeagueData]:
    return load_league_data_blocking


def get_fallback_client() -> SearchFallbackClient:
    return SearchFallbackClient.from_environment()
