from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI

from api.background import job_manager, start_league_refresh
from api.dependencies import get_league_loader, get_store
from api.routes import (
    admin,
    config,
    entries,
    health,
    jobs,
    league,
    pools,
    session,
    teams,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # League data is a cache: fetch it again on every start unless disabled.
    if os.getenv("SURVIVOR_AUTOLOAD", "1").lower() not in ("0", "false", "no"):
        store = app.dependency_overrides.get(get_store, get_store)()
        loader = app.dependency_overrides.get(get_league_loader, get_league_loader)()
        job_id = start_league_refresh(job_manager, store, loader)
        logger.info("League data refresh started (job %s)", job_id)
    yield


app = FastAPI(title="Premier League Survivor API", version="0.1.0", lifespan=lifespan)
app.include_router(health.router)
app.include_router(config.router)
app.include_router(session.router)
app.include_router(teams.router)
app.include_router(pools.router)
app.include_router(admin.router)
app.include_router(entries.router)
app.include_router(league.router)
app.include_router(jobs.router)


@app.get("/", summary="Root endpoint", tags=["health"])
async def root() -> dict[str, str]:
    return {"message": "Premier League Survivor API"}
