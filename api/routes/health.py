from __future__ import annotations

from fastapi import APIRouter, Depends

from api.dependencies import get_store
from store import SessionStore

router = APIRouter(tags=["health"])


@router.get("/healthz", summary="Application health check")
async def healthcheck(store: SessionStore = Depends(get_store)) -> dict[str, str]:
    league = store.get().league
    return {
        "status": "ok",
        "leagueData": league.last_updated.isoformat() if league.last_updated else "not loaded",
    }
