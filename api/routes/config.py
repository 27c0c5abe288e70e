from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status

from api.dependencies import require_api_key
from api.models import ConfigResponse, ConfigUpdateRequest
from config import SETTINGS_HELP, settings

router = APIRouter(prefix="/config", tags=["config"], dependencies=[Depends(require_api_key)])


@router.get("/", response_model=ConfigResponse, summary="List current game knobs")
async def get_config() -> ConfigResponse:
    return ConfigResponse(knobs=settings.snapshot())


@router.patch("/", response_model=ConfigResponse, summary="Update one or more game knobs")
async def patch_config(payload: ConfigUpdateRequest) -> ConfigResponse:
    if not payload.updates:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No updates provided")
    snapshot = settings.snapshot()
    unknown = [name for name in payload.updates if name not in snapshot]
    if unknown:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Unknown knob '{unknown[0]}'")
    for name, value in payload.updates.items():
        current = snapshot[name]
        if isinstance(current, (int, float)) and not isinstance(current, bool):
            try:
                value = type(current)(value)
            except (TypeError, ValueError):
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail=f"Knob '{name}' expects a {type(current).__name__}",
                )
        settings.set(name, value)
    return ConfigResponse(knobs=settings.snapshot())


@router.post("/reset", response_model=ConfigResponse, summary="Restore default knobs")
async def reset_config() -> ConfigResponse:
    settings.reset()
    return ConfigResponse(knobs=settings.snapshot())


@router.get("/help", summary="Describe available configuration knobs")
async def config_help() -> dict[str, str]:
    return SETTINGS_HELP.copy()
