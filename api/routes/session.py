from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status

from api.dependencies import get_directory, get_store, require_api_key
from api.models import AdminModeRequest, LoginRequest, SessionResponse
from api.utils import state_to_response
from store import SessionStore
from teams import TeamDirectory

router = APIRouter(prefix="/session", tags=["session"], dependencies=[Depends(require_api_key)])


@router.get("", response_model=SessionResponse, summary="Current session state")
async def get_session(
    store: SessionStore = Depends(get_store),
    directory: TeamDirectory = Depends(get_directory),
) -> SessionResponse:
    return state_to_response(store.get(), directory)


@router.post("/login", response_model=SessionResponse, summary="Start a session with a nickname")
async def login(
    payload: LoginRequest,
    store: SessionStore = Depends(get_store),
    directory: TeamDirectory = Depends(get_directory),
) -> SessionResponse:
    try:
        state = store.login(payload.nickname)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    return state_to_response(state, directory)


@router.post("/logout", response_model=SessionResponse, summary="Forget the current nickname")
async def logout(
    store: SessionStore = Depends(get_store),
    directory: TeamDirectory = Depends(get_directory),
) -> SessionResponse:
    return state_to_response(store.logout(), directory)


@router.post("/admin", response_model=SessionResponse, summary="Toggle admin mode")
async def set_admin_mode(
    payload: AdminModeRequest,
    store: SessionStore = Depends(get_store),
    directory: TeamDirectory = Depends(get_directory),
) -> SessionResponse:
    return state_to_response(store.set_admin_mode(payload.enabled), directory)
