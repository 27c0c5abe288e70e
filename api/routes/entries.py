from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, status

import engine
from api.dependencies import get_directory, get_store, require_api_key
from api.models import AvailableTeamsResponse, EntryModel, MessageResponse, PendingPickModel, PickRequest
from api.utils import entry_to_model, pending_to_model, rule_error_to_http, session_error_to_http, team_to_model
from domain import Entry
from store import SessionError, SessionStore
from teams import TeamDirectory

router = APIRouter(prefix="/entries", tags=["entries"], dependencies=[Depends(require_api_key)])


def _get_entry(store: SessionStore, entry_id: str) -> Entry:
    entry = store.get().entry(entry_id)
    if entry is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Unknown entry")
    return entry


@router.get("/{entry_id}", response_model=EntryModel, summary="Entry detail")
async def get_entry(entry_id: str, store: SessionStore = Depends(get_store)) -> EntryModel:
    return entry_to_model(_get_entry(store, entry_id))


@router.get("/{entry_id}/available", response_model=AvailableTeamsResponse, summary="Teams still pickable for a week")
async def available_teams(
    entry_id: str,
    week: int | None = Query(None, ge=1),
    store: SessionStore = Depends(get_store),
    directory: TeamDirectory = Depends(get_directory),
) -> AvailableTeamsResponse:
    entry = _get_entry(store, entry_id)
    if week is None:
        comp = store.get().competition(entry.competition_id)
        week = comp.current_week if comp else 1
    team_ids = engine.available_teams(entry, week, directory.ids())
    teams = [team_to_model(team) for team in (directory.get(tid) for tid in team_ids) if team]
    return AvailableTeamsResponse(entryId=entry.id, week=week, teams=teams)


@router.post(
    "/{entry_id}/picks",
    response_model=PendingPickModel,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Request a pick; it is staged until confirmed",
)
async def request_pick(
    entry_id: str,
    payload: PickRequest,
    store: SessionStore = Depends(get_store),
    directory: TeamDirectory = Depends(get_directory),
) -> PendingPickModel:
    try:
        pending = store.request_pick(entry_id, payload.week, payload.team)
    except engine.PoolRuleError as exc:
        raise rule_error_to_http(exc)
    except SessionError as exc:
        raise session_error_to_http(exc)
    return pending_to_model(pending, directory)


@router.post("/{entry_id}/picks/confirm", response_model=EntryModel, summary="Lock in the staged pick")
async def confirm_pick(entry_id: str, store: SessionStore = Depends(get_store)) -> EntryModel:
    try:
        entry = store.confirm_pick(entry_id)
    except engine.PoolRuleError as exc:
        raise rule_error_to_http(exc)
    except SessionError as exc:
        raise session_error_to_http(exc)
    return entry_to_model(entry)


@router.delete("/{entry_id}/picks/pending", response_model=MessageResponse, summary="Abort the staged pick")
async def cancel_pick(entry_id: str, store: SessionStore = Depends(get_store)) -> MessageResponse:
    _get_entry(store, entry_id)
    store.cancel_pick()
    return MessageResponse(message="Pick selection aborted")
