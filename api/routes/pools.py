from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

import engine
from api.dependencies import get_directory, get_store, require_api_key
from api.models import (
    BreakdownItem,
    BreakdownResponse,
    CompetitionModel,
    EntryModel,
    PoolCreateRequest,
    SessionResponse,
    ShareResponse,
    StandingsResponse,
)
from api.utils import (
    competition_to_model,
    dataframe_to_records,
    entry_to_model,
    rule_error_to_http,
    session_error_to_http,
    state_to_response,
)
from domain import Competition
from store import SessionError, SessionStore
from teams import TeamDirectory

router = APIRouter(prefix="/pools", tags=["pools"], dependencies=[Depends(require_api_key)])


def _get_competition(store: SessionStore, competition_id: str) -> Competition:
    comp = store.get().competition(competition_id)
    if comp is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Unknown pool")
    return comp


@router.get("", response_model=list[CompetitionModel], summary="List pools")
async def list_pools(store: SessionStore = Depends(get_store)) -> list[CompetitionModel]:
    return [competition_to_model(c) for c in store.get().competitions]


@router.post(
    "",
    response_model=CompetitionModel,
    status_code=status.HTTP_201_CREATED,
    summary="Create a pool and select it",
)
async def create_pool(payload: PoolCreateRequest, store: SessionStore = Depends(get_store)) -> CompetitionModel:
    try:
        comp = store.create_competition(payload.name)
    except SessionError as exc:
        raise session_error_to_http(exc)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    return competition_to_model(comp)


@router.post("/{competition_id}/select", response_model=SessionResponse, summary="Enter a pool")
async def select_pool(
    competition_id: str,
    store: SessionStore = Depends(get_store),
    directory: TeamDirectory = Depends(get_directory),
) -> SessionResponse:
    try:
        state = store.select_competition(competition_id)
    except SessionError as exc:
        raise session_error_to_http(exc)
    return state_to_response(state, directory)


@router.get("/{competition_id}/breakdown", response_model=BreakdownResponse, summary="Pick distribution among survivors")
async def selection_breakdown(
    competition_id: str,
    week: Optional[int] = Query(None, ge=1),
    store: SessionStore = Depends(get_store),
    directory: TeamDirectory = Depends(get_directory),
) -> BreakdownResponse:
    comp = _get_competition(store, competition_id)
    target = week or comp.current_week
    counts = engine.compute_selection_breakdown(comp, store.get().entries, target)
    return BreakdownResponse(
        week=target,
        items=[
            BreakdownItem(teamId=team_id, teamName=directory.display_name(team_id, default=team_id), count=count)
            for team_id, count in counts
        ],
    )


@router.get("/{competition_id}/standings", response_model=StandingsResponse, summary="Week-by-week pick grid")
async def standings(competition_id: str, store: SessionStore = Depends(get_store)) -> StandingsResponse:
    comp = _get_competition(store, competition_id)
    entries = store.get().entries
    grid = engine.standings_grid(comp, entries)
    return StandingsResponse(
        weeks=engine.compute_standings_weeks(comp, entries),
        items=dataframe_to_records(grid),
        total=int(grid.shape[0]),
    )


@router.get("/{competition_id}/share", response_model=ShareResponse, summary="Survivors report and chat share link")
async def share_report(
    competition_id: str,
    store: SessionStore = Depends(get_store),
    directory: TeamDirectory = Depends(get_directory),
) -> ShareResponse:
    comp = _get_competition(store, competition_id)
    text = engine.build_share_report(comp, store.get().entries, directory.display_name)
    return ShareResponse(text=text, url=engine.share_url(text))


@router.post(
    "/{competition_id}/entries",
    response_model=EntryModel,
    status_code=status.HTTP_201_CREATED,
    summary="Buy a new entry in a pool",
)
async def buy_entry(competition_id: str, store: SessionStore = Depends(get_store)) -> EntryModel:
    try:
        entry = store.buy_entry(competition_id)
    except engine.PoolRuleError as exc:
        raise rule_error_to_http(exc)
    except SessionError as exc:
        raise session_error_to_http(exc)
    return entry_to_model(entry)
