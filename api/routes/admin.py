from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status

import engine
from api.dependencies import get_directory, get_store, require_api_key
from api.models import OutcomesResponse, OutcomeUpdateRequest, ResolutionResponse
from api.utils import competition_to_model, entry_to_model, rule_error_to_http, session_error_to_http
from domain import Competition
from store import SessionError, SessionStore
from teams import TeamDirectory

router = APIRouter(prefix="/pools", tags=["admin"], dependencies=[Depends(require_api_key)])


def _get_competition(store: SessionStore, competition_id: str) -> Competition:
    comp = store.get().competition(competition_id)
    if comp is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Unknown pool")
    return comp


@router.get("/{competition_id}/outcomes", response_model=OutcomesResponse, summary="Outcomes entered for the current week")
async def get_outcomes(competition_id: str, store: SessionStore = Depends(get_store)) -> OutcomesResponse:
    comp = _get_competition(store, competition_id)
    return OutcomesResponse(
        competitionId=comp.id,
        week=comp.current_week,
        outcomes=dict(store.get().outcomes.get(comp.id, {})),
    )


@router.put("/{competition_id}/outcomes", response_model=OutcomesResponse, summary="Set match outcomes for the current week")
async def set_outcomes(
    competition_id: str,
    payload: OutcomeUpdateRequest,
    store: SessionStore = Depends(get_store),
    directory: TeamDirectory = Depends(get_directory),
) -> OutcomesResponse:
    comp = _get_competition(store, competition_id)
    unknown = [team for team in payload.outcomes if directory.find_team(team) is None]
    if unknown:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Unknown team '{unknown[0]}'")
    current = dict(store.get().outcomes.get(comp.id, {}))
    try:
        for team, outcome in payload.outcomes.items():
            current = store.set_outcome(comp.id, team, outcome)
    except engine.PoolRuleError as exc:
        raise rule_error_to_http(exc)
    except SessionError as exc:
        raise session_error_to_http(exc)
    return OutcomesResponse(competitionId=comp.id, week=comp.current_week, outcomes=current)


@router.post("/{competition_id}/resolve", response_model=ResolutionResponse, summary="Authorize results and advance the week")
async def resolve_week(competition_id: str, store: SessionStore = Depends(get_store)) -> ResolutionResponse:
    _get_competition(store, competition_id)
    try:
        resolution = store.resolve_week(competition_id)
    except SessionError as exc:
        raise session_error_to_http(exc)
    return ResolutionResponse(
        competition=competition_to_model(resolution.competition),
        eliminated=list(resolution.eliminated),
        survivors=[entry_to_model(e) for e in engine.survivors(resolution.competition, resolution.entries)],
    )
