from __future__ import annotations

from typing import Callable

from fastapi import APIRouter, Depends, HTTPException, status

import engine
from api.background import JobManager, start_league_refresh
from api.dependencies import (
    get_directory,
    get_fallback_client,
    get_job_manager,
    get_league_loader,
    get_store,
    require_api_key,
)
from api.models import (
    FixturesResponse,
    JobCreatedResponse,
    JobStatus,
    LeagueResponse,
    MatchdayFixtures,
    ScoutRequest,
    ScoutResponse,
)
from api.utils import fixture_to_model, form_to_model, source_to_model, table_row_to_model
from domain import LeagueData
from league_data import first_matchday, group_fixtures_by_matchday
from search_fallback import SearchFallbackClient
from store import SessionStore
from teams import TeamDirectory

router = APIRouter(prefix="/league", tags=["league"], dependencies=[Depends(require_api_key)])


@router.get("", response_model=LeagueResponse, summary="Cached standings, form and citations")
async def get_league(store: SessionStore = Depends(get_store)) -> LeagueResponse:
    league = store.get().league
    return LeagueResponse(
        table=[table_row_to_model(row) for row in league.table],
        form=[form_to_model(row) for row in league.form],
        sources=[source_to_model(src) for src in league.sources],
        lastUpdated=league.last_updated,
    )


@router.get("/fixtures", response_model=FixturesResponse, summary="Upcoming fixtures grouped by matchday")
async def get_fixtures(store: SessionStore = Depends(get_store)) -> FixturesResponse:
    fixtures = store.get().league.fixtures
    grouped = group_fixtures_by_matchday(fixtures)
    return FixturesResponse(
        firstMatchday=first_matchday(fixtures),
        matchdays=[
            MatchdayFixtures(matchday=day, fixtures=[fixture_to_model(f) for f in items])
            for day, items in grouped.items()
        ],
    )


@router.post(
    "/refresh",
    response_model=JobCreatedResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Re-fetch league data in the background",
)
async def refresh_league(
    store: SessionStore = Depends(get_store),
    job_manager: JobManager = Depends(get_job_manager),
    loader: Callable[[], LeagueData] = Depends(get_league_loader),
) -> JobCreatedResponse:
    job_id = start_league_refresh(job_manager, store, loader)
    record = job_manager.get(job_id)
    return JobCreatedResponse(
        jobId=job_id,
        status=JobStatus(record.status) if record else JobStatus.pending,
        jobType=record.job_type if record else "league-refresh",
        pollUrl=f"/jobs/{job_id}",
    )


@router.post("/scout", response_model=ScoutResponse, summary="Short tactical tip for an entry's next pick")
def scout_advice(
    payload: ScoutRequest,
    store: SessionStore = Depends(get_store),
    directory: TeamDirectory = Depends(get_directory),
    client: SearchFallbackClient = Depends(get_fallback_client),
) -> ScoutResponse:
    state = store.get()
    entry = state.entry(payload.entry_id)
    if entry is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Unknown entry")
    comp = state.competition(entry.competition_id)
    week = comp.current_week if comp else 1
    options = [directory.get(tid) for tid in engine.available_teams(entry, week, directory.ids())]
    advice = client.get_scout_advice(week, entry, [team for team in options if team])
    return ScoutResponse(advice=advice)
