from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

import pandas as pd
from fastapi import HTTPException, status

from api.models import (
    CompetitionModel,
    EntryModel,
    FixtureModel,
    LeagueTableRow,
    PendingPickModel,
    PickModel,
    SessionResponse,
    SourceModel,
    TeamFormModel,
    TeamModel,
    WeeklyResultModel,
)
from domain import Competition, Entry, Fixture, LeagueTableEntry, PendingPick, Source, TeamForm
from engine import PoolRuleError, RejectionReason, is_match_locked
from store import AppState, NotFoundError, SessionError
from teams import Team, TeamDirectory

_REASON_STATUS: Dict[RejectionReason, int] = {
    RejectionReason.INSUFFICIENT_FUNDS: status.HTTP_402_PAYMENT_REQUIRED,
    RejectionReason.MAX_ENTRIES_REACHED: status.HTTP_409_CONFLICT,
    RejectionReason.MATCH_LOCKED: status.HTTP_409_CONFLICT,
    RejectionReason.TEAM_ALREADY_USED_IN_ENTRY: status.HTTP_409_CONFLICT,
    RejectionReason.TEAM_ALREADY_USED_BY_OWNER: status.HTTP_409_CONFLICT,
    RejectionReason.WEEK_ALREADY_RESOLVED: status.HTTP_409_CONFLICT,
    RejectionReason.ENTRY_NOT_ACTIVE: status.HTTP_409_CONFLICT,
}


def rule_error_to_http(exc: PoolRuleError) -> HTTPException:
    code = _REASON_STATUS.get(exc.reason, status.HTTP_400_BAD_REQUEST)
    return HTTPException(status_code=code, detail={"reason": exc.reason.value, "message": exc.message})


def session_error_to_http(exc: SessionError) -> HTTPException:
    if isinstance(exc, NotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))


def team_to_model(team: Team) -> TeamModel:
    return TeamModel(
        id=team.id,
        name=team.name,
        shortName=team.short_name,
        color=team.color,
        logo=team.logo,
        aliases=list(team.aliases),
    )


def competition_to_model(comp: Competition) -> CompetitionModel:
    return CompetitionModel(
        id=comp.id,
        name=comp.name,
        creatorNickname=comp.creator_nickname,
        currentWeek=comp.current_week,
        status=comp.status.value,
        history=[WeeklyResultModel(week=item.week, results=dict(item.results)) for item in comp.history],
    )


def entry_to_model(entry: Entry) -> EntryModel:
    return EntryModel(
        id=entry.id,
        competitionId=entry.competition_id,
        name=entry.name,
        ownerNickname=entry.owner_nickname,
        status=entry.status.value,
        picks=[PickModel(week=p.week, teamId=p.team_id) for p in entry.picks],
        createdAtWeek=entry.created_at_week,
    )


def pending_to_model(pending: PendingPick, directory: TeamDirectory) -> PendingPickModel:
    team = directory.get(pending.team_id)
    return PendingPickModel(
        entryId=pending.entry_id,
        week=pending.week,
        teamId=pending.team_id,
        teamName=team.name if team else pending.team_id,
        logo=team.logo if team else None,
    )


def state_to_response(state: AppState, directory: TeamDirectory) -> SessionResponse:
    return SessionResponse(
        userNickname=state.user_nickname,
        userCoins=state.user_coins,
        competitions=[competition_to_model(c) for c in state.competitions],
        entries=[entry_to_model(e) for e in state.entries],
        selectedCompetitionId=state.selected_competition_id,
        isAdminMode=state.is_admin_mode,
        pendingPick=pending_to_model(state.pending_pick, directory) if state.pending_pick else None,
    )


def table_row_to_model(row: LeagueTableEntry) -> LeagueTableRow:
    return LeagueTableRow(
        position=row.position,
        team=row.team,
        teamId=row.team_id,
        played=row.played,
        win=row.win,
        draw=row.draw,
        loss=row.loss,
        gd=row.gd,
        points=row.points,
    )


def fixture_to_model(fixture: Fixture, now: Optional[datetime] = None) -> FixtureModel:
    locked = fixture.kickoff is not None and is_match_locked(fixture.kickoff, now)
    return FixtureModel(
        homeTeam=fixture.home_team,
        awayTeam=fixture.away_team,
        homeTeamId=fixture.home_team_id,
        awayTeamId=fixture.away_team_id,
        matchday=fixture.matchday,
        kickoff=fixture.kickoff,
        status=fixture.status.value,
        score=fixture.score,
        locked=locked,
    )


def form_to_model(form: TeamForm) -> TeamFormModel:
    return TeamFormModel(
        teamName=form.team_name,
        teamLogo=form.team_logo,
        teamId=form.team_id,
        last5=list(form.last5),
        goalsFor=form.goals_for,
        goalsAgainst=form.goals_against,
        goalDifference=form.goal_difference,
        points=form.points,
    )


def source_to_model(source: Source) -> SourceModel:
    return SourceModel(title=source.title, uri=source.uri)


def dataframe_to_records(df: pd.DataFrame) -> List[Dict[str, Any]]:
    if df.empty:
        return []
    # NaN/None picks become null in JSON
    return df.astype(object).where(pd.notna(df), None).to_dict(orient="records")
