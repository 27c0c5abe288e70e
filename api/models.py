"""Pydantic schemas used by the API endpoints."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from domain import Outcome


class ConfigResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    knobs: Dict[str, Any]


class ConfigUpdateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    updates: Dict[str, Any] = Field(default_factory=dict)


class MessageResponse(BaseModel):
    message: str


class RejectionDetail(BaseModel):
    reason: str
    message: str


# --------------------------------------------------------------------------- #
# Teams
# --------------------------------------------------------------------------- #


class TeamModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str
    short_name: str = Field(..., alias="shortName")
    color: str
    logo: str
    aliases: List[str] = Field(default_factory=list)


# --------------------------------------------------------------------------- #
# Session, pools and entries
# --------------------------------------------------------------------------- #


class PickModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    week: int
    team_id: str = Field(..., alias="teamId")


class WeeklyResultModel(BaseModel):
    week: int
    results: Dict[str, Outcome] = Field(default_factory=dict)


class CompetitionModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str
    creator_nickname: str = Field(..., alias="creatorNickname")
    current_week: int = Field(..., alias="currentWeek")
    status: str
    history: List[WeeklyResultModel] = Field(default_factory=list)


class EntryModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    competition_id: str = Field(..., alias="competitionId")
    name: str
    owner_nickname: str = Field(..., alias="ownerNickname")
    status: str
    picks: List[PickModel] = Field(default_factory=list)
    created_at_week: int = Field(..., alias="createdAtWeek")


class PendingPickModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    entry_id: str = Field(..., alias="entryId")
    week: int
    team_id: str = Field(..., alias="teamId")
    team_name: str = Field(..., alias="teamName")
    logo: Optional[str] = None


class SessionResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_nickname: Optional[str] = Field(default=None, alias="userNickname")
    user_coins: int = Field(..., alias="userCoins")
    competitions: List[CompetitionModel] = Field(default_factory=list)
    entries: List[EntryModel] = Field(default_factory=list)
    selected_competition_id: Optional[str] = Field(default=None, alias="selectedCompetitionId")
    is_admin_mode: bool = Field(default=False, alias="isAdminMode")
    pending_pick: Optional[PendingPickModel] = Field(default=None, alias="pendingPick")


class LoginRequest(BaseModel):
    nickname: str = Field(..., min_length=1)


class AdminModeRequest(BaseModel):
    enabled: bool = True


class PoolCreateRequest(BaseModel):
    name: str = Field(..., min_length=1)


class PickRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    week: int = Field(..., ge=1)
    team: str = Field(..., min_length=1, description="Team id, name or alias")


class AvailableTeamsResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    entry_id: str = Field(..., alias="entryId")
    week: int
    teams: List[TeamModel]


class OutcomeUpdateRequest(BaseModel):
    outcomes: Dict[str, Outcome] = Field(default_factory=dict, description="Team id/name -> outcome")


class OutcomesResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    competition_id: str = Field(..., alias="competitionId")
    week: int
    outcomes: Dict[str, Outcome]


class ResolutionResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    competition: CompetitionModel
    eliminated: List[str] = Field(default_factory=list)
    survivors: List[EntryModel] = Field(default_factory=list)


class BreakdownItem(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    team_id: str = Field(..., alias="teamId")
    team_name: str = Field(..., alias="teamName")
    count: int


class BreakdownResponse(BaseModel):
    week: int
    items: List[BreakdownItem]


class StandingsResponse(BaseModel):
    weeks: List[int]
    items: List[Dict[str, Any]]
    total: int


class ShareResponse(BaseModel):
    text: str
    url: str


# --------------------------------------------------------------------------- #
# League data
# --------------------------------------------------------------------------- #


class LeagueTableRow(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    position: int
    team: str
    team_id: Optional[str] = Field(default=None, alias="teamId")
    played: int
    win: int
    draw: int
    loss: int
    gd: int
    points: int


class FixtureModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    home_team: str = Field(..., alias="homeTeam")
    away_team: str = Field(..., alias="awayTeam")
    home_team_id: Optional[str] = Field(default=None, alias="homeTeamId")
    away_team_id: Optional[str] = Field(default=None, alias="awayTeamId")
    matchday: Optional[int] = None
    kickoff: Optional[datetime] = None
    status: str
    score: Optional[str] = None
    locked: bool = False


class TeamFormModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    team_name: str = Field(..., alias="teamName")
    team_logo: str = Field(..., alias="teamLogo")
    team_id: Optional[str] = Field(default=None, alias="teamId")
    last5: List[str] = Field(default_factory=list)
    goals_for: int = Field(default=0, alias="goalsFor")
    goals_against: int = Field(default=0, alias="goalsAgainst")
    goal_difference: int = Field(default=0, alias="goalDifference")
    points: int = 0


class SourceModel(BaseModel):
    title: str
    uri: str


class LeagueResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    table: List[LeagueTableRow] = Field(default_factory=list)
    form: List[TeamFormModel] = Field(default_factory=list)
    sources: List[SourceModel] = Field(default_factory=list)
    last_updated: Optional[datetime] = Field(default=None, alias="lastUpdated")


class MatchdayFixtures(BaseModel):
    matchday: int
    fixtures: List[FixtureModel]


class FixturesResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    first_matchday: Optional[int] = Field(default=None, alias="firstMatchday")
    matchdays: List[MatchdayFixtures] = Field(default_factory=list)


class ScoutRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    entry_id: str = Field(..., alias="entryId")


class ScoutResponse(BaseModel):
    advice: str


# --------------------------------------------------------------------------- #
# Background jobs
# --------------------------------------------------------------------------- #


class JobStatus(str, Enum):
    pending = "pending"
    running = "running"
    completed = "completed"
    failed = "failed"


class JobInfo(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    job_id: str = Field(..., alias="jobId")
    job_type: str = Field(..., alias="jobType")
    status: JobStatus
    created_at: datetime = Field(..., alias="createdAt")
    started_at: Optional[datetime] = Field(default=None, alias="startedAt")
    finished_at: Optional[datetime] = Field(default=None, alias="finishedAt")
    result: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


class JobCreatedResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    job_id: str = Field(..., alias="jobId")
    status: JobStatus
    job_type: str = Field(..., alias="jobType")
    poll_url: str = Field(..., alias="pollUrl")
