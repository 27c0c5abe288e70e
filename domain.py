"""Immutable data model shared by the rules engine, the store and the adapters."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Tuple


class Outcome(str, Enum):
    WIN = "WIN"
    DRAW = "DRAW"
    LOSS = "LOSS"
    PENDING = "PENDING"


class EntryStatus(str, Enum):
    ACTIVE = "ACTIVE"
    ELIMINATED = "ELIMINATED"
    # Reserved for end-of-season handling; nothing produces it yet.
    WINNER = "WINNER"


class CompetitionStatus(str, Enum):
    OPEN = "OPEN"
    ONGOING = "ONGOING"
    FINISHED = "FINISHED"


class FixtureStatus(str, Enum):
    SCHEDULED = "SCHEDULED"
    LIVE = "LIVE"
    FT = "FT"


@dataclass(frozen=True)
class Pick:
    week: int
    team_id: str


@dataclass(frozen=True)
class WeeklyResult:
    week: int
    results: Dict[str, Outcome] = field(default_factory=dict)


@dataclass(frozen=True)
class Competition:
    id: str
    name: str
    creator_nickname: str
    current_week: int = 1
    status: CompetitionStatus = CompetitionStatus.OPEN
    history: Tuple[WeeklyResult, ...] = ()


@dataclass(frozen=True)
class Entry:
    id: str
    competition_id: str
    name: str
    owner_nickname: str
    status: EntryStatus = EntryStatus.ACTIVE
    picks: Tuple[Pick, ...] = ()
    created_at_week: int = 1

    @property
    def is_active(self) -> bool:
        return self.status == EntryStatus.ACTIVE

    def pick_for(self, week: int) -> Optional[Pick]:
        for pick in self.picks:
            if pick.week == week:
                return pick
        return None


@dataclass(frozen=True)
class PendingPick:
    """A pick that passed validation and awaits explicit confirmation."""

    entry_id: str
    week: int
    team_id: str


# External, read-only league data ------------------------------------------


@dataclass(frozen=True)
class LeagueTableEntry:
    position: int
    team: str
    team_id: Optional[str] = None
    played: int = 0
    win: int = 0
    draw: int = 0
    loss: int = 0
    gd: int = 0
    points: int = 0


@dataclass(frozen=True)
class Fixture:
    home_team: str
    away_team: str
    home_team_id: Optional[str] = None
    away_team_id: Optional[str] = None
    matchday: Optional[int] = None
    kickoff: Optional[datetime] = None
    status: FixtureStatus = FixtureStatus.SCHEDULED
    score: Optional[str] = None

    def involves(self, team_id: str) -> bool:
        return team_id in (self.home_team_id, self.away_team_id)


@dataclass(frozen=True)
class TeamForm:
    team_name: str
    team_logo: str
    team_id: Optional[str] = None
    last5: Tuple[str, ...] = ()
    goals_for: int = 0
    goals_against: int = 0
    goal_difference: int = 0
    points: int = 0


@dataclass(frozen=True)
class Source:
    title: str
    uri: str


@dataclass(frozen=True)
class LeagueData:
    table: List[LeagueTableEntry] = field(default_factory=list)
    fixtures: List[Fixture] = field(default_factory=list)
    form: List[TeamForm] = field(default_factory=list)
    sources: List[Source] = field(default_factory=list)
    last_updated: Optional[datetime] = None
