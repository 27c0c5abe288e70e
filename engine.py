"""Survivor pool rules: pick legality, entry purchase and week resolution.

Everything here is synchronous and side-effect free. Functions take immutable
snapshots (see :mod:`domain`) and return new values; the session store decides
when to apply and persist them.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple
from urllib.parse import quote
from uuid import uuid4

import pandas as pd

from config import settings
from domain import (
    Competition,
    CompetitionStatus,
    Entry,
    EntryStatus,
    Fixture,
    Outcome,
    PendingPick,
    Pick,
    WeeklyResult,
)

logger = logging.getLogger(__name__)

SHARE_BASE_URL = "https://wa.me/?text="

FixtureLookup = Callable[[int, str], Optional[Fixture]]


class RejectionReason(str, Enum):
    ENTRY_NOT_ACTIVE = "EntryNotActive"
    MATCH_LOCKED = "MatchLocked"
    TEAM_ALREADY_USED_IN_ENTRY = "TeamAlreadyUsedInEntry"
    TEAM_ALREADY_USED_BY_OWNER = "TeamAlreadyUsedByOwner"
    WEEK_ALREADY_RESOLVED = "WeekAlreadyResolved"
    MAX_ENTRIES_REACHED = "MaxEntriesReached"
    INSUFFICIENT_FUNDS = "InsufficientFunds"
    UNKNOWN_TEAM = "UnknownTeam"
    PICK_MISMATCH = "PickMismatch"


_MESSAGES: Dict[RejectionReason, str] = {
    RejectionReason.ENTRY_NOT_ACTIVE: "This entry is no longer active.",
    RejectionReason.MATCH_LOCKED: "Match is locked!",
    RejectionReason.TEAM_ALREADY_USED_IN_ENTRY: "You already used this team!",
    RejectionReason.TEAM_ALREADY_USED_BY_OWNER: "You already picked this team in a previous matchweek!",
    RejectionReason.WEEK_ALREADY_RESOLVED: "This matchweek has already been resolved.",
    RejectionReason.MAX_ENTRIES_REACHED: "Maximum entries reached for this pool.",
    RejectionReason.INSUFFICIENT_FUNDS: "Insufficient coins!",
    RejectionReason.UNKNOWN_TEAM: "Unknown team.",
    RejectionReason.PICK_MISMATCH: "Pending pick belongs to another entry.",
}


class PoolRuleError(Exception):
    """Raised when a user intent breaks a pool rule. Never retried."""

    def __init__(self, reason: RejectionReason, message: Optional[str] = None) -> None:
        self.reason = reason
        self.message = message or _MESSAGES.get(reason, reason.value)
        super().__init__(self.message)


@dataclass(frozen=True)
class Resolution:
    competition: Competition
    entries: Tuple[Entry, ...]
    eliminated: Tuple[str, ...] = ()


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _lock_window(lock_window: Optional[timedelta]) -> timedelta:
    if lock_window is not None:
        return lock_window
    return timedelta(minutes=settings.get("lock_window_minutes"))


def is_match_locked(
    kickoff: datetime,
    now: Optional[datetime] = None,
    lock_window: Optional[timedelta] = None,
) -> bool:
    """Kickoff is closer than the lock window (or already past)."""
    now = now or _now()
    if kickoff.tzinfo is None:
        kickoff = kickoff.replace(tzinfo=timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return (kickoff - now) < _lock_window(lock_window)


# --------------------------------------------------------------------------- #
# Picks
# --------------------------------------------------------------------------- #


def request_pick(
    entry: Entry,
    week: int,
    team_id: str,
    *,
    owner_entries: Iterable[Entry] = (),
    fixture_lookup: Optional[FixtureLookup] = None,
    current_week: Optional[int] = None,
    now: Optional[datetime] = None,
    lock_window: Optional[timedelta] = None,
) -> PendingPick:
    """Validate a pick and stage it for confirmation.

    Checks run in a fixed order and the first failure wins: entry status,
    fixture lock, reuse within the entry, reuse by the owner in earlier weeks,
    and finally (when ``current_week`` is given) picks for resolved weeks.

    ``owner_entries`` are the owner's entries in the same competition; the
    entry itself may be included and is skipped. The owner-level ban only
    covers weeks strictly before ``week``.
    """

    if not entry.is_active:
        raise PoolRuleError(RejectionReason.ENTRY_NOT_ACTIVE)

    if fixture_lookup is not None:
        fixture = fixture_lookup(week, team_id)
        if fixture is not None and fixture.kickoff is not None:
            if is_match_locked(fixture.kickoff, now, lock_window):
                raise PoolRuleError(RejectionReason.MATCH_LOCKED)

    if any(p.team_id == team_id and p.week != week for p in entry.picks):
        raise PoolRuleError(RejectionReason.TEAM_ALREADY_USED_IN_ENTRY)

    for other in owner_entries:
        if other.id == entry.id:
            continue
        if other.competition_id != entry.competition_id or other.owner_nickname != entry.owner_nickname:
            continue
        if any(p.team_id == team_id and p.week < week for p in other.picks):
            raise PoolRuleError(RejectionReason.TEAM_ALREADY_USED_BY_OWNER)

    if current_week is not None and week < current_week:
        raise PoolRuleError(RejectionReason.WEEK_ALREADY_RESOLVED)

    return PendingPick(entry_id=entry.id, week=week, team_id=team_id)


def confirm_pick(entry: Entry, pending: PendingPick) -> Entry:
    """Commit a staged pick, replacing any earlier pick for the same week."""

    if pending.entry_id != entry.id:
        raise PoolRuleError(RejectionReason.PICK_MISMATCH)
    if not entry.is_active:
        raise PoolRuleError(RejectionReason.ENTRY_NOT_ACTIVE)
    picks = tuple(p for p in entry.picks if p.week != pending.week)
    picks = tuple(sorted(picks + (Pick(pending.week, pending.team_id),), key=lambda p: p.week))
    return replace(entry, picks=picks)


def available_teams(entry: Entry, week: int, team_ids: Iterable[str]) -> List[str]:
    used = {p.team_id for p in entry.picks if p.week != week}
    return [team_id for team_id in team_ids if team_id not in used]


# --------------------------------------------------------------------------- #
# Pools and entries
# --------------------------------------------------------------------------- #


def create_competition(
    name: str,
    creator: str,
    *,
    competition_id: Optional[str] = None,
) -> Competition:
    clean = (name or "").strip()
    if not clean:
        raise ValueError("Pool name must not be blank")
    return Competition(
        id=competition_id or f"c-{uuid4().hex[:12]}",
        name=clean,
        creator_nickname=creator or "Manager",
        current_week=1,
        status=CompetitionStatus.OPEN,
        history=(),
    )


def create_entry(
    competition: Competition,
    owner: str,
    wallet: int,
    *,
    existing_entries: Iterable[Entry] = (),
    entry_id: Optional[str] = None,
    entry_cost: Optional[int] = None,
    max_entries: Optional[int] = None,
) -> Tuple[Entry, int]:
    """Buy a new entry in ``competition`` for ``owner``.

    Returns the new entry and the debited wallet balance. The cap is checked
    before the balance, so a full owner is told about the cap even when broke.
    """

    cost = settings.get("entry_cost") if entry_cost is None else entry_cost
    cap = settings.get("max_entries_per_pool") if max_entries is None else max_entries

    owned = [
        e
        for e in existing_entries
        if e.competition_id == competition.id and e.owner_nickname == owner
    ]
    if len(owned) >= cap:
        raise PoolRuleError(
            RejectionReason.MAX_ENTRIES_REACHED, f"Max {cap} entries allowed."
        )
    if wallet < cost:
        raise PoolRuleError(RejectionReason.INSUFFICIENT_FUNDS)

    entry = Entry(
        id=entry_id or f"entry-{uuid4().hex[:12]}",
        competition_id=competition.id,
        name=f"Entry #{len(owned) + 1}",
        owner_nickname=owner,
        status=EntryStatus.ACTIVE,
        picks=(),
        created_at_week=competition.current_week,
    )
    return entry, wallet - cost


# --------------------------------------------------------------------------- #
# Resolution
# --------------------------------------------------------------------------- #


def _resolve_entry(entry: Entry, competition: Competition, outcomes: Dict[str, Outcome]) -> Entry:
    if entry.competition_id != competition.id or not entry.is_active:
        return entry
    pick = entry.pick_for(competition.current_week)
    if pick is None or outcomes.get(pick.team_id) != Outcome.WIN:
        return replace(entry, status=EntryStatus.ELIMINATED)
    return entry


def resolve_week(
    competition: Competition,
    entries: Sequence[Entry],
    outcomes: Dict[str, Outcome],
) -> Resolution:
    """Eliminate every active entry whose current-week pick did not win.

    Entries are resolved independently. The competition advances by exactly
    one week and records the outcomes in its history.
    """

    outcomes = {team_id: Outcome(value) for team_id, value in outcomes.items()}
    resolved = tuple(_resolve_entry(e, competition, outcomes) for e in entries)
    eliminated = tuple(
        after.id
        for before, after in zip(entries, resolved)
        if before.status != after.status
    )
    advanced = replace(
        competition,
        current_week=competition.current_week + 1,
        history=competition.history + (WeeklyResult(competition.current_week, dict(outcomes)),),
    )
    logger.info(
        "Resolved week %s of pool %s: %d eliminated",
        competition.current_week,
        competition.id,
        len(eliminated),
    )
    return Resolution(competition=advanced, entries=resolved, eliminated=eliminated)


# --------------------------------------------------------------------------- #
# Derived views
# --------------------------------------------------------------------------- #


def competition_entries(competition: Competition, entries: Iterable[Entry]) -> List[Entry]:
    return [e for e in entries if e.competition_id == competition.id]


def survivors(competition: Competition, entries: Iterable[Entry]) -> List[Entry]:
    return [e for e in competition_entries(competition, entries) if e.is_active]


def compute_selection_breakdown(
    competition: Competition,
    entries: Iterable[Entry],
    week: Optional[int] = None,
) -> List[Tuple[str, int]]:
    week = competition.current_week if week is None else week
    counts: Dict[str, int] = {}
    for entry in survivors(competition, entries):
        pick = entry.pick_for(week)
        if pick is not None:
            counts[pick.team_id] = counts.get(pick.team_id, 0) + 1
    # sorted() is stable: ties keep first-seen order
    return sorted(counts.items(), key=lambda item: item[1], reverse=True)


def compute_standings_weeks(competition: Competition, entries: Iterable[Entry]) -> List[int]:
    max_week = competition.current_week
    for entry in competition_entries(competition, entries):
        for pick in entry.picks:
            if pick.week > max_week:
                max_week = pick.week
    return list(range(1, max_week + 1))


def standings_grid(competition: Competition, entries: Iterable[Entry]) -> pd.DataFrame:
    """Entry-by-week pick matrix, one row per entry of the pool."""

    pool_entries = competition_entries(competition, entries)
    weeks = compute_standings_weeks(competition, pool_entries)
    rows = []
    for entry in pool_entries:
        row = {
            "entry_id": entry.id,
            "entry": entry.name,
            "owner": entry.owner_nickname,
            "status": entry.status.value,
        }
        for week in weeks:
            pick = entry.pick_for(week)
            row[str(week)] = pick.team_id if pick else None
        rows.append(row)
    columns = ["entry_id", "entry", "owner", "status"] + [str(w) for w in weeks]
    return pd.DataFrame(rows, columns=columns)


def build_share_report(
    competition: Competition,
    entries: Iterable[Entry],
    team_name: Callable[[Optional[str]], str],
) -> str:
    week = competition.current_week
    alive = survivors(competition, entries)
    lines = [
        "🏆 *PL SURVIVOR ELITE* 🏆",
        f"*Pool:* {competition.name}",
        f"*MW {week} Report*",
        "--------------------------",
        f"🛡️ *Survivors:* {len(alive)}",
    ]
    for entry in alive:
        pick = entry.pick_for(week)
        lines.append(f"- {entry.name}: {team_name(pick.team_id if pick else None)}")
    return "\n".join(lines) + "\n"


def share_url(text: str) -> str:
    return f"{SHARE_BASE_URL}{quote(text, safe='')}"
