"""Session store: the single owner of the application state aggregate.

The store accepts commands (login, buy an entry, request/confirm a pick,
resolve a week, ...), runs them through :mod:`engine`, swaps in a new
immutable :class:`AppState` atomically and then persists the durable part of
it as one JSON record under :data:`config.STORAGE_KEY`.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from pathlib import Path
from threading import RLock
from typing import Any, Callable, Dict, List, Optional, Tuple

import engine
from config import STATE_PATH, STORAGE_KEY, settings
from domain import (
    Competition,
    CompetitionStatus,
    Entry,
    EntryStatus,
    LeagueData,
    Outcome,
    PendingPick,
    Pick,
    WeeklyResult,
)
from league_data import build_fixture_lookup
from teams import TeamDirectory, default_directory

logger = logging.getLogger(__name__)


class SessionError(Exception):
    """A command was issued without its prerequisites (login, admin mode, ...)."""


class NotFoundError(SessionError):
    """A command referenced an unknown pool or entry."""


@dataclass(frozen=True)
class AppState:
    user_nickname: Optional[str] = None
    user_coins: int = 0
    competitions: Tuple[Competition, ...] = ()
    entries: Tuple[Entry, ...] = ()
    selected_competition_id: Optional[str] = None
    is_admin_mode: bool = False
    # Not persisted: league data is a cache, outcomes and the staged pick are transient.
    league: LeagueData = field(default_factory=LeagueData)
    outcomes: Dict[str, Dict[str, Outcome]] = field(default_factory=dict)
    pending_pick: Optional[PendingPick] = None

    def competition(self, competition_id: Optional[str]) -> Optional[Competition]:
        for comp in self.competitions:
            if comp.id == competition_id:
                return comp
        return None

    def entry(self, entry_id: Optional[str]) -> Optional[Entry]:
        for item in self.entries:
            if item.id == entry_id:
                return item
        return None

    def entries_in(self, competition_id: str) -> List[Entry]:
        return [e for e in self.entries if e.competition_id == competition_id]

    def my_entries_in(self, competition_id: str) -> List[Entry]:
        return [e for e in self.entries_in(competition_id) if e.owner_nickname == self.user_nickname]


def default_state() -> AppState:
    return AppState(user_coins=int(settings.get("starting_coins")))


# --------------------------------------------------------------------------- #
# Serialization
# --------------------------------------------------------------------------- #


def _competition_to_dict(comp: Competition) -> Dict[str, Any]:
    return {
        "id": comp.id,
        "name": comp.name,
        "creatorNickname": comp.creator_nickname,
        "currentWeek": comp.current_week,
        "status": comp.status.value,
        "history": [
            {"week": item.week, "results": {k: v.value for k, v in item.results.items()}}
            for item in comp.history
        ],
    }


def _entry_to_dict(entry: Entry) -> Dict[str, Any]:
    return {
        "id": entry.id,
        "competitionId": entry.competition_id,
        "name": entry.name,
        "ownerNickname": entry.owner_nickname,
        "status": entry.status.value,
        "picks": [{"week": p.week, "teamId": p.team_id} for p in entry.picks],
        "createdAtWeek": entry.created_at_week,
    }


def state_to_dict(state: AppState) -> Dict[str, Any]:
    """Durable snapshot: everything except league data and transient fields."""

    return {
        "userNickname": state.user_nickname,
        "userCoins": state.user_coins,
        "competitions": [_competition_to_dict(c) for c in state.competitions],
        "coupons": [_entry_to_dict(e) for e in state.entries],
        "selectedCompetitionId": state.selected_competition_id,
        "isAdminMode": state.is_admin_mode,
    }


def _competition_from_dict(raw: Dict[str, Any]) -> Competition:
    current_week = int(raw.get("currentWeek", 1))
    if current_week < 1:
        raise ValueError(f"Invalid currentWeek {current_week}")
    history = tuple(
        WeeklyResult(
            week=int(item["week"]),
            results={str(k): Outcome(v) for k, v in (item.get("results") or {}).items()},
        )
        for item in raw.get("history") or []
    )
    return Competition(
        id=str(raw["id"]),
        name=str(raw["name"]),
        creator_nickname=str(raw.get("creatorNickname") or "Manager"),
        current_week=current_week,
        status=CompetitionStatus(raw.get("status", CompetitionStatus.OPEN.value)),
        history=history,
    )


def _entry_from_dict(raw: Dict[str, Any]) -> Entry:
    picks: Dict[int, Pick] = {}
    for item in raw.get("picks") or []:
        pick = Pick(week=int(item["week"]), team_id=str(item["teamId"]))
        picks[pick.week] = pick
    return Entry(
        id=str(raw["id"]),
        competition_id=str(raw["competitionId"]),
        name=str(raw["name"]),
        owner_nickname=str(raw["ownerNickname"]),
        status=EntryStatus(raw.get("status", EntryStatus.ACTIVE.value)),
        picks=tuple(picks[week] for week in sorted(picks)),
        created_at_week=int(raw.get("createdAtWeek", 1)),
    )


def state_from_dict(raw: Dict[str, Any], base: Optional[AppState] = None) -> AppState:
    """Rebuild an :class:`AppState`; missing fields fall back to ``base``.

    Raises ``KeyError``/``ValueError``/``TypeError`` on incompatible shapes.
    """

    if not isinstance(raw, dict):
        raise TypeError(f"Expected an object, got {type(raw).__name__}")
    base = base or default_state()
    nickname = raw.get("userNickname", base.user_nickname)
    selected = raw.get("selectedCompetitionId", base.selected_competition_id)
    return replace(
        base,
        user_nickname=str(nickname) if nickname else None,
        user_coins=int(raw.get("userCoins", base.user_coins)),
        competitions=tuple(_competition_from_dict(c) for c in raw.get("competitions") or []),
        entries=tuple(_entry_from_dict(e) for e in raw.get("coupons") or []),
        selected_competition_id=str(selected) if selected else None,
        is_admin_mode=bool(raw.get("isAdminMode", base.is_admin_mode)),
    )


# --------------------------------------------------------------------------- #
# Store
# --------------------------------------------------------------------------- #


class SessionStore:
    """Own the :class:`AppState` and apply commands atomically."""

    def __init__(
        self,
        path: Path | str | None = None,
        *,
        storage_key: str = STORAGE_KEY,
        directory: TeamDirectory = default_directory,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._lock = RLock()
        self._path = Path(path) if path else STATE_PATH
        self._storage_key = storage_key
        self.directory = directory
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._state = self._restore()

    @property
    def path(self) -> Path:
        return self._path

    def get(self) -> AppState:
        with self._lock:
            return self._state

    # ------------------------------------------------------------------ #
    # Persistence
    # ------------------------------------------------------------------ #
    def _read_storage(self) -> Dict[str, Any]:
        if not self._path.exists():
            return {}
        data = json.loads(self._path.read_text(encoding="utf-8"))
        if not isinstance(data, dict):
            raise ValueError("Storage file is not a key/value object")
        return data

    def _restore(self) -> AppState:
        try:
            raw = self._read_storage().get(self._storage_key)
            if raw is None:
                return default_state()
            return state_from_dict(raw)
        except (OSError, ValueError, KeyError, TypeError, AttributeError) as exc:
            logger.debug("Discarding unreadable saved state at %s: %s", self._path, exc)
            return default_state()

    def _persist(self, state: AppState) -> None:
        try:
            storage = self._read_storage()
        except (OSError, ValueError):
            storage = {}
        storage[self._storage_key] = state_to_dict(state)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self._path.parent, prefix=".survivor-", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(storage, handle, indent=2)
            os.replace(tmp_name, self._path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def _commit(self, new_state: AppState, *, persist: bool = True) -> AppState:
        with self._lock:
            # A failed write leaves both the file and memory on the old state.
            if persist:
                self._persist(new_state)
            self._state = new_state
            return new_state

    def reset(self) -> AppState:
        return self._commit(default_state())

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #
    def _require_user(self, state: AppState) -> str:
        if not state.user_nickname:
            raise SessionError("Log in with a nickname first.")
        return state.user_nickname

    def _require_admin(self, state: AppState) -> None:
        if not state.is_admin_mode:
            raise SessionError("Admin mode is required for this action.")

    def _require_competition(self, state: AppState, competition_id: str) -> Competition:
        comp = state.competition(competition_id)
        if comp is None:
            raise NotFoundError(f"Unknown pool '{competition_id}'")
        return comp

    def _require_entry(self, state: AppState, entry_id: str) -> Entry:
        entry = state.entry(entry_id)
        if entry is None:
            raise NotFoundError(f"Unknown entry '{entry_id}'")
        return entry

    def _require_own_entry(self, state: AppState, entry_id: str) -> Entry:
        user = self._require_user(state)
        entry = self._require_entry(state, entry_id)
        if entry.owner_nickname != user:
            raise SessionError(f"Entry '{entry_id}' belongs to another manager.")
        return entry

    @staticmethod
    def _replace_entry(entries: Tuple[Entry, ...], updated: Entry) -> Tuple[Entry, ...]:
        return tuple(updated if e.id == updated.id else e for e in entries)

    # ------------------------------------------------------------------ #
    # Session commands
    # ------------------------------------------------------------------ #
    def login(self, nickname: str) -> AppState:
        clean = (nickname or "").strip()
        if not clean:
            raise ValueError("Nickname must not be blank")
        with self._lock:
            state = replace(self._state, user_nickname=clean, user_coins=int(settings.get("starting_coins")))
            return self._commit(state)

    def logout(self) -> AppState:
        with self._lock:
            state = replace(
                self._state,
                user_nickname=None,
                selected_competition_id=None,
                pending_pick=None,
            )
            return self._commit(state)

    def set_admin_mode(self, enabled: bool) -> AppState:
        with self._lock:
            return self._commit(replace(self._state, is_admin_mode=bool(enabled)))

    def set_league_data(self, league: LeagueData) -> AppState:
        with self._lock:
            return self._commit(replace(self._state, league=league), persist=False)

    # ------------------------------------------------------------------ #
    # Pools and entries
    # ------------------------------------------------------------------ #
    def create_competition(self, name: str) -> Competition:
        with self._lock:
            state = self._state
            creator = self._require_user(state)
            comp = engine.create_competition(name, creator)
            self._commit(
                replace(
                    state,
                    competitions=state.competitions + (comp,),
                    selected_competition_id=comp.id,
                )
            )
            return comp

    def select_competition(self, competition_id: Optional[str]) -> AppState:
        with self._lock:
            state = self._state
            if competition_id is not None:
                self._require_competition(state, competition_id)
            return self._commit(
                replace(state, selected_competition_id=competition_id, pending_pick=None)
            )

    def buy_entry(self, competition_id: str) -> Entry:
        with self._lock:
            state = self._state
            owner = self._require_user(state)
            comp = self._require_competition(state, competition_id)
            entry, wallet = engine.create_entry(
                comp,
                owner,
                state.user_coins,
                existing_entries=state.entries,
            )
            self._commit(replace(state, user_coins=wallet, entries=state.entries + (entry,)))
            logger.info("%s bought %s in pool %s (wallet %d)", owner, entry.name, comp.id, wallet)
            return entry

    # ------------------------------------------------------------------ #
    # Picks
    # ------------------------------------------------------------------ #
    def request_pick(self, entry_id: str, week: int, team: str) -> PendingPick:
        """Validate a pick and stage it; ``team`` may be an id, name or alias."""

        with self._lock:
            state = self._state
            entry = self._require_own_entry(state, entry_id)
            comp = self._require_competition(state, entry.competition_id)
            found = self.directory.find_team(team)
            if found is None:
                raise engine.PoolRuleError(engine.RejectionReason.UNKNOWN_TEAM, f"Unknown team '{team}'")
            owner_entries = [
                e for e in state.entries_in(comp.id) if e.owner_nickname == entry.owner_nickname
            ]
            pending = engine.request_pick(
                entry,
                week,
                found.id,
                owner_entries=owner_entries,
                fixture_lookup=build_fixture_lookup(state.league.fixtures),
                current_week=comp.current_week,
                now=self._clock(),
            )
            self._commit(replace(state, pending_pick=pending), persist=False)
            return pending

    def confirm_pick(self, entry_id: str) -> Entry:
        with self._lock:
            state = self._state
            pending = state.pending_pick
            if pending is None:
                raise SessionError("No pick is waiting for confirmation.")
            entry = self._require_own_entry(state, entry_id)
            comp = self._require_competition(state, entry.competition_id)
            if pending.week < comp.current_week:
                raise engine.PoolRuleError(engine.RejectionReason.WEEK_ALREADY_RESOLVED)
            updated = engine.confirm_pick(entry, pending)
            self._commit(
                replace(
                    state,
                    entries=self._replace_entry(state.entries, updated),
                    pending_pick=None,
                )
            )
            return updated

    def cancel_pick(self) -> AppState:
        with self._lock:
            return self._commit(replace(self._state, pending_pick=None), persist=False)

    # ------------------------------------------------------------------ #
    # Administration
    # ------------------------------------------------------------------ #
    def set_outcome(self, competition_id: str, team: str, outcome: Outcome | str) -> Dict[str, Outcome]:
        with self._lock:
            state = self._state
            self._require_admin(state)
            self._require_competition(state, competition_id)
            found = self.directory.find_team(team)
            if found is None:
                raise engine.PoolRuleError(engine.RejectionReason.UNKNOWN_TEAM, f"Unknown team '{team}'")
            current = dict(state.outcomes.get(competition_id, {}))
            current[found.id] = Outcome(outcome)
            outcomes = dict(state.outcomes)
            outcomes[competition_id] = current
            self._commit(replace(state, outcomes=outcomes), persist=False)
            return current

    def resolve_week(self, competition_id: str) -> engine.Resolution:
        with self._lock:
            state = self._state
            self._require_admin(state)
            comp = self._require_competition(state, competition_id)
            resolution = engine.resolve_week(comp, state.entries, state.outcomes.get(competition_id, {}))
            outcomes = {k: v for k, v in state.outcomes.items() if k != competition_id}
            competitions = tuple(
                resolution.competition if c.id == comp.id else c for c in state.competitions
            )
            pending = state.pending_pick
            if pending is not None:
                staged_on = state.entry(pending.entry_id)
                stale = (
                    staged_on is not None
                    and staged_on.competition_id == comp.id
                    and pending.week <= comp.current_week
                )
                if stale or pending.entry_id in resolution.eliminated:
                    pending = None
            self._commit(
                replace(
                    state,
                    competitions=competitions,
                    entries=resolution.entries,
                    outcomes=outcomes,
                    pending_pick=pending,
                )
            )
            return resolution
