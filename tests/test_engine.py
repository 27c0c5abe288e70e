from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

import engine
from domain import Competition, Entry, EntryStatus, Fixture, Outcome, PendingPick, Pick
from engine import PoolRuleError, RejectionReason

NOW = datetime(2025, 1, 10, 12, 0, tzinfo=timezone.utc)


def _comp(week: int = 1) -> Competition:
    return Competition(id="c-1", name="Office Pool", creator_nickname="alex", current_week=week)


def _entry(entry_id: str = "e-1", owner: str = "alex", picks=(), status=EntryStatus.ACTIVE, comp_id: str = "c-1") -> Entry:
    return Entry(
        id=entry_id,
        competition_id=comp_id,
        name=f"Entry {entry_id}",
        owner_nickname=owner,
        status=status,
        picks=tuple(Pick(w, t) for w, t in picks),
    )


def _reason(excinfo) -> RejectionReason:
    return excinfo.value.reason


# --------------------------------------------------------------------------- #
# request_pick
# --------------------------------------------------------------------------- #


def test_same_entry_cannot_reuse_team_in_another_week() -> None:
    entry = _entry(picks=[(1, "ARS")])
    with pytest.raises(PoolRuleError) as excinfo:
        engine.request_pick(entry, 2, "ARS")
    assert _reason(excinfo) == RejectionReason.TEAM_ALREADY_USED_IN_ENTRY


def test_repicking_same_team_for_same_week_is_allowed() -> None:
    entry = _entry(picks=[(1, "ARS")])
    pending = engine.request_pick(entry, 1, "ARS")
    assert pending == PendingPick(entry_id="e-1", week=1, team_id="ARS")


def test_owner_reuse_ban_only_covers_earlier_weeks() -> None:
    e1 = _entry("e-1", picks=[(3, "ARS")])
    e2 = _entry("e-2")
    owner_entries = [e1, e2]

    with pytest.raises(PoolRuleError) as excinfo:
        engine.request_pick(e2, 5, "ARS", owner_entries=owner_entries)
    assert _reason(excinfo) == RejectionReason.TEAM_ALREADY_USED_BY_OWNER

    # Later picks by the owner do not block an earlier week.
    pending = engine.request_pick(e2, 1, "ARS", owner_entries=owner_entries)
    assert pending.week == 1


def test_owner_reuse_ban_ignores_other_owners_and_pools() -> None:
    mine = _entry("e-1")
    other_owner = _entry("e-2", owner="sam", picks=[(1, "LIV")])
    other_pool = _entry("e-3", comp_id="c-2", picks=[(1, "LIV")])
    pending = engine.request_pick(mine, 2, "LIV", owner_entries=[other_owner, other_pool])
    assert pending.team_id == "LIV"


def test_inactive_entry_is_rejected_first() -> None:
    entry = _entry(picks=[(1, "ARS")], status=EntryStatus.ELIMINATED)
    with pytest.raises(PoolRuleError) as excinfo:
        # Would also break the reuse rule; status wins.
        engine.request_pick(entry, 2, "ARS")
    assert _reason(excinfo) == RejectionReason.ENTRY_NOT_ACTIVE


def test_locked_fixture_rejects_pick() -> None:
    fixture = Fixture("Arsenal", "Chelsea", "ARS", "CHE", matchday=1, kickoff=NOW + timedelta(minutes=30))

    def lookup(week, team_id):
        return fixture if week == 1 and fixture.involves(team_id) else None

    with pytest.raises(PoolRuleError) as excinfo:
        engine.request_pick(_entry(), 1, "CHE", fixture_lookup=lookup, now=NOW)
    assert _reason(excinfo) == RejectionReason.MATCH_LOCKED

    # Outside the window, and for weeks without fixture data, picks go through.
    assert engine.request_pick(_entry(), 1, "ARS", fixture_lookup=lookup, now=NOW - timedelta(hours=2))
    assert engine.request_pick(_entry(), 2, "ARS", fixture_lookup=lookup, now=NOW)


def test_lock_check_runs_before_reuse_checks() -> None:
    fixture = Fixture("Arsenal", "Chelsea", "ARS", "CHE", matchday=2, kickoff=NOW)
    entry = _entry(picks=[(1, "ARS")])
    with pytest.raises(PoolRuleError) as excinfo:
        engine.request_pick(entry, 2, "ARS", fixture_lookup=lambda w, t: fixture, now=NOW)
    assert _reason(excinfo) == RejectionReason.MATCH_LOCKED


def test_custom_lock_window() -> None:
    kickoff = NOW + timedelta(minutes=90)
    assert engine.is_match_locked(kickoff, NOW, timedelta(hours=2))
    assert not engine.is_match_locked(kickoff, NOW, timedelta(hours=1))


def test_resolved_week_cannot_be_picked() -> None:
    with pytest.raises(PoolRuleError) as excinfo:
        engine.request_pick(_entry(), 1, "ARS", current_week=2)
    assert _reason(excinfo) == RejectionReason.WEEK_ALREADY_RESOLVED


# --------------------------------------------------------------------------- #
# confirm_pick
# --------------------------------------------------------------------------- #


def test_confirming_twice_for_same_week_keeps_latest_team() -> None:
    entry = _entry()
    entry = engine.confirm_pick(entry, PendingPick("e-1", 4, "ARS"))
    entry = engine.confirm_pick(entry, PendingPick("e-1", 4, "CHE"))
    assert entry.picks == (Pick(4, "CHE"),)


def test_confirm_rejects_pick_for_another_entry() -> None:
    with pytest.raises(PoolRuleError) as excinfo:
        engine.confirm_pick(_entry(), PendingPick("e-9", 1, "ARS"))
    assert _reason(excinfo) == RejectionReason.PICK_MISMATCH


def test_available_teams_hides_teams_used_in_other_weeks() -> None:
    entry = _entry(picks=[(1, "ARS"), (2, "LIV")])
    assert engine.available_teams(entry, 2, ["ARS", "LIV", "CHE"]) == ["LIV", "CHE"]


# --------------------------------------------------------------------------- #
# create_entry / create_competition
# --------------------------------------------------------------------------- #


def test_entry_cap_rejects_third_entry_even_with_money() -> None:
    comp = _comp()
    existing = [_entry("e-1"), _entry("e-2")]
    with pytest.raises(PoolRuleError) as excinfo:
        engine.create_entry(comp, "alex", 1000, existing_entries=existing)
    assert _reason(excinfo) == RejectionReason.MAX_ENTRIES_REACHED


def test_insufficient_funds() -> None:
    wallet = 9
    with pytest.raises(PoolRuleError) as excinfo:
        engine.create_entry(_comp(), "alex", wallet, entry_cost=10)
    assert _reason(excinfo) == RejectionReason.INSUFFICIENT_FUNDS
    assert wallet == 9


def test_create_entry_debits_wallet_and_starts_active() -> None:
    comp = _comp(week=3)
    entry, wallet = engine.create_entry(comp, "alex", 50, existing_entries=[_entry("e-1")], entry_id="e-2")
    assert wallet == 40
    assert entry.status == EntryStatus.ACTIVE
    assert entry.picks == ()
    assert entry.created_at_week == 3
    assert entry.name == "Entry #2"


def test_create_competition_rejects_blank_name() -> None:
    with pytest.raises(ValueError):
        engine.create_competition("   ", "alex")
    comp = engine.create_competition(" Friday Five ", "alex")
    assert comp.name == "Friday Five"
    assert comp.current_week == 1


# --------------------------------------------------------------------------- #
# resolve_week
# --------------------------------------------------------------------------- #


@pytest.mark.parametrize(
    "picks,outcomes,expected",
    [
        ([(1, "ARS")], {"ARS": Outcome.WIN}, EntryStatus.ACTIVE),
        ([(1, "ARS")], {"ARS": Outcome.DRAW}, EntryStatus.ELIMINATED),
        ([(1, "ARS")], {"ARS": Outcome.LOSS}, EntryStatus.ELIMINATED),
        ([(1, "ARS")], {}, EntryStatus.ELIMINATED),
        ([], {"ARS": Outcome.WIN}, EntryStatus.ELIMINATED),
    ],
)
def test_resolution_status(picks, outcomes, expected) -> None:
    resolution = engine.resolve_week(_comp(), [_entry(picks=picks)], outcomes)
    assert resolution.entries[0].status == expected


def test_resolution_advances_week_and_records_history() -> None:
    comp = _comp(week=7)
    resolution = engine.resolve_week(comp, [], {"ARS": "WIN"})
    assert resolution.competition.current_week == 8
    assert resolution.competition.history[-1].week == 7
    assert resolution.competition.history[-1].results == {"ARS": Outcome.WIN}


def test_resolution_leaves_other_pools_and_eliminated_entries_alone() -> None:
    dead = _entry("e-1", status=EntryStatus.ELIMINATED)
    elsewhere = _entry("e-2", comp_id="c-2")
    resolution = engine.resolve_week(_comp(), [dead, elsewhere], {})
    assert resolution.entries == (dead, elsewhere)
    assert resolution.eliminated == ()


# --------------------------------------------------------------------------- #
# Derived views
# --------------------------------------------------------------------------- #


def test_selection_breakdown_counts_active_entries() -> None:
    entries = [
        _entry("e-1", picks=[(1, "ARS")]),
        _entry("e-2", owner="sam", picks=[(1, "ARS")]),
        _entry("e-3", owner="kim", picks=[(1, "BRE")]),
        _entry("e-4", owner="lee", picks=[(1, "BRE")], status=EntryStatus.ELIMINATED),
    ]
    assert engine.compute_selection_breakdown(_comp(), entries) == [("ARS", 2), ("BRE", 1)]


def test_selection_breakdown_ties_keep_input_order() -> None:
    entries = [
        _entry("e-1", picks=[(1, "LIV")]),
        _entry("e-2", owner="sam", picks=[(1, "ARS")]),
    ]
    assert engine.compute_selection_breakdown(_comp(), entries) == [("LIV", 1), ("ARS", 1)]


def test_standings_weeks_cover_stray_future_picks() -> None:
    comp = _comp(week=2)
    assert engine.compute_standings_weeks(comp, []) == [1, 2]
    entries = [_entry(picks=[(1, "ARS"), (5, "LIV")])]
    assert engine.compute_standings_weeks(comp, entries) == [1, 2, 3, 4, 5]


def test_standings_grid_has_one_column_per_week() -> None:
    entries = [_entry(picks=[(1, "ARS")]), _entry("e-2", owner="sam")]
    grid = engine.standings_grid(_comp(week=2), entries)
    assert list(grid.columns) == ["entry_id", "entry", "owner", "status", "1", "2"]
    assert grid.loc[0, "1"] == "ARS"
    assert grid.shape[0] == 2


def test_share_report_lists_survivors_and_encodes_link() -> None:
    entries = [
        _entry("e-1", picks=[(1, "ARS")]),
        _entry("e-2", owner="sam"),
        _entry("e-3", owner="kim", status=EntryStatus.ELIMINATED),
    ]
    names = {"ARS": "Arsenal"}
    text = engine.build_share_report(_comp(), entries, lambda tid: names.get(tid, "Waiting..."))
    assert "*Survivors:* 2" in text
    assert "- Entry e-1: Arsenal" in text
    assert "- Entry e-2: Waiting..." in text
    url = engine.share_url(text)
    assert url.startswith("https://wa.me/?text=")
    assert " " not in url and "\n" not in url


def test_end_to_end_season() -> None:
    comp = _comp()
    entry, wallet = engine.create_entry(comp, "alex", 50, entry_cost=10)
    assert wallet == 40

    pending = engine.request_pick(entry, 1, "ARS", owner_entries=[entry], current_week=comp.current_week)
    entry = engine.confirm_pick(entry, pending)

    resolution = engine.resolve_week(comp, [entry], {"ARS": Outcome.WIN})
    comp, (entry,) = resolution.competition, resolution.entries
    assert entry.status == EntryStatus.ACTIVE
    assert comp.current_week == 2

    resolution = engine.resolve_week(comp, [entry], {"LIV": Outcome.LOSS})
    assert resolution.entries[0].status == EntryStatus.ELIMINATED
    assert resolution.competition.current_week == 3
