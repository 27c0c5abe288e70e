"""Terminal report for a survivor pool.

Prints the cached league table (optionally refreshed first), each pool's
survivors, the pick breakdown for the current week and the week-by-week pick
grid. ``--share`` also prints the chat share link for the report.
"""

from __future__ import annotations

import argparse
import logging
from typing import Callable, Iterable, List, Optional, Tuple

import engine
from domain import Competition, LeagueTableEntry
from league_data import load_league_data_blocking
from store import AppState, SessionStore
from teams import TeamDirectory, default_directory


def hr(char: str = "─", n: int = 72) -> None:
    print(char * n)


def print_table(title: str, table: List[LeagueTableEntry]) -> None:
    print(title); hr()
    print(f"{'#':<4}{'Team':<24}{'P':>4}{'W':>4}{'D':>4}{'L':>4}{'GD':>6}{'Pts':>6}")
    for row in table:
        print(
            f"{row.position:<4}{row.team:<24}{row.played:>4}{row.win:>4}"
            f"{row.draw:>4}{row.loss:>4}{row.gd:>+6}{row.points:>6}"
        )
    print()


def print_board(
    title: str,
    rows: Iterable[Tuple[str, int]],
    val_hdr: str,
    fmt: Callable[[int], str] = str,
) -> None:
    print(title); hr()
    print(f"{'#':<4}{'Team':<28} {val_hdr}")
    for i, (team, val) in enumerate(rows, start=1):
        print(f"{i:<4}{team:<28} {fmt(val)}")
    print()


def print_pool(state: AppState, comp: Competition, directory: TeamDirectory, share: bool = False) -> None:
    hr("="); print(f"POOL {comp.name}  (MW {comp.current_week}, {comp.status.value})"); hr("=")
    alive = engine.survivors(comp, state.entries)
    total = len(engine.competition_entries(comp, state.entries))
    print(f"Survivors: {len(alive)} of {total} entries")
    print()

    breakdown = engine.compute_selection_breakdown(comp, state.entries)
    print_board(
        f"MW {comp.current_week} Selection Breakdown",
        [(directory.display_name(team_id, default=team_id), count) for team_id, count in breakdown],
        "Picks",
    )

    grid = engine.standings_grid(comp, state.entries)
    print("Standings"); hr()
    if grid.empty:
        print("(no entries yet)")
    else:
        print(grid.drop(columns=["entry_id"]).fillna("-").to_string(index=False))
    print()

    if share:
        text = engine.build_share_report(comp, state.entries, directory.display_name)
        print(text)
        print(engine.share_url(text))
        print()


def main(
    state_path: Optional[str] = None,
    pool: Optional[str] = None,
    refresh: bool = False,
    share: bool = False,
) -> None:
    store = SessionStore(state_path)
    if refresh:
        store.set_league_data(load_league_data_blocking())
    state = store.get()

    if state.league.table:
        print_table("Premier League Table", state.league.table)
        for source in state.league.sources:
            print(f"  source: {source.title} <{source.uri}>")
        print()

    pools = [c for c in state.competitions if pool is None or c.id == pool or c.name == pool]
    if not pools:
        print("No pools found." if pool is None else f"No pool matching '{pool}'.")
        return
    for comp in pools:
        print_pool(state, comp, default_directory, share=share)


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Print survivor pool reports from the saved session state.")
    parser.add_argument(
        "--state",
        dest="state_path",
        default=None,
        help="Path to the saved session state (default: SURVIVOR_STATE_PATH or survivor_state.json)",
    )
    parser.add_argument(
        "--pool",
        default=None,
        help="Only report on the pool with this id or name",
    )
    parser.add_argument(
        "--refresh",
        action="store_true",
        help="Fetch standings and fixtures before printing",
    )
    parser.add_argument(
        "--share",
        action="store_true",
        help="Also print the survivors report and its share link",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Log adapter retries and fallbacks",
    )
    args = parser.parse_args()
    logging.basicConfig(level=logging.INFO if args.verbose else logging.WARNING)
    main(args.state_path, pool=args.pool, refresh=args.refresh, share=args.share)
