"""Startup loading of league data from the primary and fallback sources."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional

from domain import Fixture, LeagueData, LeagueTableEntry
from engine import FixtureLookup
from football_api import FootballDataClient, default_client
from search_fallback import SearchFallbackClient, SearchResult, merge_sources

logger = logging.getLogger(__name__)


def sort_table(table: Iterable[LeagueTableEntry]) -> List[LeagueTableEntry]:
    return sorted(table, key=lambda row: (row.points, row.gd), reverse=True)


def group_fixtures_by_matchday(fixtures: Iterable[Fixture]) -> Dict[int, List[Fixture]]:
    groups: Dict[int, List[Fixture]] = {}
    for fixture in fixtures:
        if fixture.matchday is None:
            continue
        groups.setdefault(fixture.matchday, []).append(fixture)
    return dict(sorted(groups.items()))


def first_matchday(fixtures: Iterable[Fixture]) -> Optional[int]:
    days = [f.matchday for f in fixtures if f.matchday is not None]
    return min(days) if days else None


def build_fixture_lookup(fixtures: Iterable[Fixture]) -> FixtureLookup:
    """Index fixtures by (matchday, team id) for the pick lock check."""

    index: Dict[tuple, Fixture] = {}
    for fixture in fixtures:
        if fixture.matchday is None:
            continue
        for team_id in (fixture.home_team_id, fixture.away_team_id):
            if team_id:
                index.setdefault((fixture.matchday, team_id), fixture)

    def lookup(week: int, team_id: str) -> Optional[Fixture]:
        return index.get((week, team_id))

    return lookup


async def load_league_data(
    primary: Optional[FootballDataClient] = None,
    fallback: Optional[SearchFallbackClient] = None,
) -> LeagueData:
    """Fetch standings, form and fixtures concurrently.

    Each adapter already degrades to an empty result, so this never raises for
    source failures. Empty primary standings trigger a fallback standings call
    whose citations are kept alongside the form citations.
    """

    primary = primary or default_client()
    fallback = fallback or SearchFallbackClient.from_environment()

    standings, form, fixtures = await asyncio.gather(
        asyncio.to_thread(primary.get_standings),
        asyncio.to_thread(fallback.get_form),
        asyncio.to_thread(primary.get_upcoming_matches),
    )

    standings_sources = []
    if not standings:
        logger.info("Primary standings empty; asking search fallback")
        search: SearchResult = await asyncio.to_thread(fallback.get_standings)
        standings = search.items
        standings_sources = search.sources

    return LeagueData(
        table=sort_table(standings),
        fixtures=list(fixtures),
        form=list(form.items),
        sources=merge_sources(standings_sources, form.sources),
        last_updated=datetime.now(timezone.utc),
    )


def load_league_data_blocking(
    primary: Optional[FootballDataClient] = None,
    fallback: Optional[SearchFallbackClient] = None,
) -> LeagueData:
    return asyncio.run(load_league_data(primary, fallback))
