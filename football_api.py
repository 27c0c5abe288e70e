from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

import httpx

from config import FOOTBALL_DATA_BASE, FOOTBALL_DATA_COMPETITION
from domain import Fixture, FixtureStatus, LeagueTableEntry
from retry import call_with_retry
from teams import TeamDirectory, default_directory

logger = logging.getLogger(__name__)

# football-data.org match states folded into the three the game cares about.
MATCH_STATUS_MAP: Dict[str, FixtureStatus] = {
    "SCHEDULED": FixtureStatus.SCHEDULED,
    "TIMED": FixtureStatus.SCHEDULED,
    "POSTPONED": FixtureStatus.SCHEDULED,
    "IN_PLAY": FixtureStatus.LIVE,
    "PAUSED": FixtureStatus.LIVE,
    "LIVE": FixtureStatus.LIVE,
    "FINISHED": FixtureStatus.FT,
    "AWARDED": FixtureStatus.FT,
}


@dataclass(frozen=True)
class FootballDataConfig:
    token: Optional[str]
    competition: str = FOOTBALL_DATA_COMPETITION
    base_url: str = FOOTBALL_DATA_BASE

    @classmethod
    def from_environment(cls) -> "FootballDataConfig":
        token = os.getenv("FOOTBALL_DATA_TOKEN") or os.getenv("X_AUTH_TOKEN")
        base_url = os.getenv("FOOTBALL_DATA_BASE", FOOTBALL_DATA_BASE)
        return cls(token=token, competition=FOOTBALL_DATA_COMPETITION, base_url=base_url)


class FootballDataClient:
    """Minimal football-data.org v4 client for standings and fixtures."""

    def __init__(
        self,
        config: FootballDataConfig,
        *,
        directory: TeamDirectory = default_directory,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.config = config
        self.directory = directory
        self._transport = transport

    # ------------------------------------------------------------------ #
    # Low-level HTTP helpers
    # ------------------------------------------------------------------ #
    def _headers(self) -> Dict[str, str]:
        headers = {
            "User-Agent": "PL-Survivor/football-data-client",
            "Content-Type": "application/json",
        }
        if self.config.token:
            headers["X-Auth-Token"] = self.config.token
        return headers

    def _request(self, path: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        url = f"{self.config.base_url}/competitions/{self.config.competition}/{path}"

        def _get() -> Dict[str, Any]:
            with httpx.Client(timeout=30, transport=self._transport) as client:
                response = client.get(url, params=params, headers=self._headers())
            if response.status_code == 401 or response.status_code == 403:
                raise PermissionError("Unauthorized: validate FOOTBALL_DATA_TOKEN.")
            response.raise_for_status()
            payload = response.json()
            if not isinstance(payload, dict):
                raise ValueError(f"Unexpected payload type from {path}: {type(payload).__name__}")
            return payload

        return call_with_retry(_get, label=f"football-data {path}")

    # ------------------------------------------------------------------ #
    # Endpoints
    # ------------------------------------------------------------------ #
    def fetch_standings_payload(self) -> Dict[str, Any]:
        return self._request("standings")

    def fetch_matches_payload(self, status: str) -> Dict[str, Any]:
        return self._request("matches", params={"status": status})

    def get_standings(self) -> List[LeagueTableEntry]:
        """Current TOTAL table, or an empty list when the source is unavailable."""
        try:
            payload = self.fetch_standings_payload()
        except Exception as exc:
            logger.error("Standings fetch error: %s", exc)
            return []
        return parse_standings(payload, self.directory)

    def get_upcoming_matches(self) -> List[Fixture]:
        return self._get_matches("SCHEDULED")

    def get_finished_matches(self) -> List[Fixture]:
        return self._get_matches("FINISHED")

    def _get_matches(self, status: str) -> List[Fixture]:
        try:
            payload = self.fetch_matches_payload(status)
        except Exception as exc:
            logger.error("Matches fetch error (%s): %s", status, exc)
            return []
        return parse_matches(payload, self.directory)


def _coerce_int(value: Any) -> Optional[int]:
    try:
        if value is None or value == "":
            return None
        return int(value)
    except (TypeError, ValueError):
        return None


def _parse_datetime(value: Any) -> Optional[datetime]:
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return None


def _team_label(team_payload: Any) -> str:
    if not isinstance(team_payload, dict):
        return "Unknown"
    return str(team_payload.get("name") or team_payload.get("shortName") or "Unknown")


def parse_standings(payload: Dict[str, Any], directory: TeamDirectory = default_directory) -> List[LeagueTableEntry]:
    standings = payload.get("standings") or []
    total = next(
        (s for s in standings if isinstance(s, dict) and s.get("type") == "TOTAL"),
        None,
    )
    if total is None:
        return []
    table: List[LeagueTableEntry] = []
    for item in total.get("table") or []:
        if not isinstance(item, dict):
            continue
        raw_name = _team_label(item.get("team"))
        team = directory.match_team_name(raw_name)
        table.append(
            LeagueTableEntry(
                position=_coerce_int(item.get("position")) or 0,
                team=team.name if team else raw_name,
                team_id=team.id if team else None,
                played=_coerce_int(item.get("playedGames")) or 0,
                win=_coerce_int(item.get("won")) or 0,
                draw=_coerce_int(item.get("draw")) or 0,
                loss=_coerce_int(item.get("lost")) or 0,
                gd=_coerce_int(item.get("goalDifference")) or 0,
                points=_coerce_int(item.get("points")) or 0,
            )
        )
    return table


def _parse_score(match_payload: Dict[str, Any]) -> Optional[str]:
    full_time = (match_payload.get("score") or {}).get("fullTime") or {}
    home = _coerce_int(full_time.get("home"))
    away = _coerce_int(full_time.get("away"))
    if home is None or away is None:
        return None
    return f"{home}-{away}"


def parse_matches(payload: Dict[str, Any], directory: TeamDirectory = default_directory) -> List[Fixture]:
    fixtures: List[Fixture] = []
    for match in payload.get("matches") or []:
        if not isinstance(match, dict):
            continue
        home_raw = _team_label(match.get("homeTeam"))
        away_raw = _team_label(match.get("awayTeam"))
        home = directory.match_team_name(home_raw)
        away = directory.match_team_name(away_raw)
        fixtures.append(
            Fixture(
                home_team=home.name if home else home_raw,
                away_team=away.name if away else away_raw,
                home_team_id=home.id if home else None,
                away_team_id=away.id if away else None,
                matchday=_coerce_int(match.get("matchday")),
                kickoff=_parse_datetime(match.get("utcDate")),
                status=MATCH_STATUS_MAP.get(str(match.get("status") or ""), FixtureStatus.SCHEDULED),
                score=_parse_score(match),
            )
        )
    return fixtures


def default_client() -> FootballDataClient:
    return FootballDataClient(FootballDataConfig.from_environment())
