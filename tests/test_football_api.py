from __future__ import annotations

from datetime import datetime, timezone

import httpx
import pytest

from config import settings
from domain import FixtureStatus
from football_api import FootballDataClient, FootballDataConfig, parse_matches, parse_standings

STANDINGS_PAYLOAD = {
    "standings": [
        {"type": "HOME", "table": []},
        {
            "type": "TOTAL",
            "table": [
                {
                    "position": 1,
                    "team": {"name": "Liverpool FC"},
                    "playedGames": 20,
                    "won": 15,
                    "draw": 4,
                    "lost": 1,
                    "goalDifference": 30,
                    "points": 49,
                },
                {
                    "position": 2,
                    "team": {"name": "Nottingham Forest FC"},
                    "playedGames": 20,
                    "won": 12,
                    "draw": 4,
                    "lost": 4,
                    "goalDifference": 8,
                    "points": 40,
                },
            ],
        },
    ]
}

MATCHES_PAYLOAD = {
    "matches": [
        {
            "homeTeam": {"name": "Arsenal FC"},
            "awayTeam": {"name": "Chelsea FC"},
            "matchday": 21,
            "utcDate": "2025-01-12T15:00:00Z",
            "status": "TIMED",
            "score": {"fullTime": {"home": None, "away": None}},
        },
        {
            "homeTeam": {"name": "Wolverhampton Wanderers FC"},
            "awayTeam": {"name": "Racing Club"},
            "matchday": 20,
            "utcDate": "2025-01-05T12:30:00Z",
            "status": "FINISHED",
            "score": {"fullTime": {"home": 2, "away": 1}},
        },
    ]
}


@pytest.fixture(autouse=True)
def _fast_retries():
    settings.set("retry_base_delay", 0.0)
    settings.set("retry_jitter", 0.0)


def _client(handler) -> FootballDataClient:
    config = FootballDataConfig(token="secret", base_url="https://api.test/v4")
    return FootballDataClient(config, transport=httpx.MockTransport(handler))


def test_parse_standings_uses_total_table() -> None:
    table = parse_standings(STANDINGS_PAYLOAD)
    assert [row.team_id for row in table] == ["LIV", "NFO"]
    top = table[0]
    assert (top.team, top.played, top.win, top.draw, top.loss, top.gd, top.points) == (
        "Liverpool", 20, 15, 4, 1, 30, 49,
    )


def test_parse_standings_without_total_table() -> None:
    assert parse_standings({"standings": [{"type": "AWAY", "table": []}]}) == []
    assert parse_standings({}) == []


def test_parse_matches_maps_teams_status_and_score() -> None:
    upcoming, finished = parse_matches(MATCHES_PAYLOAD)
    assert (upcoming.home_team_id, upcoming.away_team_id) == ("ARS", "CHE")
    assert upcoming.kickoff == datetime(2025, 1, 12, 15, 0, tzinfo=timezone.utc)
    assert upcoming.status == FixtureStatus.SCHEDULED
    assert upcoming.score is None

    assert finished.status == FixtureStatus.FT
    assert finished.score == "2-1"
    assert finished.home_team == "Wolves"
    # Unknown clubs keep the feed's name and have no id.
    assert finished.away_team == "Racing Club"
    assert finished.away_team_id is None


def test_client_sends_token_and_parses_standings() -> None:
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=STANDINGS_PAYLOAD)

    table = _client(handler).get_standings()
    assert len(table) == 2
    assert seen[0].headers["X-Auth-Token"] == "secret"
    assert seen[0].url.path == "/v4/competitions/PL/standings"


def test_client_requests_scheduled_matches() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.params["status"] == "SCHEDULED"
        return httpx.Response(200, json=MATCHES_PAYLOAD)

    fixtures = _client(handler).get_upcoming_matches()
    assert len(fixtures) == 2


def test_client_retries_server_errors() -> None:
    calls = {"n": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["n"] += 1
        if calls["n"] < 3:
            return httpx.Response(503, json={"message": "busy"})
        return httpx.Response(200, json=STANDINGS_PAYLOAD)

    assert len(_client(handler).get_standings()) == 2
    assert calls["n"] == 3


@pytest.mark.parametrize("code", [401, 403, 404])
def test_client_failures_degrade_to_empty(code: int) -> None:
    calls = {"n": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["n"] += 1
        return httpx.Response(code, json={"message": "nope"})

    client = _client(handler)
    assert client.get_standings() == []
    assert client.get_finished_matches() == []
    # Auth and client errors are not retried.
    assert calls["n"] == 2


def test_config_from_environment(monkeypatch) -> None:
    monkeypatch.setenv("FOOTBALL_DATA_TOKEN", "abc")
    config = FootballDataConfig.from_environment()
    assert config.token == "abc"
    assert config.competition == "PL"
