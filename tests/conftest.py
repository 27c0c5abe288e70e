from __future__ import annotations

from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient

from api.dependencies import get_league_loader, get_store
from api.main import app
from config import settings
from domain import Fixture, LeagueData, LeagueTableEntry
from store import SessionStore

FIXED_NOW = datetime(2025, 1, 10, 12, 0, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def _reset_knobs():
    settings.reset()
    yield
    settings.reset()


@pytest.fixture
def store(tmp_path) -> SessionStore:
    return SessionStore(tmp_path / "state.json", clock=lambda: FIXED_NOW)


@pytest.fixture
def league() -> LeagueData:
    return LeagueData(
        table=[
            LeagueTableEntry(position=1, team="Liverpool", team_id="LIV", played=20, win=15, draw=4, loss=1, gd=30, points=49),
            LeagueTableEntry(position=2, team="Arsenal", team_id="ARS", played=20, win=12, draw=6, loss=2, gd=20, points=42),
        ],
        fixtures=[
            Fixture(
                home_team="Arsenal",
                away_team="Chelsea",
                home_team_id="ARS",
                away_team_id="CHE",
                matchday=1,
                kickoff=datetime(2025, 1, 12, 15, 0, tzinfo=timezone.utc),
            ),
            Fixture(
                home_team="Liverpool",
                away_team="Everton",
                home_team_id="LIV",
                away_team_id="EVE",
                matchday=1,
                kickoff=datetime(2025, 1, 10, 12, 30, tzinfo=timezone.utc),
            ),
        ],
        last_updated=FIXED_NOW,
    )


@pytest.fixture
def client(store: SessionStore, league: LeagueData) -> TestClient:
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_league_loader] = lambda: (lambda: league)
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
