from __future__ import annotations

from types import SimpleNamespace

import pytest

from config import settings
from domain import Entry, Pick, Source
from search_fallback import (
    PLACEHOLDER_LOGO,
    SCOUT_DELAYED,
    SCOUT_FALLBACK,
    SearchFallbackClient,
    extract_json_from_text,
    extract_sources,
    merge_sources,
    normalize_form_rows,
    normalize_table_rows,
)
from teams import default_directory


def _response(text: str, chunks=()) -> SimpleNamespace:
    web_chunks = [SimpleNamespace(web=SimpleNamespace(uri=uri, title=title)) for title, uri in chunks]
    candidate = SimpleNamespace(
        content=SimpleNamespace(parts=[SimpleNamespace(text=text)]),
        grounding_metadata=SimpleNamespace(grounding_chunks=web_chunks),
    )
    return SimpleNamespace(text=text, candidates=[candidate])


@pytest.fixture(autouse=True)
def _fast_retries():
    settings.set("retry_base_delay", 0.0)
    settings.set("retry_jitter", 0.0)


# --------------------------------------------------------------------------- #
# JSON extraction
# --------------------------------------------------------------------------- #


def test_extract_json_from_fenced_block() -> None:
    text = '```json\n[{"team": "Arsenal", "points": 40}]\n```'
    assert extract_json_from_text(text) == [{"team": "Arsenal", "points": 40}]


def test_extract_json_skips_prose_and_brackets_in_strings() -> None:
    text = 'Here is the table [as requested]: [{"team": "Brighton [BHA]", "points": 30}] Enjoy!'
    assert extract_json_from_text(text) == [{"team": "Brighton [BHA]", "points": 30}]


def test_extract_json_falls_back_to_object() -> None:
    assert extract_json_from_text('Result: {"ok": true}') == {"ok": True}


def test_extract_json_returns_none_without_payload() -> None:
    assert extract_json_from_text("No data today, sorry.") is None
    assert extract_json_from_text("") is None


def test_extract_sources_reads_grounding_chunks() -> None:
    resp = _response("[]", chunks=[("BBC Sport", "https://bbc.test/table"), ("", "https://sky.test/")])
    assert extract_sources(resp) == [
        Source(title="BBC Sport", uri="https://bbc.test/table"),
        Source(title="Source", uri="https://sky.test/"),
    ]
    assert extract_sources(SimpleNamespace(candidates=[])) == []


def test_merge_sources_deduplicates_by_uri() -> None:
    a = Source("A", "https://a.test/")
    b = Source("B", "https://b.test/")
    assert merge_sources([a, b], [Source("A again", "https://a.test/")]) == [a, b]


# --------------------------------------------------------------------------- #
# Normalization
# --------------------------------------------------------------------------- #


def test_normalize_table_rows_accepts_loose_keys() -> None:
    rows = [
        {"pos": "1", "teamName": "Liverpool FC", "P": 20, "W": 15, "D": 4, "L": 1, "GD": "+30", "pts": 49},
        {"team": "Unknown Rovers", "points": 3},
        "garbage",
    ]
    table = normalize_table_rows(rows)
    assert len(table) == 2
    assert (table[0].team_id, table[0].position, table[0].gd, table[0].points) == ("LIV", 1, 30, 49)
    assert table[1].team_id is None
    assert table[1].position == 2
    assert normalize_table_rows({"not": "a list"}) == []


def test_normalize_form_rows_scores_and_sorts() -> None:
    rows = [
        {"teamName": "Chelsea", "last5": ["W", "D", "L", "L", "W"], "goalsFor": 8, "goalsAgainst": 6},
        {"teamName": "Arsenal", "last5": "W,W,W,D,x", "goalsFor": 10, "goalsAgainst": 2},
        {"teamName": "Atlantis FC", "last5": [], "goalsFor": 0, "goalsAgainst": 0},
    ]
    form = normalize_form_rows(rows, default_directory)
    assert [f.team_name for f in form] == ["Arsenal", "Chelsea", "Atlantis FC"]
    arsenal = form[0]
    assert arsenal.last5 == ("W", "W", "W", "D", "D")
    assert arsenal.points == 11
    assert arsenal.goal_difference == 8
    assert form[1].points == 7
    assert form[2].team_logo == PLACEHOLDER_LOGO
    assert form[2].team_id is None


def test_form_ties_break_on_goal_difference() -> None:
    rows = [
        {"teamName": "Fulham", "last5": ["W"], "goalsFor": 1, "goalsAgainst": 0},
        {"teamName": "Everton", "last5": ["W"], "goalsFor": 4, "goalsAgainst": 0},
    ]
    assert [f.team_id for f in normalize_form_rows(rows)] == ["EVE", "FUL"]


# --------------------------------------------------------------------------- #
# Client
# --------------------------------------------------------------------------- #


def test_client_get_standings_with_sources() -> None:
    prompts = []

    def generate(prompt: str, grounded: bool):
        prompts.append((prompt, grounded))
        return _response('[{"team": "Arsenal", "points": 42}]', chunks=[("BBC", "https://bbc.test/")])

    result = SearchFallbackClient("key", generate=generate).get_standings()
    assert [row.team_id for row in result.items] == ["ARS"]
    assert result.sources == [Source("BBC", "https://bbc.test/")]
    assert prompts[0][1] is True


def test_client_retries_quota_errors() -> None:
    calls = {"n": 0}

    def generate(prompt: str, grounded: bool):
        calls["n"] += 1
        if calls["n"] == 1:
            raise RuntimeError("429 RESOURCE_EXHAUSTED")
        return _response('[{"teamName": "Arsenal", "last5": ["W"]}]')

    result = SearchFallbackClient("key", generate=generate).get_form()
    assert calls["n"] == 2
    assert result.items[0].team_id == "ARS"


def test_client_failure_degrades_to_empty_result() -> None:
    def generate(prompt: str, grounded: bool):
        raise ValueError("model refused")

    client = SearchFallbackClient("key", generate=generate)
    assert client.get_standings().items == []
    assert client.get_form().sources == []


def test_missing_api_key_degrades_to_empty_result() -> None:
    settings.set("retry_max_attempts", 1)
    assert SearchFallbackClient(None).get_standings().items == []


def test_scout_advice_prompt_and_fallbacks() -> None:
    prompts = []
    entry = Entry(
        id="e-1",
        competition_id="c-1",
        name="Entry #1",
        owner_nickname="alex",
        picks=(Pick(1, "ARS"), Pick(3, "LIV")),
    )
    available = [default_directory.get("CHE"), default_directory.get("MCI")]

    def generate(prompt: str, grounded: bool):
        prompts.append((prompt, grounded))
        return _response("Back Chelsea at home.")

    client = SearchFallbackClient("key", generate=generate)
    assert client.get_scout_advice(3, entry, available) == "Back Chelsea at home."
    prompt, grounded = prompts[0]
    assert grounded is False
    assert "Current Week: 3" in prompt
    assert "Previously Used: Arsenal" in prompt
    assert "Liverpool" not in prompt
    assert "Chelsea, Man City" in prompt

    empty = SearchFallbackClient("key", generate=lambda p, g: _response(""))
    assert empty.get_scout_advice(1, entry, available) == SCOUT_DELAYED

    def broken(prompt: str, grounded: bool):
        raise ValueError("no model")

    assert SearchFallbackClient("key", generate=broken).get_scout_advice(1, entry, available) == SCOUT_FALLBACK


def test_sdk_requests_google_search_tool(monkeypatch) -> None:
    from google import genai

    calls = []

    class FakeModels:
        def generate_content(self, *, model, contents, config=None):
            calls.append((model, contents, config))
            return _response('[{"team": "Arsenal", "points": 42}]')

    class FakeClient:
        def __init__(self, api_key: str) -> None:
            assert api_key == "key"
            self.models = FakeModels()

    monkeypatch.setattr(genai, "Client", FakeClient)
    client = SearchFallbackClient("key")

    assert [row.team_id for row in client.get_standings().items] == ["ARS"]
    model, contents, config = calls[0]
    assert model == "gemini-3-flash-preview"
    assert "Premier League standings" in contents
    assert config.tools[0].google_search is not None

    entry = Entry(id="e-1", competition_id="c-1", name="Entry #1", owner_nickname="alex")
    client.get_scout_advice(1, entry, [default_directory.get("CHE")])
    assert calls[1][2] is None
