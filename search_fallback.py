"""Search-grounded Gemini fallback for standings, team form and scouting tips.

Used when the structured football-data source is empty or failing. The model
answers in free text; the JSON payload is pulled out with a bracket-matching
scan and anything unparseable degrades to an empty result.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence

from config import settings
from domain import Entry, LeagueTableEntry, Source, TeamForm
from retry import call_with_retry
from teams import Team, TeamDirectory, default_directory

logger = logging.getLogger(__name__)

PLACEHOLDER_LOGO = "https://via.placeholder.com/50"
SCOUT_DELAYED = "Scouting report delayed..."
SCOUT_FALLBACK = "Trust your manager's intuition today."

STANDINGS_PROMPT = (
    "Retrieve the current 2024/25 English Premier League standings. I need the full table: "
    "position, team name, played, won, drawn, lost, goal difference, and total points for all "
    "20 teams. Please return the data as a raw JSON array of objects."
)

FORM_PROMPT = """Find the current form for all 20 Premier League teams in the 2024/25 season.
For each team, I need a JSON object with:
1. teamName (string)
2. last5 (array of 'W', 'D', or 'L')
3. goalsFor (number)
4. goalsAgainst (number)
Return the results as a raw JSON array."""

SCOUT_PROMPT = """Context: Premier League Survivor Pool (Last Man Standing).
User must pick 1 team to WIN each week. Cannot reuse teams.
Current Week: {week}
Previously Used: {used}
Options for this week: {options}

Role: Expert Football Scout.
Task: Provide a tactical pick for this week (Safe vs Value). Be concise (under 50 words)."""

GenerateFn = Callable[[str, bool], Any]


@dataclass(frozen=True)
class SearchResult:
    items: List[Any] = field(default_factory=list)
    sources: List[Source] = field(default_factory=list)


# --------------------------------------------------------------------------- #
# Response parsing
# --------------------------------------------------------------------------- #


def _strip_fences(text: str) -> str:
    s = (text or "").strip()
    if s.startswith("```"):
        chunks = s.split("```")
        if len(chunks) >= 3:
            s = chunks[1].strip()
            if s.lower().startswith("json"):
                s = s[4:].strip()
    return s


def _balanced_span(text: str, start: int) -> Optional[str]:
    opener = text[start]
    closer = "]" if opener == "[" else "}"
    depth = 0
    in_string = False
    escaped = False
    for idx in range(start, len(text)):
        ch = text[idx]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == opener:
            depth += 1
        elif ch == closer:
            depth -= 1
            if depth == 0:
                return text[start : idx + 1]
    return None


def extract_json_from_text(text: str) -> Any:
    """Return the first parseable JSON array (else object) embedded in ``text``."""

    s = _strip_fences(text)
    for opener in ("[", "{"):
        pos = s.find(opener)
        while pos != -1:
            span = _balanced_span(s, pos)
            if span is not None:
                try:
                    return json.loads(span)
                except json.JSONDecodeError:
                    pass
            pos = s.find(opener, pos + 1)
    if s:
        logger.warning("No JSON payload found in model response (%d chars)", len(s))
    return None


def _response_text(resp: Any) -> str:
    try:
        text = getattr(resp, "text", None)
    except ValueError:
        # the SDK raises when the candidate has no text part
        text = None
    if isinstance(text, str) and text.strip():
        return text.strip()
    try:
        parts = resp.candidates[0].content.parts
    except (AttributeError, IndexError, TypeError):
        return ""
    out = [p.text for p in parts if isinstance(getattr(p, "text", None), str) and p.text]
    return "\n".join(out).strip()


def extract_sources(resp: Any) -> List[Source]:
    try:
        candidate = resp.candidates[0]
    except (AttributeError, IndexError, TypeError):
        return []
    metadata = getattr(candidate, "grounding_metadata", None)
    chunks = getattr(metadata, "grounding_chunks", None) or []
    sources: List[Source] = []
    for chunk in chunks:
        web = getattr(chunk, "web", None)
        uri = getattr(web, "uri", None) if web is not None else None
        if not uri:
            continue
        sources.append(Source(title=getattr(web, "title", None) or "Source", uri=str(uri)))
    return sources


def _first_number(row: Dict[str, Any], *keys: str) -> int:
    for key in keys:
        value = row.get(key)
        if value is None or value == "":
            continue
        try:
            return int(float(value))
        except (TypeError, ValueError):
            continue
    return 0


def _first_text(row: Dict[str, Any], *keys: str) -> Optional[str]:
    for key in keys:
        value = row.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
        if isinstance(value, dict) and isinstance(value.get("name"), str):
            return value["name"].strip()
    return None


def normalize_table_rows(rows: Any, directory: TeamDirectory = default_directory) -> List[LeagueTableEntry]:
    if not isinstance(rows, list):
        return []
    table: List[LeagueTableEntry] = []
    for idx, row in enumerate(rows, start=1):
        if not isinstance(row, dict):
            continue
        raw_name = _first_text(row, "team", "teamName", "team_name", "name", "club") or "Unknown"
        team = directory.match_team_name(raw_name)
        table.append(
            LeagueTableEntry(
                position=_first_number(row, "position", "pos", "rank") or idx,
                team=team.name if team else raw_name,
                team_id=team.id if team else None,
                played=_first_number(row, "played", "playedGames", "P"),
                win=_first_number(row, "won", "win", "wins", "W"),
                draw=_first_number(row, "drawn", "draw", "draws", "D"),
                loss=_first_number(row, "lost", "loss", "losses", "L"),
                gd=_first_number(row, "goalDifference", "goal_difference", "gd", "GD"),
                points=_first_number(row, "points", "pts", "Pts"),
            )
        )
    return table


def _coerce_result(value: Any) -> str:
    res = str(value).strip().upper()[:1]
    return res if res in ("W", "D", "L") else "D"


def normalize_form_rows(rows: Any, directory: TeamDirectory = default_directory) -> List[TeamForm]:
    """Clean model-produced form rows and order them by points, then goal difference."""

    if not isinstance(rows, list):
        return []
    form: List[TeamForm] = []
    for row in rows:
        if not isinstance(row, dict):
            continue
        raw_name = _first_text(row, "teamName", "team", "name") or "Unknown"
        team: Optional[Team] = directory.match_team_name(raw_name)
        raw_last5 = row.get("last5") or []
        if isinstance(raw_last5, str):
            raw_last5 = [ch for ch in raw_last5 if not ch.isspace() and ch not in ",-"]
        last5 = tuple(_coerce_result(r) for r in list(raw_last5)[:5])
        points = sum(3 if r == "W" else 1 if r == "D" else 0 for r in last5)
        goals_for = _first_number(row, "goalsFor")
        goals_against = _first_number(row, "goalsAgainst")
        form.append(
            TeamForm(
                team_name=team.name if team else raw_name,
                team_logo=team.logo if team else PLACEHOLDER_LOGO,
                team_id=team.id if team else None,
                last5=last5,
                goals_for=goals_for,
                goals_against=goals_against,
                goal_difference=goals_for - goals_against,
                points=points,
            )
        )
    form.sort(key=lambda f: (f.points, f.goal_difference), reverse=True)
    return form


# --------------------------------------------------------------------------- #
# Client
# --------------------------------------------------------------------------- #


def grounding_config(grounded: bool) -> Any:
    """Request config enabling the Google Search tool, or ``None`` for plain generation."""

    if not grounded:
        return None
    from google.genai import types

    return types.GenerateContentConfig(tools=[types.Tool(google_search=types.GoogleSearch())])


class SearchFallbackClient:
    """Thin wrapper over the ``google-genai`` client with Google Search grounding."""

    def __init__(
        self,
        api_key: Optional[str],
        *,
        model_name: Optional[str] = None,
        directory: TeamDirectory = default_directory,
        generate: Optional[GenerateFn] = None,
    ) -> None:
        self.api_key = api_key
        self.model_name = model_name
        self.directory = directory
        self._generate_override = generate

    @classmethod
    def from_environment(cls) -> "SearchFallbackClient":
        return cls(os.getenv("GEMINI_API_KEY") or os.getenv("API_KEY"))

    def _generate_with_sdk(self, prompt: str, grounded: bool) -> Any:
        if not self.api_key:
            raise RuntimeError("Gemini API key not configured (GEMINI_API_KEY).")
        from google import genai

        client = genai.Client(api_key=self.api_key)
        model_name = self.model_name or settings.get("gemini_model")
        return client.models.generate_content(
            model=model_name,
            contents=prompt,
            config=grounding_config(grounded),
        )

    def generate(self, prompt: str, *, grounded: bool = True, label: str = "gemini") -> Any:
        fn = self._generate_override or self._generate_with_sdk
        return call_with_retry(lambda: fn(prompt, grounded), label=label)

    def _search(self, prompt: str, label: str) -> tuple[Any, List[Source]]:
        try:
            resp = self.generate(prompt, grounded=True, label=label)
        except Exception as exc:
            logger.error("%s search error: %s", label, exc)
            return None, []
        return extract_json_from_text(_response_text(resp)), extract_sources(resp)

    def get_standings(self) -> SearchResult:
        payload, sources = self._search(STANDINGS_PROMPT, "Standings")
        return SearchResult(items=normalize_table_rows(payload, self.directory), sources=sources)

    def get_form(self) -> SearchResult:
        payload, sources = self._search(FORM_PROMPT, "Form")
        return SearchResult(items=normalize_form_rows(payload, self.directory), sources=sources)

    def get_scout_advice(
        self,
        current_week: int,
        entry: Entry,
        available: Sequence[Team],
    ) -> str:
        used = ", ".join(
            self.directory.display_name(p.team_id, default=p.team_id)
            for p in entry.picks
            if p.week < current_week
        )
        prompt = SCOUT_PROMPT.format(
            week=current_week,
            used=used or "None",
            options=", ".join(team.name for team in available),
        )
        try:
            resp = self.generate(prompt, grounded=False, label="Scout")
        except Exception as exc:
            logger.warning("Scout advice unavailable: %s", exc)
            return SCOUT_FALLBACK
        return _response_text(resp) or SCOUT_DELAYED


def merge_sources(*groups: Iterable[Source]) -> List[Source]:
    seen: Dict[str, Source] = {}
    for group in groups:
        for source in group:
            seen.setdefault(source.uri, source)
    return list(seen.values())
