"""Premier League team directory and name normalization."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from difflib import SequenceMatcher
from typing import Dict, Iterable, List, Optional, Tuple

from config import settings

CLUB_SUFFIXES = [" fc", " afc"]
CLUB_PREFIXES = ["afc ", "the "]


@dataclass(frozen=True)
class Team:
    id: str
    name: str
    short_name: str
    color: str
    logo: str
    aliases: Tuple[str, ...] = field(default_factory=tuple)

    def labels(self) -> Tuple[str, ...]:
        return (self.name, *self.aliases)


PREMIER_LEAGUE_TEAMS: List[Team] = [
    Team("ARS", "Arsenal", "ARS", "#EF0107", "https://upload.wikimedia.org/wikipedia/en/5/53/Arsenal_FC.svg", ("Arsenal FC", "The Gunners", "AFC")),
    Team("AVL", "Aston Villa", "AVL", "#95BFE5", "https://upload.wikimedia.org/wikipedia/en/f/f9/Aston_Villa_FC_crest_%282016%29.svg", ("Villa", "Aston", "AVFC", "Aston Villa FC")),
    Team("BOU", "Bournemouth", "BOU", "#B50E12", "https://upload.wikimedia.org/wikipedia/en/e/e5/AFC_Bournemouth_%282013%29.svg", ("AFC Bournemouth", "The Cherries", "Bourne")),
    Team("BRE", "Brentford", "BRE", "#E30613", "https://upload.wikimedia.org/wikipedia/en/2/2a/Brentford_FC_crest.svg", ("The Bees", "Brentford FC")),
    Team("BHA", "Brighton", "BHA", "#0057B8", "https://upload.wikimedia.org/wikipedia/en/f/fd/Brighton_%26_Hove_Albion_logo.svg", ("Brighton & Hove Albion", "The Seagulls", "Brighton Hove Albion")),
    Team("CHE", "Chelsea", "CHE", "#034694", "https://upload.wikimedia.org/wikipedia/en/c/cc/Chelsea_FC.svg", ("Chelsea FC", "The Blues")),
    Team("CRY", "Crystal Palace", "CRY", "#1B458F", "https://upload.wikimedia.org/wikipedia/en/a/a2/Crystal_Palace_FC_logo_%282022%29.svg", ("Palace", "The Eagles", "CPFC")),
    Team("EVE", "Everton", "EVE", "#003399", "https://upload.wikimedia.org/wikipedia/en/7/7c/Everton_FC_logo.svg", ("Everton FC", "The Toffees")),
    Team("FUL", "Fulham", "FUL", "#FFFFFF", "https://upload.wikimedia.org/wikipedia/en/3/3f/Fulham_FC.svg", ("Fulham FC", "The Cottagers")),
    Team("IPS", "Ipswich Town", "IPS", "#0033FF", "https://upload.wikimedia.org/wikipedia/en/4/43/Ipswich_Town.svg", ("Ipswich", "The Tractor Boys", "ITFC")),
    Team("LEI", "Leicester City", "LEI", "#003090", "https://upload.wikimedia.org/wikipedia/en/2/2d/Leicester_City_crest.svg", ("Leicester", "The Foxes", "LCFC")),
    Team("LIV", "Liverpool", "LIV", "#C8102E", "https://upload.wikimedia.org/wikipedia/en/0/0c/Liverpool_FC.svg", ("Liverpool FC", "The Reds")),
    Team("MCI", "Man City", "MCI", "#6CABDD", "https://upload.wikimedia.org/wikipedia/en/e/eb/Manchester_City_FC_badge.svg", ("Manchester City", "MCFC", "City")),
    Team("MUN", "Man Utd", "MUN", "#DA291C", "https://upload.wikimedia.org/wikipedia/en/7/7a/Manchester_United_FC_crest.svg", ("Manchester United", "Man United", "MUFC", "United", "The Red Devils")),
    Team("NEW", "Newcastle", "NEW", "#241F20", "https://upload.wikimedia.org/wikipedia/en/5/56/Newcastle_United_Logo.svg", ("Newcastle United", "The Magpies", "NUFC")),
    Team("NFO", "Nottm Forest", "NFO", "#DD0000", "https://upload.wikimedia.org/wikipedia/en/e/e5/Nottingham_Forest_F.C._logo.svg", ("Nottingham Forest", "Forest", "NFFC")),
    Team("SOU", "Southampton", "SOU", "#D71920", "https://upload.wikimedia.org/wikipedia/en/c/c9/Southampton_FC.svg", ("The Saints", "Saints")),
    Team("TOT", "Tottenham", "TOT", "#132257", "https://upload.wikimedia.org/wikipedia/en/b/b4/Tottenham_Hotspur.svg", ("Spurs", "Tottenham Hotspur", "THFC")),
    Team("WHU", "West Ham", "WHU", "#7A263A", "https://upload.wikimedia.org/wikipedia/en/c/c2/West_Ham_United_FC_logo.svg", ("West Ham United", "The Hammers", "WHUFC")),
    Team("WOL", "Wolves", "WOL", "#FDB913", "https://upload.wikimedia.org/wikipedia/en/f/fc/Wolverhampton_Wanderers.svg", ("Wolverhampton Wanderers", "WWFC")),
]


def normalize_name(s: str) -> str:
    s = s.lower().replace("&", " and ")
    s = s.replace(".", "").replace("’", "'").replace("'", "")
    s = re.sub(r"[^a-z0-9]+", " ", s)
    s = re.sub(r"\s+", " ", s).strip()
    for suf in CLUB_SUFFIXES:
        if s.endswith(suf):
            s = s[: -len(suf)].strip()
    for pre in CLUB_PREFIXES:
        if s.startswith(pre):
            s = s[len(pre):].strip()
    return s


class TeamDirectory:
    """Read-only lookup over a fixed list of teams.

    ``find_team`` is the strict lookup used when validating picks: exact id, or
    case-insensitive canonical name or alias. ``match_team_name`` is looser and
    meant for free-text team strings coming from external data sources.
    """

    def __init__(self, teams: Iterable[Team]) -> None:
        self._teams: Tuple[Team, ...] = tuple(teams)
        self._by_id: Dict[str, Team] = {team.id: team for team in self._teams}
        self._by_label: Dict[str, Team] = {}
        self._by_norm: Dict[str, Team] = {}
        for team in self._teams:
            for label in team.labels():
                self._by_label.setdefault(label.lower(), team)
                self._by_norm.setdefault(normalize_name(label), team)

    def __iter__(self):
        return iter(self._teams)

    def __len__(self) -> int:
        return len(self._teams)

    def ids(self) -> List[str]:
        return [team.id for team in self._teams]

    def get(self, team_id: str) -> Optional[Team]:
        return self._by_id.get(team_id)

    def find_team(self, identifier_or_name: str) -> Optional[Team]:
        if not identifier_or_name:
            return None
        key = identifier_or_name.strip()
        if key in self._by_id:
            return self._by_id[key]
        return self._by_label.get(key.lower())

    def match_team_name(self, raw: str, cutoff: Optional[float] = None) -> Optional[Team]:
        """Return the directory team for a free-text name, or None."""
        team = self.find_team(raw)
        if team is not None:
            return team
        n = normalize_name(raw or "")
        if not n:
            return None
        if n in self._by_norm:
            return self._by_norm[n]
        # fuzzy
        best = None
        best_score = 0.0
        cutoff = settings.get("fuzzy_cutoff") if cutoff is None else cutoff
        for label, candidate in self._by_norm.items():
            score = SequenceMatcher(None, n, label).ratio()
            if score > best_score:
                best, best_score = candidate, score
        if best is not None and best_score >= cutoff:
            return best
        return None

    def display_name(self, team_id: Optional[str], default: str = "Waiting...") -> str:
        team = self._by_id.get(team_id) if team_id else None
        return team.name if team else default


default_directory = TeamDirectory(PREMIER_LEAGUE_TEAMS)


def find_team(identifier_or_name: str) -> Optional[Team]:
    return default_directory.find_team(identifier_or_name)


def match_team_name(raw: str, cutoff: Optional[float] = None) -> Optional[Team]:
    return default_directory.match_team_name(raw, cutoff)
