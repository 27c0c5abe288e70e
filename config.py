"""Runtime configuration knobs for the survivor pool.

Game rules (entry cost, entry cap, pick lock window) and adapter behaviour
(retry policy, fuzzy matching, model name) live in one thread-safe
:class:`SettingsManager`. Modules call ``settings.get(...)`` at the point of
use so the API can override knobs at runtime.
"""

from __future__ import annotations

import os
from pathlib import Path
from threading import RLock
from typing import Any, Dict


def _load_local_env() -> None:
    """Populate os.environ with values from .env files if present."""

    env_dir = Path(__file__).resolve().parent
    for filename in (".env.local", ".env"):
        path = env_dir / filename
        if not path.exists():
            continue
        try:
            for raw_line in path.read_text().splitlines():
                line = raw_line.strip()
                if not line or line.startswith("#") or "=" not in line:
                    continue
                key, value = line.split("=", 1)
                key = key.strip()
                value = value.strip().strip('"').strip("'")
                if key and key not in os.environ:
                    os.environ[key] = value
        except OSError:
            continue


_load_local_env()


class SettingsManager:
    """Thread-safe accessor for mutable game knobs.

    The manager stores a copy of the default settings and exposes ``get``/``set``
    helpers. ``snapshot`` returns a plain dictionary that can be embedded in
    API responses without risking mid-request mutation.
    """

    def __init__(self, defaults: Dict[str, Any]) -> None:
        self._defaults = dict(defaults)
        self._settings = dict(defaults)
        self._lock = RLock()

    def names(self) -> list[str]:
        with self._lock:
            return sorted(self._settings.keys())

    def get(self, name: str) -> Any:
        with self._lock:
            if name not in self._settings:
                raise KeyError(f"Unknown setting '{name}'")
            return self._settings[name]

    def set(self, name: str, value: Any) -> None:
        with self._lock:
            if name not in self._settings:
                raise KeyError(f"Unknown setting '{name}'")
            self._settings[name] = value

    def reset(self, name: str | None = None) -> None:
        with self._lock:
            if name is None:
                self._settings = dict(self._defaults)
                return
            if name not in self._defaults:
                raise KeyError(f"Unknown setting '{name}'")
            self._settings[name] = self._defaults[name]

    def snapshot(self) -> Dict[str, Any]:
        with self._lock:
            return dict(self._settings)


_DEFAULT_SETTINGS: Dict[str, Any] = {
    "entry_cost": 10,
    "max_entries_per_pool": 2,
    "lock_window_minutes": 60,
    "starting_coins": 50,
    "retry_max_attempts": 5,
    "retry_base_delay": 3.0,
    "retry_jitter": 1.0,
    "fuzzy_cutoff": 0.84,
    "gemini_model": "gemini-3-flash-preview",
}

SETTINGS_HELP: Dict[str, str] = {
    "entry_cost": "Coins debited from the wallet when buying a new entry in a pool.",
    "max_entries_per_pool": "Maximum number of entries one nickname may hold in a single pool.",
    "lock_window_minutes": "Picks are refused once kickoff is closer than this many minutes.",
    "starting_coins": "Wallet balance granted to a fresh session or a new login.",
    "retry_max_attempts": "Attempts made against an external data source before giving up.",
    "retry_base_delay": "Seconds to wait before the first retry; doubles after each failure.",
    "retry_jitter": "Upper bound (seconds) of the random delay added to every backoff.",
    "fuzzy_cutoff": "Minimum similarity required when matching external team names to the directory (higher = stricter).",
    "gemini_model": "Generative model used for search-grounded standings, form and scouting tips.",
}

settings = SettingsManager(_DEFAULT_SETTINGS)

# Persistence: one JSON record under a fixed key, excluding league data.
STORAGE_KEY = "pl-survivor-v4"
STATE_PATH = Path(os.getenv("SURVIVOR_STATE_PATH", "survivor_state.json"))

FOOTBALL_DATA_BASE = "https://api.football-data.org/v4"
FOOTBALL_DATA_COMPETITION = os.getenv("FOOTBALL_DATA_COMPETITION", "PL")
