"""Route registration helpers."""

from . import (  # noqa: F401
    admin,
    config,
    entries,
    health,
    jobs,
    league,
    pools,
    session,
    teams,
)

__all__ = [
    "admin",
    "config",
    "entries",
    "health",
    "jobs",
    "league",
    "pools",
    "session",
    "teams",
]
