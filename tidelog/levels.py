"""
Level table - syslog severities used by tidelog

Rank 0 is the most severe level. Higher ranks are more verbose, so asking
for "more" logs moves the rank up and asking for "less" moves it down.
"""

from dataclasses import dataclass
from typing import Optional, Tuple


@dataclass(frozen=True)
class LevelDescriptor:
    """One entry of the level table.

    Attributes:
        name: public level name used by callers ("warning")
        rank: numeric ordering, 0 is the most severe
        dispatch_key: key understood by the dispatch engine ("warning", "crit")
    """

    name: str
    rank: int
    dispatch_key: str


LEVELS: Tuple[LevelDescriptor, ...] = (
    LevelDescriptor("emergency", 0, "emerg"),
    LevelDescriptor("alert", 1, "alert"),
    LevelDescriptor("critical", 2, "crit"),
    LevelDescriptor("error", 3, "error"),
    LevelDescriptor("warning", 4, "warning"),
    LevelDescriptor("notice", 5, "notice"),
    LevelDescriptor("info", 6, "info"),
    LevelDescriptor("debug", 7, "debug"),
)

LEVEL_NAMES = tuple(level.name for level in LEVELS)
MIN_RANK = LEVELS[0].rank
MAX_RANK = LEVELS[-1].rank

_BY_NAME = {level.name: level for level in LEVELS}
_BY_KEY = {level.dispatch_key: level for level in LEVELS}


def find_level(name) -> Optional[LevelDescriptor]:
    """Return the descriptor for a public level name, or None"""
    if not isinstance(name, str):
        return None
    return _BY_NAME.get(name.lower())


def find_by_key(dispatch_key) -> Optional[LevelDescriptor]:
    """Return the descriptor for a dispatch key, or None"""
    if not isinstance(dispatch_key, str):
        return None
    return _BY_KEY.get(dispatch_key)


def level_for_rank(rank: int) -> LevelDescriptor:
    """Return the descriptor for a rank, clamped to the table bounds"""
    rank = max(MIN_RANK, min(MAX_RANK, rank))
    return LEVELS[rank]


def default_level_name(environment: Optional[str]) -> str:
    """Starting level: quieter in production, everything otherwise"""
    if environment and environment.lower() == "production":
        return "notice"
    return "debug"
