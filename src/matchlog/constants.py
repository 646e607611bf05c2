"""Constants and enumerations for matchlog."""

from __future__ import annotations

from enum import Enum

__all__ = [
    "ARTIFACT_SUFFIX",
    "DEFAULT_ROW_GROUP_SIZE",
    "DEFAULT_SAMPLE_INTERVAL",
    "EVENT_KIND_BY_CODE",
    "EVENT_KIND_CODES",
    "FEATURE_ALIASES",
    "FILENAME_TIME_FORMAT",
    "FORMAT_REVISION",
    "UNKNOWN_WOOL_ID",
    "WOOL_COLORS",
    "EventKind",
    "Feature",
    "wool_id",
]


class EventKind(str, Enum):
    """Kinds of events recorded during a match.

    Members may be reordered freely; the integer persisted in the
    ``event_type`` column comes from :data:`EVENT_KIND_CODES` only.
    """

    MATCH_START = "match_start"
    MATCH_END = "match_end"
    SPAWN = "spawn"
    DEATH = "death"
    POSITION = "position"
    WOOL_TOUCH = "wool_touch"
    WOOL_CAPTURE = "wool_capture"

    @property
    def code(self) -> int:
        """Persisted integer code of this kind."""
        return EVENT_KIND_CODES[self]


# Append-only. Never reassign or remove a code: every artifact ever written
# stores these integers in its event_type column.
EVENT_KIND_CODES: dict[EventKind, int] = {
    EventKind.MATCH_START: 0,
    EventKind.MATCH_END: 1,
    EventKind.SPAWN: 2,
    EventKind.DEATH: 3,
    EventKind.POSITION: 4,
    EventKind.WOOL_TOUCH: 5,
    EventKind.WOOL_CAPTURE: 6,
}

EVENT_KIND_BY_CODE: dict[int, EventKind] = {
    code: kind for kind, code in EVENT_KIND_CODES.items()
}


class Feature(str, Enum):
    """Independently toggleable logging features."""

    POSITIONS = "positions"
    DEATHS = "deaths"
    SPAWNS = "spawns"
    WOOL = "wool"


# Console spellings accepted by SessionController.toggle(); "all" is handled
# separately.
FEATURE_ALIASES: dict[str, Feature] = {
    "positions": Feature.POSITIONS,
    "pos": Feature.POSITIONS,
    "deaths": Feature.DEATHS,
    "death": Feature.DEATHS,
    "spawns": Feature.SPAWNS,
    "spawn": Feature.SPAWNS,
    "wool": Feature.WOOL,
    "wools": Feature.WOOL,
}

# Dye colors in their legacy ordinal order; the ordinal is the wool_id.
WOOL_COLORS: tuple[str, ...] = (
    "WHITE",
    "ORANGE",
    "MAGENTA",
    "LIGHT_BLUE",
    "YELLOW",
    "LIME",
    "PINK",
    "GRAY",
    "SILVER",
    "CYAN",
    "PURPLE",
    "BLUE",
    "BROWN",
    "GREEN",
    "RED",
    "BLACK",
)

UNKNOWN_WOOL_ID = -1

_WOOL_IDS = {name: idx for idx, name in enumerate(WOOL_COLORS)}


def wool_id(color: str | None) -> int:
    """
    Convert a wool color name to its numeric objective identifier.

    Parameters
    ----------
    color : str | None
        Dye color name, e.g. ``"RED"`` or ``"light blue"``

    Returns
    -------
    int
        Color ordinal, or ``UNKNOWN_WOOL_ID`` for unknown names

    Examples
    --------
    >>> wool_id("RED")
    14
    >>> wool_id("light blue")
    3
    >>> wool_id("chartreuse")
    -1
    """
    if not color:
        return UNKNOWN_WOOL_ID
    key = color.strip().upper().replace(" ", "_")
    return _WOOL_IDS.get(key, UNKNOWN_WOOL_ID)


FORMAT_REVISION = 3

ARTIFACT_SUFFIX = ".parquet"
FILENAME_TIME_FORMAT = "%Y-%m-%d_%H-%M-%S"

DEFAULT_SAMPLE_INTERVAL = 5.0
DEFAULT_ROW_GROUP_SIZE = 1024
