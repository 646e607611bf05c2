"""Match event record and its row encoding.

A match event is a sparse tuple: ``timestamp`` and ``kind`` are always set,
and each kind allows a fixed subset of the optional fields. The row encoder
emits only the populated columns so absent values stay null on disk.

Legal optional fields per kind
------------------------------
========================  ==================================================
Kind                      Fields
========================  ==================================================
MATCH_START               map_name (optional)
MATCH_END                 (none)
SPAWN                     subject_id, x, y, z
DEATH                     subject_id, x, y, z, killer_id (optional)
POSITION                  subject_id, x, y, z, inventory_count,
                          held_item (optional)
WOOL_TOUCH, WOOL_CAPTURE  subject_id, x, y, z, objective_id (optional)
========================  ==================================================
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from matchlog.constants import EVENT_KIND_BY_CODE, EventKind
from matchlog.errors import InvalidEventConstruction, UnknownEventKind

__all__ = [
    "COLUMN_FOR_FIELD",
    "FIELD_FOR_COLUMN",
    "LEGAL_FIELDS",
    "OPTIONAL_FIELDS",
    "REQUIRED_FIELDS",
    "MatchEvent",
    "decode",
    "encode",
]

INT32_MIN = -(2**31)
INT32_MAX = 2**31 - 1

OPTIONAL_FIELDS: tuple[str, ...] = (
    "subject_id",
    "x",
    "y",
    "z",
    "held_item",
    "inventory_count",
    "killer_id",
    "objective_id",
    "map_name",
)

# Attribute name -> column name; the two differ only where the on-disk names
# predate the current model.
COLUMN_FOR_FIELD: dict[str, str] = {
    "subject_id": "player_id",
    "x": "x",
    "y": "y",
    "z": "z",
    "held_item": "held_item",
    "inventory_count": "inventory_count",
    "killer_id": "killer_id",
    "objective_id": "wool_id",
    "map_name": "map_name",
}
FIELD_FOR_COLUMN: dict[str, str] = {col: f for f, col in COLUMN_FOR_FIELD.items()}

_LOCATED = frozenset({"subject_id", "x", "y", "z"})

LEGAL_FIELDS: dict[EventKind, frozenset[str]] = {
    EventKind.MATCH_START: frozenset({"map_name"}),
    EventKind.MATCH_END: frozenset(),
    EventKind.SPAWN: _LOCATED,
    EventKind.DEATH: _LOCATED | {"killer_id"},
    EventKind.POSITION: _LOCATED | {"held_item", "inventory_count"},
    EventKind.WOOL_TOUCH: _LOCATED | {"objective_id"},
    EventKind.WOOL_CAPTURE: _LOCATED | {"objective_id"},
}

REQUIRED_FIELDS: dict[EventKind, frozenset[str]] = {
    EventKind.MATCH_START: frozenset(),
    EventKind.MATCH_END: frozenset(),
    EventKind.SPAWN: _LOCATED,
    EventKind.DEATH: _LOCATED,
    EventKind.POSITION: _LOCATED | {"inventory_count"},
    EventKind.WOOL_TOUCH: _LOCATED,
    EventKind.WOOL_CAPTURE: _LOCATED,
}


def _check_int32(name: str, value: Any) -> None:
    # bool is an int subclass; a True subject_id is always a caller bug
    if isinstance(value, bool) or not isinstance(value, int):
        msg = f"{name} must be an int, got {type(value).__name__}"
        raise InvalidEventConstruction(msg)
    if not INT32_MIN <= value <= INT32_MAX:
        msg = f"{name}={value} does not fit in int32"
        raise InvalidEventConstruction(msg)


@dataclass(frozen=True)
class MatchEvent:
    """
    One immutable occurrence in a match log.

    Use the factory classmethods rather than the constructor; both validate,
    but the factories only expose the fields a kind can carry.

    Attributes
    ----------
    timestamp : int
        Whole seconds since the recording session was opened
    kind : EventKind
        Event kind
    subject_id : int | None
        Loggable subject ID (public or anonymous), never a durable identifier
    x, y, z : int | None
        Block coordinates
    held_item : int | None
        Material code of the held item (POSITION only)
    inventory_count : int | None
        Total carried items (POSITION only)
    killer_id : int | None
        Loggable subject ID of the killer (DEATH only)
    objective_id : int | None
        Wool objective identifier (WOOL_TOUCH / WOOL_CAPTURE only)
    map_name : str | None
        Map name (MATCH_START only)

    Raises
    ------
    InvalidEventConstruction
        If a field is illegal or missing for ``kind``, or a value has the
        wrong type or range
    """

    timestamp: int
    kind: EventKind
    subject_id: int | None = None
    x: int | None = None
    y: int | None = None
    z: int | None = None
    held_item: int | None = None
    inventory_count: int | None = None
    killer_id: int | None = None
    objective_id: int | None = None
    map_name: str | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.kind, EventKind):
            msg = f"kind must be an EventKind, got {self.kind!r}"
            raise InvalidEventConstruction(msg)
        _check_int32("timestamp", self.timestamp)
        if self.timestamp < 0:
            msg = f"timestamp must be non-negative, got {self.timestamp}"
            raise InvalidEventConstruction(msg)

        present = self.present_fields()
        illegal = present - LEGAL_FIELDS[self.kind]
        if illegal:
            msg = (
                f"{self.kind.name} does not allow field(s): "
                f"{', '.join(sorted(illegal))}"
            )
            raise InvalidEventConstruction(msg)
        missing = REQUIRED_FIELDS[self.kind] - present
        if missing:
            msg = (
                f"{self.kind.name} requires field(s): "
                f"{', '.join(sorted(missing))}"
            )
            raise InvalidEventConstruction(msg)

        for name in present:
            value = getattr(self, name)
            if name == "map_name":
                if not isinstance(value, str):
                    msg = f"map_name must be a str, got {type(value).__name__}"
                    raise InvalidEventConstruction(msg)
            else:
                _check_int32(name, value)

    def present_fields(self) -> frozenset[str]:
        """Names of the optional fields that are populated."""
        return frozenset(
            name for name in OPTIONAL_FIELDS if getattr(self, name) is not None
        )

    # ------------------------------------------------------------------
    # Factories
    # ------------------------------------------------------------------

    @classmethod
    def create(cls, kind: EventKind, timestamp: int, **values: Any) -> MatchEvent:
        """
        Build an event of any kind from keyword fields.

        Unknown keyword names are rejected the same way as illegal ones.

        Examples
        --------
        >>> MatchEvent.create(EventKind.SPAWN, 3, subject_id=0, x=1, y=64, z=1)
        MatchEvent(timestamp=3, kind=<EventKind.SPAWN: 'spawn'>, ...)
        """
        unknown = set(values) - set(OPTIONAL_FIELDS)
        if unknown:
            msg = f"Unknown event field(s): {', '.join(sorted(unknown))}"
            raise InvalidEventConstruction(msg)
        return cls(timestamp=timestamp, kind=kind, **values)

    @classmethod
    def match_start(cls, map_name: str | None = None) -> MatchEvent:
        """Match start event; always at timestamp 0."""
        return cls(0, EventKind.MATCH_START, map_name=map_name)

    @classmethod
    def match_end(cls, timestamp: int) -> MatchEvent:
        """Match end event."""
        return cls(timestamp, EventKind.MATCH_END)

    @classmethod
    def spawn(cls, timestamp: int, subject_id: int, x: int, y: int, z: int) -> MatchEvent:
        """Subject spawn event."""
        return cls(timestamp, EventKind.SPAWN, subject_id=subject_id, x=x, y=y, z=z)

    @classmethod
    def death(
        cls,
        timestamp: int,
        subject_id: int,
        x: int,
        y: int,
        z: int,
        killer_id: int | None = None,
    ) -> MatchEvent:
        """Subject death event, with the killer's subject ID when known."""
        return cls(
            timestamp,
            EventKind.DEATH,
            subject_id=subject_id,
            x=x,
            y=y,
            z=z,
            killer_id=killer_id,
        )

    @classmethod
    def position(
        cls,
        timestamp: int,
        subject_id: int,
        x: int,
        y: int,
        z: int,
        held_item: int | None,
        inventory_count: int,
    ) -> MatchEvent:
        """Periodic position sample with held item and inventory count."""
        return cls(
            timestamp,
            EventKind.POSITION,
            subject_id=subject_id,
            x=x,
            y=y,
            z=z,
            held_item=held_item,
            inventory_count=inventory_count,
        )

    @classmethod
    def wool_touch(
        cls,
        timestamp: int,
        subject_id: int,
        x: int,
        y: int,
        z: int,
        objective_id: int | None = None,
    ) -> MatchEvent:
        """Wool pickup (first touch in a life)."""
        return cls(
            timestamp,
            EventKind.WOOL_TOUCH,
            subject_id=subject_id,
            x=x,
            y=y,
            z=z,
            objective_id=objective_id,
        )

    @classmethod
    def wool_capture(
        cls,
        timestamp: int,
        subject_id: int,
        x: int,
        y: int,
        z: int,
        objective_id: int | None = None,
    ) -> MatchEvent:
        """Wool placed at its monument."""
        return cls(
            timestamp,
            EventKind.WOOL_CAPTURE,
            subject_id=subject_id,
            x=x,
            y=y,
            z=z,
            objective_id=objective_id,
        )


def encode(event: MatchEvent) -> dict[str, Any]:
    """
    Encode an event into a column-sparse row.

    Parameters
    ----------
    event : MatchEvent
        Event to encode

    Returns
    -------
    dict[str, Any]
        ``timestamp`` and ``event_type`` plus one entry per populated
        optional field, keyed by column name. Absent fields are omitted.

    Examples
    --------
    >>> encode(MatchEvent.match_end(42))
    {'timestamp': 42, 'event_type': 1}
    >>> encode(MatchEvent.spawn(3, 0, 10, 64, 10))
    {'timestamp': 3, 'event_type': 2, 'player_id': 0, 'x': 10, 'y': 64, 'z': 10}
    """
    row: dict[str, Any] = {
        "timestamp": event.timestamp,
        "event_type": event.kind.code,
    }
    for name in OPTIONAL_FIELDS:
        value = getattr(event, name)
        if value is not None:
            row[COLUMN_FOR_FIELD[name]] = value
    return row


def decode(row: Mapping[str, Any]) -> MatchEvent:
    """
    Decode a row back into a :class:`MatchEvent`.

    Missing columns and nulls are both treated as absent, so rows read from
    older artifacts without trailing columns decode cleanly.

    Raises
    ------
    UnknownEventKind
        If ``event_type`` has no known kind
    InvalidEventConstruction
        If the row carries fields illegal for its kind
    """
    code = row["event_type"]
    kind = EVENT_KIND_BY_CODE.get(code)
    if kind is None:
        raise UnknownEventKind(code)

    values = {}
    for column, name in FIELD_FOR_COLUMN.items():
        value = row.get(column)
        if value is not None:
            values[name] = value
    return MatchEvent(timestamp=row["timestamp"], kind=kind, **values)
