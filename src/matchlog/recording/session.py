"""Per-match recording session.

A :class:`RecordingSession` owns one artifact for one match. It resolves
subject identities, stamps events with whole seconds since the session was
opened, downsamples position samples and appends rows under a single lock.

Lifecycle
---------
``open`` creates the artifact and writes MATCH_START at timestamp 0. The
``log_*`` and ``sample`` calls append rows while the match runs. ``close``
writes MATCH_END, flushes and finalizes the file; later calls are ignored.

Failure policy
--------------
Rows are buffered and written one row group at a time. A failed row group
write is logged and every row buffered in that group is lost, including rows
from earlier calls that already returned their event; ``rows_dropped``
counts them. The session stays open. Only :meth:`RecordingSession.open`
raises :class:`ArtifactIOError`.
"""

from __future__ import annotations

import threading
import time
import uuid
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from pathlib import Path

from loguru import logger

from matchlog.constants import DEFAULT_ROW_GROUP_SIZE, wool_id
from matchlog.errors import ArtifactIOError
from matchlog.identity import DurableId, IdentityResolver, normalize_durable_id
from matchlog.io.parquet import EventWriter
from matchlog.models.event import MatchEvent, encode
from matchlog.utils.time import elapsed_seconds, utc_now

__all__ = [
    "AIR",
    "ItemStack",
    "RecordingSession",
    "SubjectSnapshot",
    "block_coords",
    "count_inventory_items",
]

# Material code of an empty slot
AIR = 0


@dataclass(frozen=True)
class ItemStack:
    """One inventory slot: material code and stack size."""

    material: int
    amount: int


def count_inventory_items(
    contents: Iterable[ItemStack | None],
    armor: Iterable[ItemStack | None] = (),
) -> int:
    """
    Total number of items carried in inventory and armor slots.

    Empty slots (``None`` or air) count as zero.

    Examples
    --------
    >>> count_inventory_items([ItemStack(276, 1), None, ItemStack(35, 64)])
    65
    """
    total = 0
    for stack in (*contents, *armor):
        if stack is not None and stack.material != AIR:
            total += stack.amount
    return total


def block_coords(x: float, y: float, z: float) -> tuple[int, int, int]:
    """
    Integer block coordinates of a raw position.

    Truncates toward zero. Applied to sampled positions and to the
    coordinates passed to the ``log_*`` calls.
    """
    return int(x), int(y), int(z)


@dataclass(frozen=True)
class SubjectSnapshot:
    """
    State of one active participant at a sampling tick.

    Attributes
    ----------
    durable_id : DurableId
        Host-provided permanent identifier
    x, y, z : float
        Raw world coordinates
    held_item : int | None
        Material code of the item in hand
    inventory_count : int
        Total carried items, see :func:`count_inventory_items`
    """

    durable_id: DurableId
    x: float
    y: float
    z: float
    held_item: int | None = None
    inventory_count: int = 0


class RecordingSession:
    """
    Recording of one match into one Parquet artifact.

    All mutating calls are serialized by one lock per session, so the
    periodic sampler thread and event callbacks can call in concurrently.
    ``close`` waits for an in-progress write to finish.

    Use :meth:`open` to construct.

    Examples
    --------
    >>> session = RecordingSession.open(path, IdentityResolver(allowlist), "Airship")
    >>> session.log_spawn(player_uuid, 10, 64, 10)
    >>> session.sample([SubjectSnapshot(player_uuid, 10.4, 64.0, 10.9, 276, 12)])
    1
    >>> session.close()
    """

    def __init__(
        self,
        writer: EventWriter,
        resolver: IdentityResolver,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._writer = writer
        self.resolver = resolver
        self._clock = clock
        self._start = clock()
        self.started_at = utc_now()
        self._lock = threading.Lock()
        self._last_positions: dict[uuid.UUID, tuple[int, int, int]] = {}
        self._closed = False

    @classmethod
    def open(
        cls,
        path: str | Path,
        resolver: IdentityResolver,
        map_name: str | None = None,
        row_group_size: int = DEFAULT_ROW_GROUP_SIZE,
        clock: Callable[[], float] = time.monotonic,
    ) -> RecordingSession:
        """
        Create the artifact and write the MATCH_START row.

        Parameters
        ----------
        path : str | Path
            Artifact file to create
        resolver : IdentityResolver
            Identity resolver scoped to this session
        map_name : str | None, optional
            Map name recorded on the MATCH_START row
        row_group_size : int, optional
            Rows buffered per Parquet row group
        clock : Callable[[], float], optional
            Monotonic clock in seconds, by default ``time.monotonic``

        Returns
        -------
        RecordingSession
            Open session

        Raises
        ------
        ArtifactIOError
            If the artifact cannot be created
        """
        start_event = MatchEvent.match_start(map_name)
        writer = EventWriter(path, row_group_size=row_group_size)
        session = cls(writer, resolver, clock=clock)
        with session._lock:
            session._append(start_event)
        logger.info(f"Recording session opened: {writer.path}")
        return session

    @property
    def path(self) -> Path:
        return self._writer.path

    @property
    def file_name(self) -> str:
        return self._writer.path.name

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def rows_written(self) -> int:
        """Rows already written to disk (excludes buffered rows)."""
        return self._writer.rows_written

    @property
    def rows_appended(self) -> int:
        """Rows accepted and not lost: written to disk or still buffered."""
        return self._writer.rows_written + self._writer.pending

    @property
    def rows_dropped(self) -> int:
        """Rows lost to failed writes, counting every row of a failed batch."""
        return self._writer.rows_dropped

    def timestamp(self) -> int:
        """Whole seconds since the session was opened."""
        return elapsed_seconds(self._start, self._clock())

    # ------------------------------------------------------------------
    # Logging calls
    # ------------------------------------------------------------------

    def log_spawn(
        self, durable_id: DurableId, x: float, y: float, z: float
    ) -> MatchEvent | None:
        """
        Record a spawn.

        Also forgets the subject's last sampled position so the next sample
        is written even if the subject has not moved.
        """
        with self._lock:
            if self._is_closed("spawn"):
                return None
            coords = block_coords(x, y, z)
            key = normalize_durable_id(durable_id)
            subject_id = self.resolver.resolve(key)
            self._last_positions.pop(key, None)
            event = MatchEvent.spawn(self.timestamp(), subject_id, *coords)
            return self._append(event)

    def log_death(
        self,
        durable_id: DurableId,
        x: float,
        y: float,
        z: float,
        killer_durable_id: DurableId | None = None,
    ) -> MatchEvent | None:
        """Record a death, with the killer when there is one."""
        with self._lock:
            if self._is_closed("death"):
                return None
            coords = block_coords(x, y, z)
            subject_id = self.resolver.resolve(durable_id)
            killer_id = None
            if killer_durable_id is not None:
                killer_id = self.resolver.resolve(killer_durable_id)
            event = MatchEvent.death(self.timestamp(), subject_id, *coords, killer_id)
            return self._append(event)

    def log_wool_touch(
        self, durable_id: DurableId, x: float, y: float, z: float, color: str | None
    ) -> MatchEvent | None:
        """Record a wool pickup; unknown colors are stored as -1."""
        with self._lock:
            if self._is_closed("wool touch"):
                return None
            coords = block_coords(x, y, z)
            subject_id = self.resolver.resolve(durable_id)
            event = MatchEvent.wool_touch(
                self.timestamp(), subject_id, *coords, wool_id(color)
            )
            return self._append(event)

    def log_wool_capture(
        self, durable_id: DurableId, x: float, y: float, z: float, color: str | None
    ) -> MatchEvent | None:
        """Record a wool placed at its monument; unknown colors are stored as -1."""
        with self._lock:
            if self._is_closed("wool capture"):
                return None
            coords = block_coords(x, y, z)
            subject_id = self.resolver.resolve(durable_id)
            event = MatchEvent.wool_capture(
                self.timestamp(), subject_id, *coords, wool_id(color)
            )
            return self._append(event)

    def sample(self, subjects: Iterable[SubjectSnapshot]) -> int:
        """
        Record position samples for subjects whose block position changed.

        A subject at the same block coordinates as its last written sample is
        skipped. Callers pass only active participants. A sample whose row
        could not be written does not count as written, so the next sample
        at the same block is tried again.

        Returns
        -------
        int
            Number of POSITION rows appended
        """
        with self._lock:
            if self._is_closed("position sample"):
                return 0
            written = 0
            now = self.timestamp()
            for subject in subjects:
                key = normalize_durable_id(subject.durable_id)
                coords = block_coords(subject.x, subject.y, subject.z)
                if self._last_positions.get(key) == coords:
                    continue

                subject_id = self.resolver.resolve(key)
                event = MatchEvent.position(
                    now,
                    subject_id,
                    *coords,
                    held_item=subject.held_item,
                    inventory_count=subject.inventory_count,
                )
                if self._append(event) is not None:
                    self._last_positions[key] = coords
                    written += 1
            return written

    def clear_last_position(self, durable_id: DurableId) -> None:
        """Force the next sample of ``durable_id`` to be written."""
        with self._lock:
            self._last_positions.pop(normalize_durable_id(durable_id), None)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def flush(self) -> None:
        """Write buffered rows to disk as a row group."""
        with self._lock:
            if self._closed:
                return
            try:
                self._writer.flush()
            except ArtifactIOError as e:
                logger.warning(f"Failed to flush match events: {e}")

    def close(self) -> bool:
        """
        Write MATCH_END, flush and finalize the artifact. Idempotent.

        Returns
        -------
        bool
            True if the artifact was finalized cleanly; False if this call
            did nothing or finalizing failed
        """
        with self._lock:
            if self._closed:
                return False
            self._append(MatchEvent.match_end(self.timestamp()))
            self._closed = True
            try:
                self._writer.close()
            except ArtifactIOError as e:
                logger.error(f"Failed to finalize {self.path}: {e}")
                return False
        logger.info(
            f"Recording session closed: {self.path} "
            f"({self._writer.rows_written} rows, {self.resolver.anonymous_count} anonymous subjects)"
        )
        return True

    def __enter__(self) -> RecordingSession:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Internals (lock held)
    # ------------------------------------------------------------------

    def _is_closed(self, what: str) -> bool:
        if self._closed:
            logger.debug(f"Ignoring {what} on closed session {self.path}")
        return self._closed

    def _append(self, event: MatchEvent) -> MatchEvent | None:
        try:
            self._writer.append(encode(event))
        except ArtifactIOError as e:
            logger.warning(f"Failed to write match event: {e}")
            return None
        return event
