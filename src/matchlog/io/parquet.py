"""Parquet storage for match event artifacts.

One artifact holds the rows of exactly one recording session. Rows are
buffered in memory and written as row groups; the footer is written on
close, after which the file is readable by pyarrow, pandas, DuckDB and
other Parquet consumers.

Schema
------
Column order is fixed and only ever grows at the end::

    timestamp        int32   required
    event_type       int32   required  (EVENT_KIND_CODES)
    player_id        int32   optional
    x, y, z          int32   optional
    held_item        int32   optional
    inventory_count  int32   optional
    killer_id        int32   optional
    wool_id          int32   optional
    map_name         string  optional
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pyarrow as pa
import pyarrow.parquet as pq
from loguru import logger

from matchlog.constants import (
    DEFAULT_ROW_GROUP_SIZE,
    EVENT_KIND_CODES,
    FORMAT_REVISION,
)
from matchlog.errors import ArtifactIOError, UnknownEventKind
from matchlog.models.event import MatchEvent, decode

__all__ = [
    "EVENT_SCHEMA",
    "EventWriter",
    "read_events",
    "read_metadata",
    "read_table",
]

_SCHEMA_METADATA = {
    b"matchlog.format_revision": str(FORMAT_REVISION).encode(),
    b"matchlog.event_kinds": json.dumps(
        {kind.name: code for kind, code in EVENT_KIND_CODES.items()}
    ).encode(),
}

EVENT_SCHEMA = pa.schema(
    [
        pa.field("timestamp", pa.int32(), nullable=False),
        pa.field("event_type", pa.int32(), nullable=False),
        pa.field("player_id", pa.int32()),
        pa.field("x", pa.int32()),
        pa.field("y", pa.int32()),
        pa.field("z", pa.int32()),
        pa.field("held_item", pa.int32()),
        pa.field("inventory_count", pa.int32()),
        pa.field("killer_id", pa.int32()),
        pa.field("wool_id", pa.int32()),
        pa.field("map_name", pa.string()),
    ],
    metadata=_SCHEMA_METADATA,
)


class EventWriter:
    """
    Buffered row writer for one Parquet artifact.

    The file (and any missing parent directories) is created on construction.
    Not thread-safe; callers serialize access.

    Parameters
    ----------
    path : str | Path
        Output file
    row_group_size : int, optional
        Rows buffered before a row group is written, by default 1024
    compression : str, optional
        Parquet compression codec, by default "zstd"

    Raises
    ------
    ArtifactIOError
        If the file cannot be created

    Examples
    --------
    >>> writer = EventWriter("data/airship/2024-01-01_12-00-00.parquet")
    >>> writer.append(encode(MatchEvent.match_start("Airship")))
    >>> writer.close()
    """

    def __init__(
        self,
        path: str | Path,
        row_group_size: int = DEFAULT_ROW_GROUP_SIZE,
        compression: str = "zstd",
    ):
        if row_group_size < 1:
            msg = f"row_group_size must be positive, got {row_group_size}"
            raise ValueError(msg)
        self.path = Path(path)
        self.row_group_size = row_group_size
        self.rows_written = 0
        self.rows_dropped = 0
        self._pending: list[dict[str, Any]] = []
        self._closed = False

        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self._writer = pq.ParquetWriter(
                str(self.path), EVENT_SCHEMA, compression=compression
            )
        except (OSError, pa.ArrowException) as e:
            msg = f"Cannot create artifact {self.path}: {e}"
            raise ArtifactIOError(msg, self.path) from e

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def pending(self) -> int:
        """Rows buffered but not yet written."""
        return len(self._pending)

    def append(self, row: dict[str, Any]) -> None:
        """
        Buffer one encoded row, writing a row group when the buffer is full.

        Raises
        ------
        ArtifactIOError
            If the writer is closed or the row group write fails. Rows of a
            failed row group are dropped.
        """
        if self._closed:
            msg = f"Artifact {self.path} is already closed"
            raise ArtifactIOError(msg, self.path)
        self._pending.append(row)
        if len(self._pending) >= self.row_group_size:
            self._write_pending()

    def flush(self) -> int:
        """Write buffered rows now; return how many were written."""
        if self._closed:
            msg = f"Artifact {self.path} is already closed"
            raise ArtifactIOError(msg, self.path)
        return self._write_pending()

    def close(self) -> None:
        """
        Flush remaining rows and write the footer. Idempotent.

        The underlying file handle is released even if the final flush fails.
        """
        if self._closed:
            return
        self._closed = True

        flush_error = None
        try:
            self._write_pending()
        except ArtifactIOError as e:
            flush_error = e

        try:
            self._writer.close()
        except (OSError, pa.ArrowException) as e:
            msg = f"Cannot finalize artifact {self.path}: {e}"
            raise ArtifactIOError(msg, self.path) from e

        if flush_error is not None:
            raise flush_error

    def _write_pending(self) -> int:
        if not self._pending:
            return 0
        rows, self._pending = self._pending, []
        try:
            table = pa.Table.from_pylist(rows, schema=EVENT_SCHEMA)
            self._writer.write_table(table)
        except (OSError, pa.ArrowException) as e:
            self.rows_dropped += len(rows)
            msg = f"Failed to write {len(rows)} row(s) to {self.path}: {e}"
            raise ArtifactIOError(msg, self.path) from e
        self.rows_written += len(rows)
        return len(rows)


def read_table(path: str | Path) -> pa.Table:
    """
    Read an artifact conformed to the current :data:`EVENT_SCHEMA`.

    Columns missing from older artifacts are added as all-null columns;
    they are never filled with zeros. Columns this build does not know are
    dropped.

    Parameters
    ----------
    path : str | Path
        Artifact file

    Returns
    -------
    pa.Table
        Table with exactly the columns of ``EVENT_SCHEMA``

    Raises
    ------
    ArtifactIOError
        If the file cannot be read or a column has an incompatible type
    """
    path = Path(path)
    try:
        table = pq.read_table(str(path))
    except (OSError, pa.ArrowException) as e:
        msg = f"Cannot read artifact {path}: {e}"
        raise ArtifactIOError(msg, path) from e

    arrays = []
    for field in EVENT_SCHEMA:
        if field.name not in table.column_names:
            arrays.append(
                pa.chunked_array([pa.nulls(table.num_rows, type=field.type)])
            )
            continue
        column = table[field.name]
        if column.type != field.type:
            try:
                column = column.cast(field.type)
            except pa.ArrowException as e:
                msg = (
                    f"Column {field.name!r} in {path} has type {column.type}, "
                    f"expected {field.type}"
                )
                raise ArtifactIOError(msg, path) from e
        arrays.append(column)
    return pa.Table.from_arrays(arrays, schema=EVENT_SCHEMA)


def read_events(path: str | Path) -> list[MatchEvent]:
    """
    Decode every row of an artifact into :class:`MatchEvent` objects.

    Rows with an event_type code unknown to this build (written by a newer
    revision) are skipped with a warning.
    """
    events = []
    for row in read_table(path).to_pylist():
        try:
            events.append(decode(row))
        except UnknownEventKind as e:
            logger.warning(f"Skipping row in {path}: {e}")
    return events


def read_metadata(path: str | Path) -> dict[str, str]:
    """Key/value metadata stored in an artifact's schema."""
    path = Path(path)
    try:
        schema = pq.read_schema(str(path))
    except (OSError, pa.ArrowException) as e:
        msg = f"Cannot read artifact {path}: {e}"
        raise ArtifactIOError(msg, path) from e
    metadata = schema.metadata or {}
    return {k.decode(): v.decode() for k, v in metadata.items()}
