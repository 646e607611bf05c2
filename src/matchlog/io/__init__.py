"""Artifact I/O for matchlog."""

from __future__ import annotations

__all__ = [
    "EVENT_SCHEMA",
    "EventWriter",
    "read_events",
    "read_metadata",
    "read_table",
]

from .parquet import EVENT_SCHEMA, EventWriter, read_events, read_metadata, read_table
