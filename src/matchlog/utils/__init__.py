"""Utility functions for matchlog."""

from __future__ import annotations

__all__ = [
    "UNKNOWN_MAP_SLUG",
    "build_artifact_path",
    "elapsed_seconds",
    "map_slug",
    "parse_artifact_filename",
    "utc_now",
]

from .filename import (
    UNKNOWN_MAP_SLUG,
    build_artifact_path,
    map_slug,
    parse_artifact_filename,
)
from .time import elapsed_seconds, utc_now
