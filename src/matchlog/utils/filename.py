"""Artifact path helpers.

Artifacts live at ``<data_root>/<map_slug>/<YYYY-MM-DD_HH-MM-SS>.parquet``.
"""

from __future__ import annotations

import re
from datetime import datetime
from pathlib import Path
from typing import Any

from matchlog.constants import ARTIFACT_SUFFIX, FILENAME_TIME_FORMAT

__all__ = [
    "UNKNOWN_MAP_SLUG",
    "build_artifact_path",
    "map_slug",
    "parse_artifact_filename",
]

UNKNOWN_MAP_SLUG = "unknown_map"

_SLUG_STRIP = re.compile(r"[^a-z0-9_]")

_ARTIFACT_NAME = re.compile(
    r"^(?P<started>\d{4}-\d{2}-\d{2}_\d{2}-\d{2}-\d{2})"
    r"(?:_(?P<seq>\d+))?"
    + re.escape(ARTIFACT_SUFFIX)
    + r"$"
)


def map_slug(map_name: str | None) -> str:
    """
    Derive a filesystem-safe directory name from a map name.

    Lowercases, turns spaces into underscores and drops every character
    outside ``[a-z0-9_]``.

    Examples
    --------
    >>> map_slug("Race for Victory 2")
    'race_for_victory_2'
    >>> map_slug("Twisted Tree's Lair!")
    'twisted_trees_lair'
    >>> map_slug("???")
    'unknown_map'
    """
    if not map_name:
        return UNKNOWN_MAP_SLUG
    slug = _SLUG_STRIP.sub("", map_name.lower().replace(" ", "_"))
    return slug or UNKNOWN_MAP_SLUG


def build_artifact_path(
    data_root: str | Path, map_name: str | None, started_at: datetime
) -> Path:
    """
    Choose the artifact path for a match starting at ``started_at``.

    If a file for the same map and second already exists, a ``_1``, ``_2``...
    suffix keeps the new artifact from overwriting it.

    Parameters
    ----------
    data_root : str | Path
        Root data directory
    map_name : str | None
        Map display name
    started_at : datetime
        Session start instant

    Returns
    -------
    Path
        Path that does not exist yet

    Examples
    --------
    >>> build_artifact_path("data", "Airship Battle", datetime(2024, 5, 1, 20, 15, 3))
    PosixPath('data/airship_battle/2024-05-01_20-15-03.parquet')
    """
    directory = Path(data_root) / map_slug(map_name)
    stem = started_at.strftime(FILENAME_TIME_FORMAT)
    path = directory / f"{stem}{ARTIFACT_SUFFIX}"
    seq = 0
    while path.exists():
        seq += 1
        path = directory / f"{stem}_{seq}{ARTIFACT_SUFFIX}"
    return path


def parse_artifact_filename(path: str | Path) -> dict[str, Any]:
    """
    Parse an artifact path back into its parts.

    Returns
    -------
    dict[str, Any]
        ``map_slug`` (parent directory name), ``started_at`` (naive datetime)
        and ``seq`` (0 unless a collision suffix was added)

    Raises
    ------
    ValueError
        If the filename is not an artifact name

    Examples
    --------
    >>> parse_artifact_filename("data/airship/2024-05-01_20-15-03_2.parquet")
    {'map_slug': 'airship', 'started_at': datetime.datetime(2024, 5, 1, 20, 15, 3), 'seq': 2}
    """
    path = Path(path)
    match = _ARTIFACT_NAME.match(path.name)
    if not match:
        msg = f"Filename '{path.name}' is not a match artifact name"
        raise ValueError(msg)
    return {
        "map_slug": path.parent.name,
        "started_at": datetime.strptime(match["started"], FILENAME_TIME_FORMAT),
        "seq": int(match["seq"] or 0),
    }
