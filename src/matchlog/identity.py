"""Subject identity resolution and the consent allowlist.

Durable identifiers (UUIDs supplied by the host) are never written to an
artifact. Each one is resolved to a loggable subject ID:

- subjects on the allowlist get their fixed public ID, stable across matches
- everyone else gets an anonymous ID assigned in first-seen order from 0,
  valid for one recording session only

Allowlist file format::

    permitted:
      fe3608b7-d105-4029-8800-34b3147065b6: -1
      3c1e2a55-0b7a-4f51-9d0e-2b8f7c1a9e42: -2
"""

from __future__ import annotations

import threading
import uuid
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Union

import yaml
from loguru import logger

from matchlog.errors import ConfigurationError

__all__ = [
    "DEFAULT_ALLOWLIST",
    "Allowlist",
    "DurableId",
    "IdentityResolver",
    "load_allowlist_entries",
    "normalize_durable_id",
    "parse_allowlist_entries",
    "write_default_allowlist",
]

DurableId = Union[uuid.UUID, str]

DEFAULT_ALLOWLIST = """\
# Subjects who consented to being tracked under a stable public ID.
# Everyone else is logged under an anonymous per-match ID.
#
# Keys are UUIDs, values are integer public IDs. Negative public IDs keep
# them apart from anonymous IDs, which count up from 0.
#
# permitted:
#   fe3608b7-d105-4029-8800-34b3147065b6: -1
permitted: {}
"""


def normalize_durable_id(durable_id: DurableId) -> uuid.UUID:
    """
    Coerce a durable identifier to :class:`uuid.UUID`.

    Raises
    ------
    ValueError
        If a string is not a valid UUID
    TypeError
        If the value is neither a UUID nor a string
    """
    if isinstance(durable_id, uuid.UUID):
        return durable_id
    if isinstance(durable_id, str):
        return uuid.UUID(durable_id.strip())
    msg = f"Durable identifier must be a UUID or str, got {type(durable_id).__name__}"
    raise TypeError(msg)


def _parse_entry(key: Any, value: Any) -> tuple[uuid.UUID, int]:
    try:
        durable_id = normalize_durable_id(str(key))
    except ValueError as e:
        msg = f"Invalid UUID in allowlist: {key!r}"
        raise ConfigurationError(msg) from e
    if isinstance(value, bool) or not isinstance(value, int):
        msg = f"Public ID for {key} must be an integer, got {value!r}"
        raise ConfigurationError(msg)
    return durable_id, value


def parse_allowlist_entries(section: Mapping[Any, Any]) -> dict[uuid.UUID, int]:
    """
    Parse the ``permitted`` mapping of an allowlist document.

    Malformed entries are skipped with a warning; they never abort loading.

    Parameters
    ----------
    section : Mapping
        ``{durable_id: public_id}`` as read from the document

    Returns
    -------
    dict[uuid.UUID, int]
        Valid entries
    """
    entries: dict[uuid.UUID, int] = {}
    for key, value in section.items():
        try:
            durable_id, public_id = _parse_entry(key, value)
        except ConfigurationError as e:
            logger.warning(f"Skipping allowlist entry: {e}")
            continue
        if public_id >= 0:
            logger.warning(
                f"Public ID {public_id} for {durable_id} is non-negative and may "
                "collide with anonymous IDs"
            )
        entries[durable_id] = public_id
    return entries


def load_allowlist_entries(path: str | Path) -> dict[uuid.UUID, int]:
    """
    Read and parse an allowlist YAML file.

    A missing file yields an empty allowlist (everyone is anonymized).

    Raises
    ------
    ConfigurationError
        If the file cannot be read or parsed, or its ``permitted`` section is
        not a mapping
    """
    path = Path(path)
    if not path.exists():
        logger.warning(f"Allowlist {path} not found; all subjects will be anonymous")
        return {}

    try:
        with path.open(encoding="utf-8") as f:
            document = yaml.safe_load(f)
    except OSError as e:
        msg = f"Cannot read allowlist {path}: {e}"
        raise ConfigurationError(msg) from e
    except yaml.YAMLError as e:
        msg = f"Invalid YAML in allowlist {path}: {e}"
        raise ConfigurationError(msg) from e

    if document is None:
        return {}
    if not isinstance(document, dict):
        msg = f"Allowlist {path} must contain a mapping"
        raise ConfigurationError(msg)

    section = document.get("permitted") or {}
    if not isinstance(section, dict):
        msg = f"'permitted' in allowlist {path} must be a mapping"
        raise ConfigurationError(msg)
    return parse_allowlist_entries(section)


def write_default_allowlist(path: str | Path, overwrite: bool = False) -> bool:
    """
    Write the commented allowlist template.

    Returns
    -------
    bool
        True if the file was written, False if it already existed
    """
    path = Path(path)
    if path.exists() and not overwrite:
        return False
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(DEFAULT_ALLOWLIST, encoding="utf-8")
    return True


class Allowlist:
    """
    Process-wide map of consenting subjects to fixed public IDs.

    Read-mostly. :meth:`reload` builds a complete replacement map and swaps
    it in one assignment, so concurrent :meth:`public_id` calls see either
    the old or the new map, never a mix.

    Parameters
    ----------
    entries : Mapping[DurableId, int] | None
        Initial entries
    path : str | Path | None
        Backing YAML file used by :meth:`reload`

    Examples
    --------
    >>> allowlist = Allowlist.from_file("permitted-players.yml")
    >>> allowlist.public_id("fe3608b7-d105-4029-8800-34b3147065b6")
    -1
    >>> allowlist.reload()
    1
    """

    def __init__(
        self,
        entries: Mapping[DurableId, int] | None = None,
        path: str | Path | None = None,
    ):
        self.path = Path(path) if path is not None else None
        self._entries: dict[uuid.UUID, int] = (
            parse_allowlist_entries(entries) if entries else {}
        )
        self._reload_lock = threading.Lock()

    @classmethod
    def from_file(cls, path: str | Path) -> Allowlist:
        """Load an allowlist from ``path``; remember it for reloads."""
        allowlist = cls(path=path)
        allowlist.reload()
        return allowlist

    def reload(self) -> int:
        """
        Replace all entries with the current contents of the backing file.

        On failure the previous entries stay in effect.

        Returns
        -------
        int
            Number of permitted subjects after the reload

        Raises
        ------
        ConfigurationError
            If there is no backing file or it is malformed
        """
        if self.path is None:
            msg = "Allowlist has no backing file to reload from"
            raise ConfigurationError(msg)
        with self._reload_lock:
            entries = load_allowlist_entries(self.path)
            self._entries = entries
        logger.info(f"Loaded {len(entries)} permitted subjects from {self.path}")
        return len(entries)

    def replace(self, entries: Mapping[DurableId, int]) -> None:
        """Replace all entries from an in-memory mapping."""
        parsed = parse_allowlist_entries(entries)
        with self._reload_lock:
            self._entries = parsed

    def public_id(self, durable_id: DurableId) -> int | None:
        """Fixed public ID for ``durable_id``, or None if not permitted."""
        return self._entries.get(normalize_durable_id(durable_id))

    def is_permitted(self, durable_id: DurableId) -> bool:
        return self.public_id(durable_id) is not None

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, durable_id: object) -> bool:
        try:
            return self.public_id(durable_id) is not None  # type: ignore[arg-type]
        except (TypeError, ValueError):
            return False


class IdentityResolver:
    """
    Session-scoped mapping from durable identifiers to subject IDs.

    The first resolution of a durable identifier is cached for the rest of
    the session, so a subject keeps one ID per artifact even if the
    allowlist is reloaded mid-match. Not thread-safe on its own; the
    recording session calls it under its lock.

    Parameters
    ----------
    allowlist : Allowlist
        Shared consent allowlist

    Examples
    --------
    >>> resolver = IdentityResolver(Allowlist({"fe3608b7-d105-4029-8800-34b3147065b6": -1}))
    >>> resolver.resolve("fe3608b7-d105-4029-8800-34b3147065b6")
    -1
    >>> resolver.resolve(uuid.uuid4())
    0
    >>> resolver.resolve(uuid.uuid4())
    1
    """

    def __init__(self, allowlist: Allowlist):
        self.allowlist = allowlist
        self._assigned: dict[uuid.UUID, int] = {}
        self._next_anonymous_id = 0

    def resolve(self, durable_id: DurableId) -> int:
        """Loggable subject ID for ``durable_id``."""
        key = normalize_durable_id(durable_id)
        subject_id = self._assigned.get(key)
        if subject_id is not None:
            return subject_id

        subject_id = self.allowlist.public_id(key)
        if subject_id is None:
            subject_id = self._next_anonymous_id
            self._next_anonymous_id += 1
        self._assigned[key] = subject_id
        return subject_id

    @property
    def anonymous_count(self) -> int:
        """Number of anonymous IDs handed out so far."""
        return self._next_anonymous_id

    def assigned(self) -> dict[uuid.UUID, int]:
        """Copy of the resolutions made in this session."""
        return dict(self._assigned)
