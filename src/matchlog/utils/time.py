"""Time utility functions."""

from __future__ import annotations

from datetime import datetime, timezone

__all__ = ["elapsed_seconds", "utc_now"]


def utc_now() -> datetime:
    """
    Return current UTC time with timezone awareness.

    Returns
    -------
    datetime
        Current UTC timestamp with tzinfo=timezone.utc

    Examples
    --------
    >>> from datetime import timezone
    >>> now = utc_now()
    >>> now.tzinfo == timezone.utc
    True
    """
    return datetime.now(tz=timezone.utc)


def elapsed_seconds(start: float, now: float) -> int:
    """
    Whole seconds between two clock readings, truncated.

    Clock skew backwards clamps to 0 so timestamps never go negative.

    Examples
    --------
    >>> elapsed_seconds(100.0, 102.9)
    2
    >>> elapsed_seconds(100.0, 99.5)
    0
    """
    return max(0, int(now - start))
