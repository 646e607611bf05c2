"""Exception types raised by matchlog."""

from __future__ import annotations

__all__ = [
    "ArtifactIOError",
    "ConfigurationError",
    "InvalidEventConstruction",
    "MatchLogError",
    "UnknownEventKind",
]


class MatchLogError(Exception):
    """Base class for all matchlog errors."""


class ConfigurationError(MatchLogError):
    """Allowlist or settings source is malformed."""


class ArtifactIOError(MatchLogError):
    """Artifact could not be created, written or finalized."""

    def __init__(self, message: str, path=None):
        super().__init__(message)
        self.path = path


class InvalidEventConstruction(MatchLogError, ValueError):
    """A field was supplied that is illegal or missing for the event kind."""


class UnknownEventKind(MatchLogError, ValueError):
    """Decoder met an event_type code this build does not know."""

    def __init__(self, code: int):
        super().__init__(f"Unknown event_type code: {code}")
        self.code = code
