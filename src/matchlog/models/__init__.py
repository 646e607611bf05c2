"""Data models for matchlog."""

from __future__ import annotations

__all__ = [
    # Event model
    "LEGAL_FIELDS",
    "REQUIRED_FIELDS",
    "MatchEvent",
    "decode",
    "encode",
    # Configuration schemas
    "FeatureToggles",
    "MatchLogConfig",
    "load_config",
]

from .event import LEGAL_FIELDS, REQUIRED_FIELDS, MatchEvent, decode, encode
from .schemas import FeatureToggles, MatchLogConfig, load_config
