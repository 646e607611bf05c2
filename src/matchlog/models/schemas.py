"""Pydantic schemas for configuration boundaries.

These schemas validate settings read from YAML files or supplied by the host
adapter. Internal recording code works with plain dataclasses and ints.

Examples
--------
Load settings from a YAML file:
    >>> from matchlog.models.schemas import load_config
    >>> config = load_config("matchlog.yml")
    >>> config.features.positions
    True

Build settings in code:
    >>> config = MatchLogConfig(data_root="plugins/matchlog/data")
    >>> config.allowlist_path
    PosixPath('permitted-players.yml')
"""

from __future__ import annotations

from pathlib import Path

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from matchlog.constants import (
    DEFAULT_ROW_GROUP_SIZE,
    DEFAULT_SAMPLE_INTERVAL,
    Feature,
)
from matchlog.errors import ConfigurationError

__all__ = [
    "FeatureToggles",
    "MatchLogConfig",
    "load_config",
]


class FeatureToggles(BaseModel):
    """
    Independent on/off switches for each logging feature.

    Mutable at runtime (the controller flips them from console commands);
    assignments are validated.
    """

    model_config = ConfigDict(validate_assignment=True, extra="forbid")

    positions: bool = Field(True, description="Log periodic position samples")
    deaths: bool = Field(True, description="Log deaths")
    spawns: bool = Field(True, description="Log spawns")
    wool: bool = Field(True, description="Log wool touches and captures")

    def is_enabled(self, feature: Feature) -> bool:
        """Whether ``feature`` is currently switched on."""
        return getattr(self, feature.value)

    def set(self, feature: Feature, enabled: bool) -> None:
        """Switch ``feature`` on or off."""
        setattr(self, feature.value, enabled)

    def all_enabled(self) -> bool:
        """Whether every feature is on."""
        return all(self.is_enabled(feature) for feature in Feature)


class MatchLogConfig(BaseModel):
    """Recorder settings."""

    model_config = ConfigDict(extra="forbid")

    data_root: Path = Field(
        Path("data"),
        description="Root directory; artifacts go to <data_root>/<map_slug>/",
    )
    allowlist_path: Path = Field(
        Path("permitted-players.yml"),
        description="YAML allowlist of consenting subjects",
    )
    sample_interval: float = Field(
        DEFAULT_SAMPLE_INTERVAL,
        gt=0,
        description="Seconds between position sampling ticks",
    )
    row_group_size: int = Field(
        DEFAULT_ROW_GROUP_SIZE,
        ge=1,
        description="Rows buffered before a Parquet row group is written",
    )
    features: FeatureToggles = Field(default_factory=FeatureToggles)


def load_config(path: str | Path) -> MatchLogConfig:
    """
    Load recorder settings from a YAML file.

    An empty file yields the defaults.

    Parameters
    ----------
    path : str | Path
        YAML settings file

    Returns
    -------
    MatchLogConfig
        Validated settings

    Raises
    ------
    ConfigurationError
        If the file cannot be read, is not valid YAML, or fails validation
    """
    path = Path(path)
    try:
        with path.open(encoding="utf-8") as f:
            raw = yaml.safe_load(f)
    except OSError as e:
        msg = f"Cannot read config file {path}: {e}"
        raise ConfigurationError(msg) from e
    except yaml.YAMLError as e:
        msg = f"Invalid YAML in config file {path}: {e}"
        raise ConfigurationError(msg) from e

    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        msg = f"Config file {path} must contain a mapping"
        raise ConfigurationError(msg)

    try:
        config = MatchLogConfig.model_validate(raw)
    except ValidationError as e:
        msg = f"Invalid config file {path}: {e}"
        raise ConfigurationError(msg) from e

    # Relative paths are taken relative to the config file
    base = path.parent
    updates = {}
    if not config.data_root.is_absolute():
        updates["data_root"] = base / config.data_root
    if not config.allowlist_path.is_absolute():
        updates["allowlist_path"] = base / config.allowlist_path
    if updates:
        config = config.model_copy(update=updates)
    return config
