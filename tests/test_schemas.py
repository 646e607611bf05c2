"""Tests for configuration schemas."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from matchlog.constants import DEFAULT_SAMPLE_INTERVAL, Feature
from matchlog.errors import ConfigurationError
from matchlog.models.schemas import FeatureToggles, MatchLogConfig, load_config


class TestFeatureToggles:
    """Test feature switches."""

    def test_all_on_by_default(self) -> None:
        toggles = FeatureToggles()
        assert toggles.all_enabled()
        assert all(toggles.is_enabled(f) for f in Feature)

    def test_set(self) -> None:
        toggles = FeatureToggles()
        toggles.set(Feature.WOOL, False)
        assert not toggles.wool
        assert not toggles.all_enabled()
        assert toggles.is_enabled(Feature.DEATHS)

    def test_assignment_validated(self) -> None:
        toggles = FeatureToggles()
        with pytest.raises(ValidationError):
            toggles.positions = "sometimes"  # type: ignore[assignment]

    def test_unknown_feature_rejected(self) -> None:
        with pytest.raises(ValidationError):
            FeatureToggles(chat=True)


class TestMatchLogConfig:
    """Test recorder settings."""

    def test_defaults(self) -> None:
        config = MatchLogConfig()
        assert config.data_root == Path("data")
        assert config.allowlist_path == Path("permitted-players.yml")
        assert config.sample_interval == DEFAULT_SAMPLE_INTERVAL
        assert config.features.all_enabled()

    @pytest.mark.parametrize("interval", [0, -5])
    def test_sample_interval_positive(self, interval) -> None:
        with pytest.raises(ValidationError):
            MatchLogConfig(sample_interval=interval)

    def test_row_group_size_positive(self) -> None:
        with pytest.raises(ValidationError):
            MatchLogConfig(row_group_size=0)


class TestLoadConfig:
    """Test YAML config loading."""

    def test_load(self, tmp_path) -> None:
        """Test values load and relative paths resolve against the file."""
        path = tmp_path / "matchlog.yml"
        path.write_text(
            "data_root: recordings\n"
            "allowlist_path: /etc/matchlog/permitted.yml\n"
            "sample_interval: 2.5\n"
            "features:\n"
            "  positions: false\n"
        )
        config = load_config(path)
        assert config.data_root == tmp_path / "recordings"
        assert config.allowlist_path == Path("/etc/matchlog/permitted.yml")
        assert config.sample_interval == 2.5
        assert not config.features.positions
        assert config.features.deaths

    def test_empty_file_defaults(self, tmp_path) -> None:
        path = tmp_path / "matchlog.yml"
        path.write_text("")
        config = load_config(path)
        assert config.data_root == tmp_path / "data"

    def test_missing_file(self, tmp_path) -> None:
        with pytest.raises(ConfigurationError, match="Cannot read"):
            load_config(tmp_path / "missing.yml")

    def test_invalid_yaml(self, tmp_path) -> None:
        path = tmp_path / "matchlog.yml"
        path.write_text("features: {positions: [\n")
        with pytest.raises(ConfigurationError, match="Invalid YAML"):
            load_config(path)

    def test_not_a_mapping(self, tmp_path) -> None:
        path = tmp_path / "matchlog.yml"
        path.write_text("- data\n")
        with pytest.raises(ConfigurationError, match="mapping"):
            load_config(path)

    def test_validation_error(self, tmp_path) -> None:
        """Test schema violations surface as ConfigurationError."""
        path = tmp_path / "matchlog.yml"
        path.write_text("sample_interval: -1\n")
        with pytest.raises(ConfigurationError, match="sample_interval"):
            load_config(path)

    def test_unknown_key(self, tmp_path) -> None:
        path = tmp_path / "matchlog.yml"
        path.write_text("sample_intervall: 5\n")
        with pytest.raises(ConfigurationError):
            load_config(path)
