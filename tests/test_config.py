"""Tests for run configuration."""

from __future__ import annotations

from pathlib import Path

import pytest

from sedload.config import RunConfig
from sedload.errors import ConfigurationError


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for var in ("SEDLOAD_HILLTOP_URL", "SEDLOAD_REGRESSION_TABLE", "SEDLOAD_EXCLUSION_RULES", "SEDLOAD_OUTPUT_DIR"):
        monkeypatch.delenv(var, raising=False)


class TestRunConfig:
    """RunConfig dataclass."""

    def test_defaults(self) -> None:
        config = RunConfig()
        assert config.grid_minutes == 15
        assert config.decimals == 2
        assert config.timeout_seconds == 60
        assert config.start == "2019-07-01 00:00:00"
        assert config.end == "2020-07-01 00:00:00"
        assert "Flow" in config.measurements

    def test_string_paths_converted(self, tmp_path: Path) -> None:
        config = RunConfig(regression_table=str(tmp_path / "r.csv"), output_dir=str(tmp_path))
        assert isinstance(config.regression_table, Path)
        assert isinstance(config.output_dir, Path)


class TestFromEnv:
    """Environment overrides."""

    def test_env_values_used(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        monkeypatch.setenv("SEDLOAD_HILLTOP_URL", "https://example.org/data.hts")
        monkeypatch.setenv("SEDLOAD_OUTPUT_DIR", str(tmp_path))
        config = RunConfig.from_env()
        assert config.hilltop_url == "https://example.org/data.hts"
        assert config.output_dir == tmp_path

    def test_explicit_values_win(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("SEDLOAD_HILLTOP_URL", "https://example.org/a.hts")
        config = RunConfig.from_env(hilltop_url="https://example.org/b.hts")
        assert config.hilltop_url == "https://example.org/b.hts"

    def test_none_does_not_mask_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("SEDLOAD_HILLTOP_URL", "https://example.org/a.hts")
        assert RunConfig.from_env(hilltop_url=None).hilltop_url == "https://example.org/a.hts"

    def test_unknown_field(self) -> None:
        with pytest.raises(ConfigurationError, match="Unknown configuration"):
            RunConfig.from_env(colour="blue")


class TestValidate:
    """Validation errors."""

    def test_valid(self) -> None:
        config = RunConfig(hilltop_url="https://example.org/data.hts")
        assert config.validate() is config

    def test_requires_source(self) -> None:
        with pytest.raises(ConfigurationError, match="hilltop_url or samples_csv"):
            RunConfig().validate()

    def test_source_not_needed_when_not_required(self) -> None:
        RunConfig().validate(require_source=False)

    def test_empty_window(self) -> None:
        config = RunConfig(hilltop_url="x", start="2020-07-01", end="2019-07-01")
        with pytest.raises(ConfigurationError, match="must be before"):
            config.validate()

    def test_bad_grid(self) -> None:
        with pytest.raises(ConfigurationError, match="grid_minutes"):
            RunConfig(hilltop_url="x", grid_minutes=0).validate()

    def test_missing_file(self, tmp_path: Path) -> None:
        config = RunConfig(hilltop_url="x", regression_table=tmp_path / "missing.csv")
        with pytest.raises(ConfigurationError, match="regression_table not found"):
            config.validate()
