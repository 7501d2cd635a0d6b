"""
Run configuration for the sediment load workflow.

Holds the measurement source, coefficient and rule tables, date window
and output options for one run.  Paths can be overridden from the
environment so the same command works against different archives.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Optional, Sequence

import pandas as pd

from sedload.errors import ConfigurationError
from sedload.hilltop import DEFAULT_END, DEFAULT_MEASUREMENTS, DEFAULT_START
from sedload.timegrid import GRID_MINUTES

logger = logging.getLogger(__name__)

# Environment variable -> RunConfig field
ENV_OVERRIDES: dict[str, str] = {
    "SEDLOAD_HILLTOP_URL": "hilltop_url",
    "SEDLOAD_REGRESSION_TABLE": "regression_table",
    "SEDLOAD_EXCLUSION_RULES": "exclusion_rules",
    "SEDLOAD_OUTPUT_DIR": "output_dir",
}

_PATH_FIELDS = ("samples_csv", "regression_table", "exclusion_rules", "output_dir")


@dataclass
class RunConfig:
    """Configuration for one sediment load run.

    Parameters
    ----------
    hilltop_url : str or None
        Hilltop Server endpoint to pull measurements from.
    samples_csv : Path or None
        Flat CSV export used instead of a Hilltop server.
    regression_table : Path or None
        Rating-curve coefficient table.
    exclusion_rules : Path or None
        Site exclusion rule table.  The packaged default is used if None.
    output_dir : Path
        Directory for CSV and PNG outputs.
    start, end : str
        Date window.
    sites : sequence of str or None
        Subset of sites to process; all sites if None.
    measurements : sequence of str
        Measurement names to request.
    grid_minutes : int
        Flow grid interval.
    decimals : int
        Decimal places for exported statistics.
    make_plots : bool
        Render per-site charts.
    timeout_seconds : int
        HTTP timeout for Hilltop requests.
    """

    hilltop_url: Optional[str] = None
    samples_csv: Optional[Path] = None
    regression_table: Optional[Path] = None
    exclusion_rules: Optional[Path] = None
    output_dir: Path = Path("output")
    start: str = DEFAULT_START
    end: str = DEFAULT_END
    sites: Optional[Sequence[str]] = None
    measurements: Sequence[str] = field(default_factory=lambda: list(DEFAULT_MEASUREMENTS))
    grid_minutes: int = GRID_MINUTES
    decimals: int = 2
    make_plots: bool = True
    timeout_seconds: int = 60

    def __post_init__(self) -> None:
        for name in _PATH_FIELDS:
            value = getattr(self, name)
            if value is not None and not isinstance(value, Path):
                setattr(self, name, Path(value))
        if self.sites is not None:
            self.sites = list(self.sites)
        self.measurements = list(self.measurements)

    @classmethod
    def from_env(cls, **overrides) -> "RunConfig":
        """Build a config from ``SEDLOAD_*`` environment variables.

        Keyword arguments take precedence over the environment; a value of
        None means "not given" and does not mask an environment setting.
        """
        known = {f.name for f in fields(cls)}
        unknown = set(overrides) - known
        if unknown:
            raise ConfigurationError(f"Unknown configuration field(s): {sorted(unknown)}")

        kwargs = {}
        for var, name in ENV_OVERRIDES.items():
            value = os.environ.get(var)
            if value:
                logger.debug("%s taken from %s", name, var)
                kwargs[name] = value
        kwargs.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**kwargs)

    def validate(self, require_source: bool = True) -> "RunConfig":
        """Check the configuration is usable for a run.

        Raises
        ------
        ConfigurationError
            If the window is empty, the grid interval or decimals are not
            positive, no measurement source is set, or a named file is missing.
        """
        try:
            start, end = pd.Timestamp(self.start), pd.Timestamp(self.end)
        except ValueError as exc:
            raise ConfigurationError(f"Invalid date window: {exc}") from exc
        if not start < end:
            raise ConfigurationError(f"start ({self.start}) must be before end ({self.end})")
        if self.grid_minutes <= 0:
            raise ConfigurationError(f"grid_minutes must be positive, got {self.grid_minutes}")
        if self.decimals < 0:
            raise ConfigurationError(f"decimals must be non-negative, got {self.decimals}")

        if require_source:
            if not self.hilltop_url and self.samples_csv is None:
                raise ConfigurationError("Either hilltop_url or samples_csv is required")
            if self.hilltop_url and self.samples_csv is not None:
                raise ConfigurationError("Give only one of hilltop_url and samples_csv")

        for name in ("samples_csv", "regression_table", "exclusion_rules"):
            path = getattr(self, name)
            if path is not None and not path.is_file():
                raise ConfigurationError(f"{name} not found: {path}")
        return self
