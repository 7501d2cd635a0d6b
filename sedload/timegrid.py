"""
sedload.timegrid - Uniform time grid used to align measurement series.

Hilltop archives hold series logged at different native rates (5-minute
stage-derived flow, 15-minute telemetry, hourly backfill, irregular lab
samples).  Everything is aligned onto a single grid before the series are
combined.
"""

from __future__ import annotations

import pandas as pd

GRID_MINUTES = 15
GRID_SECONDS = GRID_MINUTES * 60


def grid_frequency(minutes: int = GRID_MINUTES) -> str:
    """Return the pandas offset alias for a grid of *minutes*."""
    if minutes <= 0:
        raise ValueError(f"Grid interval must be positive, got {minutes} minutes")
    return f"{int(minutes)}min"


def floor_to_grid(timestamps: pd.Series, minutes: int = GRID_MINUTES) -> pd.Series:
    """Align timestamps to the nearest lower grid boundary."""
    return pd.to_datetime(timestamps).dt.floor(grid_frequency(minutes))


def round_to_grid(timestamps: pd.Series, minutes: int = GRID_MINUTES) -> pd.Series:
    """Align timestamps to the nearest grid boundary."""
    return pd.to_datetime(timestamps).dt.round(grid_frequency(minutes))
