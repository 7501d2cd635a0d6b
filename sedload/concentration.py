"""
sedload.concentration - Measured concentration samples matched to flow.

Laboratory SSC / suspended-solids results are irregular spot samples, so
their timestamps are *rounded* to the nearest grid step (flow is floored)
before being joined to the flow series.  Samples with no flow at the same
site and grid step are dropped silently; that is normal for sparse
sampling.
"""

from __future__ import annotations

import logging
from typing import Dict, Optional

import pandas as pd

from sedload.timegrid import GRID_MINUTES, round_to_grid

logger = logging.getLogger(__name__)

SSC_MEASUREMENT = "Suspended Sediment Concentration"
SS_MEASUREMENT = "Suspended Solids"

# Measurement name -> short code used downstream
CONCENTRATION_CODES: Dict[str, str] = {
    SSC_MEASUREMENT: "SSC",
    SS_MEASUREMENT: "SS",
}

CONCENTRATION_COLUMNS = ["timestamp", "site", "flow", "concentration", "kind"]

# Detection-limit qualifiers, e.g. "<2" or ">1000"
_QUALIFIER_PATTERN = r"[<>]"


def parse_concentration(values: pd.Series) -> pd.Series:
    """Strip ``<`` / ``>`` qualifiers and parse as float (unparseable -> NaN)."""
    text = values.astype(str).str.replace(_QUALIFIER_PATTERN, "", regex=True).str.strip()
    return pd.to_numeric(text, errors="coerce")


def build_concentration_series(
    samples: pd.DataFrame,
    flow: pd.DataFrame,
    grid_minutes: int = GRID_MINUTES,
    codes: Optional[Dict[str, str]] = None,
) -> pd.DataFrame:
    """
    Join measured concentration samples to the flow series.

    Parameters
    ----------
    samples : pd.DataFrame
        Long-form samples (``timestamp``, ``site``, ``measurement``, ``value``).
    flow : pd.DataFrame
        Output of :func:`sedload.flow.build_flow_series`.
    grid_minutes : int
        Grid interval the sample timestamps are rounded to.
    codes : dict, optional
        Measurement name -> short code.  Defaults to :data:`CONCENTRATION_CODES`.

    Returns
    -------
    pd.DataFrame
        Columns ``timestamp``, ``site``, ``flow``, ``concentration``, ``kind``
        (``"SSC"`` or ``"SS"``), sorted by site and timestamp.
    """
    codes = codes or CONCENTRATION_CODES

    is_conc = samples["measurement"].isin(list(codes))
    conc = samples.loc[is_conc, ["timestamp", "site", "measurement", "value"]]
    if conc.empty or flow.empty:
        return pd.DataFrame(columns=CONCENTRATION_COLUMNS)

    conc = conc.assign(
        timestamp=round_to_grid(conc["timestamp"], grid_minutes),
        concentration=parse_concentration(conc["value"]),
        kind=conc["measurement"].map(codes),
    )
    n_bad = int(conc["concentration"].isna().sum())
    if n_bad:
        logger.info("Dropped %d concentration samples that are not numeric", n_bad)
    conc = conc.dropna(subset=["concentration"])

    merged = pd.merge(
        flow[["timestamp", "site", "flow"]],
        conc[["timestamp", "site", "concentration", "kind"]],
        on=["timestamp", "site"],
        how="inner",
    )
    logger.info(
        "Matched %d of %d concentration samples to flow", len(merged), len(conc)
    )
    return merged.sort_values(["site", "timestamp"]).reset_index(drop=True)[CONCENTRATION_COLUMNS]


def select_kind(merged: pd.DataFrame, kind: str = "SSC") -> pd.DataFrame:
    """Rows of a concentration table with the given short code."""
    return merged.loc[merged["kind"] == kind].reset_index(drop=True)
