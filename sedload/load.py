"""
sedload.load - Suspended sediment load estimation for a single site.

For one site's grid-aligned flow series and rating curve:

1. predict concentration from flow, clamping negative predictions to 0
   and dropping samples outside the curve's domain;
2. give every sample the time to its successor, capped at the grid
   interval (the last sample gets exactly one interval);
3. instantaneous load = concentration x flow / 1e9  (mg -> tonnes);
4. cumulative load = running sum of load x elapsed seconds, one forward
   pass in timestamp order;
5. summarise the instantaneous load (min, quartiles, mean, max) and take
   the final cumulative value as the site total.

Units: with flow in L/s and concentration in mg/L, load is in t/s and the
cumulative load in tonnes.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from itertools import accumulate
from typing import Dict, Optional

import numpy as np
import pandas as pd

from sedload.errors import (
    EmptyFlowSeriesError,
    SiteNotInCatalogError,
    SummaryStatisticsError,
    UnknownRegressionKindError,
)
from sedload.flow import flow_for_site
from sedload.rating.catalog import RegressionCatalog, RegressionSpec
from sedload.rating.curves import RatingCurve
from sedload.timegrid import GRID_SECONDS

logger = logging.getLogger(__name__)

MG_PER_TONNE = 1e9

LOAD_COLUMNS = [
    "timestamp",
    "site",
    "flow",
    "predicted_conc",
    "elapsed_s",
    "load",
    "cumulative_load",
]

STATISTICS_COLUMNS = ["site", "min", "q1", "median", "mean", "q3", "max", "total_load"]

# SiteSkip.reason values
SKIP_NOT_IN_CATALOG = "not_in_catalog"
SKIP_UNKNOWN_REGRESSION = "unknown_regression"
SKIP_EMPTY_FLOW = "empty_flow"
SKIP_STATISTICS = "statistics"


@dataclass(frozen=True)
class SiteStatistics:
    """Summary of one site's instantaneous load plus its cumulative total."""

    site: str
    min: float
    q1: float
    median: float
    mean: float
    q3: float
    max: float
    total_load: float

    def to_dict(self) -> Dict[str, object]:
        return asdict(self)

    def rounded(self, decimals: int = 2) -> "SiteStatistics":
        values = {k: round(float(v), decimals) for k, v in asdict(self).items() if k != "site"}
        return SiteStatistics(site=self.site, **values)


@dataclass(frozen=True)
class SiteSkip:
    """Why a site produced no load records or no statistics."""

    site: str
    reason: str
    message: str


@dataclass
class SiteLoadResult:
    """
    Outcome of processing one site.

    Attributes
    ----------
    site : str
    records : pd.DataFrame
        Load records (columns :data:`LOAD_COLUMNS`); empty if the site was skipped.
    statistics : SiteStatistics or None
        None when the site was skipped or its statistics were invalid.
    skip : SiteSkip or None
        Set whenever ``statistics`` is None.
    n_domain_dropped : int
        Samples dropped because the curve is undefined at their flow.
    """

    site: str
    records: pd.DataFrame
    statistics: Optional[SiteStatistics] = None
    skip: Optional[SiteSkip] = None
    n_domain_dropped: int = 0

    @property
    def ok(self) -> bool:
        return self.statistics is not None


# ---------------------------------------------------------------------------
# Building blocks
# ---------------------------------------------------------------------------


def predict_concentration(curve: RatingCurve, flow: np.ndarray) -> np.ndarray:
    """
    Predicted concentration with negative values clamped to zero.

    Samples outside the curve's domain (or whose prediction overflows)
    come back as NaN.
    """
    conc = curve.predict(flow)
    conc[~np.isfinite(conc)] = np.nan
    return np.where(conc < 0, 0.0, conc)


def elapsed_seconds(timestamps: pd.Series, grid_seconds: float = GRID_SECONDS) -> np.ndarray:
    """
    Seconds from each sample to the next, capped at *grid_seconds*.

    The last sample has no successor and is given exactly *grid_seconds*.

    Raises
    ------
    ValueError
        If *timestamps* is not strictly increasing.
    """
    ts = pd.to_datetime(pd.Series(timestamps)).reset_index(drop=True)
    if ts.empty:
        return np.array([], dtype=float)
    delta = (ts.shift(-1) - ts).dt.total_seconds().to_numpy(dtype=float, copy=True)
    if np.any(delta[:-1] <= 0):
        raise ValueError("Timestamps must be strictly increasing")
    delta[-1] = grid_seconds
    return np.minimum(delta, grid_seconds)


def cumulative_load(load: np.ndarray, elapsed: np.ndarray) -> np.ndarray:
    """Running total of ``load * elapsed`` in sequence order."""
    increments = np.asarray(load, dtype=float) * np.asarray(elapsed, dtype=float)
    return np.fromiter(accumulate(increments), dtype=float, count=increments.size)


def summarize_loads(site: str, load: np.ndarray, cumulative: np.ndarray) -> SiteStatistics:
    """
    Five-number summary plus mean of *load*, with the final *cumulative* as total.

    Quartiles use linear interpolation between order statistics.

    Raises
    ------
    SummaryStatisticsError
        If there are no finite loads or any statistic is undefined.
    """
    load = np.asarray(load, dtype=float)
    finite = load[np.isfinite(load)]
    if finite.size == 0:
        raise SummaryStatisticsError(site, "no finite load values")
    if len(cumulative) == 0:
        raise SummaryStatisticsError(site, "no cumulative load")

    q1, median, q3 = np.percentile(finite, [25, 50, 75])
    stats = SiteStatistics(
        site=site,
        min=float(finite.min()),
        q1=float(q1),
        median=float(median),
        mean=float(finite.mean()),
        q3=float(q3),
        max=float(finite.max()),
        total_load=float(cumulative[-1]),
    )
    bad = [k for k, v in stats.to_dict().items() if k != "site" and not np.isfinite(v)]
    if bad:
        raise SummaryStatisticsError(site, f"undefined {', '.join(bad)}")
    return stats


# ---------------------------------------------------------------------------
# Per-site estimator
# ---------------------------------------------------------------------------


def estimate_site_load(
    site: str,
    flow: pd.DataFrame,
    spec: RegressionSpec,
    grid_seconds: float = GRID_SECONDS,
) -> SiteLoadResult:
    """
    Estimate instantaneous and cumulative sediment load for one site.

    Parameters
    ----------
    site : str
        Site name.
    flow : pd.DataFrame
        The site's flow records (``timestamp``, ``flow``), one per grid step.
    spec : RegressionSpec
        The site's rating curve.
    grid_seconds : float
        Cap on the time any one sample represents.

    Returns
    -------
    SiteLoadResult
        ``statistics`` is None (and ``skip`` set) if they are undefined;
        the load records are still returned in that case.

    Raises
    ------
    EmptyFlowSeriesError
        If no sample yields a usable prediction.
    """
    df = flow.loc[flow["flow"].notna(), ["timestamp", "flow"]].sort_values("timestamp")
    if df.empty:
        raise EmptyFlowSeriesError(site)

    conc = predict_concentration(spec.curve, df["flow"].to_numpy())
    usable = np.isfinite(conc)
    n_dropped = int((~usable).sum())
    if n_dropped:
        logger.warning(
            "%s: %d flow values outside the %s curve's domain; no prediction made",
            site,
            n_dropped,
            spec.kind,
        )
    if not usable.any():
        raise EmptyFlowSeriesError(site, f"no flow value within the {spec.kind} curve's domain")

    df = df.loc[usable].reset_index(drop=True)
    conc = conc[usable]
    flow_values = df["flow"].to_numpy(dtype=float)

    elapsed = elapsed_seconds(df["timestamp"], grid_seconds)
    load = conc * flow_values / MG_PER_TONNE
    cumulative = cumulative_load(load, elapsed)

    records = pd.DataFrame(
        {
            "timestamp": df["timestamp"],
            "site": site,
            "flow": flow_values,
            "predicted_conc": conc,
            "elapsed_s": elapsed,
            "load": load,
            "cumulative_load": cumulative,
        },
        columns=LOAD_COLUMNS,
    )

    try:
        stats = summarize_loads(site, load, cumulative)
    except SummaryStatisticsError as exc:
        logger.warning("%s", exc)
        return SiteLoadResult(
            site=site,
            records=records,
            skip=SiteSkip(site, SKIP_STATISTICS, str(exc)),
            n_domain_dropped=n_dropped,
        )

    return SiteLoadResult(site=site, records=records, statistics=stats, n_domain_dropped=n_dropped)


def process_site(
    site: str,
    flow: pd.DataFrame,
    catalog: RegressionCatalog,
    grid_seconds: float = GRID_SECONDS,
) -> SiteLoadResult:
    """
    Look up *site*'s rating curve and estimate its load, never raising for
    site-level data problems.

    Parameters
    ----------
    site : str
    flow : pd.DataFrame
        Flow records for any number of sites; only *site*'s rows are used.
    catalog : RegressionCatalog
    grid_seconds : float

    Returns
    -------
    SiteLoadResult
        With ``skip`` set for a catalog miss, an unrecognised regression
        type, an empty flow series or undefined statistics.
    """
    empty = pd.DataFrame(columns=LOAD_COLUMNS)

    try:
        spec = catalog.lookup(site)
    except SiteNotInCatalogError as exc:
        logger.warning("%s", exc)
        return SiteLoadResult(site, empty, skip=SiteSkip(site, SKIP_NOT_IN_CATALOG, str(exc)))
    except UnknownRegressionKindError as exc:
        logger.warning("%s", exc)
        return SiteLoadResult(site, empty, skip=SiteSkip(site, SKIP_UNKNOWN_REGRESSION, str(exc)))

    try:
        return estimate_site_load(site, flow_for_site(flow, site), spec, grid_seconds)
    except EmptyFlowSeriesError as exc:
        logger.warning("%s", exc)
        return SiteLoadResult(site, empty, skip=SiteSkip(site, SKIP_EMPTY_FLOW, str(exc)))
