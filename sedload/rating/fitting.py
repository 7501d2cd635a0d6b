"""
sedload.rating.fitting - Fit rating curves to paired flow / SSC samples.

The coefficient table consumed by :class:`~sedload.rating.catalog.RegressionCatalog`
is produced offline from the flow-matched spot samples written by
:func:`sedload.concentration.build_concentration_series`.  This module
fits each supported curve form and keeps the best one per site.

Linear and Logarithmic are ordinary least squares (``scipy.stats.linregress``
on Q or ln Q).  Power and Exponential start from the log-space linear fit and
are refined in concentration space with ``scipy.optimize.curve_fit`` so that
the fitted curve minimises the same residuals r² is reported on.  Polynomial
uses ``numpy.polyfit`` with degree 2.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Optional, Sequence

import numpy as np
import pandas as pd
from scipy import optimize, stats

from sedload.rating.catalog import RegressionCatalog, RegressionSpec
from sedload.rating.curves import (
    CURVES_BY_KIND,
    ExponentialCurve,
    LinearCurve,
    LogarithmicCurve,
    PolynomialCurve,
    PowerCurve,
    RatingCurve,
)

logger = logging.getLogger(__name__)

MIN_SAMPLES = 3


@dataclass
class FitResult:
    """Outcome of fitting one curve form to one site's samples."""

    kind: str
    curve: Optional[RatingCurve]
    r_squared: float = float("nan")
    n: int = 0
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.curve is not None and np.isfinite(self.r_squared)


def r_squared(observed: np.ndarray, predicted: np.ndarray) -> float:
    """Coefficient of determination of *predicted* against *observed*."""
    observed = np.asarray(observed, dtype=float)
    predicted = np.asarray(predicted, dtype=float)
    mask = np.isfinite(observed) & np.isfinite(predicted)
    if mask.sum() < 2:
        return float("nan")
    resid = observed[mask] - predicted[mask]
    total = observed[mask] - observed[mask].mean()
    ss_tot = float(np.sum(total**2))
    if ss_tot == 0:
        return float("nan")
    return 1.0 - float(np.sum(resid**2)) / ss_tot


def _require(keep: np.ndarray, what: str) -> None:
    if int(keep.sum()) < MIN_SAMPLES:
        raise ValueError(f"fewer than {MIN_SAMPLES} samples with {what}")


def _fit_linear(q: np.ndarray, c: np.ndarray) -> RatingCurve:
    res = stats.linregress(q, c)
    return LinearCurve(slope=float(res.slope), intercept=float(res.intercept))


def _fit_logarithmic(q: np.ndarray, c: np.ndarray) -> RatingCurve:
    keep = q > 0
    _require(keep, "positive flow")
    res = stats.linregress(np.log(q[keep]), c[keep])
    return LogarithmicCurve(coef=float(res.slope), intercept=float(res.intercept))


def _fit_polynomial(q: np.ndarray, c: np.ndarray) -> RatingCurve:
    a, b, k = np.polyfit(q, c, 2)
    return PolynomialCurve(x_squared=float(a), x=float(b), intercept=float(k))


def _fit_power(q: np.ndarray, c: np.ndarray) -> RatingCurve:
    keep = (q > 0) & (c > 0)
    _require(keep, "positive flow and concentration")
    res = stats.linregress(np.log(q[keep]), np.log(c[keep]))
    p0 = (float(np.exp(res.intercept)), float(res.slope))
    try:
        popt, _ = optimize.curve_fit(
            lambda x, a, b: a * np.power(x, b), q[keep], c[keep], p0=p0, maxfev=5000
        )
    except (RuntimeError, optimize.OptimizeWarning) as exc:
        logger.debug("Power refinement failed, keeping log-space fit: %s", exc)
        popt = p0
    return PowerCurve(coef=float(popt[0]), exponent=float(popt[1]))


def _fit_exponential(q: np.ndarray, c: np.ndarray) -> RatingCurve:
    keep = c > 0
    _require(keep, "positive concentration")
    res = stats.linregress(q[keep], np.log(c[keep]))
    p0 = (float(np.exp(res.intercept)), float(res.slope))
    try:
        popt, _ = optimize.curve_fit(
            lambda x, a, b: a * np.exp(b * x), q[keep], c[keep], p0=p0, maxfev=5000
        )
    except (RuntimeError, optimize.OptimizeWarning) as exc:
        logger.debug("Exponential refinement failed, keeping log-space fit: %s", exc)
        popt = p0
    return ExponentialCurve(power=float(popt[0]), x_coef=float(popt[1]))


_FITTERS = {
    "Linear": _fit_linear,
    "Exponential": _fit_exponential,
    "Polynomial": _fit_polynomial,
    "Logarithmic": _fit_logarithmic,
    "Power": _fit_power,
}


def fit_rating_curve(flow: Sequence[float], conc: Sequence[float], kind: str) -> FitResult:
    """
    Fit one curve form to paired flow / concentration samples.

    Parameters
    ----------
    flow, conc : sequence of float
        Paired samples; non-finite pairs are dropped.
    kind : str
        Canonical kind name (``"Linear"``, ``"Power"``, ...).

    Returns
    -------
    FitResult
        ``curve`` is None and ``error`` is set when the fit is impossible
        (too few samples, non-positive values for a log transform, ...).
    """
    if kind not in CURVES_BY_KIND:
        raise ValueError(f"Unknown regression kind {kind!r}; expected one of {list(CURVES_BY_KIND)}")

    q = np.asarray(flow, dtype=float)
    c = np.asarray(conc, dtype=float)
    mask = np.isfinite(q) & np.isfinite(c)
    q, c = q[mask], c[mask]
    n = int(q.size)

    if n < MIN_SAMPLES:
        return FitResult(kind=kind, curve=None, n=n, error=f"only {n} samples")

    try:
        curve = _FITTERS[kind](q, c)
    except (ValueError, np.linalg.LinAlgError) as exc:
        return FitResult(kind=kind, curve=None, n=n, error=str(exc))

    return FitResult(kind=kind, curve=curve, r_squared=r_squared(c, curve.predict(q)), n=n)


def fit_best_curve(
    flow: Sequence[float],
    conc: Sequence[float],
    kinds: Sequence[str] = tuple(CURVES_BY_KIND),
) -> Optional[FitResult]:
    """Fit every kind in *kinds* and return the one with the highest r², or None."""
    results = [fit_rating_curve(flow, conc, kind) for kind in kinds]
    usable = [r for r in results if r.ok]
    if not usable:
        return None
    return max(usable, key=lambda r: r.r_squared)


def fit_catalog(
    merged: pd.DataFrame,
    kinds: Sequence[str] = tuple(CURVES_BY_KIND),
    concentration_kind: Optional[str] = "SSC",
) -> RegressionCatalog:
    """
    Fit a rating curve for every site in a flow-matched concentration table.

    Parameters
    ----------
    merged : pd.DataFrame
        Output of :func:`sedload.concentration.build_concentration_series`
        (columns ``site``, ``flow``, ``concentration``, ``kind``).
    kinds : sequence of str
        Curve forms to try; the best r² wins per site.
    concentration_kind : str or None
        Restrict to this sample kind (``"SSC"`` by default); None uses all.

    Returns
    -------
    RegressionCatalog
    """
    df = merged
    if concentration_kind is not None and "kind" in df.columns:
        df = df[df["kind"] == concentration_kind]

    specs = []
    for site, group in df.groupby("site", sort=True):
        best = fit_best_curve(group["flow"].values, group["concentration"].values, kinds)
        if best is None:
            logger.warning("No rating curve could be fitted for site %s (%d samples)", site, len(group))
            continue
        logger.info(
            "%s: %s fit, r2=%.3f, n=%d", site, best.kind, best.r_squared, best.n
        )
        specs.append(
            RegressionSpec(site=site, curve=best.curve, r_squared=best.r_squared, n_samples=best.n)
        )

    return RegressionCatalog.from_specs(specs, source="fitted")


def fit_summary(catalog: RegressionCatalog) -> pd.DataFrame:
    """Tabulate kind, equation, r² and sample count for each fitted site."""
    rows: Dict[str, list] = {"site": [], "kind": [], "equation": [], "r_squared": [], "n": []}
    for spec in catalog:
        rows["site"].append(spec.site)
        rows["kind"].append(spec.kind)
        rows["equation"].append(spec.curve.equation())
        rows["r_squared"].append(spec.r_squared)
        rows["n"].append(spec.n_samples)
    return pd.DataFrame(rows)
