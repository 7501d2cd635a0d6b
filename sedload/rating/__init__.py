"""
sedload.rating - Flow-to-concentration rating curves.

Core classes
------------
:class:`RatingCurve` and its variants
    :class:`LinearCurve`, :class:`ExponentialCurve`, :class:`PolynomialCurve`,
    :class:`LogarithmicCurve`, :class:`PowerCurve`: one frozen dataclass per
    regression kind, carrying only that kind's coefficients.

:class:`RegressionSpec`
    The curve assigned to one monitoring site.

:class:`RegressionCatalog`
    Per-site coefficient table, loaded from the regression spreadsheet.

Typical usage
-------------
::

    from sedload.rating import RegressionCatalog

    catalog = RegressionCatalog.load_from_csv("regression_output.csv")
    spec = catalog.lookup("Tutaekuri River at Puketapu")
    conc = spec.curve.predict(flow_values)
"""

from sedload.rating.catalog import RegressionCatalog, RegressionSpec, build_curve
from sedload.rating.curves import (
    CURVES_BY_KIND,
    ExponentialCurve,
    LinearCurve,
    LogarithmicCurve,
    PolynomialCurve,
    PowerCurve,
    RatingCurve,
    canonical_kind,
)
from sedload.rating.fitting import FitResult, fit_best_curve, fit_catalog, fit_rating_curve

__all__ = [
    "RatingCurve",
    "LinearCurve",
    "ExponentialCurve",
    "PolynomialCurve",
    "LogarithmicCurve",
    "PowerCurve",
    "CURVES_BY_KIND",
    "canonical_kind",
    "RegressionSpec",
    "RegressionCatalog",
    "build_curve",
    "FitResult",
    "fit_rating_curve",
    "fit_best_curve",
    "fit_catalog",
]
