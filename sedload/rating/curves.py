"""
sedload.rating.curves - Flow-to-concentration rating curves.

Each regression kind is its own frozen dataclass carrying only the
coefficients that kind needs::

    Linear        C = slope * Q + intercept
    Exponential   C = power * exp(x_coef * Q)
    Polynomial    C = x_squared * Q**2 + x * Q + intercept
    Logarithmic   C = coef * ln(Q) + intercept          (Q > 0)
    Power         C = coef * Q ** exponent

``predict`` is vectorised and returns NaN where a curve is undefined for
the supplied flow; ``evaluate`` is the scalar form and raises
:class:`~sedload.errors.RegressionDomainError` instead.  Neither clamps
negative concentrations; that is a physical bound applied by the load
estimator.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import ClassVar, Dict, Tuple, Type, Union

import numpy as np

from sedload.errors import RegressionDomainError

ArrayLike = Union[float, np.ndarray]


@dataclass(frozen=True)
class RatingCurve:
    """Base class for a fitted flow/concentration relationship."""

    kind: ClassVar[str] = ""

    def _compute(self, flow: np.ndarray) -> np.ndarray:
        raise NotImplementedError

    def _in_domain(self, flow: np.ndarray) -> np.ndarray:
        return np.isfinite(flow)

    def predict(self, flow: ArrayLike) -> np.ndarray:
        """
        Predict concentration for an array of flows.

        Parameters
        ----------
        flow : float or array-like
            Flow values, in the units the curve was fitted in.

        Returns
        -------
        np.ndarray
            Predicted concentration; NaN where the flow is outside the
            curve's domain.
        """
        q = np.atleast_1d(np.asarray(flow, dtype=float))
        ok = self._in_domain(q)
        out = np.full(q.shape, np.nan)
        with np.errstate(over="ignore", invalid="ignore"):
            out[ok] = self._compute(q[ok])
        return out

    def evaluate(self, flow: float) -> float:
        """Scalar prediction; raises RegressionDomainError outside the domain."""
        q = np.asarray([flow], dtype=float)
        if not self._in_domain(q)[0]:
            raise RegressionDomainError(self.kind, flow)
        return float(self._compute(q)[0])

    def coefficients(self) -> Dict[str, float]:
        """Coefficient table columns for this curve (see :mod:`sedload.rating.catalog`)."""
        raise NotImplementedError

    def equation(self) -> str:
        """Human-readable equation string."""
        raise NotImplementedError


@dataclass(frozen=True)
class LinearCurve(RatingCurve):
    slope: float
    intercept: float

    kind: ClassVar[str] = "Linear"

    def _compute(self, flow: np.ndarray) -> np.ndarray:
        return self.slope * flow + self.intercept

    def coefficients(self) -> Dict[str, float]:
        return {"Slope": self.slope, "Linear_Intercept": self.intercept}

    def equation(self) -> str:
        return f"C = {self.slope:.6g} * Q + {self.intercept:.6g}"


@dataclass(frozen=True)
class ExponentialCurve(RatingCurve):
    power: float
    x_coef: float

    kind: ClassVar[str] = "Exponential"

    def _compute(self, flow: np.ndarray) -> np.ndarray:
        return self.power * np.exp(self.x_coef * flow)

    def coefficients(self) -> Dict[str, float]:
        return {"Exp_Power": self.power, "Exp_X": self.x_coef}

    def equation(self) -> str:
        return f"C = {self.power:.6g} * exp({self.x_coef:.6g} * Q)"


@dataclass(frozen=True)
class PolynomialCurve(RatingCurve):
    x_squared: float
    x: float
    intercept: float

    kind: ClassVar[str] = "Polynomial"

    def _compute(self, flow: np.ndarray) -> np.ndarray:
        return self.x_squared * flow**2 + self.x * flow + self.intercept

    def coefficients(self) -> Dict[str, float]:
        return {
            "X_Squared": self.x_squared,
            "Poly_X": self.x,
            "Poly_Intercept": self.intercept,
        }

    def equation(self) -> str:
        return f"C = {self.x_squared:.6g} * Q^2 + {self.x:.6g} * Q + {self.intercept:.6g}"


@dataclass(frozen=True)
class LogarithmicCurve(RatingCurve):
    coef: float
    intercept: float

    kind: ClassVar[str] = "Logarithmic"

    def _in_domain(self, flow: np.ndarray) -> np.ndarray:
        return np.isfinite(flow) & (flow > 0)

    def _compute(self, flow: np.ndarray) -> np.ndarray:
        return self.coef * np.log(flow) + self.intercept

    def coefficients(self) -> Dict[str, float]:
        return {"Log": self.coef, "Log_Intercept": self.intercept}

    def equation(self) -> str:
        return f"C = {self.coef:.6g} * ln(Q) + {self.intercept:.6g}"


@dataclass(frozen=True)
class PowerCurve(RatingCurve):
    coef: float
    exponent: float

    kind: ClassVar[str] = "Power"

    def _in_domain(self, flow: np.ndarray) -> np.ndarray:
        ok = np.isfinite(flow)
        # negative base with a fractional exponent has no real value
        if not float(self.exponent).is_integer():
            ok &= flow >= 0
        if self.exponent < 0:
            ok &= flow != 0
        return ok

    def _compute(self, flow: np.ndarray) -> np.ndarray:
        return self.coef * np.power(flow, self.exponent)

    def coefficients(self) -> Dict[str, float]:
        return {"Power_X": self.coef, "Power_Exp": self.exponent}

    def equation(self) -> str:
        return f"C = {self.coef:.6g} * Q^{self.exponent:.6g}"


CURVE_TYPES: Tuple[Type[RatingCurve], ...] = (
    LinearCurve,
    ExponentialCurve,
    PolynomialCurve,
    LogarithmicCurve,
    PowerCurve,
)

CURVES_BY_KIND: Dict[str, Type[RatingCurve]] = {cls.kind: cls for cls in CURVE_TYPES}

# Labels seen in coefficient spreadsheets -> canonical kind
KIND_ALIASES: Dict[str, str] = {
    "linear": "Linear",
    "exponential": "Exponential",
    "exp": "Exponential",
    "polynomial": "Polynomial",
    "poly": "Polynomial",
    "logarithmic": "Logarithmic",
    "log": "Logarithmic",
    "power": "Power",
}


def canonical_kind(label: str) -> str | None:
    """Return the canonical kind name for *label*, or None if unrecognised."""
    if label is None:
        return None
    return KIND_ALIASES.get(str(label).strip().lower())


def is_finite_coefficient(value: float) -> bool:
    try:
        return math.isfinite(float(value))
    except (TypeError, ValueError):
        return False
