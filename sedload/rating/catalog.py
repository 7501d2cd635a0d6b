"""
sedload.rating.catalog - Per-site table of rating-curve coefficients.

:class:`RegressionCatalog` holds exactly one :class:`RegressionSpec` per
monitoring site and is immutable for the duration of a run.

CSV Format
----------
The on-disk format is the "wide" coefficient spreadsheet produced by the
SSC/flow regression analysis, one row per site::

    SiteName, RegressionType, Slope, Linear_Intercept, Exp_Power, Exp_X,
    X_Squared, Poly_X, Poly_Intercept, Log, Log_Intercept, Power_X, Power_Exp

Rules:
* ``RegressionType`` is one of ``Linear``, ``Exponential``, ``Polynomial``,
  ``Logarithmic`` (``Log`` is accepted) or ``Power``, case-insensitive.
* Only the coefficient columns belonging to the row's regression type are
  read; the others are normally blank.
* A row with an unrecognised type, or with a blank coefficient its type
  needs, is kept aside so that looking that site up raises
  :class:`~sedload.errors.UnknownRegressionKindError` instead of silently
  guessing a curve.

Example (3 rows)::

    SiteName,RegressionType,Slope,Linear_Intercept,Power_X,Power_Exp
    Esk River at Waipunga Bridge,Linear,0.01,5,,
    Tutaekuri River at Puketapu,Power,,,0.0021,1.12
    Karamu Stream at Floodgates,Spline,,,,
"""

from __future__ import annotations

import csv
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Optional, Tuple

import pandas as pd

from sedload.errors import SiteNotInCatalogError, UnknownRegressionKindError
from sedload.rating.curves import (
    CURVES_BY_KIND,
    ExponentialCurve,
    LinearCurve,
    LogarithmicCurve,
    PolynomialCurve,
    PowerCurve,
    RatingCurve,
    canonical_kind,
    is_finite_coefficient,
)

log = logging.getLogger(__name__)

SITE_COL = "SiteName"
KIND_COL = "RegressionType"

# Coefficient columns per kind, in constructor argument order
COEFFICIENT_COLUMNS: Dict[str, Tuple[str, ...]] = {
    "Linear": ("Slope", "Linear_Intercept"),
    "Exponential": ("Exp_Power", "Exp_X"),
    "Polynomial": ("X_Squared", "Poly_X", "Poly_Intercept"),
    "Logarithmic": ("Log", "Log_Intercept"),
    "Power": ("Power_X", "Power_Exp"),
}

ALL_COLUMNS: Tuple[str, ...] = (SITE_COL, KIND_COL) + tuple(
    col for cols in COEFFICIENT_COLUMNS.values() for col in cols
)

_BLANK = ("", "nan", "NaN", "NA", "N/A")


# ---------------------------------------------------------------------------
# RegressionSpec: one site's curve
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RegressionSpec:
    """
    Rating curve assigned to one monitoring site.

    Parameters
    ----------
    site : str
        Site name exactly as it appears in the measurement archive.
    curve : RatingCurve
        Fitted curve; its concrete type is the regression kind.
    r_squared : float, optional
        Goodness of fit, when known.
    n_samples : int, optional
        Number of flow/concentration pairs the curve was fitted to.
    """

    site: str
    curve: RatingCurve
    r_squared: Optional[float] = None
    n_samples: Optional[int] = None

    @property
    def kind(self) -> str:
        return self.curve.kind

    def to_dict(self) -> Dict[str, object]:
        """Return a flat dict suitable for writing to the coefficient CSV."""
        d: Dict[str, object] = {SITE_COL: self.site, KIND_COL: self.kind}
        d.update(self.curve.coefficients())
        return d


def build_curve(kind: str, values: Iterable[float]) -> RatingCurve:
    """Instantiate the curve class for canonical *kind* from ordered coefficients."""
    cls = CURVES_BY_KIND[kind]
    return cls(*[float(v) for v in values])


# ---------------------------------------------------------------------------
# RegressionCatalog
# ---------------------------------------------------------------------------


class RegressionCatalog:
    """
    Site-keyed collection of rating curves.

    Parameters
    ----------
    source : str, optional
        Where the coefficients came from (file name, analysis date), kept
        for provenance in reports.

    Examples
    --------
    >>> catalog = RegressionCatalog.from_specs([
    ...     RegressionSpec("Site A", LinearCurve(slope=0.01, intercept=5.0)),
    ...     RegressionSpec("Site B", PowerCurve(coef=1.0, exponent=1.0)),
    ... ])
    >>> catalog.lookup("Site A").kind
    'Linear'
    """

    def __init__(self, source: str = "") -> None:
        self.source = source
        self._specs: Dict[str, RegressionSpec] = {}
        # site -> offending RegressionType label
        self._invalid: Dict[str, str] = {}

    # ------------------------------------------------------------------
    # Constructors
    # ------------------------------------------------------------------

    @classmethod
    def from_specs(cls, specs: Iterable[RegressionSpec], *, source: str = "") -> "RegressionCatalog":
        catalog = cls(source=source)
        for spec in specs:
            catalog._add(spec)
        return catalog

    @classmethod
    def load_from_rows(
        cls, rows: Iterable[Dict[str, object]], *, source: str = ""
    ) -> "RegressionCatalog":
        """
        Build from an iterable of row dicts keyed by the CSV column names.

        Rows without a site name are ignored.  See the module docstring for
        how unrecognised or incomplete rows are handled.
        """
        catalog = cls(source=source)
        for row in rows:
            site = str(row.get(SITE_COL) or "").strip()
            if not site or site in _BLANK:
                continue
            if site in catalog._specs or site in catalog._invalid:
                log.warning("Duplicate coefficient row for %r ignored", site)
                continue

            label = str(row.get(KIND_COL) or "").strip()
            kind = canonical_kind(label)
            if kind is None:
                log.warning("Unrecognised regression type %r for site %r", label, site)
                catalog._invalid[site] = label
                continue

            cols = COEFFICIENT_COLUMNS[kind]
            values = [row.get(col) for col in cols]
            missing = [col for col, v in zip(cols, values) if not is_finite_coefficient(v)]
            if missing:
                log.warning(
                    "Site %r (%s) is missing coefficient(s) %s", site, kind, ", ".join(missing)
                )
                catalog._invalid[site] = label
                continue

            catalog._add(RegressionSpec(site=site, curve=build_curve(kind, values)))
        return catalog

    @classmethod
    def load_from_csv(cls, path: str | Path) -> "RegressionCatalog":
        """
        Load the coefficient table from a CSV file.

        Parameters
        ----------
        path : str or Path

        Returns
        -------
        RegressionCatalog

        Raises
        ------
        FileNotFoundError
            If *path* does not exist.
        ValueError
            If the file has no header or lacks the site / type columns.
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Regression coefficient CSV not found: {path}")

        with path.open(newline="", encoding="utf-8-sig") as fh:
            reader = csv.DictReader(fh)
            if reader.fieldnames is None:
                raise ValueError(f"CSV file is empty or has no header: {path}")
            _check_columns(reader.fieldnames, path)
            rows = [
                {k.strip(): (v.strip() if isinstance(v, str) else v) for k, v in r.items() if k}
                for r in reader
            ]

        catalog = cls.load_from_rows(rows, source=str(path))
        log.info(
            "Loaded %d rating curves from %s (%d unusable rows)",
            len(catalog),
            path,
            len(catalog._invalid),
        )
        return catalog

    @classmethod
    def load_from_dataframe(cls, df: pd.DataFrame, *, source: str = "") -> "RegressionCatalog":
        """Build from a DataFrame, e.g. one read with ``pd.read_excel``."""
        _check_columns(list(df.columns), source or "<DataFrame>")
        return cls.load_from_rows(df.to_dict(orient="records"), source=source)

    # ------------------------------------------------------------------
    # Mutation / internal
    # ------------------------------------------------------------------

    def _add(self, spec: RegressionSpec) -> None:
        self._specs[spec.site] = spec
        self._invalid.pop(spec.site, None)

    # ------------------------------------------------------------------
    # Access
    # ------------------------------------------------------------------

    def lookup(self, site: str) -> RegressionSpec:
        """
        Return the rating curve specification for *site*.

        Raises
        ------
        SiteNotInCatalogError
            If the site has no row in the table.
        UnknownRegressionKindError
            If the site's row names a type that cannot be evaluated.
        """
        if site in self._specs:
            return self._specs[site]
        if site in self._invalid:
            raise UnknownRegressionKindError(site, self._invalid[site])
        raise SiteNotInCatalogError(site, self.sites())

    def sites(self) -> List[str]:
        """Sorted names of sites with a usable curve."""
        return sorted(self._specs)

    def invalid_sites(self) -> Dict[str, str]:
        """Sites whose rows could not be turned into a curve, with their type label."""
        return dict(self._invalid)

    # ------------------------------------------------------------------
    # Output helpers
    # ------------------------------------------------------------------

    def to_frame(self) -> pd.DataFrame:
        """Coefficient table as a DataFrame with the canonical columns."""
        rows = [spec.to_dict() for _, spec in sorted(self._specs.items())]
        return pd.DataFrame(rows, columns=list(ALL_COLUMNS))

    def to_csv(self, path: str | Path) -> None:
        """
        Write the catalog to a coefficient CSV reloadable with :meth:`load_from_csv`.

        Parameters
        ----------
        path : str or Path
        """
        path = Path(path)
        with path.open("w", newline="") as fh:
            writer = csv.DictWriter(fh, fieldnames=list(ALL_COLUMNS))
            writer.writeheader()
            for _, spec in sorted(self._specs.items()):
                row = {col: "" for col in ALL_COLUMNS}
                row.update(spec.to_dict())
                writer.writerow(row)

        log.info("Wrote %d rating curves to %s", len(self._specs), path)

    @staticmethod
    def write_template(path: str | Path, sites: Iterable[str]) -> None:
        """Write a blank coefficient CSV listing *sites*, to be filled in by hand."""
        path = Path(path)
        sites = list(sites)
        with path.open("w", newline="") as fh:
            writer = csv.DictWriter(fh, fieldnames=list(ALL_COLUMNS))
            writer.writeheader()
            for site in sites:
                row = {col: "" for col in ALL_COLUMNS}
                row[SITE_COL] = site
                writer.writerow(row)
        log.info("Template with %d rows written to %s", len(sites), path)

    # ------------------------------------------------------------------
    # Dunder
    # ------------------------------------------------------------------

    def __len__(self) -> int:
        return len(self._specs)

    def __contains__(self, site: object) -> bool:
        return site in self._specs

    def __iter__(self) -> Iterator[RegressionSpec]:
        return iter(self._specs[s] for s in self.sites())

    def __repr__(self) -> str:
        kinds = sorted({spec.kind for spec in self._specs.values()})
        return f"RegressionCatalog(sites={len(self)}, kinds={kinds}, invalid={len(self._invalid)})"


# ---------------------------------------------------------------------------
# Private helpers
# ---------------------------------------------------------------------------


def _check_columns(columns: Iterable[str], where: object) -> None:
    cols = {str(c).strip() for c in columns}
    missing = [c for c in (SITE_COL, KIND_COL) if c not in cols]
    if missing:
        raise ValueError(f"Coefficient table {where} is missing column(s): {missing}")


__all__ = [
    "ALL_COLUMNS",
    "COEFFICIENT_COLUMNS",
    "RegressionCatalog",
    "RegressionSpec",
    "build_curve",
    # re-exported for convenience when building catalogs by hand
    "ExponentialCurve",
    "LinearCurve",
    "LogarithmicCurve",
    "PolynomialCurve",
    "PowerCurve",
]
