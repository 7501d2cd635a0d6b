"""
sedload.errors - Exception hierarchy for the sediment load workflow.

Every per-site problem is site-local: the batch layer catches these,
logs them and carries on with the remaining sites.
"""

from __future__ import annotations


class SedloadError(Exception):
    """Base class for all sedload errors."""


class SiteNotInCatalogError(SedloadError, KeyError):
    """Raised when a site has no entry in the regression catalog.

    Parameters
    ----------
    site : str
        Site name that was looked up.
    available : list of str, optional
        Site names present in the catalog (shown in the message).
    """

    def __init__(self, site: str, available: list[str] | None = None) -> None:
        msg = f"Site not found in the regression catalog: {site!r}"
        if available:
            msg += f" ({len(available)} sites available)"
        super().__init__(msg)
        self.site = site
        self.available = available or []

    def __str__(self) -> str:
        # KeyError wraps its message in quotes otherwise
        return str(self.args[0])


class UnknownRegressionKindError(SedloadError, ValueError):
    """Raised when a coefficient row names a regression kind we cannot evaluate."""

    def __init__(self, site: str, label: str) -> None:
        super().__init__(f"Unrecognised regression type {label!r} for site {site!r}")
        self.site = site
        self.label = label


class RegressionDomainError(SedloadError, ValueError):
    """Raised when a flow value lies outside a rating curve's domain."""

    def __init__(self, kind: str, flow: float) -> None:
        super().__init__(f"{kind} rating curve is undefined for flow={flow!r}")
        self.kind = kind
        self.flow = flow


class EmptyFlowSeriesError(SedloadError, ValueError):
    """Raised when a site has no usable flow records after cleaning."""

    def __init__(self, site: str, detail: str = "") -> None:
        msg = f"No usable flow records for site {site!r}"
        if detail:
            msg += f": {detail}"
        super().__init__(msg)
        self.site = site


class SummaryStatisticsError(SedloadError, ValueError):
    """Raised when load summary statistics cannot be computed for a site."""

    def __init__(self, site: str, detail: str = "") -> None:
        msg = f"Invalid data or summary statistics for site {site!r}"
        if detail:
            msg += f": {detail}"
        super().__init__(msg)
        self.site = site


class ConfigurationError(SedloadError, ValueError):
    """Raised when a run configuration is incomplete or inconsistent."""


class MeasurementSourceError(SedloadError, RuntimeError):
    """Raised when a measurement source cannot be reached or parsed."""
