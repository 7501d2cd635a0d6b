"""
sedload - Suspended sediment load estimation from continuous flow records

Includes:
- Hilltop Server and CSV measurement retrieval
- Flow series cleaning on a 15-minute grid with site exclusion rules
- Per-site rating curves (Linear, Exponential, Polynomial, Logarithmic, Power):
  - loading from a coefficient table
  - offline fitting to flow-matched SSC samples
- Instantaneous and cumulative load with per-site summary statistics
- CSV / ZIP export, charts and run reports
"""

import logging

from .batch import BatchResult, analyze_samples, batch_summary_table, run_multi_site
from .concentration import build_concentration_series
from .config import RunConfig
from .errors import (
    ConfigurationError,
    EmptyFlowSeriesError,
    MeasurementSourceError,
    RegressionDomainError,
    SedloadError,
    SiteNotInCatalogError,
    SummaryStatisticsError,
    UnknownRegressionKindError,
)
from .flow import ExclusionRule, ExclusionRuleTable, build_flow_series
from .hilltop import CsvMeasurementSource, HilltopClient, load_samples
from .load import SiteLoadResult, SiteSkip, SiteStatistics, estimate_site_load, process_site
from .rating import RatingCurve, RegressionCatalog, RegressionSpec, fit_catalog

logger = logging.getLogger(__name__)


def estimate_loads(config: RunConfig, plots: bool = None) -> dict:
    """
    Complete sediment load run from a :class:`RunConfig`.

    Parameters
    ----------
    config : RunConfig
        Measurement source, coefficient table and output options.
    plots : bool, optional
        Override ``config.make_plots``.

    Returns
    -------
    dict
        ``batch`` (BatchResult), ``outputs`` (name -> path) and
        ``figures`` (name -> PNG path, empty without plots).
    """
    from .export import write_run_outputs

    config.validate()
    if config.regression_table is None:
        raise ConfigurationError("regression_table is required to estimate loads")

    catalog = RegressionCatalog.load_from_csv(config.regression_table)
    if config.exclusion_rules is not None:
        rules = ExclusionRuleTable.load_from_csv(config.exclusion_rules)
    else:
        rules = ExclusionRuleTable.default()

    if config.hilltop_url:
        source = HilltopClient(config.hilltop_url, timeout=config.timeout_seconds)
    else:
        source = CsvMeasurementSource(config.samples_csv)

    logger.info("Loading samples from %r", source)
    samples = load_samples(source, config.sites, config.measurements, config.start, config.end)

    batch = analyze_samples(samples, catalog, rules=rules, sites=config.sites, grid_minutes=config.grid_minutes)
    logger.info("%d sites processed, %d skipped", len(batch.processed_sites), len(batch.skipped))

    outputs = write_run_outputs(batch, config.output_dir, decimals=config.decimals)

    if plots is None:
        plots = config.make_plots

    figures = {}
    if plots:
        from .plots import save_site_figures

        figures = save_site_figures(batch, str(config.output_dir))

    return {"batch": batch, "outputs": outputs, "figures": figures}


__version__ = "0.1.0"
__author__ = "sedload"

__all__ = [
    # Configuration
    "RunConfig",
    # Errors
    "SedloadError",
    "SiteNotInCatalogError",
    "UnknownRegressionKindError",
    "RegressionDomainError",
    "EmptyFlowSeriesError",
    "SummaryStatisticsError",
    "ConfigurationError",
    "MeasurementSourceError",
    # Measurement retrieval
    "HilltopClient",
    "CsvMeasurementSource",
    "load_samples",
    # Flow and concentration series
    "ExclusionRule",
    "ExclusionRuleTable",
    "build_flow_series",
    "build_concentration_series",
    # Rating curves
    "RatingCurve",
    "RegressionSpec",
    "RegressionCatalog",
    "fit_catalog",
    # Load estimation
    "SiteStatistics",
    "SiteSkip",
    "SiteLoadResult",
    "estimate_site_load",
    "process_site",
    # Batch
    "BatchResult",
    "run_multi_site",
    "analyze_samples",
    "batch_summary_table",
    # Convenience
    "estimate_loads",
]
