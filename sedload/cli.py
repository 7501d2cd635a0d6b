"""
sedload command-line interface.

Provides commands to run the sediment load workflow, list archive sites
and fit rating curves from flow-matched concentration samples.
"""

from __future__ import annotations

import logging
from typing import Optional

import click

from sedload.config import RunConfig
from sedload.errors import ConfigurationError, MeasurementSourceError

logger = logging.getLogger(__name__)


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _open_source(config: RunConfig):
    from sedload.hilltop import CsvMeasurementSource, HilltopClient

    if config.hilltop_url:
        return HilltopClient(config.hilltop_url, timeout=config.timeout_seconds)
    return CsvMeasurementSource(config.samples_csv)


def _load_config(**options) -> RunConfig:
    try:
        return RunConfig.from_env(**options).validate()
    except ConfigurationError as exc:
        raise click.UsageError(str(exc)) from exc


@click.group()
def cli() -> None:
    """sedload - Suspended sediment load estimation from flow records."""
    pass


@cli.command()
@click.option("--hilltop-url", default=None, help="Hilltop Server endpoint.")
@click.option("--samples-csv", type=click.Path(dir_okay=False), default=None, help="Flat sample CSV export.")
@click.option("--regressions", "regression_table", type=click.Path(dir_okay=False), default=None,
              help="Rating-curve coefficient table (CSV).")
@click.option("--rules", "exclusion_rules", type=click.Path(dir_okay=False), default=None,
              help="Site exclusion rule table (CSV).")
@click.option("--start", default=None, help="Window start, e.g. 2019-07-01.")
@click.option("--end", default=None, help="Window end, e.g. 2020-07-01.")
@click.option("--site", "sites", multiple=True, help="Site to process; repeat for several.")
@click.option("--output-dir", type=click.Path(file_okay=False), default=None)
@click.option("--plots/--no-plots", "make_plots", default=True)
@click.option("--format", "fmt", type=click.Choice(["text", "json"]), default="text")
@click.option("-v", "--verbose", is_flag=True)
def run(
    hilltop_url: Optional[str],
    samples_csv: Optional[str],
    regression_table: Optional[str],
    exclusion_rules: Optional[str],
    start: Optional[str],
    end: Optional[str],
    sites: tuple,
    output_dir: Optional[str],
    make_plots: bool,
    fmt: str,
    verbose: bool,
) -> None:
    """Estimate sediment loads for every site and write the results.

    Sites that cannot be processed are reported and skipped; the command
    still exits 0.
    """
    from sedload import estimate_loads
    from sedload.report import generate_json_report, generate_text_report

    _configure_logging(verbose)
    config = _load_config(
        hilltop_url=hilltop_url,
        samples_csv=samples_csv,
        regression_table=regression_table,
        exclusion_rules=exclusion_rules,
        start=start,
        end=end,
        sites=list(sites) or None,
        output_dir=output_dir,
        make_plots=make_plots,
    )
    if config.regression_table is None:
        raise click.UsageError("A coefficient table is required (--regressions or SEDLOAD_REGRESSION_TABLE)")

    if config.make_plots:
        import matplotlib

        matplotlib.use("Agg")

    try:
        result = estimate_loads(config)
    except ConfigurationError as exc:
        raise click.UsageError(str(exc)) from exc
    except MeasurementSourceError as exc:
        raise click.ClickException(str(exc)) from exc

    for name, path in result["outputs"].items():
        logger.info("Wrote %s: %s", name, path)
    if result["figures"]:
        logger.info("Saved %d charts to %s", len(result["figures"]), config.output_dir)

    batch = result["batch"]
    if fmt == "json":
        click.echo(generate_json_report(batch))
    else:
        click.echo(generate_text_report(batch, decimals=config.decimals))


@cli.command()
@click.option("--hilltop-url", default=None, help="Hilltop Server endpoint.")
@click.option("--samples-csv", type=click.Path(dir_okay=False), default=None, help="Flat sample CSV export.")
@click.option("-v", "--verbose", is_flag=True)
def sites(hilltop_url: Optional[str], samples_csv: Optional[str], verbose: bool) -> None:
    """List the sites available from a measurement source."""
    _configure_logging(verbose)
    config = _load_config(hilltop_url=hilltop_url, samples_csv=samples_csv)
    try:
        names = _open_source(config).site_list()
    except MeasurementSourceError as exc:
        raise click.ClickException(str(exc)) from exc
    for name in names:
        click.echo(name)


@cli.command()
@click.option("--hilltop-url", default=None, help="Hilltop Server endpoint.")
@click.option("--samples-csv", type=click.Path(dir_okay=False), default=None, help="Flat sample CSV export.")
@click.option("--output", "output", type=click.Path(dir_okay=False), required=True,
              help="Coefficient table to write.")
@click.option("--kind", "kinds", multiple=True,
              type=click.Choice(["Linear", "Exponential", "Polynomial", "Logarithmic", "Power"]),
              help="Curve form to try; repeat for several (default: all).")
@click.option("--rules", "exclusion_rules", type=click.Path(dir_okay=False), default=None)
@click.option("--start", default=None)
@click.option("--end", default=None)
@click.option("--site", "sites", multiple=True)
@click.option("-v", "--verbose", is_flag=True)
def fit(
    hilltop_url: Optional[str],
    samples_csv: Optional[str],
    output: str,
    kinds: tuple,
    exclusion_rules: Optional[str],
    start: Optional[str],
    end: Optional[str],
    sites: tuple,
    verbose: bool,
) -> None:
    """Fit rating curves to flow-matched SSC samples and write a coefficient table."""
    from sedload.concentration import build_concentration_series
    from sedload.flow import ExclusionRuleTable, build_flow_series
    from sedload.hilltop import load_samples
    from sedload.rating.curves import CURVES_BY_KIND
    from sedload.rating.fitting import fit_catalog, fit_summary

    _configure_logging(verbose)
    config = _load_config(
        hilltop_url=hilltop_url,
        samples_csv=samples_csv,
        exclusion_rules=exclusion_rules,
        start=start,
        end=end,
        sites=list(sites) or None,
    )
    if config.exclusion_rules is not None:
        rules = ExclusionRuleTable.load_from_csv(config.exclusion_rules)
    else:
        rules = ExclusionRuleTable.default()

    try:
        samples = load_samples(_open_source(config), config.sites, config.measurements, config.start, config.end)
    except MeasurementSourceError as exc:
        raise click.ClickException(str(exc)) from exc

    flow = build_flow_series(samples, rules=rules, grid_minutes=config.grid_minutes)
    merged = build_concentration_series(samples, flow, grid_minutes=config.grid_minutes)
    catalog = fit_catalog(merged, kinds=list(kinds) or list(CURVES_BY_KIND))
    catalog.to_csv(output)

    click.echo(fit_summary(catalog).to_string(index=False))
    logger.info("Wrote %d rating curves to %s", len(catalog), output)


if __name__ == "__main__":
    cli()
