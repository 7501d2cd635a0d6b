"""
Export utilities for writing sediment load results to CSV files and ZIP archives.
"""

from __future__ import annotations

import io
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, Optional

import pandas as pd

from sedload.batch import BatchResult
from sedload.concentration import select_kind
from sedload.load import STATISTICS_COLUMNS

logger = logging.getLogger(__name__)

SERIES_COLUMNS = ["timestamp", "site", "flow", "predicted_conc", "cumulative_load"]
TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


def round_statistics(stats: pd.DataFrame, decimals: int = 2) -> pd.DataFrame:
    """Round every numeric statistics column to *decimals* places."""
    out = stats.copy()
    numeric = [c for c in STATISTICS_COLUMNS if c != "site" and c in out.columns]
    out[numeric] = out[numeric].astype(float).round(decimals)
    return out


def statistics_to_csv(stats: pd.DataFrame, buf: Any, decimals: int = 2) -> None:
    round_statistics(stats, decimals).to_csv(buf, index=False)


def write_statistics_csv(stats: pd.DataFrame, path: str | Path, decimals: int = 2) -> Path:
    """
    Write the per-site statistics table.

    Values are rounded to *decimals* places, so
    :func:`read_statistics_csv` returns exactly the rounded table.
    """
    path = Path(path)
    statistics_to_csv(stats, path, decimals)
    logger.info("Wrote statistics for %d sites to %s", len(stats), path)
    return path


def read_statistics_csv(path: str | Path) -> pd.DataFrame:
    """Read a statistics table written by :func:`write_statistics_csv`."""
    df = pd.read_csv(path, dtype={"site": str})
    missing = [c for c in STATISTICS_COLUMNS if c not in df.columns]
    if missing:
        raise ValueError(f"Statistics table {path} is missing column(s): {missing}")
    return df[STATISTICS_COLUMNS]


def load_series_frame(
    loads: pd.DataFrame,
    flow_divisor: float = 1.0,
    exclude_sites: Iterable[str] = (),
) -> pd.DataFrame:
    """
    Per-site time series in export layout.

    Parameters
    ----------
    loads : pd.DataFrame
        Load records from :meth:`BatchResult.load_table`.
    flow_divisor : float
        Flow is divided by this, e.g. 1000 to report L/s as m³/s.
    exclude_sites : iterable of str
        Sites left out of the export.
    """
    df = loads.loc[~loads["site"].isin(list(exclude_sites)), SERIES_COLUMNS].copy()
    df["flow"] = df["flow"].astype(float) / flow_divisor
    return df.reset_index(drop=True)


def write_load_series_csv(
    loads: pd.DataFrame,
    path: str | Path,
    flow_divisor: float = 1.0,
    exclude_sites: Iterable[str] = (),
) -> Path:
    """Write the per-site time series (timestamp, site, flow, predicted_conc, cumulative_load)."""
    path = Path(path)
    df = load_series_frame(loads, flow_divisor, exclude_sites)
    df.to_csv(path, index=False, date_format=TIMESTAMP_FORMAT)
    logger.info("Wrote %d load records to %s", len(df), path)
    return path


def write_merged_csv(concentration: pd.DataFrame, path: str | Path, kind: Optional[str] = "SSC") -> Path:
    """Write flow-matched concentration samples, by default SSC only, for regression fitting."""
    path = Path(path)
    df = select_kind(concentration, kind) if kind else concentration
    df.to_csv(path, index=False, date_format=TIMESTAMP_FORMAT)
    logger.info("Wrote %d matched concentration samples to %s", len(df), path)
    return path


def export_site_to_zip(
    zf: Any,
    site: str,
    batch: BatchResult,
    figures: Optional[Dict[str, Any]] = None,
    flow_divisor: float = 1.0,
) -> None:
    """
    Add one site's outputs to an open ZipFile.

    Parameters
    ----------
    zf : zipfile.ZipFile
        Open ZIP archive for writing.
    site : str
        Site name, used as folder prefix.
    batch : BatchResult
    figures : dict, optional
        Figure name -> matplotlib Figure, saved as ``<name>.png``.
    flow_divisor : float
    """
    prefix = f"{site}/"

    for name, fig in (figures or {}).items():
        buf = io.BytesIO()
        fig.savefig(buf, format="png", dpi=150, bbox_inches="tight")
        buf.seek(0)
        zf.writestr(f"{prefix}{name}.png", buf.read())

    result = batch.results.get(site)
    if result is not None and not result.records.empty:
        buf = io.StringIO()
        load_series_frame(result.records, flow_divisor).to_csv(
            buf, index=False, date_format=TIMESTAMP_FORMAT
        )
        zf.writestr(f"{prefix}load_series.csv", buf.getvalue())

    if not batch.concentration.empty:
        samples = batch.concentration.loc[batch.concentration["site"] == site]
        if not samples.empty:
            buf = io.StringIO()
            samples.to_csv(buf, index=False, date_format=TIMESTAMP_FORMAT)
            zf.writestr(f"{prefix}concentration_samples.csv", buf.getvalue())


def export_batch_to_zip(
    zf: Any,
    batch: BatchResult,
    figures: Optional[Dict[str, Dict[str, Any]]] = None,
    decimals: int = 2,
    flow_divisor: float = 1.0,
) -> None:
    """
    Write a whole run to an open ZipFile: per-site folders plus
    ``statistics_load.csv`` and ``skipped_sites.csv`` at the root.
    """
    figures = figures or {}
    for site in batch.results:
        export_site_to_zip(zf, site, batch, figures.get(site), flow_divisor)

    buf = io.StringIO()
    statistics_to_csv(batch.statistics_table(), buf, decimals)
    zf.writestr("statistics_load.csv", buf.getvalue())

    buf = io.StringIO()
    batch.skipped_table().to_csv(buf, index=False)
    zf.writestr("skipped_sites.csv", buf.getvalue())


def write_run_outputs(
    batch: BatchResult,
    output_dir: str | Path,
    decimals: int = 2,
    flow_divisor: float = 1.0,
    exclude_sites: Iterable[str] = (),
    tag: str = "",
) -> Dict[str, Path]:
    """
    Write the statistics, load series and matched SSC tables to *output_dir*.

    Returns
    -------
    dict
        Output name -> path written.
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    suffix = f"_{tag}" if tag else ""

    paths = {
        "statistics": write_statistics_csv(
            batch.statistics_table(), output_dir / f"Statistics_Load{suffix}.csv", decimals
        ),
        "load_series": write_load_series_csv(
            batch.load_table(), output_dir / f"measure{suffix}.csv", flow_divisor, exclude_sites
        ),
    }
    if not batch.concentration.empty:
        paths["merged"] = write_merged_csv(batch.concentration, output_dir / f"merged{suffix}.csv")
    if batch.skipped:
        skipped_path = output_dir / f"skipped_sites{suffix}.csv"
        batch.skipped_table().to_csv(skipped_path, index=False)
        paths["skipped"] = skipped_path
    return paths
