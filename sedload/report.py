"""
Run summaries.

Produces text and JSON reports from a :class:`~sedload.batch.BatchResult`.
"""

from __future__ import annotations

import json
from typing import Any

from sedload.batch import BatchResult


def generate_text_report(batch: BatchResult, decimals: int = 2) -> str:
    """Generate a plain-text run report.

    Parameters
    ----------
    batch : BatchResult
    decimals : int
        Decimal places for load figures.

    Returns
    -------
    str
        Formatted text report.
    """
    lines: list[str] = []
    lines.append("Sediment Load Report")
    lines.append("=" * 40)

    processed = batch.processed_sites
    lines.append(f"Sites processed: {len(processed)}/{len(batch.results)}")
    lines.append("")

    for site in processed:
        result = batch.results[site]
        stats = result.statistics
        lines.append(f"[OK] {site}")
        lines.append(f"  Records: {len(result.records)}")
        lines.append(f"  Total load: {stats.total_load:.{decimals}f} t")
        lines.append(
            f"  Load (t/s): min {stats.min:.{decimals}f}, median {stats.median:.{decimals}f}, "
            f"mean {stats.mean:.{decimals}f}, max {stats.max:.{decimals}f}"
        )
        if result.n_domain_dropped:
            lines.append(f"  Dropped outside curve domain: {result.n_domain_dropped}")
        lines.append("")

    skipped = batch.skipped
    if skipped:
        lines.append("Skipped sites:")
        for skip in skipped:
            lines.append(f"  [{skip.reason}] {skip.site}: {skip.message}")

    return "\n".join(lines)


def generate_json_report(batch: BatchResult) -> str:
    """Generate a JSON run report.

    Returns
    -------
    str
        JSON string with ``sites`` (statistics per processed site) and
        ``skipped`` (site, reason, message).
    """
    report: dict[str, Any] = {"sites": {}, "skipped": []}

    for site in batch.processed_sites:
        result = batch.results[site]
        entry = result.statistics.to_dict()
        entry.pop("site")
        entry["records"] = len(result.records)
        entry["n_domain_dropped"] = result.n_domain_dropped
        report["sites"][site] = entry

    for skip in batch.skipped:
        report["skipped"].append({"site": skip.site, "reason": skip.reason, "message": skip.message})

    return json.dumps(report, indent=2)
