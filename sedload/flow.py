"""
sedload.flow - Flow series builder and site exclusion rules.

Turns the long-form sample frame from :mod:`sedload.hilltop` into one
flow value per (site, 15-minute grid timestamp), with invalid and
known-bad readings removed.

Known-bad readings are described by an :class:`ExclusionRuleTable`, a
plain CSV with one valid-range rule per row::

    site,min_flow,max_flow,note
    Mangamaire Stream at Cooks Tooth Rd,,434459,Erroneous high flows
    Waiau River at Ardkeen,100000,,Erroneous low flows

A blank bound is open.  A site may have several rules; a reading is
dropped if any of its site's rules excludes it.  New exclusions are added
by editing the CSV, not the code.
"""

from __future__ import annotations

import csv
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Optional

import numpy as np
import pandas as pd

from sedload.timegrid import GRID_MINUTES, floor_to_grid

logger = logging.getLogger(__name__)

FLOW_MEASUREMENT = "Flow"
FLOW_COLUMNS = ["timestamp", "site", "flow"]

_RULES_FILENAME = "exclusion_rules.csv"


@dataclass(frozen=True)
class ExclusionRule:
    """
    Valid flow range for one site; readings outside it are discarded.

    Parameters
    ----------
    site : str
        Site name the rule applies to.
    min_flow : float, optional
        Readings strictly below this value are excluded.
    max_flow : float, optional
        Readings strictly above this value are excluded.
    note : str, optional
        Why the rule exists.
    """

    site: str
    min_flow: Optional[float] = None
    max_flow: Optional[float] = None
    note: str = ""

    def excludes(self, flow: np.ndarray) -> np.ndarray:
        """Boolean mask of readings in *flow* this rule rejects."""
        flow = np.asarray(flow, dtype=float)
        mask = np.zeros(flow.shape, dtype=bool)
        if self.min_flow is not None:
            mask |= flow < self.min_flow
        if self.max_flow is not None:
            mask |= flow > self.max_flow
        return mask

    @classmethod
    def from_dict(cls, row: Dict[str, str]) -> "ExclusionRule":
        def _bound(key: str) -> Optional[float]:
            s = (row.get(key) or "").strip()
            return float(s) if s not in ("", "nan", "NaN", "NA") else None

        return cls(
            site=row["site"].strip(),
            min_flow=_bound("min_flow"),
            max_flow=_bound("max_flow"),
            note=(row.get("note") or "").strip(),
        )

    def to_dict(self) -> Dict[str, object]:
        return {
            "site": self.site,
            "min_flow": "" if self.min_flow is None else self.min_flow,
            "max_flow": "" if self.max_flow is None else self.max_flow,
            "note": self.note,
        }


class ExclusionRuleTable:
    """Site-keyed collection of :class:`ExclusionRule`."""

    def __init__(self, rules: Iterable[ExclusionRule] = ()) -> None:
        self._rules: Dict[str, List[ExclusionRule]] = {}
        for rule in rules:
            self.add(rule)

    def add(self, rule: ExclusionRule) -> None:
        self._rules.setdefault(rule.site, []).append(rule)

    def rules_for(self, site: str) -> List[ExclusionRule]:
        return list(self._rules.get(site, []))

    def sites(self) -> List[str]:
        return sorted(self._rules)

    @classmethod
    def _find_data_file(cls) -> Optional[Path]:
        """Find the rule table: env var, working directory, then packaged default."""
        candidates = []
        env_path = os.environ.get("SEDLOAD_EXCLUSION_RULES")
        if env_path:
            candidates.append(Path(env_path))
        candidates += [
            Path.cwd() / "data" / _RULES_FILENAME,
            Path(__file__).parent / "data" / _RULES_FILENAME,
        ]
        for path in candidates:
            if path.exists():
                return path
        return None

    @classmethod
    def load_from_csv(cls, path: str | Path) -> "ExclusionRuleTable":
        """
        Load rules from a CSV with columns ``site``, ``min_flow``, ``max_flow``
        and optionally ``note``.

        Raises
        ------
        FileNotFoundError
            If *path* does not exist.
        ValueError
            If a bound cannot be parsed as a number.
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Exclusion rule CSV not found: {path}")
        table = cls()
        with path.open(newline="", encoding="utf-8-sig") as fh:
            for row in csv.DictReader(fh):
                if not (row.get("site") or "").strip():
                    continue
                table.add(ExclusionRule.from_dict(row))
        logger.info("Loaded %d exclusion rules for %d sites from %s", len(table), len(table._rules), path)
        return table

    @classmethod
    def default(cls) -> "ExclusionRuleTable":
        """Load the rule table from the first location found, or an empty table."""
        path = cls._find_data_file()
        if path is None:
            logger.info("No exclusion rule table found; no site-specific exclusions applied")
            return cls()
        return cls.load_from_csv(path)

    def to_csv(self, path: str | Path) -> None:
        path = Path(path)
        with path.open("w", newline="") as fh:
            writer = csv.DictWriter(fh, fieldnames=["site", "min_flow", "max_flow", "note"])
            writer.writeheader()
            for site in self.sites():
                for rule in self._rules[site]:
                    writer.writerow(rule.to_dict())

    def apply(self, flow: pd.DataFrame) -> pd.DataFrame:
        """
        Drop readings excluded by any rule for their site.

        Parameters
        ----------
        flow : pd.DataFrame
            Frame with ``site`` and ``flow`` columns.

        Returns
        -------
        pd.DataFrame
            Copy of *flow* without the excluded rows.
        """
        if not self._rules or flow.empty:
            return flow
        drop = np.zeros(len(flow), dtype=bool)
        for site, rules in self._rules.items():
            at_site = (flow["site"] == site).to_numpy()
            if not at_site.any():
                continue
            site_drop = np.zeros(len(flow), dtype=bool)
            for rule in rules:
                site_drop |= at_site & rule.excludes(flow["flow"].to_numpy())
            n = int(site_drop.sum())
            if n:
                logger.info("Excluded %d flow readings at %s by site rule", n, site)
            drop |= site_drop
        return flow.loc[~drop]

    def __len__(self) -> int:
        return sum(len(r) for r in self._rules.values())

    def __repr__(self) -> str:
        return f"ExclusionRuleTable(rules={len(self)}, sites={len(self._rules)})"


def build_flow_series(
    samples: pd.DataFrame,
    rules: Optional[ExclusionRuleTable] = None,
    grid_minutes: int = GRID_MINUTES,
    measurement: str = FLOW_MEASUREMENT,
) -> pd.DataFrame:
    """
    Build the cleaned, grid-aligned flow series for all sites.

    Parameters
    ----------
    samples : pd.DataFrame
        Long-form samples with columns ``timestamp``, ``site``,
        ``measurement``, ``value``.
    rules : ExclusionRuleTable, optional
        Site-specific valid ranges.  Defaults to :meth:`ExclusionRuleTable.default`.
    grid_minutes : int
        Grid interval; timestamps are floored to it.
    measurement : str
        Measurement name identifying flow samples.

    Returns
    -------
    pd.DataFrame
        Columns ``timestamp``, ``site``, ``flow`` with one row per
        (site, timestamp), ``flow >= 0``, sorted by site then timestamp.
    """
    if rules is None:
        rules = ExclusionRuleTable.default()

    df = samples.loc[samples["measurement"] == measurement, ["timestamp", "site", "value"]].copy()
    if df.empty:
        logger.warning("No %r samples to build a flow series from", measurement)
        return pd.DataFrame(columns=FLOW_COLUMNS)

    df["timestamp"] = floor_to_grid(df["timestamp"], grid_minutes)
    df["value"] = pd.to_numeric(df["value"], errors="coerce")

    # Several feeds may report the same site at different rates
    flow = (
        df.groupby(["timestamp", "site"], sort=False)["value"]
        .mean()
        .reset_index()
        .rename(columns={"value": "flow"})
    )

    n_missing = int(flow["flow"].isna().sum())
    if n_missing:
        logger.info("Dropped %d grid intervals with non-numeric flow", n_missing)
    flow = flow.dropna(subset=["flow"])

    negative = flow["flow"] < 0
    if negative.any():
        logger.info("Dropped %d negative flow values", int(negative.sum()))
    flow = flow.loc[~negative]

    flow = rules.apply(flow)

    return flow.sort_values(["site", "timestamp"]).reset_index(drop=True)[FLOW_COLUMNS]


def flow_for_site(flow: pd.DataFrame, site: str) -> pd.DataFrame:
    """Timestamp-ordered flow records for one site."""
    return flow.loc[flow["site"] == site].sort_values("timestamp").reset_index(drop=True)
