"""Tests for sedload.concentration."""

from __future__ import annotations

import numpy as np
import pandas as pd

from sedload.concentration import (
    CONCENTRATION_COLUMNS,
    build_concentration_series,
    parse_concentration,
    select_kind,
)
from sedload.flow import build_flow_series


def _conc(rows) -> pd.DataFrame:
    return pd.DataFrame(
        {
            "timestamp": pd.to_datetime([r[0] for r in rows]),
            "site": [r[1] for r in rows],
            "measurement": [r[2] for r in rows],
            "value": [r[3] for r in rows],
        }
    )


class TestParseConcentration:
    """Detection-limit qualifiers are stripped."""

    def test_qualifiers(self) -> None:
        out = parse_concentration(pd.Series(["<2", ">1000", " 15.5 ", "n/a"]))
        assert out.iloc[:3].tolist() == [2.0, 1000.0, 15.5]
        assert np.isnan(out.iloc[3])


class TestBuildConcentrationSeries:
    """Matching spot samples to the flow grid."""

    def test_rounded_and_joined(self, flow_samples: pd.DataFrame, no_rules) -> None:
        flow = build_flow_series(flow_samples, rules=no_rules)
        conc = _conc(
            [
                ("2020-01-01 00:08", "A", "Suspended Sediment Concentration", "<25"),
                ("2020-01-01 00:29", "A", "Suspended Solids", "40"),
            ]
        )
        merged = build_concentration_series(pd.concat([flow_samples, conc]), flow)

        assert list(merged.columns) == CONCENTRATION_COLUMNS
        assert merged["timestamp"].tolist() == [
            pd.Timestamp("2020-01-01 00:15"),
            pd.Timestamp("2020-01-01 00:30"),
        ]
        assert merged["flow"].tolist() == [2000.0, 1500.0]
        assert merged["concentration"].tolist() == [25.0, 40.0]
        assert merged["kind"].tolist() == ["SSC", "SS"]

    def test_unmatched_samples_dropped(self, flow_samples: pd.DataFrame, no_rules) -> None:
        flow = build_flow_series(flow_samples, rules=no_rules)
        conc = _conc(
            [
                ("2021-06-01 12:00", "A", "Suspended Sediment Concentration", "10"),
                ("2020-01-01 00:00", "Nowhere", "Suspended Sediment Concentration", "10"),
            ]
        )
        merged = build_concentration_series(pd.concat([flow_samples, conc]), flow)
        assert merged.empty

    def test_no_concentration_samples(self, flow_samples: pd.DataFrame, no_rules) -> None:
        flow = build_flow_series(flow_samples, rules=no_rules)
        merged = build_concentration_series(flow_samples, flow)
        assert merged.empty
        assert list(merged.columns) == CONCENTRATION_COLUMNS

    def test_select_kind(self) -> None:
        merged = pd.DataFrame(
            {
                "timestamp": pd.to_datetime(["2020-01-01", "2020-01-01"]),
                "site": ["A", "A"],
                "flow": [1.0, 1.0],
                "concentration": [2.0, 3.0],
                "kind": ["SSC", "SS"],
            }
        )
        assert select_kind(merged)["concentration"].tolist() == [2.0]
        assert select_kind(merged, "SS")["concentration"].tolist() == [3.0]
