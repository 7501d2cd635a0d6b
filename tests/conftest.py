"""Shared fixtures for the sedload test suite."""

from __future__ import annotations

from pathlib import Path

import pandas as pd
import pytest

from sedload.flow import ExclusionRuleTable
from sedload.hilltop import SAMPLE_COLUMNS
from sedload.rating import LinearCurve, PowerCurve, RegressionCatalog, RegressionSpec

FLOWS = [1000.0, 2000.0, 1500.0, 1800.0]
START = "2020-01-01 00:00"


def make_samples(site_flows: dict, start: str = START, freq: str = "15min") -> pd.DataFrame:
    """Long-form flow samples, one series per site on a regular grid."""
    rows = []
    for site, flows in site_flows.items():
        times = pd.date_range(start, periods=len(flows), freq=freq)
        for t, q in zip(times, flows):
            rows.append({"timestamp": t, "site": site, "measurement": "Flow", "value": str(q)})
    return pd.DataFrame(rows, columns=SAMPLE_COLUMNS)


@pytest.fixture
def flow_samples() -> pd.DataFrame:
    """Sites A, B and C with identical 15-minute flow series (L/s)."""
    return make_samples({"A": FLOWS, "B": FLOWS, "C": FLOWS})


@pytest.fixture
def catalog() -> RegressionCatalog:
    """A is Linear, B is Power; C has no curve."""
    return RegressionCatalog.from_specs(
        [
            RegressionSpec("A", LinearCurve(slope=0.01, intercept=5.0)),
            RegressionSpec("B", PowerCurve(coef=1.0, exponent=1.0)),
        ]
    )


@pytest.fixture
def no_rules() -> ExclusionRuleTable:
    return ExclusionRuleTable()


@pytest.fixture
def regression_csv(tmp_path: Path) -> Path:
    path = tmp_path / "regressions.csv"
    path.write_text(
        "SiteName,RegressionType,Slope,Linear_Intercept,Exp_Power,Exp_X,X_Squared,Poly_X,"
        "Poly_Intercept,Log,Log_Intercept,Power_X,Power_Exp\n"
        "A,Linear,0.01,5,,,,,,,,,\n"
        "B,Power,,,,,,,,,,1,1\n"
    )
    return path


@pytest.fixture
def rules_csv(tmp_path: Path) -> Path:
    path = tmp_path / "rules.csv"
    path.write_text("site,min_flow,max_flow,note\n")
    return path


@pytest.fixture
def samples_csv(tmp_path: Path, flow_samples: pd.DataFrame) -> Path:
    """Flow for A, B, C plus SSC spot samples at A that follow C = 0.01 Q + 5."""
    ssc = pd.DataFrame(
        {
            "timestamp": pd.to_datetime(
                ["2020-01-01 00:02", "2020-01-01 00:14", "2020-01-01 00:31", "2020-01-01 00:44"]
            ),
            "site": "A",
            "measurement": "Suspended Sediment Concentration",
            "value": ["15", "25", "20", "23"],
        }
    )
    df = pd.concat([flow_samples, ssc], ignore_index=True)
    path = tmp_path / "samples.csv"
    df.to_csv(path, index=False)
    return path


@pytest.fixture
def sample_factory():
    """The :func:`make_samples` builder, for tests that need custom series."""
    return make_samples


@pytest.fixture
def copy_on_write():
    """Run with pandas copy-on-write enabled (always on from pandas 3)."""
    try:
        pd.get_option("mode.copy_on_write")
    except (KeyError, AttributeError):
        yield
        return
    with pd.option_context("mode.copy_on_write", True):
        yield
