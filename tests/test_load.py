"""Tests for sedload.load (per-site load estimation)."""

from __future__ import annotations

import numpy as np
import pandas as pd
import pytest

from sedload.errors import EmptyFlowSeriesError, SummaryStatisticsError
from sedload.flow import build_flow_series
from sedload.load import (
    LOAD_COLUMNS,
    SKIP_EMPTY_FLOW,
    SKIP_NOT_IN_CATALOG,
    SKIP_UNKNOWN_REGRESSION,
    cumulative_load,
    elapsed_seconds,
    estimate_site_load,
    predict_concentration,
    process_site,
    summarize_loads,
)
from sedload.rating import LinearCurve, LogarithmicCurve, RegressionCatalog, RegressionSpec


def _flow(values, start="2020-01-01 00:00", freq="15min") -> pd.DataFrame:
    return pd.DataFrame(
        {
            "timestamp": pd.date_range(start, periods=len(values), freq=freq),
            "site": "A",
            "flow": np.asarray(values, dtype=float),
        }
    )


class TestElapsedSeconds:
    """Time represented by each sample."""

    def test_regular_grid(self) -> None:
        ts = pd.Series(pd.date_range("2020-01-01", periods=3, freq="15min"))
        np.testing.assert_array_equal(elapsed_seconds(ts), [900.0, 900.0, 900.0])

    def test_gaps_capped_and_short_steps_kept(self) -> None:
        ts = pd.Series(pd.to_datetime(["2020-01-01 00:00", "2020-01-01 00:05", "2020-01-01 02:00"]))
        np.testing.assert_array_equal(elapsed_seconds(ts), [300.0, 900.0, 900.0])

    def test_last_sample_gets_full_interval(self) -> None:
        ts = pd.Series(pd.to_datetime(["2020-01-01 00:00"]))
        np.testing.assert_array_equal(elapsed_seconds(ts, grid_seconds=600), [600.0])

    def test_empty(self) -> None:
        assert elapsed_seconds(pd.Series([], dtype="datetime64[ns]")).size == 0

    def test_not_increasing_raises(self) -> None:
        ts = pd.Series(pd.to_datetime(["2020-01-01 00:15", "2020-01-01 00:00"]))
        with pytest.raises(ValueError, match="strictly increasing"):
            elapsed_seconds(ts)

    def test_frame_column_under_copy_on_write(self, copy_on_write) -> None:
        """A column taken from a frame gives a writable result and is left as it was."""
        df = _flow([1000.0, 2000.0, 1500.0])
        out = elapsed_seconds(df["timestamp"])
        assert out.flags.writeable
        np.testing.assert_array_equal(out, [900.0, 900.0, 900.0])
        assert df["timestamp"].tolist() == list(pd.date_range("2020-01-01", periods=3, freq="15min"))


class TestBuildingBlocks:
    """Concentration clamp, accumulation and statistics."""

    def test_negative_concentration_clamped(self) -> None:
        conc = predict_concentration(LinearCurve(slope=1.0, intercept=-100.0), np.array([50.0, 150.0]))
        np.testing.assert_array_equal(conc, [0.0, 50.0])

    def test_domain_error_is_nan(self) -> None:
        conc = predict_concentration(LogarithmicCurve(coef=1.0, intercept=0.0), np.array([0.0, 1.0]))
        assert np.isnan(conc[0])
        assert conc[1] == 0.0

    def test_cumulative_is_running_sum(self) -> None:
        out = cumulative_load(np.array([1.0, 2.0, 3.0]), np.array([10.0, 10.0, 5.0]))
        np.testing.assert_allclose(out, [10.0, 30.0, 45.0])

    def test_cumulative_non_decreasing_for_non_negative_load(self) -> None:
        rng = np.random.default_rng(0)
        out = cumulative_load(rng.random(50), np.full(50, 900.0))
        assert np.all(np.diff(out) >= 0)

    def test_summary_quartiles_interpolated(self) -> None:
        stats = summarize_loads("A", np.array([1.0, 2.0, 3.0, 4.0]), np.array([1.0, 3.0, 6.0, 10.0]))
        assert stats.q1 == pytest.approx(1.75)
        assert stats.median == pytest.approx(2.5)
        assert stats.q3 == pytest.approx(3.25)
        assert stats.mean == pytest.approx(2.5)
        assert (stats.min, stats.max, stats.total_load) == (1.0, 4.0, 10.0)

    def test_summary_of_nothing_raises(self) -> None:
        with pytest.raises(SummaryStatisticsError, match="Invalid data or summary statistics"):
            summarize_loads("A", np.array([]), np.array([]))

    def test_rounded(self) -> None:
        stats = summarize_loads("A", np.array([0.123, 0.456]), np.array([1.005, 2.3456]))
        assert stats.rounded(2).total_load == 2.35


class TestEstimateSiteLoad:
    """End-to-end estimation for one site."""

    def test_linear_site(self) -> None:
        spec = RegressionSpec("A", LinearCurve(slope=0.01, intercept=5.0))
        result = estimate_site_load("A", _flow([1000, 2000, 1500, 1800]), spec)

        assert result.ok
        assert list(result.records.columns) == LOAD_COLUMNS
        np.testing.assert_allclose(result.records["predicted_conc"], [15.0, 25.0, 20.0, 23.0])
        expected_load = np.array([15.0e3, 50.0e3, 30.0e3, 41.4e3]) / 1e9
        np.testing.assert_allclose(result.records["load"], expected_load)
        np.testing.assert_allclose(result.records["cumulative_load"], np.cumsum(expected_load * 900))
        assert result.statistics.total_load == pytest.approx(expected_load.sum() * 900)
        assert result.statistics.max == pytest.approx(5.0e-5)

    def test_domain_errors_dropped(self) -> None:
        spec = RegressionSpec("A", LogarithmicCurve(coef=10.0, intercept=0.0))
        result = estimate_site_load("A", _flow([0.0, 100.0, 200.0]), spec)
        assert result.n_domain_dropped == 1
        assert len(result.records) == 2
        assert result.ok

    def test_all_outside_domain_raises(self) -> None:
        spec = RegressionSpec("A", LogarithmicCurve(coef=10.0, intercept=0.0))
        with pytest.raises(EmptyFlowSeriesError):
            estimate_site_load("A", _flow([0.0, 0.0]), spec)

    def test_empty_flow_raises(self) -> None:
        spec = RegressionSpec("A", LinearCurve(slope=1.0, intercept=0.0))
        with pytest.raises(EmptyFlowSeriesError, match="No usable flow records for site 'A'"):
            estimate_site_load("A", _flow([]), spec)

    def test_linear_site_under_copy_on_write(self, copy_on_write) -> None:
        spec = RegressionSpec("A", LinearCurve(slope=0.01, intercept=5.0))
        flow = _flow([1000, 2000, 1500])
        result = estimate_site_load("A", flow, spec)
        assert result.ok
        np.testing.assert_array_equal(result.records["elapsed_s"], [900.0, 900.0, 900.0])
        assert flow["flow"].tolist() == [1000.0, 2000.0, 1500.0]


class TestProcessSite:
    """Site-level failures become skips, never exceptions."""

    def test_not_in_catalog(self, catalog: RegressionCatalog) -> None:
        result = process_site("C", _flow([1.0]).assign(site="C"), catalog)
        assert not result.ok
        assert result.skip.reason == SKIP_NOT_IN_CATALOG
        assert result.records.empty

    def test_unknown_kind(self) -> None:
        catalog = RegressionCatalog.load_from_rows([{"SiteName": "A", "RegressionType": "Spline"}])
        result = process_site("A", _flow([1.0]), catalog)
        assert result.skip.reason == SKIP_UNKNOWN_REGRESSION

    def test_no_flow_for_site(self, catalog: RegressionCatalog) -> None:
        result = process_site("B", _flow([1.0]), catalog)
        assert result.skip.reason == SKIP_EMPTY_FLOW

    def test_from_samples(self, flow_samples: pd.DataFrame, catalog: RegressionCatalog, no_rules) -> None:
        flow = build_flow_series(flow_samples, rules=no_rules)
        result = process_site("B", flow, catalog)
        # C = Q, so load = Q^2 / 1e9
        expected = np.array([1000.0, 2000.0, 1500.0, 1800.0]) ** 2 / 1e9
        assert result.statistics.total_load == pytest.approx(expected.sum() * 900)
        assert result.records["site"].unique().tolist() == ["B"]
