from dataclasses import replace

import numpy as np
import pytest

from mctoken.results import Histogram, SimulationResult
from mctoken.stats_engine import (
    DEFAULT_PERCENTILES,
    FnMetric,
    StatsContext,
    StatsEngine,
    build_default_engine,
    calculate_expected_shortfall,
    calculate_histogram,
    calculate_percentiles,
    calculate_statistics,
    calculate_var,
    maximum,
    mean,
    percentile_label,
    std,
)


class TestHistogram:
    """Test equal-width binning"""

    def test_degenerate_population(self):
        """max == min substitutes a range of 1 and fills the last bin"""
        h = calculate_histogram([1, 1, 1, 1], bin_count=4)
        assert h.frequencies.tolist() == [0, 0, 0, 4]
        np.testing.assert_allclose(h.bins, [1.0, 1.25, 1.5, 1.75, 2.0])

    def test_completeness(self, sample_data):
        for bins in (1, 7, 20, 64):
            h = calculate_histogram(sample_data, bin_count=bins)
            assert h.frequencies.sum() == sample_data.size
            assert h.bins.size == h.frequencies.size + 1
            assert np.all(np.diff(h.bins) >= 0)

    def test_edges_span_min_to_max(self, sample_data):
        h = calculate_histogram(sample_data)
        assert h.bin_count == 20
        assert h.bins[0] == pytest.approx(sample_data.min())
        assert h.bins[-1] == pytest.approx(sample_data.max())

    def test_maximum_lands_in_last_bin(self):
        h = calculate_histogram([0.0, 0.1, 0.3, 0.7, 0.9, 1.0], bin_count=10)
        assert h.frequencies[-1] >= 1
        assert h.frequencies.sum() == 6

    def test_simple_counts(self):
        h = calculate_histogram([0, 1, 2, 3, 4, 5, 6, 7, 8, 9, 10], bin_count=2)
        assert h.frequencies.tolist() == [5, 6]

    def test_to_dict(self):
        h = calculate_histogram([0.0, 1.0], bin_count=2)
        assert h.to_dict() == {"bins": [0.0, 0.5, 1.0], "frequencies": [1, 1]}


class TestValueAtRisk:
    """Test historical VaR"""

    def test_scenario(self):
        assert calculate_var([-10, -5, 0, 5, 10], 0.8) == pytest.approx(5.0)

    def test_order_independent(self):
        assert calculate_var([10, 0, -10, 5, -5], 0.8) == pytest.approx(5.0)

    def test_zero_index_returns_negated_minimum(self):
        assert calculate_var([3.0, -2.0, 7.0], 0.95) == pytest.approx(2.0)

    def test_var_99_at_least_var_95(self, sample_data):
        assert calculate_var(sample_data, 0.99) >= calculate_var(sample_data, 0.95)

    def test_known_population(self):
        values = np.arange(100, dtype=float)
        assert calculate_var(values, 0.95) == pytest.approx(-5.0)
        assert calculate_var(values, 0.99) == pytest.approx(-1.0)


class TestExpectedShortfall:
    """Test conditional tail mean"""

    def test_tail_mean(self):
        assert calculate_expected_shortfall([-10, -5, 0, 5, 10], 0.6) == pytest.approx(7.5)

    def test_at_least_var(self, sample_data):
        assert calculate_expected_shortfall(sample_data, 0.95) >= calculate_var(sample_data, 0.95)

    def test_known_population(self):
        assert calculate_expected_shortfall(np.arange(100.0), 0.95) == pytest.approx(-2.0)


class TestPercentiles:
    """Test nearest-rank percentiles"""

    def test_default_labels(self, sample_data):
        p = calculate_percentiles(sample_data)
        assert list(p) == ["p1", "p5", "p10", "p25", "p50", "p75", "p90", "p95", "p99"]

    def test_monotonic(self, sample_data):
        p = calculate_percentiles(sample_data)
        vals = [p[percentile_label(q)] for q in DEFAULT_PERCENTILES]
        assert vals == sorted(vals)

    def test_nearest_rank_not_interpolated(self):
        """floor(p * (n - 1)) picks an observed value"""
        p = calculate_percentiles([0.0, 1.0, 2.0, 3.0], [0.5, 0.75])
        assert p == {"p50": 1.0, "p75": 2.0}

    def test_extremes(self):
        p = calculate_percentiles([5.0, 1.0, 3.0], [0.0, 1.0])
        assert p == {"p0": 1.0, "p100": 5.0}

    @pytest.mark.parametrize(("q", "label"), [(0.05, "p5"), (0.1, "p10"), (0.025, "p2.5"), (0.07, "p7")])
    def test_label(self, q, label):
        assert percentile_label(q) == label


class TestCalculateStatistics:
    """Test the single aggregation point"""

    def test_known_population(self):
        values = np.arange(100, dtype=float)
        res = calculate_statistics(values)
        assert isinstance(res, SimulationResult)
        assert res.mean == pytest.approx(49.5)
        assert res.median == pytest.approx(49.5)
        assert res.min == 0.0
        assert res.max == 99.0
        assert res.std == pytest.approx(np.sqrt((100**2 - 1) / 12.0))
        assert res.percentiles["p50"] == 49.0
        assert res.var_95 == pytest.approx(-5.0)
        assert res.var_99 == pytest.approx(-1.0)
        assert res.expected_shortfall_95 == pytest.approx(-2.0)
        assert isinstance(res.histogram, Histogram)
        assert res.histogram.frequencies.sum() == 100
        assert res.n_simulations == 100

    def test_population_std(self):
        """ddof=0 rather than the sample std"""
        res = calculate_statistics(np.tile([1.0, 3.0], 10))
        assert res.std == pytest.approx(1.0)

    def test_values_keep_trial_order(self, sample_data):
        res = calculate_statistics(sample_data)
        np.testing.assert_array_equal(res.values, sample_data)

    def test_custom_context(self, sample_data):
        ctx = StatsContext(percentiles=(0.5,), bin_count=5)
        res = calculate_statistics(sample_data, ctx)
        assert list(res.percentiles) == ["p50"]
        assert res.histogram.bin_count == 5

    def test_result_is_immutable(self, sample_data):
        res = calculate_statistics(sample_data)
        with pytest.raises(ValueError):
            res.values[0] = 0.0
        with pytest.raises(AttributeError):
            res.mean = 0.0
        with pytest.raises(TypeError):
            res.percentiles["p50"] = 0.0

    def test_input_not_aliased(self):
        values = np.linspace(-1.0, 1.0, 40)
        res = calculate_statistics(values)
        values[0] = 99.0
        assert res.values[0] == -1.0

    def test_to_dict_and_string(self, sample_data):
        res = calculate_statistics(sample_data)
        d = res.to_dict()
        assert d["var_95"] == res.var_95
        assert len(d["values"]) == sample_data.size
        text = res.result_to_string()
        assert "VaR 95%" in text
        assert "p50" in text

    def test_to_dict_keeps_run_fields(self, sample_data):
        res = replace(
            calculate_statistics(sample_data),
            execution_time=1.5,
            metadata={"simulation_name": "export", "seed": "s"},
        )
        d = res.to_dict()
        assert d["n_simulations"] == sample_data.size
        assert d["execution_time"] == 1.5
        assert d["metadata"] == {"simulation_name": "export", "seed": "s"}
        assert type(d["metadata"]) is dict


class TestStatsEngine:
    """Test StatsEngine class"""

    def test_engine_creation(self):
        """Test creating a stats engine with metrics"""
        engine = StatsEngine([FnMetric("mean", mean), FnMetric("std", std)])
        assert engine.available() == ("mean", "std")

    def test_engine_compute(self, sample_data):
        engine = StatsEngine([FnMetric("mean", mean), FnMetric("max", maximum)])
        result = engine.compute(sample_data)
        assert result["mean"] == pytest.approx(sample_data.mean())
        assert result["max"] == pytest.approx(sample_data.max())

    def test_kwargs_build_context(self, sample_data):
        engine = build_default_engine()
        result = engine.compute(sample_data, select=("histogram",), bin_count=3)
        assert set(result) == {"histogram"}
        assert result["histogram"].bin_count == 3

    def test_default_engine_fields(self):
        engine = build_default_engine()
        assert set(engine.available()) == {
            "mean", "median", "min", "max", "std", "percentiles",
            "var_95", "var_99", "expected_shortfall_95", "histogram",
        }
