"""
Tests for Wilson intervals and win-rate significance
Run with: pytest tests/test_confidence.py -v
"""

import pytest
from scipy.stats import norm

from wager_engine.core.confidence import (
    erf,
    normal_cdf,
    significance_test,
    wilson_interval,
    z_for_confidence,
)


class TestZScores:

    @pytest.mark.parametrize("level, z", [(0.90, 1.645), (0.95, 1.96), (0.99, 2.576)])
    def test_table_levels(self, level, z):
        assert z_for_confidence(level) == z

    def test_other_levels_use_normal_quantile(self):
        assert z_for_confidence(0.80) == pytest.approx(norm.ppf(0.90))

    @pytest.mark.parametrize("level", [0.0, 1.0, -0.5, 1.5])
    def test_out_of_range_raises(self, level):
        with pytest.raises(ValueError):
            z_for_confidence(level)


class TestNormalApproximation:

    @pytest.mark.parametrize("x", [-3.0, -1.5, -0.2, 0.0, 0.4, 1.0, 1.96, 3.5])
    def test_cdf_matches_scipy(self, x):
        assert normal_cdf(x) == pytest.approx(norm.cdf(x), abs=1e-6)

    def test_erf_is_odd(self):
        assert erf(-0.7) == pytest.approx(-erf(0.7))

    def test_erf_zero(self):
        assert erf(0.0) == pytest.approx(0.0, abs=1e-8)


class TestWilsonInterval:

    def test_seven_of_ten(self):
        ci = wilson_interval(7, 10, 0.95)
        assert ci.point_estimate == pytest.approx(0.7)
        assert ci.lower_bound == pytest.approx(0.394, abs=0.005)
        assert ci.upper_bound == pytest.approx(0.893, abs=0.005)
        assert ci.range == pytest.approx(ci.upper_bound - ci.lower_bound)

    def test_zero_total(self):
        ci = wilson_interval(0, 0)
        assert (ci.point_estimate, ci.lower_bound, ci.upper_bound, ci.margin) == (0, 0, 0, 0)

    @pytest.mark.parametrize("wins, total", [(0, 5), (5, 5), (1, 1), (0, 1), (13, 40), (99, 100)])
    def test_bounds_bracket_point(self, wins, total):
        ci = wilson_interval(wins, total)
        assert 0.0 <= ci.lower_bound <= ci.point_estimate <= ci.upper_bound <= 1.0

    def test_wider_level_gives_wider_interval(self):
        assert wilson_interval(30, 50, 0.99).range > wilson_interval(30, 50, 0.90).range

    def test_more_data_narrows(self):
        assert wilson_interval(70, 100).range < wilson_interval(7, 10).range

    @pytest.mark.parametrize("wins, total", [(-1, 5), (6, 5), (0, -1)])
    def test_bad_counts_raise(self, wins, total):
        with pytest.raises(ValueError):
            wilson_interval(wins, total)


class TestSignificance:

    def test_zero_total(self):
        result = significance_test(0, 0)
        assert result.p_value == 1.0
        assert result.significance == 0.0
        assert not result.is_significant

    def test_even_split_not_significant(self):
        result = significance_test(50, 100)
        assert result.z_score == pytest.approx(0.0)
        assert result.p_value == pytest.approx(1.0, abs=1e-6)

    def test_strong_record_significant(self):
        result = significance_test(80, 100)
        assert result.z_score == pytest.approx(6.0)
        assert result.is_significant
        assert result.significance > 99.0

    def test_p_value_matches_scipy(self):
        result = significance_test(60, 100)
        expected = 2 * (1 - norm.cdf(2.0))
        assert result.p_value == pytest.approx(expected, abs=1e-6)

    def test_observed_rate_reported(self):
        result = significance_test(3, 12, expected_win_rate=0.4)
        assert result.observed_win_rate == pytest.approx(0.25)
        assert result.expected_win_rate == 0.4

    @pytest.mark.parametrize("expected", [0.0, 1.0, 1.2])
    def test_degenerate_expected_rate_raises(self, expected):
        with pytest.raises(ValueError):
            significance_test(5, 10, expected_win_rate=expected)
