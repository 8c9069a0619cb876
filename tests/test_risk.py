"""
Tests for Monte Carlo simulation and risk tiering
Run with: pytest tests/test_risk.py -v
"""

from unittest.mock import MagicMock

import numpy as np
import pytest

from wager_engine.core.confidence import ConfidenceInterval
from wager_engine.core.policy import RiskPolicy, SimulationSettings
from wager_engine.services.risk import (
    RISK_HIGH,
    RISK_LOW,
    RISK_MEDIUM,
    MonteCarloSimulator,
    MonteCarloSummary,
    RiskCandidate,
    assess_many,
    assess_risk,
    risk_tier,
    score_factors,
)

SMALL = SimulationSettings(num_simulations=2000, num_bets=100, seed=7)


def _interval(width):
    return ConfidenceInterval(0.5, 0.5 - width / 2, 0.5 + width / 2, width / 2, 0.95)


class TestSimulator:
    """Vectorized trials produce a coherent ROI distribution"""

    def test_certain_win(self):
        summary = MonteCarloSimulator(SMALL).simulate(1.0, 1.9)
        assert summary.profit_probability == 1.0
        assert summary.avg_roi == pytest.approx(90.0)

    def test_certain_loss(self):
        summary = MonteCarloSimulator(SMALL).simulate(0.0, 3.0)
        assert summary.profit_probability == 0.0
        assert summary.avg_roi == pytest.approx(-100.0)

    def test_even_money_coin_flip_near_zero(self):
        summary = MonteCarloSimulator(SMALL).simulate(0.5, 2.0, num_simulations=5000)
        assert abs(summary.avg_roi) < 2.0
        assert 0.35 < summary.profit_probability < 0.55

    def test_seed_reproducible(self):
        sim = MonteCarloSimulator(SMALL)
        a = sim.simulate(0.55, 1.95, seed=123)
        b = sim.simulate(0.55, 1.95, seed=123)
        np.testing.assert_array_equal(a.roi, b.roi)

    def test_chunk_size_does_not_change_draws(self):
        big = MonteCarloSimulator(SimulationSettings(num_simulations=3000, chunk_size=3000))
        small = MonteCarloSimulator(SimulationSettings(num_simulations=3000, chunk_size=250))
        a = big.simulate(0.6, 1.8, seed=9)
        b = small.simulate(0.6, 1.8, seed=9)
        np.testing.assert_array_equal(a.roi, b.roi)

    def test_percentiles_ordered(self):
        summary = MonteCarloSimulator(SMALL).simulate(0.55, 2.0)
        p = summary.percentiles
        assert p["p10"] <= p["p25"] <= summary.median_roi <= p["p75"] <= p["p90"]
        assert summary.break_even_probability >= summary.profit_probability

    @pytest.mark.parametrize("win_rate, odds", [(-0.1, 2.0), (1.1, 2.0), (0.5, 0.9)])
    def test_bad_inputs_raise(self, win_rate, odds):
        with pytest.raises(ValueError):
            MonteCarloSimulator(SMALL).simulate(win_rate, odds)

    def test_zero_bets_raises(self):
        with pytest.raises(ValueError):
            MonteCarloSimulator(SMALL).simulate(0.5, 2.0, num_bets=0)

    def test_settings_validated(self):
        with pytest.raises(ValueError):
            MonteCarloSimulator(SimulationSettings(chunk_size=0))


class TestSummaryStatistics:

    def test_nearest_rank_below(self):
        summary = MonteCarloSummary(10, 1, 0.5, 2.0, roi=np.arange(10, 0, -1, dtype=float) - 1)
        assert summary.percentiles == {"p10": 1.0, "p25": 2.0, "p75": 7.0, "p90": 9.0}
        assert summary.median_roi == 5.0

    def test_to_dict_rounds(self):
        summary = MonteCarloSummary(3, 1, 0.5, 2.0, roi=np.array([-1.0, 0.0, 1.23456]))
        d = summary.to_dict()
        assert d["profit_probability"] == pytest.approx(0.3333)
        assert d["break_even_probability"] == pytest.approx(0.6667)


class TestScoreFactors:

    @pytest.mark.parametrize("width, pts", [(0.05, 2), (0.15, 1), (0.3, 0), (0.5, -2)])
    def test_interval_width(self, width, pts):
        assert score_factors(_interval(width), 30, 80.0, 0.7)["interval_width"] == pts

    @pytest.mark.parametrize("n, pts", [(60, 2), (25, 1), (15, 0), (5, -2)])
    def test_sample_size(self, n, pts):
        assert score_factors(_interval(0.3), n, 80.0, 0.7)["sample_size"] == pts

    @pytest.mark.parametrize("sig, pts", [(95.0, 2), (75.0, 1), (60.0, 0), (20.0, -1)])
    def test_significance(self, sig, pts):
        assert score_factors(_interval(0.3), 15, sig, 0.7)["significance"] == pts

    @pytest.mark.parametrize("prob, pts", [(0.9, 2), (0.65, 1), (0.5, 0), (0.1, -2)])
    def test_profit_probability(self, prob, pts):
        assert score_factors(_interval(0.3), 15, 60.0, prob)["profit_probability"] == pts

    @pytest.mark.parametrize("score, tier", [(8, RISK_LOW), (4, RISK_LOW), (3, RISK_MEDIUM), (1, RISK_MEDIUM), (0, RISK_HIGH), (-7, RISK_HIGH)])
    def test_tiers(self, score, tier):
        assert risk_tier(score) == tier

    def test_conservative_policy_is_stricter(self):
        assert risk_tier(4, RiskPolicy.conservative()) != RISK_LOW


class TestAssessRisk:

    def test_strong_record_is_low_risk(self):
        result = assess_risk(0.8, 2.0, 100, simulator=MonteCarloSimulator(SMALL))
        assert result.risk_level == RISK_LOW
        assert result.factors["sample_size"] == 2
        assert result.risk_score == sum(result.factors.values())
        assert not result.insufficient_data

    def test_weak_small_sample_is_high_risk(self):
        result = assess_risk(0.3, 2.0, 5, simulator=MonteCarloSimulator(SMALL))
        assert result.risk_level == RISK_HIGH
        assert result.risk_score < 0

    def test_no_history_is_high_without_simulation(self):
        simulator = MagicMock(spec=MonteCarloSimulator)
        result = assess_risk(0.0, 2.0, 0, simulator=simulator)
        assert result.risk_level == RISK_HIGH
        assert result.insufficient_data
        assert result.monte_carlo_summary is None
        simulator.simulate.assert_not_called()

    def test_interval_uses_rounded_successes(self):
        result = assess_risk(0.7, 2.0, 10, simulator=MonteCarloSimulator(SMALL))
        assert result.confidence_interval.point_estimate == pytest.approx(0.7)
        assert result.confidence_interval.lower_bound == pytest.approx(0.394, abs=0.005)

    def test_to_dict_serializable_shape(self):
        d = assess_risk(0.6, 1.9, 40, simulator=MonteCarloSimulator(SMALL)).to_dict()
        assert set(d) >= {"risk_level", "risk_score", "factors", "confidence_interval", "monte_carlo"}

    def test_negative_total_raises(self):
        with pytest.raises(ValueError):
            assess_risk(0.5, 2.0, -1)


class TestAssessMany:

    CANDIDATES = [
        RiskCandidate("Napoli", 0.7, 1.8, 40),
        RiskCandidate("Lecce", 0.35, 2.6, 12),
        RiskCandidate("Empoli", 0.0, 2.0, 0),
    ]

    def test_keyed_by_label(self):
        results = assess_many(self.CANDIDATES, settings=SMALL)
        assert set(results) == {"Napoli", "Lecce", "Empoli"}
        assert results["Empoli"].insufficient_data

    def test_worker_count_does_not_change_results(self):
        serial = assess_many(self.CANDIDATES, settings=SMALL)
        threaded = assess_many(
            self.CANDIDATES,
            settings=SimulationSettings(num_simulations=2000, num_bets=100, seed=7, workers=3),
        )
        for label in ("Napoli", "Lecce"):
            np.testing.assert_array_equal(
                serial[label].monte_carlo_summary.roi, threaded[label].monte_carlo_summary.roi
            )
