"""
Monte Carlo risk simulation and four-factor risk tiering.

Simulation model
----------------
Each trial places ``num_bets`` level-stakes bets at a fixed decimal price.
Every bet wins independently with probability ``win_rate``; a win returns
``odds - 1`` units and a loss costs one unit.  Trial ROI is
``total_return / num_bets * 100``.

Trials are drawn in vectorized blocks of ``chunk_size`` rows so peak memory
stays at ``chunk_size × num_bets`` uniforms regardless of the trial count.

Risk tier
---------
The tier adds up four factor scores (interval width, sample size,
significance, Monte Carlo profit probability) using the thresholds in
:class:`~wager_engine.core.policy.RiskPolicy`.

Run tests with::

    pytest tests/test_risk.py -v
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from wager_engine.core.confidence import (
    DEFAULT_CONFIDENCE_LEVEL,
    ConfidenceInterval,
    SignificanceResult,
    significance_test,
    wilson_interval,
)
from wager_engine.core.policy import RiskPolicy, SimulationSettings

logger = logging.getLogger(__name__)

RISK_LOW = "Low"
RISK_MEDIUM = "Medium"
RISK_HIGH = "High"

PERCENTILES: Tuple[float, ...] = (0.10, 0.25, 0.75, 0.90)


# ---------------------------------------------------------------------------
# Data structures
# ---------------------------------------------------------------------------

@dataclass
class MonteCarloSummary:
    """Distribution of trial ROIs (percent) from one simulation run."""

    num_simulations: int
    num_bets: int
    win_rate: float
    avg_odds: float
    roi: np.ndarray = field(repr=False)

    def __post_init__(self):
        self._sorted = np.sort(self.roi)

    def _at(self, q: float) -> float:
        # Nearest rank below: sorted[floor(n * q)].
        n = len(self._sorted)
        return float(self._sorted[min(int(n * q), n - 1)])

    @property
    def avg_roi(self) -> float:
        return float(np.mean(self.roi))

    @property
    def median_roi(self) -> float:
        return float(self._sorted[len(self._sorted) // 2])

    @property
    def profit_probability(self) -> float:
        return float(np.mean(self.roi > 0))

    @property
    def break_even_probability(self) -> float:
        return float(np.mean(self.roi >= 0))

    @property
    def percentiles(self) -> Dict[str, float]:
        return {f"p{int(round(q * 100))}": self._at(q) for q in PERCENTILES}

    def to_dict(self) -> Dict:
        return {
            "num_simulations": self.num_simulations,
            "num_bets": self.num_bets,
            "avg_roi": round(self.avg_roi, 2),
            "median_roi": round(self.median_roi, 2),
            "profit_probability": round(self.profit_probability, 4),
            "break_even_probability": round(self.break_even_probability, 4),
            "percentiles": {k: round(v, 2) for k, v in self.percentiles.items()},
        }


@dataclass
class RiskAssessment:
    risk_level: str
    risk_score: int
    confidence_interval: ConfidenceInterval
    monte_carlo_summary: Optional[MonteCarloSummary]
    significance: SignificanceResult
    factors: Dict[str, int] = field(default_factory=dict)
    insufficient_data: bool = False

    def to_dict(self) -> Dict:
        return {
            "risk_level": self.risk_level,
            "risk_score": self.risk_score,
            "insufficient_data": self.insufficient_data,
            "factors": dict(self.factors),
            "confidence_interval": self.confidence_interval.to_dict(),
            "monte_carlo": self.monte_carlo_summary.to_dict() if self.monte_carlo_summary else None,
            "significance": self.significance.to_dict(),
        }


@dataclass(frozen=True)
class RiskCandidate:
    """Input for batch assessment."""

    label: str
    win_rate: float
    avg_odds: float
    total_bets: int


# ---------------------------------------------------------------------------
# Simulator
# ---------------------------------------------------------------------------

def _validate_inputs(win_rate: float, avg_odds: float) -> None:
    if not 0.0 <= win_rate <= 1.0:
        raise ValueError(f"win_rate must be in [0, 1], got {win_rate}")
    if avg_odds < 1.0:
        raise ValueError(f"avg_odds must be decimal odds >= 1.0, got {avg_odds}")


class MonteCarloSimulator:
    """Vectorized bet-sequence simulator.

    Args:
        settings: Trial count, bets per trial and chunking.
    """

    def __init__(self, settings: SimulationSettings = SimulationSettings()):
        settings.validate()
        self.settings = settings

    def simulate(
        self,
        win_rate: float,
        avg_odds: float,
        num_bets: Optional[int] = None,
        num_simulations: Optional[int] = None,
        seed: Optional[int] = None,
        rng: Optional[np.random.Generator] = None,
    ) -> MonteCarloSummary:
        """Run the trials and summarize their ROI distribution.

        Args:
            win_rate: Per-bet win probability in ``[0, 1]``.
            avg_odds: Decimal price of every simulated bet.
            num_bets: Bets per trial (defaults to the settings value).
            num_simulations: Trial count (defaults to the settings value).
            seed: Seed for a fresh generator; falls back to ``settings.seed``.
            rng: Pre-built generator, takes precedence over ``seed``.
        """
        _validate_inputs(win_rate, avg_odds)
        num_bets = num_bets if num_bets is not None else self.settings.num_bets
        num_simulations = num_simulations if num_simulations is not None else self.settings.num_simulations
        if num_bets <= 0 or num_simulations <= 0:
            raise ValueError(
                f"num_bets and num_simulations must be > 0, got {num_bets}, {num_simulations}"
            )
        if rng is None:
            rng = np.random.default_rng(seed if seed is not None else self.settings.seed)

        win_return = avg_odds - 1.0
        roi = np.empty(num_simulations, dtype=float)
        chunk = self.settings.chunk_size
        for start in range(0, num_simulations, chunk):
            stop = min(start + chunk, num_simulations)
            wins = (rng.random((stop - start, num_bets)) < win_rate).sum(axis=1)
            total_return = wins * win_return - (num_bets - wins)
            roi[start:stop] = total_return / num_bets * 100.0

        summary = MonteCarloSummary(
            num_simulations=num_simulations,
            num_bets=num_bets,
            win_rate=win_rate,
            avg_odds=avg_odds,
            roi=roi,
        )
        logger.debug(
            "simulate: p=%.3f odds=%.2f -> profit_prob=%.3f avg_roi=%.2f",
            win_rate, avg_odds, summary.profit_probability, summary.avg_roi,
        )
        return summary


# ---------------------------------------------------------------------------
# Risk tiering
# ---------------------------------------------------------------------------

def score_factors(
    interval: ConfidenceInterval,
    total_bets: int,
    significance: float,
    profit_probability: float,
    policy: RiskPolicy = RiskPolicy(),
) -> Dict[str, int]:
    """Per-factor contribution to the risk score."""
    width = interval.range
    if width < policy.narrow_interval:
        interval_pts = 2
    elif width < policy.moderate_interval:
        interval_pts = 1
    elif width > policy.wide_interval:
        interval_pts = -2
    else:
        interval_pts = 0

    if total_bets >= policy.large_sample:
        sample_pts = 2
    elif total_bets >= policy.medium_sample:
        sample_pts = 1
    elif total_bets < policy.small_sample:
        sample_pts = -2
    else:
        sample_pts = 0

    if significance >= policy.high_significance:
        significance_pts = 2
    elif significance >= policy.medium_significance:
        significance_pts = 1
    elif significance < policy.low_significance:
        significance_pts = -1
    else:
        significance_pts = 0

    if profit_probability >= policy.high_profit:
        profit_pts = 2
    elif profit_probability >= policy.medium_profit:
        profit_pts = 1
    elif profit_probability < policy.low_profit:
        profit_pts = -2
    else:
        profit_pts = 0

    return {
        "interval_width": interval_pts,
        "sample_size": sample_pts,
        "significance": significance_pts,
        "profit_probability": profit_pts,
    }


def risk_tier(score: int, policy: RiskPolicy = RiskPolicy()) -> str:
    if score >= policy.low_risk_score:
        return RISK_LOW
    if score >= policy.medium_risk_score:
        return RISK_MEDIUM
    return RISK_HIGH


def assess_risk(
    win_rate: float,
    avg_odds: float,
    total_bets: int,
    confidence_level: float = DEFAULT_CONFIDENCE_LEVEL,
    policy: RiskPolicy = RiskPolicy(),
    simulator: Optional[MonteCarloSimulator] = None,
    seed: Optional[int] = None,
    rng: Optional[np.random.Generator] = None,
) -> RiskAssessment:
    """Confidence interval, significance, simulation and tier for one bet profile.

    ``win_rate`` is a fraction.  The interval and the significance test use
    ``round(win_rate * total_bets)`` successes.  With no history at all the
    assessment is "High" risk and flagged ``insufficient_data`` without
    running the simulator.
    """
    _validate_inputs(win_rate, avg_odds)
    if total_bets < 0:
        raise ValueError(f"total_bets must be >= 0, got {total_bets}")

    successes = min(int(round(win_rate * total_bets)), total_bets)
    interval = wilson_interval(successes, total_bets, confidence_level)
    significance = significance_test(successes, total_bets)

    if total_bets == 0:
        return RiskAssessment(
            risk_level=RISK_HIGH,
            risk_score=0,
            confidence_interval=interval,
            monte_carlo_summary=None,
            significance=significance,
            insufficient_data=True,
        )

    simulator = simulator or MonteCarloSimulator()
    summary = simulator.simulate(win_rate, avg_odds, seed=seed, rng=rng)
    factors = score_factors(interval, total_bets, significance.significance, summary.profit_probability, policy)
    score = sum(factors.values())
    return RiskAssessment(
        risk_level=risk_tier(score, policy),
        risk_score=score,
        confidence_interval=interval,
        monte_carlo_summary=summary,
        significance=significance,
        factors=factors,
    )


def assess_many(
    candidates: Sequence[RiskCandidate],
    confidence_level: float = DEFAULT_CONFIDENCE_LEVEL,
    policy: RiskPolicy = RiskPolicy(),
    settings: SimulationSettings = SimulationSettings(),
) -> Dict[str, RiskAssessment]:
    """Assess a batch, optionally across ``settings.workers`` threads.

    Each candidate draws from its own generator spawned from one
    :class:`numpy.random.SeedSequence`, so a seeded batch is reproducible
    whatever the worker count.
    """
    simulator = MonteCarloSimulator(settings)
    children = np.random.SeedSequence(settings.seed).spawn(len(candidates))

    def _one(args: Tuple[RiskCandidate, np.random.SeedSequence]) -> RiskAssessment:
        candidate, seq = args
        return assess_risk(
            candidate.win_rate,
            candidate.avg_odds,
            candidate.total_bets,
            confidence_level=confidence_level,
            policy=policy,
            simulator=simulator,
            rng=np.random.default_rng(seq),
        )

    jobs = list(zip(candidates, children))
    if settings.workers == 1:
        results: List[RiskAssessment] = [_one(job) for job in jobs]
    else:
        with ThreadPoolExecutor(max_workers=settings.workers) as pool:
            results = list(pool.map(_one, jobs))
    logger.info("assess_many: %d candidates assessed", len(results))
    return {c.label: r for c, r in zip(candidates, results)}
