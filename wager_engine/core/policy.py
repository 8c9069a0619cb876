"""Tuning knobs for ranking, risk tiering, pattern mining and simulation.

This module is the **registry** for every threshold the analytics services
apply.  None of these numbers is derived from a formal model; they are
policy, so they live in frozen dataclasses that callers pass explicitly and
vary with :func:`dataclasses.replace`::

    from dataclasses import replace
    from wager_engine.core.policy import RankingPolicy, RiskPolicy

    ranking = replace(RankingPolicy.default(), top_n=25)
    risk = RiskPolicy.conservative()

Services never read the environment themselves.  A deployment that wants
``.env``-driven settings builds them once with
:meth:`AnalyticsSettings.from_env` and threads the result through.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Final, Optional, Tuple

from dotenv import load_dotenv

from wager_engine.core.confidence import DEFAULT_CONFIDENCE_LEVEL

#: Default snapshot database (a local SQLite file).
DEFAULT_DATABASE_URL: Final[str] = "sqlite:///wager_engine.db"

#: Names of bet-type pseudo-teams that leak into ``TEAM_INCLUDED``.
PSEUDO_TEAMS: Final[Tuple[str, ...]] = ("over 1.5", "over 0.5")


# ---------------------------------------------------------------------------
# Ranking
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RankingPolicy:
    """Composite ranking weights and cut-offs.

    Attributes:
        win_rate_weight, volume_weight, recent_weight: Weights of the three
            composite components.  They sum to 1.0 so the score stays on the
            0-100 scale.
        volume_per_win: Points per win in the volume component.
        volume_cap: Ceiling of the volume component before weighting.
        min_total_bets: Teams with fewer bets are left out of rankings.
        recent_window: Number of most recent bets in the form window.
        top_n: Length of the general ranking.
        top_n_bet_type: Length of a ranking restricted to one bet type.
        min_bet_type_settled: Settled bets of the chosen type a team needs
            to qualify for a bet-type ranking.
        specialization_floor, specialization_step, specialization_cap:
            ``min(cap, (total - floor) / step)`` once ``total >= floor``.
        volume_bonus_floor, volume_bonus_step, volume_bonus_cap: Same shape
            for the volume bonus.
        excluded_teams: Lower-cased names that are never ranked.
    """

    win_rate_weight: float = 0.5
    volume_weight: float = 0.3
    recent_weight: float = 0.2
    volume_per_win: float = 2.0
    volume_cap: float = 100.0
    min_total_bets: int = 2
    recent_window: int = 10
    top_n: int = 70
    top_n_bet_type: int = 100
    min_bet_type_settled: int = 3
    specialization_floor: int = 10
    specialization_step: float = 10.0
    specialization_cap: float = 5.0
    volume_bonus_floor: int = 20
    volume_bonus_step: float = 20.0
    volume_bonus_cap: float = 5.0
    excluded_teams: Tuple[str, ...] = PSEUDO_TEAMS

    @classmethod
    def default(cls) -> "RankingPolicy":
        return cls()


# ---------------------------------------------------------------------------
# Risk tiering
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RiskPolicy:
    """Score table for the four-factor risk tier.

    Each factor adds or subtracts points; the sum picks the tier.

    Attributes:
        narrow_interval, moderate_interval, wide_interval: Wilson interval
            widths.  ``< narrow`` scores ``+2``, ``< moderate`` ``+1`` and
            ``> wide`` ``-2``.
        large_sample, medium_sample, small_sample: Bet counts.  ``>= large``
            scores ``+2``, ``>= medium`` ``+1`` and ``< small`` ``-2``.
        high_significance, medium_significance, low_significance:
            Significance percentages.  ``>= high`` ``+2``, ``>= medium``
            ``+1``, ``< low`` ``-1``.
        high_profit, medium_profit, low_profit: Monte Carlo profit
            probabilities.  ``>= high`` ``+2``, ``>= medium`` ``+1``,
            ``< low`` ``-2``.
        low_risk_score: Minimum total for the "Low" tier.
        medium_risk_score: Minimum total for the "Medium" tier.
    """

    narrow_interval: float = 0.1
    moderate_interval: float = 0.2
    wide_interval: float = 0.4
    large_sample: int = 50
    medium_sample: int = 20
    small_sample: int = 10
    high_significance: float = 90.0
    medium_significance: float = 70.0
    low_significance: float = 50.0
    high_profit: float = 0.8
    medium_profit: float = 0.6
    low_profit: float = 0.4
    low_risk_score: int = 4
    medium_risk_score: int = 1

    @classmethod
    def default(cls) -> "RiskPolicy":
        return cls()

    @classmethod
    def conservative(cls) -> "RiskPolicy":
        """Stricter tiering for bankroll-sensitive users."""
        return cls(low_risk_score=6, medium_risk_score=3)


# ---------------------------------------------------------------------------
# Pattern mining
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PatternPolicy:
    """Support floors, classification thresholds and output caps."""

    min_support: int = 3
    betslip_min_support: int = 2
    success_win_rate: float = 70.0
    failure_win_rate: float = 50.0
    slip_win_rate: float = 70.0
    slip_loss_rate: float = 50.0
    max_success: int = 20
    max_failure: int = 20
    max_team: int = 30
    max_league: int = 20
    max_odds: int = 15
    max_betslip: int = 15

    @classmethod
    def default(cls) -> "PatternPolicy":
        return cls()


# ---------------------------------------------------------------------------
# Monte Carlo
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SimulationSettings:
    """Monte Carlo sizing.

    Attributes:
        num_simulations: Independent trials per call.
        num_bets: Bets per trial.
        seed: Optional seed for reproducible runs.
        chunk_size: Trials drawn per vectorized block; bounds peak memory at
            ``chunk_size × num_bets`` uniforms.
        workers: Threads used by batch assessment.  ``1`` runs inline.
    """

    num_simulations: int = 10_000
    num_bets: int = 100
    seed: Optional[int] = None
    chunk_size: int = 2_000
    workers: int = 1

    def validate(self) -> None:
        if self.num_simulations <= 0:
            raise ValueError(f"num_simulations must be > 0, got {self.num_simulations}")
        if self.num_bets <= 0:
            raise ValueError(f"num_bets must be > 0, got {self.num_bets}")
        if self.chunk_size <= 0:
            raise ValueError(f"chunk_size must be > 0, got {self.chunk_size}")
        if self.workers <= 0:
            raise ValueError(f"workers must be > 0, got {self.workers}")


# ---------------------------------------------------------------------------
# Bundle
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AnalyticsSettings:
    """Everything a full analysis run needs, in one immutable value."""

    confidence_level: float = DEFAULT_CONFIDENCE_LEVEL
    ranking: RankingPolicy = field(default_factory=RankingPolicy)
    risk: RiskPolicy = field(default_factory=RiskPolicy)
    patterns: PatternPolicy = field(default_factory=PatternPolicy)
    simulation: SimulationSettings = field(default_factory=SimulationSettings)
    database_url: str = DEFAULT_DATABASE_URL

    @classmethod
    def from_env(cls) -> "AnalyticsSettings":
        """Read overrides from the environment (and ``.env`` if present)."""
        load_dotenv()
        seed = os.getenv("WAGER_MC_SEED")
        return cls(
            confidence_level=float(os.getenv("WAGER_CONFIDENCE_LEVEL", str(DEFAULT_CONFIDENCE_LEVEL))),
            ranking=RankingPolicy(
                top_n=int(os.getenv("WAGER_TOP_N", "70")),
                top_n_bet_type=int(os.getenv("WAGER_TOP_N_BET_TYPE", "100")),
            ),
            patterns=PatternPolicy(
                min_support=int(os.getenv("WAGER_MIN_SUPPORT", "3")),
                betslip_min_support=int(os.getenv("WAGER_BETSLIP_MIN_SUPPORT", "2")),
            ),
            simulation=SimulationSettings(
                num_simulations=int(os.getenv("WAGER_MC_SIMULATIONS", "10000")),
                num_bets=int(os.getenv("WAGER_MC_BETS", "100")),
                seed=int(seed) if seed else None,
            ),
            database_url=os.getenv("WAGER_DATABASE_URL", DEFAULT_DATABASE_URL),
        )
