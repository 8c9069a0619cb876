"""Confidence intervals and significance tests for binomial win rates.

Every function here is **pure**: no I/O, no logging, no side effects.

The two pillars exposed are:

1. **Wilson score interval**: a binomial confidence interval that stays
   inside ``[0, 1]`` and behaves sensibly for small samples, unlike the
   naive ``p ± z·sqrt(p(1-p)/n)`` normal approximation.
2. **Two-tailed z-test**: compares an observed win count against an
   expected win rate (a coin flip by default).  The normal CDF uses the
   Abramowitz & Stegun 7.1.26 polynomial approximation of ``erf``, which is
   accurate to about ``1.5e-7`` and keeps the hot path free of scipy calls.

Degenerate input
----------------
``total == 0`` never raises: the interval collapses to zeros and the
significance test reports ``p_value = 1``.  Counts that are negative or
exceed the total are caller bugs and raise :class:`ValueError`.

Run tests with::

    pytest tests/test_confidence.py -v
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict, Final

from scipy.stats import norm

# ---------------------------------------------------------------------------
# Module-level constants
# ---------------------------------------------------------------------------

#: Default two-sided confidence level.
DEFAULT_CONFIDENCE_LEVEL: Final[float] = 0.95

#: Critical values for the confidence levels offered in the UI.  Other
#: levels are resolved through ``scipy.stats.norm.ppf``.
Z_SCORES: Final[Dict[float, float]] = {
    0.90: 1.645,
    0.95: 1.96,
    0.99: 2.576,
}

#: Null-hypothesis win rate for the significance test.
DEFAULT_EXPECTED_WIN_RATE: Final[float] = 0.5

#: Two-tailed alpha below which a result is flagged significant.
DEFAULT_ALPHA: Final[float] = 0.05

# Abramowitz & Stegun 7.1.26 coefficients.
_AS_P: Final[float] = 0.3275911
_AS_A1: Final[float] = 0.254829592
_AS_A2: Final[float] = -0.284496736
_AS_A3: Final[float] = 1.421413741
_AS_A4: Final[float] = -1.453152027
_AS_A5: Final[float] = 1.061405429


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ConfidenceInterval:
    """Wilson interval for a win rate, all values on the ``[0, 1]`` scale."""

    point_estimate: float
    lower_bound: float
    upper_bound: float
    margin: float
    confidence_level: float

    @property
    def range(self) -> float:
        return self.upper_bound - self.lower_bound

    def to_dict(self) -> Dict[str, float]:
        return {
            "point_estimate": self.point_estimate,
            "lower_bound": self.lower_bound,
            "upper_bound": self.upper_bound,
            "margin": self.margin,
            "range": self.range,
            "confidence_level": self.confidence_level,
        }


@dataclass(frozen=True, slots=True)
class SignificanceResult:
    """Outcome of a two-tailed z-test on a win count.

    Attributes:
        is_significant: ``p_value < alpha``.
        p_value: Two-tailed p-value in ``[0, 1]``.
        z_score: Standardized distance of the observed wins from expectation.
        significance: ``(1 - p_value) * 100`` clamped to ``[0, 100]``; the
            figure the risk scorer thresholds on.
        observed_win_rate: ``wins / total`` (``0`` when ``total == 0``).
        expected_win_rate: Null-hypothesis rate the test was run against.
    """

    is_significant: bool
    p_value: float
    z_score: float
    significance: float
    observed_win_rate: float
    expected_win_rate: float

    def to_dict(self) -> Dict[str, float]:
        return {
            "is_significant": self.is_significant,
            "p_value": self.p_value,
            "z_score": self.z_score,
            "significance": self.significance,
            "observed_win_rate": self.observed_win_rate,
            "expected_win_rate": self.expected_win_rate,
        }


# ---------------------------------------------------------------------------
# Normal distribution helpers
# ---------------------------------------------------------------------------


def z_for_confidence(confidence_level: float = DEFAULT_CONFIDENCE_LEVEL) -> float:
    """Two-sided critical value for ``confidence_level``.

    Raises:
        ValueError: If ``confidence_level`` is not strictly inside ``(0, 1)``.
    """
    if not 0.0 < confidence_level < 1.0:
        raise ValueError(
            f"confidence_level must be in (0, 1), got {confidence_level}"
        )
    for level, z in Z_SCORES.items():
        if math.isclose(level, confidence_level, abs_tol=1e-9):
            return z
    return float(norm.ppf((1.0 + confidence_level) / 2.0))


def erf(x: float) -> float:
    """Abramowitz & Stegun 7.1.26 approximation of the error function."""
    sign = -1.0 if x < 0 else 1.0
    x = abs(x)
    t = 1.0 / (1.0 + _AS_P * x)
    poly = ((((_AS_A5 * t + _AS_A4) * t + _AS_A3) * t + _AS_A2) * t + _AS_A1) * t
    return sign * (1.0 - poly * math.exp(-x * x))


def normal_cdf(x: float) -> float:
    """Standard normal CDF via :func:`erf`."""
    return 0.5 * (1.0 + erf(x / math.sqrt(2.0)))


def _check_counts(successes: int, total: int) -> None:
    if total < 0:
        raise ValueError(f"total must be >= 0, got {total}")
    if not 0 <= successes <= total:
        raise ValueError(
            f"successes must be in [0, total={total}], got {successes}"
        )


# ---------------------------------------------------------------------------
# Wilson score interval
# ---------------------------------------------------------------------------


def wilson_interval(
    successes: int,
    total: int,
    confidence_level: float = DEFAULT_CONFIDENCE_LEVEL,
) -> ConfidenceInterval:
    """Wilson score interval for ``successes`` out of ``total``.

    ::

        center = (p + z²/2n) / (1 + z²/n)
        margin = z·sqrt(p(1-p)/n + z²/4n²) / (1 + z²/n)

    Bounds are clamped to ``[0, 1]`` and additionally so that
    ``lower <= point <= upper`` holds despite floating-point rounding at the
    extremes (``p = 0`` or ``p = 1``).

    Args:
        successes: Number of wins.
        total: Number of settled bets.
        confidence_level: Two-sided level, e.g. ``0.95``.

    Returns:
        :class:`ConfidenceInterval`.  ``total == 0`` yields all-zero bounds.
    """
    _check_counts(successes, total)
    z = z_for_confidence(confidence_level)
    if total == 0:
        return ConfidenceInterval(0.0, 0.0, 0.0, 0.0, confidence_level)

    n = float(total)
    p = successes / n
    z2 = z * z
    denominator = 1.0 + z2 / n
    center = (p + z2 / (2.0 * n)) / denominator
    margin = z * math.sqrt(p * (1.0 - p) / n + z2 / (4.0 * n * n)) / denominator

    lower = min(max(center - margin, 0.0), p)
    upper = max(min(center + margin, 1.0), p)
    return ConfidenceInterval(
        point_estimate=p,
        lower_bound=lower,
        upper_bound=upper,
        margin=margin,
        confidence_level=confidence_level,
    )


# ---------------------------------------------------------------------------
# Significance testing
# ---------------------------------------------------------------------------


def significance_test(
    wins: int,
    total: int,
    expected_win_rate: float = DEFAULT_EXPECTED_WIN_RATE,
    alpha: float = DEFAULT_ALPHA,
) -> SignificanceResult:
    """Two-tailed z-test of ``wins`` against ``expected_win_rate``.

    ``z = (wins - n·p0) / sqrt(n·p0·(1-p0))`` and
    ``p = 2·(1 - Φ(|z|))``.

    Raises:
        ValueError: If ``expected_win_rate`` is not strictly inside ``(0, 1)``
            (the standard error would be zero).
    """
    _check_counts(wins, total)
    if not 0.0 < expected_win_rate < 1.0:
        raise ValueError(
            f"expected_win_rate must be in (0, 1), got {expected_win_rate}"
        )
    if total == 0:
        return SignificanceResult(
            is_significant=False,
            p_value=1.0,
            z_score=0.0,
            significance=0.0,
            observed_win_rate=0.0,
            expected_win_rate=expected_win_rate,
        )

    expected = total * expected_win_rate
    std_error = math.sqrt(total * expected_win_rate * (1.0 - expected_win_rate))
    z = (wins - expected) / std_error
    p_value = min(max(2.0 * (1.0 - normal_cdf(abs(z))), 0.0), 1.0)
    significance = min(max((1.0 - p_value) * 100.0, 0.0), 100.0)
    return SignificanceResult(
        is_significant=p_value < alpha,
        p_value=p_value,
        z_score=z,
        significance=significance,
        observed_win_rate=wins / total,
        expected_win_rate=expected_win_rate,
    )
