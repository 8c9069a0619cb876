"""
Fixture recommendations from historical betting performance.

Each upcoming fixture gets six 0-10 confidence components:

    team     : backed team's record in this competition
    league   : our record in this competition
    odds     : our record on this market at a similar home price
    matchup  : our record on this pairing (either venue)
    position : league table strength of the backed side vs. opponent
    home_away: backed team's record in the same venue role

A component with no settled history is neutral (5).  The weighted average
(team .25, league .20, odds .15, matchup .15, position .15, home/away .10)
drives the label and the recommended market.  Every recommendation also
carries a Monte Carlo :class:`~wager_engine.services.risk.RiskAssessment`
for the backed team.

Run tests with::

    pytest tests/test_recommendations.py -v
"""

import logging
import math
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from wager_engine.core.confidence import DEFAULT_CONFIDENCE_LEVEL, wilson_interval
from wager_engine.core.policy import RiskPolicy
from wager_engine.core.records import BetRecord, BetResult
from wager_engine.schemas import ConfidenceComponents, PredictionSnapshot, RecommendationPayload
from wager_engine.services.risk import MonteCarloSimulator, RiskAssessment, assess_risk

logger = logging.getLogger(__name__)

NEUTRAL = 5.0

#: Default price for the simulation when the fixture has none.
DEFAULT_ODDS = 2.0

COMPONENT_WEIGHTS: Dict[str, float] = {
    "team": 0.25,
    "league": 0.20,
    "odds": 0.15,
    "matchup": 0.15,
    "position": 0.15,
    "home_away": 0.10,
}

CONFIDENCE_BUCKETS: Sequence[Tuple[str, float, float]] = (
    ("High (8-10)", 8.0, math.inf),
    ("Medium (6-7)", 6.0, 8.0),
    ("Low (4-5)", 4.0, 6.0),
    ("Very Low (1-3)", -math.inf, 4.0),
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _clamp(value: float, lo: float = 1.0, hi: float = 10.0) -> float:
    return min(hi, max(lo, value))


def _round1(value: float) -> float:
    # Half-up, matching how scores are displayed
    return math.floor(value * 10 + 0.5) / 10


def _record(records: Iterable[BetRecord]) -> Tuple[int, int]:
    wins = losses = 0
    for r in records:
        if r.result is BetResult.WIN:
            wins += 1
        elif r.result is BetResult.LOSS:
            losses += 1
    return wins, losses


def _step(rate: float, steps: Sequence[Tuple[float, float]], floor: float) -> float:
    for threshold, score in steps:
        if rate >= threshold:
            return score
    return floor


def _backs(team_included: str, participant: str) -> bool:
    return bool(participant) and participant.lower() in team_included.lower()


def _same_competition(r: BetRecord, country: str, league: str) -> bool:
    return r.country.lower() == country.lower() and r.league.lower() == league.lower()


def _team_history(fixture: BetRecord, history: Sequence[BetRecord]) -> List[BetRecord]:
    team = fixture.team_included.lower()
    return [
        r for r in history
        if r.team_included.lower() == team and _same_competition(r, fixture.country, fixture.league)
    ]


def _league_history(fixture: BetRecord, history: Sequence[BetRecord]) -> List[BetRecord]:
    return [r for r in history if _same_competition(r, fixture.country, fixture.league)]


def _similar_price(fixture: BetRecord, history: Sequence[BetRecord]) -> List[BetRecord]:
    price = fixture.odds_home or 0.0
    market = fixture.bet_type.lower()
    return [
        r for r in history
        if r.bet_type.lower() == market and abs((r.odds_home or 0.0) - price) <= 0.5
    ]


def _meetings(fixture: BetRecord, history: Sequence[BetRecord]) -> List[BetRecord]:
    pairing = {fixture.home_team.lower(), fixture.away_team.lower()}
    return [
        r for r in history
        if {r.home_team.lower(), r.away_team.lower()} == pairing
        and _same_competition(r, fixture.country, fixture.league)
    ]


# ---------------------------------------------------------------------------
# Components
# ---------------------------------------------------------------------------

def team_confidence(fixture: BetRecord, history: Sequence[BetRecord]) -> float:
    if not fixture.team_included:
        return NEUTRAL
    wins, losses = _record(_team_history(fixture, history))
    total = wins + losses
    if total == 0:
        return NEUTRAL
    score = _step(wins / total * 100, ((80, 9), (70, 8), (60, 7), (50, 6), (40, 4), (30, 3)), 2)
    if total < 3:
        score = max(3, score - 2)
    elif total < 5:
        score = max(4, score - 1)
    return _clamp(score)


def league_confidence(fixture: BetRecord, history: Sequence[BetRecord]) -> float:
    if not fixture.country or not fixture.league:
        return NEUTRAL
    wins, losses = _record(_league_history(fixture, history))
    total = wins + losses
    if total == 0:
        return NEUTRAL
    score = _step(wins / total * 100, ((75, 9), (65, 8), (55, 7), (45, 6), (35, 4)), 3)
    if total < 5:
        score = max(3, score - 1)
    elif total < 10:
        score = max(4, score - 0.5)
    return _clamp(score)


def odds_confidence(fixture: BetRecord, history: Sequence[BetRecord]) -> float:
    price = fixture.odds_home
    if not price or not fixture.bet_type or not fixture.team_included:
        return NEUTRAL
    similar = _similar_price(fixture, history)
    if not similar:
        # No comparable bets: shorter prices are more trustworthy
        return _step(-price, ((-1.5, 8), (-2.0, 7), (-3.0, 6), (-5.0, 5)), 4)
    wins, losses = _record(similar)
    total = wins + losses
    if total == 0:
        return NEUTRAL
    return _clamp(_step(wins / total * 100, ((70, 8), (60, 7), (50, 6), (40, 4)), 3))


def matchup_confidence(fixture: BetRecord, history: Sequence[BetRecord]) -> float:
    if not fixture.home_team or not fixture.away_team:
        return NEUTRAL
    wins, losses = _record(_meetings(fixture, history))
    total = wins + losses
    if total == 0:
        return NEUTRAL
    score = _step(wins / total * 100, ((80, 9), (70, 8), (60, 7), (50, 6), (40, 4)), 3)
    if total < 2:
        score = max(3, score - 2)
    elif total < 3:
        score = max(4, score - 1)
    return _clamp(score)


def _table_score(position: int) -> float:
    if position <= 3:
        return 8
    if position <= 6:
        return 7
    if position <= 10:
        return 6
    if position <= 15:
        return 4
    return 3


def position_confidence(fixture: BetRecord) -> float:
    home_pos, away_pos = fixture.home_position, fixture.away_position
    if not home_pos or not away_pos or not fixture.team_included:
        return NEUTRAL
    backs_home = _backs(fixture.team_included, fixture.home_team)
    if backs_home:
        score = _table_score(home_pos)
    elif _backs(fixture.team_included, fixture.away_team):
        score = _table_score(away_pos)
    else:
        score = NEUTRAL
    opponent = away_pos if backs_home else home_pos
    if opponent <= 3:
        score = max(3, score - 1)
    elif opponent >= 15:
        score = min(10, score + 1)
    return _clamp(score)


def home_away_confidence(fixture: BetRecord, history: Sequence[BetRecord]) -> float:
    if not fixture.team_included:
        return NEUTRAL
    at_home = _backs(fixture.team_included, fixture.home_team)
    same_role = [
        r for r in _team_history(fixture, history)
        if _backs(r.team_included, r.home_team) == at_home
    ]
    wins, losses = _record(same_role)
    total = wins + losses
    if total == 0:
        return NEUTRAL
    score = _step(wins / total * 100, ((75, 8), (65, 7), (55, 6), (45, 5), (35, 4)), 3)
    if total < 3:
        score = max(3, score - 1)
    return _clamp(score)


@dataclass(frozen=True)
class ConfidenceBreakdown:
    team: float
    league: float
    odds: float
    matchup: float
    position: float
    home_away: float

    @classmethod
    def for_fixture(cls, fixture: BetRecord, history: Sequence[BetRecord]) -> "ConfidenceBreakdown":
        return cls(
            team=team_confidence(fixture, history),
            league=league_confidence(fixture, history),
            odds=odds_confidence(fixture, history),
            matchup=matchup_confidence(fixture, history),
            position=position_confidence(fixture),
            home_away=home_away_confidence(fixture, history),
        )

    def as_dict(self) -> Dict[str, float]:
        return {name: getattr(self, name) for name in COMPONENT_WEIGHTS}

    @property
    def overall(self) -> float:
        weighted = sum(getattr(self, name) * w for name, w in COMPONENT_WEIGHTS.items())
        return _clamp(_round1(weighted))


def confidence_label(score: float) -> str:
    if score >= 8:
        return "Very High"
    if score >= 7:
        return "High"
    if score >= 6:
        return "Good"
    if score >= 5:
        return "Moderate"
    if score >= 4:
        return "Low"
    return "Very Low"


# ---------------------------------------------------------------------------
# Recommendation
# ---------------------------------------------------------------------------

def _pct(records: Iterable[BetRecord]) -> float:
    wins, losses = _record(records)
    return round(wins / (wins + losses) * 100, 1) if wins + losses else 0.0


def avoid_reasons(fixture: BetRecord, breakdown: ConfidenceBreakdown, history: Sequence[BetRecord]) -> List[str]:
    """Human-readable reasons for each weak component (rounded score < 4)."""
    reasons: List[str] = []
    weak = {name: round(value) < 4 for name, value in breakdown.as_dict().items()}

    if weak["team"]:
        reasons.append(f"Poor team performance ({_pct(_team_history(fixture, history))}% win rate)")
    if weak["league"]:
        reasons.append(f"Poor league performance ({_pct(_league_history(fixture, history))}% win rate)")
    if weak["odds"]:
        reasons.append(f"Poor odds performance ({_pct(_similar_price(fixture, history))}% win rate)")
    if weak["matchup"]:
        reasons.append(f"Poor head-to-head record ({_pct(_meetings(fixture, history))}% win rate)")
    if weak["position"] and fixture.league.upper() != "CUP":
        if fixture.home_position and fixture.away_position:
            if _backs(fixture.team_included, fixture.home_team):
                if fixture.home_position > 10:
                    reasons.append(f"Home team in poor league position ({fixture.home_position}th)")
            elif fixture.away_position > 10:
                reasons.append(f"Away team in poor league position ({fixture.away_position}th)")
    if weak["home_away"]:
        role = "home" if _backs(fixture.team_included, fixture.home_team) else "away"
        reasons.append(f"Poor {role} game performance")
    return reasons or ["Low confidence across multiple factors"]


def recommended_market(score: float, fixture: BetRecord, reasons: Sequence[str] = ()) -> str:
    backs_home = _backs(fixture.team_included, fixture.home_team)
    backs_away = not backs_home and _backs(fixture.team_included, fixture.away_team)
    if score >= 7:
        return "Home Win" if backs_home else "Away Win" if backs_away else "Win"
    if score >= 4:
        if backs_home:
            return "Double Chance Home/Draw"
        return "Double Chance Away/Draw" if backs_away else "Double Chance"
    return f"Avoid ({', '.join(reasons)})" if reasons else "Avoid"


def score_interval(score: float, total_bets: int, confidence_level: float = DEFAULT_CONFIDENCE_LEVEL) -> Dict[str, float]:
    """Wilson interval around a 0-10 score, treating it as a rate over ``total_bets``."""
    successes = min(int(round(score * total_bets / 10)), total_bets)
    ci = wilson_interval(successes, total_bets, confidence_level)
    return {
        "lower": ci.lower_bound * 10,
        "upper": ci.upper_bound * 10,
        "margin": ci.margin * 10,
        "range": ci.range * 10,
    }


@dataclass
class Recommendation:
    fixture: BetRecord
    breakdown: ConfidenceBreakdown
    confidence_score: float
    confidence_label: str
    recommendation: str
    reasons: List[str] = field(default_factory=list)
    risk: Optional[RiskAssessment] = None
    interval: Dict[str, float] = field(default_factory=dict)

    def to_payload(self) -> RecommendationPayload:
        mc = self.risk.monte_carlo_summary if self.risk else None
        return RecommendationPayload(
            home_team=self.fixture.home_team,
            away_team=self.fixture.away_team,
            country=self.fixture.country,
            league=self.fixture.league,
            team_included=self.fixture.team_included,
            bet_type=self.fixture.bet_type,
            confidence_score=self.confidence_score,
            confidence_label=self.confidence_label,
            recommendation=self.recommendation,
            reasons=list(self.reasons),
            components=ConfidenceComponents(**self.breakdown.as_dict()),
            risk_level=self.risk.risk_level if self.risk else None,
            profit_probability=mc.profit_probability if mc else None,
        )


def recommend(
    fixture: BetRecord,
    history: Sequence[BetRecord],
    confidence_level: float = DEFAULT_CONFIDENCE_LEVEL,
    policy: RiskPolicy = RiskPolicy(),
    simulator: Optional[MonteCarloSimulator] = None,
    seed: Optional[int] = None,
) -> Recommendation:
    """Score one upcoming fixture against ``history``."""
    breakdown = ConfidenceBreakdown.for_fixture(fixture, history)
    score = breakdown.overall
    reasons = avoid_reasons(fixture, breakdown, history) if score < 4 else []

    wins, losses = _record(_team_history(fixture, history))
    settled = wins + losses
    win_rate = wins / settled if settled else 0.0
    if _backs(fixture.team_included, fixture.home_team):
        price = fixture.odds_home
    elif _backs(fixture.team_included, fixture.away_team):
        price = fixture.odds_away
    else:
        price = None
    if price is None or price < 1.0:
        price = DEFAULT_ODDS

    risk = assess_risk(
        win_rate, price, settled,
        confidence_level=confidence_level, policy=policy, simulator=simulator, seed=seed,
    )
    rec = Recommendation(
        fixture=fixture,
        breakdown=breakdown,
        confidence_score=score,
        confidence_label=confidence_label(score),
        recommendation=recommended_market(score, fixture, reasons),
        reasons=reasons,
        risk=risk,
        interval=score_interval(score, settled, confidence_level),
    )
    logger.debug(
        "recommend: %s vs %s -> %.1f (%s), risk %s",
        fixture.home_team, fixture.away_team, score, rec.recommendation, risk.risk_level,
    )
    return rec


def build_prediction_snapshot(
    fixtures: Iterable[BetRecord],
    history: Sequence[BetRecord],
    snapshot_date: date,
    generated_at: Optional[datetime] = None,
    confidence_level: float = DEFAULT_CONFIDENCE_LEVEL,
    policy: RiskPolicy = RiskPolicy(),
    simulator: Optional[MonteCarloSimulator] = None,
) -> PredictionSnapshot:
    """Recommendations for one day, best confidence first, ready for storage."""
    recs = [
        recommend(f, history, confidence_level=confidence_level, policy=policy, simulator=simulator)
        for f in fixtures
    ]
    recs.sort(key=lambda r: r.confidence_score, reverse=True)

    by_label: Dict[str, int] = {}
    by_risk: Dict[str, int] = {}
    for r in recs:
        by_label[r.confidence_label] = by_label.get(r.confidence_label, 0) + 1
        if r.risk is not None:
            by_risk[r.risk.risk_level] = by_risk.get(r.risk.risk_level, 0) + 1

    logger.info("build_prediction_snapshot: %d fixtures for %s", len(recs), snapshot_date)
    return PredictionSnapshot(
        snapshot_date=snapshot_date,
        generated_at=generated_at or datetime.utcnow(),
        recommendations=[r.to_payload() for r in recs],
        summary={"fixtures": len(recs), "by_label": by_label, "by_risk": by_risk},
    )


# ---------------------------------------------------------------------------
# Accuracy
# ---------------------------------------------------------------------------

def grade_recommendation(recommendation: str, result: BetResult) -> Optional[bool]:
    """Whether a recommendation proved right.  ``None`` while unsettled."""
    if result in (BetResult.PENDING, BetResult.UNKNOWN) or not recommendation:
        return None
    if "Win" in recommendation:
        return result is BetResult.WIN
    if "Avoid" in recommendation:
        return result is BetResult.LOSS
    if "Double Chance" in recommendation:
        return result in (BetResult.WIN, BetResult.DRAW)
    if "Over" in recommendation or "Under" in recommendation:
        return result is BetResult.WIN
    return None


def _accuracy(verdicts: Sequence[bool]) -> Dict:
    correct = sum(1 for ok in verdicts if ok)
    return {
        "total": len(verdicts),
        "correct": correct,
        "accuracy": round(correct / len(verdicts) * 100, 1) if verdicts else 0.0,
    }


def accuracy_by_confidence(outcomes: Iterable[Tuple[str, float, BetResult]]) -> Dict:
    """Accuracy overall and per confidence bucket.

    Args:
        outcomes: ``(recommendation, confidence_score, result)`` triples.
    """
    graded: List[Tuple[float, bool]] = []
    for recommendation, score, result in outcomes:
        verdict = grade_recommendation(recommendation, result)
        if verdict is not None:
            graded.append((score, verdict))

    return {
        "overall": _accuracy([ok for _, ok in graded]),
        "by_confidence": {
            label: _accuracy([ok for score, ok in graded if lo <= score < hi])
            for label, lo, hi in CONFIDENCE_BUCKETS
        },
    }


def accuracy_by_group(outcomes: Iterable[Tuple[str, str, BetResult]]) -> Dict[str, Dict]:
    """Accuracy per group, groups in first-seen order.

    Args:
        outcomes: ``(group, recommendation, result)`` triples.  A group with
            no gradable outcome still appears, with a zero total.
    """
    groups: Dict[str, List[bool]] = {}
    for group, recommendation, result in outcomes:
        verdicts = groups.setdefault(group, [])
        verdict = grade_recommendation(recommendation, result)
        if verdict is not None:
            verdicts.append(verdict)
    return {group: _accuracy(verdicts) for group, verdicts in groups.items()}


def grade_snapshot(snapshot: PredictionSnapshot, settled: Iterable[BetRecord]) -> Dict:
    """Join a stored snapshot to settled records and report accuracy.

    Fixtures are matched on home team, away team and backed team; the first
    record with a final result (WIN, LOSS or DRAW) wins.  Accuracy is
    reported overall, per confidence bucket, per bet type and per
    ``"Country - League"``.
    """
    results: Dict[Tuple[str, str, str], BetResult] = {}
    for r in settled:
        if r.result in (BetResult.PENDING, BetResult.UNKNOWN):
            continue
        results.setdefault((r.home_team.lower(), r.away_team.lower(), r.team_included.lower()), r.result)

    outcomes = []
    by_bet_type = []
    by_league = []
    for p in snapshot.recommendations:
        result = results.get((p.home_team.lower(), p.away_team.lower(), p.team_included.lower()))
        if result is None:
            continue
        outcomes.append((p.recommendation, p.confidence_score, result))
        by_bet_type.append((p.bet_type, p.recommendation, result))
        by_league.append((f"{p.country} - {p.league}", p.recommendation, result))

    report = accuracy_by_confidence(outcomes)
    report["by_bet_type"] = accuracy_by_group(by_bet_type)
    report["by_league"] = accuracy_by_group(by_league)
    return report
