"""
Per-market fixture analyses: straight win, double chance and over/under.

Each analysis reads the graded history (WIN, LOSS or DRAW) of the two
sides in the fixture's competition and returns one verdict with a 1-10
confidence.  Thin samples yield ``"Insufficient Data"`` at confidence 3
rather than a guess.  When the fixture's composite recommendation is
already an "Avoid", every market repeats it.

Run tests with::

    pytest tests/test_markets.py -v
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from wager_engine.core.records import BetRecord, BetResult
from wager_engine.services.recommendations import Recommendation

logger = logging.getLogger(__name__)

MARKET_STRAIGHT_WIN = "Straight Win"
MARKET_DOUBLE_CHANCE = "Double Chance"
MARKET_OVER_UNDER = "Over/Under 2.5"

INSUFFICIENT_DATA = "Insufficient Data"
INSUFFICIENT_CONFIDENCE = 3.0

#: Smallest team sample a straight-win verdict is drawn from.
MIN_TEAM_SAMPLE = 3
#: Smallest combined game count for an over/under verdict.
MIN_GAMES = 3

OVER_THRESHOLD = 2.5
UNDER_THRESHOLD = 1.5

_GRADED = (BetResult.WIN, BetResult.LOSS, BetResult.DRAW)


@dataclass(frozen=True)
class MarketAnalysis:
    market: str
    recommendation: str
    reasoning: str
    confidence: float

    @property
    def is_insufficient(self) -> bool:
        return self.recommendation == INSUFFICIENT_DATA

    def to_dict(self) -> Dict:
        return {
            "market": self.market,
            "recommendation": self.recommendation,
            "reasoning": self.reasoning,
            "confidence": self.confidence,
        }


# ---------------------------------------------------------------------------
# History selection
# ---------------------------------------------------------------------------

def _graded(fixture: BetRecord, history: Sequence[BetRecord]) -> List[BetRecord]:
    country, league = fixture.country.lower(), fixture.league.lower()
    return [
        r for r in history
        if r.result in _GRADED and r.country.lower() == country and r.league.lower() == league
    ]


def _backing(team: str, graded: Sequence[BetRecord]) -> List[BetRecord]:
    team = team.lower()
    return [r for r in graded if r.team_included.lower() == team]


def _playing(team: str, graded: Sequence[BetRecord]) -> List[BetRecord]:
    team = team.lower()
    return [r for r in graded if team in (r.home_team.lower(), r.away_team.lower())]


def _win_rate(records: Sequence[BetRecord]) -> float:
    if not records:
        return 0.0
    return sum(1 for r in records if r.result is BetResult.WIN) / len(records) * 100


def _bounded(value: float) -> float:
    return min(8.0, max(4.0, value))


def _avoided(market: str, prior: Optional[Recommendation]) -> Optional[MarketAnalysis]:
    if prior is None or "Avoid" not in prior.recommendation:
        return None
    return MarketAnalysis(market, "Avoid", prior.recommendation, prior.confidence_score or 1.0)


def _insufficient(market: str, reasoning: str) -> MarketAnalysis:
    return MarketAnalysis(market, INSUFFICIENT_DATA, reasoning, INSUFFICIENT_CONFIDENCE)


# ---------------------------------------------------------------------------
# Markets
# ---------------------------------------------------------------------------

def analyze_straight_win(
    fixture: BetRecord,
    history: Sequence[BetRecord],
    prior: Optional[Recommendation] = None,
) -> MarketAnalysis:
    """Back whichever side has the better graded win rate.

    The stronger side needs at least ``MIN_TEAM_SAMPLE`` graded bets;
    ties and thin samples are insufficient.
    """
    avoided = _avoided(MARKET_STRAIGHT_WIN, prior)
    if avoided:
        return avoided

    graded = _graded(fixture, history)
    home = _backing(fixture.home_team, graded)
    away = _backing(fixture.away_team, graded)
    home_rate, away_rate = _win_rate(home), _win_rate(away)

    if home_rate > away_rate and len(home) >= MIN_TEAM_SAMPLE:
        return MarketAnalysis(
            MARKET_STRAIGHT_WIN,
            "Home Win",
            f"Home team has {home_rate:.1f}% win rate vs away team's {away_rate:.1f}%",
            _bounded(home_rate / 10),
        )
    if away_rate > home_rate and len(away) >= MIN_TEAM_SAMPLE:
        return MarketAnalysis(
            MARKET_STRAIGHT_WIN,
            "Away Win",
            f"Away team has {away_rate:.1f}% win rate vs home team's {home_rate:.1f}%",
            _bounded(away_rate / 10),
        )
    return _insufficient(
        MARKET_STRAIGHT_WIN, "Not enough historical data to make a confident recommendation"
    )


def analyze_double_chance(
    fixture: BetRecord,
    history: Sequence[BetRecord],
    prior: Optional[Recommendation] = None,
) -> MarketAnalysis:
    """Side win rate plus the pairing's draw rate, higher side wins.

    The draw rate comes from graded meetings of the two teams at either
    venue; without any meeting the market is insufficient.
    """
    avoided = _avoided(MARKET_DOUBLE_CHANCE, prior)
    if avoided:
        return avoided

    graded = _graded(fixture, history)
    pairing = {fixture.home_team.lower(), fixture.away_team.lower()}
    meetings = [r for r in graded if {r.home_team.lower(), r.away_team.lower()} == pairing]
    if not meetings:
        return _insufficient(MARKET_DOUBLE_CHANCE, "No historical matches found between these teams")

    draw_rate = sum(1 for r in meetings if r.result is BetResult.DRAW) / len(meetings) * 100
    home_rate = _win_rate(_backing(fixture.home_team, graded))
    away_rate = _win_rate(_backing(fixture.away_team, graded))
    home_dc, away_dc = home_rate + draw_rate, away_rate + draw_rate

    if home_dc > away_dc:
        return MarketAnalysis(
            MARKET_DOUBLE_CHANCE,
            "Double Chance Home/Draw",
            f"Home team has {home_dc:.1f}% double chance probability "
            f"({home_rate:.1f}% win + {draw_rate:.1f}% draw)",
            _bounded(home_dc / 10),
        )
    if away_dc > home_dc:
        return MarketAnalysis(
            MARKET_DOUBLE_CHANCE,
            "Double Chance Away/Draw",
            f"Away team has {away_dc:.1f}% double chance probability "
            f"({away_rate:.1f}% win + {draw_rate:.1f}% draw)",
            _bounded(away_dc / 10),
        )
    return MarketAnalysis(
        MARKET_DOUBLE_CHANCE, "Even Matchup", "Both teams have similar double chance probabilities", 5.0
    )


def _avg_goals_for(team: str, games: Sequence[BetRecord]) -> float:
    if not games:
        return 0.0
    team = team.lower()
    total = 0
    for g in games:
        goals = g.home_score if g.home_team.lower() == team else g.away_score
        total += goals or 0
    return total / len(games)


def analyze_over_under(
    fixture: BetRecord,
    history: Sequence[BetRecord],
    prior: Optional[Recommendation] = None,
) -> MarketAnalysis:
    """Over or under 2.5 from the two sides' average goals scored.

    The combined figure is the mean of each side's goals per graded game.
    At or above 2.5 is Over, at or below 1.5 is Under, and anything
    between is a close call.
    """
    avoided = _avoided(MARKET_OVER_UNDER, prior)
    if avoided:
        return avoided

    graded = _graded(fixture, history)
    home_games = _playing(fixture.home_team, graded)
    away_games = _playing(fixture.away_team, graded)
    combined = (_avg_goals_for(fixture.home_team, home_games) + _avg_goals_for(fixture.away_team, away_games)) / 2
    games = len(home_games) + len(away_games)

    if games < MIN_GAMES:
        return _insufficient(MARKET_OVER_UNDER, "Not enough historical data to analyze scoring patterns")
    if combined >= OVER_THRESHOLD:
        return MarketAnalysis(
            MARKET_OVER_UNDER,
            "Over 2.5 Goals",
            f"Combined average: {combined:.1f} goals per game ({games} games analyzed)",
            _bounded(combined * 2),
        )
    if combined <= UNDER_THRESHOLD:
        return MarketAnalysis(
            MARKET_OVER_UNDER,
            "Under 2.5 Goals",
            f"Combined average: {combined:.1f} goals per game ({games} games analyzed)",
            _bounded((3 - combined) * 2),
        )
    return MarketAnalysis(
        MARKET_OVER_UNDER,
        "Close Call",
        f"Combined average: {combined:.1f} goals per game - could go either way",
        5.0,
    )


def analyze_markets(
    fixture: BetRecord,
    history: Sequence[BetRecord],
    prior: Optional[Recommendation] = None,
) -> List[MarketAnalysis]:
    """All three market verdicts for a fixture, most confident first."""
    analyses = [
        analyze_straight_win(fixture, history, prior),
        analyze_double_chance(fixture, history, prior),
        analyze_over_under(fixture, history, prior),
    ]
    analyses.sort(key=lambda a: a.confidence, reverse=True)
    logger.debug(
        "analyze_markets: %s vs %s -> %s",
        fixture.home_team, fixture.away_team, [a.recommendation for a in analyses],
    )
    return analyses
