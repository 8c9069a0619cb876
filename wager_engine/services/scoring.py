"""
Goal-scoring patterns per team and over/under suggestions per fixture.

Only settled records with both scores are used.  Several bets on the same
game would otherwise count its goals more than once, so games are first
deduplicated on date, participants and competition.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple

from wager_engine.core.records import BetRecord

logger = logging.getLogger(__name__)


@dataclass
class TeamScoring:
    team: str
    country: str
    league: str
    games: int = 0
    home_games: int = 0
    away_games: int = 0
    goals_total: int = 0
    goals_scored: int = 0
    goals_conceded: int = 0
    home_scored: int = 0
    home_conceded: int = 0
    away_scored: int = 0
    away_conceded: int = 0
    over_1_5: int = 0
    over_2_5: int = 0
    over_3_5: int = 0

    def add_game(self, scored: int, conceded: int, at_home: bool) -> None:
        total = scored + conceded
        self.games += 1
        self.goals_total += total
        self.goals_scored += scored
        self.goals_conceded += conceded
        if at_home:
            self.home_games += 1
            self.home_scored += scored
            self.home_conceded += conceded
        else:
            self.away_games += 1
            self.away_scored += scored
            self.away_conceded += conceded
        self.over_1_5 += total > 1
        self.over_2_5 += total > 2
        self.over_3_5 += total > 3

    @staticmethod
    def _avg(n: int, d: int) -> float:
        return n / d if d else 0.0

    @property
    def avg_goals(self) -> float:
        return self._avg(self.goals_total, self.games)

    @property
    def over_2_5_rate(self) -> float:
        return self._avg(self.over_2_5, self.games) * 100

    def to_dict(self) -> Dict:
        return {
            "team": self.team,
            "country": self.country,
            "league": self.league,
            "games": self.games,
            "home_games": self.home_games,
            "away_games": self.away_games,
            "avg_goals": round(self.avg_goals, 2),
            "avg_scored": round(self._avg(self.goals_scored, self.games), 2),
            "avg_conceded": round(self._avg(self.goals_conceded, self.games), 2),
            "home_avg_scored": round(self._avg(self.home_scored, self.home_games), 2),
            "home_avg_conceded": round(self._avg(self.home_conceded, self.home_games), 2),
            "away_avg_scored": round(self._avg(self.away_scored, self.away_games), 2),
            "away_avg_conceded": round(self._avg(self.away_conceded, self.away_games), 2),
            "over_1_5_rate": round(self._avg(self.over_1_5, self.games) * 100, 1),
            "over_2_5_rate": round(self.over_2_5_rate, 1),
            "over_3_5_rate": round(self._avg(self.over_3_5, self.games) * 100, 1),
        }


def scoring_patterns(records: Iterable[BetRecord]) -> List[TeamScoring]:
    """Per-team scoring profile, highest-scoring teams first."""
    games: Dict[Tuple[str, ...], BetRecord] = {}
    for r in records:
        if not (r.is_settled and r.has_score):
            continue
        if not (r.home_team and r.away_team and r.date and r.league and r.country):
            continue
        games.setdefault((r.date_key, r.home_team, r.away_team, r.country, r.league), r)

    teams: Dict[Tuple[str, str, str], TeamScoring] = {}
    for g in games.values():
        for team, scored, conceded, at_home in (
            (g.home_team, g.home_score, g.away_score, True),
            (g.away_team, g.away_score, g.home_score, False),
        ):
            key = (team, g.country, g.league)
            if key not in teams:
                teams[key] = TeamScoring(team=team, country=g.country, league=g.league)
            teams[key].add_game(scored, conceded, at_home)

    result = sorted(teams.values(), key=lambda t: t.avg_goals, reverse=True)
    logger.info("scoring_patterns: %d unique games, %d teams", len(games), len(result))
    return result


# ---------------------------------------------------------------------------
# Fixture suggestion
# ---------------------------------------------------------------------------

def _find(profiles: List[TeamScoring], team: str, league: str) -> Optional[TeamScoring]:
    for p in profiles:
        if p.team.lower() == team.lower() and p.league.lower() == league.lower():
            return p
    return None


def _league_mean(profiles: List[TeamScoring], league: str) -> float:
    rates = [p.over_2_5_rate for p in profiles if p.league.lower() == league.lower()]
    return sum(rates) / len(rates) if rates else 0.0


def _suggestion_type(rate: float) -> str:
    if rate >= 70:
        return "Strong Over 1.5"
    if rate >= 55:
        return "Moderate Over 1.5"
    if rate >= 40:
        return "Consider Over 0.5"
    return "Low Scoring Expected"


def scoring_recommendation(
    home_team: str,
    away_team: str,
    home_league: str,
    away_league: str,
    profiles: List[TeamScoring],
) -> Optional[Dict]:
    """Over/under suggestion for one fixture, or ``None`` without both teams."""
    if not home_team or not away_team:
        return None
    home = _find(profiles, home_team, home_league)
    away = _find(profiles, away_team, away_league)
    home_league_avg = _league_mean(profiles, home_league)
    away_league_avg = _league_mean(profiles, away_league)

    if home and away:
        rate = (home.over_2_5_rate + away.over_2_5_rate) / 2
        confidence = "high" if rate >= 70 else "medium" if rate >= 55 else "low"
    elif home or away:
        known = home.over_2_5_rate if home else away.over_2_5_rate
        rate = (known + (away_league_avg if home else home_league_avg)) / 2
        confidence = "medium" if rate >= 55 else "low"
    else:
        rate = (home_league_avg + away_league_avg) / 2
        confidence = "low"

    return {"type": _suggestion_type(rate), "confidence": confidence, "rate": round(rate, 1)}
