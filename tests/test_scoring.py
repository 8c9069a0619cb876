"""
Tests for goal-scoring profiles and over/under suggestions
Run with: pytest tests/test_scoring.py -v
"""

from datetime import date, timedelta

import pytest

from wager_engine.core.records import BetRecord, BetResult
from wager_engine.services.scoring import TeamScoring, scoring_patterns, scoring_recommendation


def _game(home, away, hs, as_, day=0, league="Bundesliga", result=BetResult.WIN, **kw):
    return BetRecord(
        date=date(2024, 5, 1) + timedelta(days=day),
        country="Germany",
        league=league,
        home_team=home,
        away_team=away,
        home_score=hs,
        away_score=as_,
        result=result,
        **kw,
    )


def _profile(team, rate, league="Bundesliga", games=10):
    p = TeamScoring(team=team, country="Germany", league=league, games=games)
    p.over_2_5 = round(rate / 100 * games)
    return p


class TestScoringPatterns:

    def test_game_credits_both_teams(self):
        profiles = {p.team: p for p in scoring_patterns([_game("Bayern", "Mainz", 3, 1)])}
        bayern, mainz = profiles["Bayern"], profiles["Mainz"]
        assert (bayern.goals_scored, bayern.goals_conceded, bayern.home_games) == (3, 1, 1)
        assert (mainz.goals_scored, mainz.goals_conceded, mainz.away_games) == (1, 3, 1)
        assert bayern.over_3_5 == 1 and bayern.over_2_5 == 1

    def test_multiple_bets_on_one_game_count_once(self):
        records = [
            _game("Bayern", "Mainz", 3, 1, bet_type="Win"),
            _game("Bayern", "Mainz", 3, 1, bet_type="Over 2.5"),
        ]
        bayern = next(p for p in scoring_patterns(records) if p.team == "Bayern")
        assert bayern.games == 1

    def test_requires_settled_scored_complete_rows(self):
        records = [
            _game("Bayern", "Mainz", None, None),
            _game("Bayern", "Mainz", 1, 0, day=1, result=BetResult.PENDING),
            _game("Bayern", "Mainz", 1, 0, day=2, league=""),
        ]
        assert scoring_patterns(records) == []

    def test_sorted_by_average_goals(self):
        records = [
            _game("Bayern", "Mainz", 5, 2),
            _game("Union", "Bochum", 0, 0, day=1),
        ]
        teams = [p.team for p in scoring_patterns(records)]
        assert teams[:2] in (["Bayern", "Mainz"], ["Mainz", "Bayern"])
        assert teams[2:] in (["Union", "Bochum"], ["Bochum", "Union"])

    def test_rates_in_to_dict(self):
        records = [
            _game("Bayern", "Mainz", 1, 0),
            _game("Bayern", "Koln", 2, 1, day=7),
        ]
        bayern = next(p for p in scoring_patterns(records) if p.team == "Bayern")
        d = bayern.to_dict()
        assert d["games"] == 2
        assert d["avg_goals"] == pytest.approx(2.0)
        assert d["over_1_5_rate"] == pytest.approx(50.0)
        assert d["over_2_5_rate"] == pytest.approx(50.0)
        assert d["home_avg_scored"] == pytest.approx(1.5)
        assert d["away_avg_scored"] == 0.0


class TestScoringRecommendation:

    @pytest.mark.parametrize("home_rate, away_rate, kind, confidence", [
        (80, 80, "Strong Over 1.5", "high"),
        (60, 60, "Moderate Over 1.5", "medium"),
        (50, 40, "Consider Over 0.5", "low"),
        (20, 20, "Low Scoring Expected", "low"),
    ])
    def test_both_teams_known(self, home_rate, away_rate, kind, confidence):
        profiles = [_profile("Home", home_rate), _profile("Away", away_rate)]
        result = scoring_recommendation("Home", "Away", "Bundesliga", "Bundesliga", profiles)
        assert result["type"] == kind
        assert result["confidence"] == confidence

    def test_one_team_uses_league_mean(self):
        profiles = [_profile("Home", 80), _profile("Other", 40)]
        result = scoring_recommendation("home", "Stranger", "Bundesliga", "Bundesliga", profiles)
        # (80 + league mean 60) / 2
        assert result["rate"] == pytest.approx(70.0)
        assert result["confidence"] == "medium"

    def test_no_team_data(self):
        result = scoring_recommendation("A", "B", "Serie B", "Serie B", [])
        assert result == {"type": "Low Scoring Expected", "confidence": "low", "rate": 0.0}

    def test_missing_team_name(self):
        assert scoring_recommendation("", "B", "x", "x", []) is None
