"""
Tests for team, league and country aggregation
Run with: pytest tests/test_aggregation.py -v
"""

from datetime import date, timedelta

import pytest

from wager_engine.core.policy import RankingPolicy
from wager_engine.core.records import BetRecord, BetResult
from wager_engine.services.aggregation import (
    build_country_stats,
    build_league_stats,
    build_team_stats,
    index_team_stats,
    is_artifact_team,
    team_key,
)

W, L, P = BetResult.WIN, BetResult.LOSS, BetResult.PENDING


def _rec(result, team="Sevilla", country="Spain", league="La Liga", bet_type="Win", day=0, **kw):
    return BetRecord(
        date=date(2024, 1, 1) + timedelta(days=day),
        country=country,
        league=league,
        home_team=kw.pop("home_team", team),
        away_team=kw.pop("away_team", "Opponent"),
        team_included=team,
        bet_type=bet_type,
        result=result,
        **kw,
    )


class TestTeamStats:

    def test_seven_three_is_seventy(self):
        records = [_rec(W, day=i) for i in range(7)] + [_rec(L, day=7 + i) for i in range(3)]
        [stat] = build_team_stats(records)
        assert (stat.wins, stat.losses, stat.total_bets) == (7, 3, 10)
        assert stat.win_rate == pytest.approx(70.0)

    def test_pending_does_not_affect_rate(self):
        records = [_rec(W), _rec(L, day=1), _rec(P, day=2), _rec(BetResult.DRAW, day=3)]
        [stat] = build_team_stats(records)
        assert stat.pending == 2
        assert stat.win_rate == pytest.approx(50.0)

    def test_no_settled_rate_is_zero(self):
        [stat] = build_team_stats([_rec(P), _rec(P, day=1)])
        assert stat.win_rate == 0.0

    def test_same_name_different_league_split(self):
        records = [_rec(W), _rec(W, league="Copa del Rey", day=1)]
        assert len(build_team_stats(records)) == 2

    def test_rows_without_country_or_league_skipped(self):
        records = [_rec(W, country=""), _rec(W, league=""), _rec(W)]
        [stat] = build_team_stats(records)
        assert stat.total_bets == 1

    @pytest.mark.parametrize("name", ["Over 1.5", "over 0.5", "TEAM_INCLUDED", "teams", "  "])
    def test_artifacts(self, name):
        assert is_artifact_team(name)

    def test_artifact_rows_skipped(self):
        records = [_rec(W, team="Over 1.5", home_team="")]
        assert build_team_stats(records) == []

    def test_recent_window_uses_latest(self):
        old = [_rec(L, day=i) for i in range(5)]
        new = [_rec(W, day=100 + i) for i in range(10)]
        [stat] = build_team_stats(old + new, RankingPolicy(recent_window=10))
        assert stat.recent_bets == 10
        assert stat.recent_wins == 10
        assert stat.recent_win_rate == pytest.approx(100.0)

    def test_bet_type_breakdown(self):
        records = [
            _rec(W, bet_type="Win"),
            _rec(L, bet_type="Win", day=1),
            _rec(W, bet_type="Double Chance", day=2),
            _rec(P, bet_type="Double Chance", day=3),
        ]
        [stat] = build_team_stats(records)
        dc = stat.bet_type_breakdown["Double Chance"]
        assert (dc.wins, dc.losses, dc.total, dc.total_with_result) == (1, 0, 2, 1)
        assert dc.win_rate == pytest.approx(100.0)

    def test_breakdown_lookup_is_case_insensitive_substring(self):
        [stat] = build_team_stats([_rec(W, bet_type="Double Chance")])
        assert stat.breakdown_for("double") is stat.bet_type_breakdown["Double Chance"]
        assert stat.breakdown_for("Over") is None

    def test_exact_breakdown_lookup(self):
        [stat] = build_team_stats([_rec(W, bet_type="Double Chance")])
        assert stat.breakdown_for("DOUBLE chance", exact=True) is stat.bet_type_breakdown["Double Chance"]
        assert stat.breakdown_for("double", exact=True) is None

    def test_index_by_lowercased_triple(self):
        stats = build_team_stats([_rec(W)])
        index = index_team_stats(stats)
        assert index[team_key("SEVILLA", "spain", "la liga")] is stats[0]


class TestGroupStats:

    def test_league_keyed_with_country(self):
        records = [
            _rec(W, country="England", league="Premier League"),
            _rec(W, country="Russia", league="Premier League", day=1),
        ]
        assert len(build_league_stats(records)) == 2

    def test_league_sorted_by_win_rate(self):
        records = [
            _rec(L, league="A"), _rec(W, league="B"), _rec(W, league="B", day=1),
        ]
        names = [s.name for s in build_league_stats(records)]
        assert names == ["B", "A"]

    def test_league_total_includes_pending(self):
        records = [_rec(W), _rec(L, day=1), _rec(P, day=2)]
        [stat] = build_league_stats(records)
        assert stat.total == 3
        assert stat.win_rate == pytest.approx(50.0)

    def test_avg_odds_mean_of_record_means(self):
        records = [
            _rec(W, odds_home=1.5, odds_away=2.5),   # mean 2.0
            _rec(W, odds_home=4.0, day=1),          # mean 4.0
            _rec(W, day=2),                          # no odds
        ]
        [stat] = build_league_stats(records)
        assert stat.avg_odds == pytest.approx(3.0)

    def test_country_header_rows_skipped(self):
        records = [_rec(W, country="country"), _rec(W)]
        assert [c.name for c in build_country_stats(records)] == ["Spain"]

    def test_missing_country_becomes_unknown_league_key(self):
        [stat] = build_league_stats([_rec(W, country="")])
        assert stat.country == "Unknown"
