"""
Tests for performer, head-to-head, odds-range and bet-slip breakdowns
Run with: pytest tests/test_breakdowns.py -v
"""

from datetime import date

import pytest

from wager_engine.core.records import BetRecord, BetResult
from wager_engine.services.aggregation import CountryStat, LeagueStat
from wager_engine.services.breakdowns import (
    bet_slip_summary,
    bet_slips,
    best_performers,
    head_to_head,
    headline_odds,
    odds_range_label,
    odds_ranges,
)

W, L, P = BetResult.WIN, BetResult.LOSS, BetResult.PENDING


def _league(name, wins, losses, pending=0, avg_odds=2.0, country="X"):
    return LeagueStat(name, country, wins, losses, pending, avg_odds)


def _country(name, wins, losses):
    return CountryStat(name, name, wins, losses, 0, 2.0)


# ---------------------------------------------------------------------------
# Best performers
# ---------------------------------------------------------------------------

class TestBestPerformers:

    def test_major_league_preferred_when_winning(self):
        leagues = [_league("Obscure Liga", 8, 2), _league("Premier League", 6, 4)]
        result = best_performers(leagues, [])
        assert result["best_league"]["name"] == "Premier League"

    def test_losing_major_league_not_preferred(self):
        leagues = [_league("Obscure Liga", 8, 2), _league("Serie A", 3, 7)]
        assert best_performers(leagues, [])["best_league"]["name"] == "Obscure Liga"

    def test_close_rates_fall_back_to_volume(self):
        leagues = [_league("A", 7, 3), _league("B", 14, 7)]  # 70% vs 66.7%
        assert best_performers(leagues, [])["best_league"]["name"] == "B"

    def test_minimum_bets(self):
        leagues = [_league("Tiny", 2, 0), _league("Real", 3, 2)]
        result = best_performers(leagues, [])
        assert result["best_league"]["name"] == "Real"

    def test_nothing_eligible_falls_back_to_input_order(self):
        leagues = [_league("First", 1, 0), _league("Last", 0, 1)]
        result = best_performers(leagues, [])
        assert result["best_league"]["name"] == "First"
        assert result["worst_league"]["name"] == "Last"

    def test_worst_league(self):
        leagues = [_league("Good", 8, 2), _league("Bad", 1, 9), _league("Meh", 5, 5)]
        assert best_performers(leagues, [])["worst_league"]["name"] == "Bad"

    def test_countries(self):
        countries = [_country("Spain", 9, 1), _country("Italy", 4, 6), _country("Wales", 2, 0)]
        result = best_performers([], countries)
        assert result["best_country"]["name"] == "Spain"
        assert result["worst_country"]["name"] == "Wales"

    def test_busiest_and_highest_odds(self):
        leagues = [_league("A", 3, 0, avg_odds=1.6), _league("B", 5, 5, avg_odds=3.1)]
        result = best_performers(leagues, [])
        assert result["most_bets_league"]["name"] == "B"
        assert result["highest_odds_league"]["name"] == "B"

    def test_empty(self):
        assert all(v is None for v in best_performers([], []).values())


# ---------------------------------------------------------------------------
# Head-to-head
# ---------------------------------------------------------------------------

def _game(home, away, result, **kw):
    return BetRecord(
        date=date(2024, 4, 1),
        country="England",
        league="Premier League",
        home_team=home,
        away_team=away,
        result=result,
        **kw,
    )


class TestHeadToHead:

    def test_both_venues_grouped(self):
        records = [
            _game("Arsenal", "Chelsea", W),
            _game("Chelsea", "Arsenal", L),
            _game("arsenal", "chelsea", W),
        ]
        [matchup] = head_to_head(records)
        assert (matchup["team1"], matchup["team2"]) == ("arsenal", "chelsea")
        assert matchup["total_bets"] == 3
        assert matchup["win_rate"] == pytest.approx(66.7)

    def test_single_bet_pairings_dropped(self):
        assert head_to_head([_game("Arsenal", "Chelsea", W)]) == []

    def test_unsettled_ignored(self):
        records = [_game("Arsenal", "Chelsea", W), _game("Arsenal", "Chelsea", P)]
        assert head_to_head(records) == []

    def test_sorted_by_volume(self):
        records = (
            [_game("Arsenal", "Chelsea", W)] * 2
            + [_game("Everton", "Fulham", L)] * 3
        )
        assert [m["team1"] for m in head_to_head(records)] == ["everton", "arsenal"]


# ---------------------------------------------------------------------------
# Odds ranges
# ---------------------------------------------------------------------------

class TestOddsRanges:

    @pytest.mark.parametrize("home, away, expected", [
        (1.4, 1.6, 1.5), (2.0, None, 2.0), (None, 3.0, 3.0), (None, None, 0.0),
    ])
    def test_headline_odds(self, home, away, expected):
        assert headline_odds(BetRecord(odds_home=home, odds_away=away)) == pytest.approx(expected)

    @pytest.mark.parametrize("odds, label", [
        (1.0, "1.0-1.49"), (1.5, "1.5-1.99"), (2.49, "2.0-2.49"), (7.99, "6.0-7.99"),
        (10.0, "10.0+"), (0.0, None),
    ])
    def test_labels(self, odds, label):
        assert odds_range_label(odds) == label

    def test_bands_sorted_by_average_odds(self):
        records = [
            _game("A", "B", W, odds_home=3.5, odds_away=3.5),
            _game("A", "B", W, odds_home=1.2, odds_away=1.2),
            _game("A", "B", L, odds_home=1.3, odds_away=1.3),
            _game("A", "B", P, odds_home=1.1, odds_away=1.1),
        ]
        bands = odds_ranges(records)
        assert [b["range"] for b in bands] == ["1.0-1.49", "3.0-3.99"]
        assert bands[0]["total"] == 3
        assert bands[0]["pending"] == 1
        assert bands[0]["win_rate"] == pytest.approx(50.0)
        assert bands[0]["avg_odds"] == pytest.approx(1.2)

    def test_props_excluded_on_request(self):
        records = [
            _game("A", "B", W, odds_home=1.3, odds_away=1.3, bet_type="Over 1.5"),
            _game("A", "B", W, odds_home=1.3, odds_away=1.3, bet_selection="Both teams score"),
            _game("A", "B", W, odds_home=1.3, odds_away=1.3, bet_type="Win"),
        ]
        assert odds_ranges(records)[0]["total"] == 3
        assert odds_ranges(records, exclude_props=True)[0]["total"] == 1


# ---------------------------------------------------------------------------
# Bet slips
# ---------------------------------------------------------------------------

class TestBetSlips:

    def test_slips_grouped_and_no_id_skipped(self):
        records = [
            BetRecord(bet_id="s1", date=date(2024, 1, 1), result=W),
            BetRecord(bet_id="s1", date=date(2024, 1, 1), result=L),
            BetRecord(bet_id="s2", date=date(2024, 2, 1), result=P),
            BetRecord(result=W),
        ]
        slips = bet_slips(records)
        assert [s["bet_id"] for s in slips] == ["s2", "s1"]
        assert slips[0]["status"] == "Pending"
        assert slips[1]["win_rate"] == pytest.approx(50.0)
        assert slips[1]["date"] == "2024-01-01"

    def test_summary(self):
        records = [
            BetRecord(bet_id="s1", result=W),
            BetRecord(bet_id="s1", result=W),
            BetRecord(bet_id="s2", result=L),
        ]
        summary = bet_slip_summary(records)
        assert summary["total_slips"] == 2
        assert summary["overall_success_rate"] == pytest.approx(66.7)
        assert summary["average_bets_per_slip"] == pytest.approx(1.5)
        assert summary["best_slip"] == "s1"

    def test_empty_summary(self):
        assert bet_slip_summary([])["best_slip"] is None
