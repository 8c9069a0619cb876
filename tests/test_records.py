"""
Tests for bet record parsing and derived views
Run with: pytest tests/test_records.py -v
"""

from datetime import date, datetime

import pytest

from wager_engine.core.records import (
    NO_BET_ID,
    SIDE_AWAY,
    SIDE_HOME,
    SIDE_UNKNOWN,
    BetRecord,
    BetResult,
    parse_date,
    parse_float,
    parse_odds,
)


def _row(**overrides):
    row = {
        "DATE": "2024-03-09",
        "COUNTRY": "England",
        "LEAGUE": "Premier League",
        "HOME_TEAM": "Arsenal",
        "AWAY_TEAM": "Brentford",
        "BET_TYPE": "Win",
        "BET_SELECTION": "1",
        "TEAM_INCLUDED": "Arsenal",
        "ODDS1": "1.45",
        "ODDS2": "6.5",
        "ODDSX": "4.2",
        "HOME_SCORE": "2",
        "AWAY_SCORE": "1",
        "RESULT": "WIN",
        "BET_ID": "slip-17",
    }
    row.update(overrides)
    return row


class TestBetResultParse:
    """Free-text result cells map onto the closed outcome set"""

    @pytest.mark.parametrize("raw, expected", [
        ("WIN", BetResult.WIN),
        ("win (HT)", BetResult.WIN),
        ("Loss", BetResult.LOSS),
        ("draw", BetResult.DRAW),
        ("", BetResult.PENDING),
        (None, BetResult.PENDING),
        ("pending", BetResult.PENDING),
        ("  Pending ", BetResult.PENDING),
        ("void", BetResult.UNKNOWN),
        ("Won", BetResult.UNKNOWN),  # no "win" substring
    ])
    def test_parse(self, raw, expected):
        assert BetResult.parse(raw) is expected

    def test_only_win_and_loss_are_settled(self):
        settled = {r for r in BetResult if r.is_settled}
        assert settled == {BetResult.WIN, BetResult.LOSS}


class TestCellParsers:

    @pytest.mark.parametrize("raw, expected", [
        ("1.85", 1.85),
        ("1,85", 1.85),
        (2, 2.0),
        ("", None),
        ("abc", None),
        (None, None),
        (float("nan"), None),
        (True, None),
    ])
    def test_parse_float(self, raw, expected):
        assert parse_float(raw) == expected

    @pytest.mark.parametrize("raw", ["0", "-1.5", 0, ""])
    def test_non_positive_odds_are_missing(self, raw):
        assert parse_odds(raw) is None

    @pytest.mark.parametrize("raw, expected", [
        ("2024-03-09", date(2024, 3, 9)),
        ("2024/03/09", date(2024, 3, 9)),
        ("09/03/2024", date(2024, 3, 9)),
        ("09.03.2024", date(2024, 3, 9)),
        (datetime(2024, 3, 9, 15, 0), date(2024, 3, 9)),
        (date(2024, 3, 9), date(2024, 3, 9)),
        ("next tuesday", None),
        (None, None),
    ])
    def test_parse_date(self, raw, expected):
        assert parse_date(raw) == expected


class TestFromRow:

    def test_full_row(self):
        r = BetRecord.from_row(_row())
        assert r.date == date(2024, 3, 9)
        assert r.home_team == "Arsenal"
        assert r.odds_home == pytest.approx(1.45)
        assert r.odds_draw == pytest.approx(4.2)
        assert r.home_score == 2 and r.away_score == 1
        assert r.result is BetResult.WIN
        assert r.bet_id == "slip-17"
        assert r.is_settled

    def test_lower_case_keys_accepted(self):
        r = BetRecord.from_row({k.lower(): v for k, v in _row().items()})
        assert r.league == "Premier League"
        assert r.result is BetResult.WIN

    def test_missing_cells_default(self):
        r = BetRecord.from_row({"HOME_TEAM": "Arsenal"})
        assert r.date is None
        assert r.country == ""
        assert r.odds_home is None
        assert r.result is BetResult.PENDING
        assert r.bet_id == NO_BET_ID
        assert not r.has_score

    def test_league_table_columns(self):
        r = BetRecord.from_row(_row(
            HOME_TEAM_POSITION_NUMBER="2",
            AWAY_TEAM_POSITION_NUMBER="16",
            TOTAL_TEAMS_IN_LEAGUE="20",
            HOME_TEAM_GAMES_PLAYED="27",
            AWAY_TEAM_GAMES_PLAYED="27.0",
        ))
        assert (r.home_position, r.away_position, r.total_teams) == (2, 16, 20)
        assert r.away_games_played == 27

    def test_non_mapping_raises(self):
        with pytest.raises(TypeError):
            BetRecord.from_row(["2024-03-09", "Arsenal"])

    def test_records_are_immutable(self):
        r = BetRecord.from_row(_row())
        with pytest.raises(AttributeError):
            r.home_team = "Chelsea"


class TestDerivedViews:

    def test_identity_key(self):
        r = BetRecord.from_row(_row())
        assert r.identity_key == ("2024-03-09", "Arsenal", "Brentford", "Win", "1")

    def test_entry_key_extends_identity(self):
        r = BetRecord.from_row(_row())
        assert r.entry_key[:5] == r.identity_key
        assert r.entry_key[5:] == ("England", "Premier League", "Arsenal")

    def test_team_falls_back_to_home_then_away(self):
        assert BetRecord(home_team="A", away_team="B").team == "A"
        assert BetRecord(away_team="B").team == "B"
        assert BetRecord(team_included="C", home_team="A").team == "C"

    def test_valid_odds_skip_missing(self):
        r = BetRecord(odds_home=1.5, odds_draw=3.4)
        assert r.valid_odds == (1.5, 3.4)

    @pytest.mark.parametrize("team_included, selection, expected", [
        ("arsenal", "", SIDE_HOME),
        ("Brentford", "", SIDE_AWAY),
        ("", "Home", SIDE_HOME),
        ("", "2", SIDE_AWAY),
        ("", "X", SIDE_UNKNOWN),
    ])
    def test_side(self, team_included, selection, expected):
        r = BetRecord(home_team="Arsenal", away_team="Brentford",
                      team_included=team_included, bet_selection=selection)
        assert r.side == expected

    def test_backed_odds_needs_both_prices(self):
        assert BetRecord(odds_home=1.5).backed_odds is None
        assert BetRecord(odds_home=1.5, odds_away=5.0, bet_selection="2").backed_odds == 5.0
        assert BetRecord(odds_home=1.5, odds_away=5.0, bet_selection="X").backed_odds == 1.5
