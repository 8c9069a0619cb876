"""Historical wager records: the immutable input to every analytics service.

A :class:`BetRecord` is one line of a bet sheet: the fixture, the market that
was backed, the odds on offer and the settled result.  Records are built from
spreadsheet-style rows by :meth:`BetRecord.from_row`, which normalizes the
loosely-typed cell values once so that downstream services never re-parse
strings.

Normalization rules
-------------------
* Numeric cells that are empty or unparseable become ``None`` ("no data").
  Odds that are zero or negative are also treated as missing.
* The free-text result is lower-cased and matched by substring: anything
  containing ``"win"`` is a WIN, ``"loss"`` a LOSS, ``"draw"`` a DRAW.  An
  empty cell or ``"pending"`` is PENDING and every other value is UNKNOWN.
  Only WIN and LOSS are *settled*; everything else is excluded from rates.
* Missing text fields are empty strings, never ``None``, so identity keys
  can be built without guards.  Two records missing the same fields may
  therefore collide on their identity key; that is accepted behaviour.

Run tests with::

    pytest tests/test_records.py -v
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Any, Final, Mapping, Optional, Tuple

# ---------------------------------------------------------------------------
# Module-level constants
# ---------------------------------------------------------------------------

#: Slip identifier used when a row carries no ``BET_ID``.
NO_BET_ID: Final[str] = "NO_ID"

#: Accepted textual date layouts, tried in order.
_DATE_FORMATS: Final[Tuple[str, ...]] = (
    "%Y-%m-%d",
    "%Y/%m/%d",
    "%d/%m/%Y",
    "%d.%m.%Y",
    "%Y-%m-%dT%H:%M:%S",
)

#: Side labels shared by the pattern miner and the recommendation engine.
SIDE_HOME: Final[str] = "Home"
SIDE_AWAY: Final[str] = "Away"
SIDE_UNKNOWN: Final[str] = "Unknown"


# ---------------------------------------------------------------------------
# Result normalization
# ---------------------------------------------------------------------------


class BetResult(str, Enum):
    """Normalized outcome of a single wager."""

    WIN = "win"
    LOSS = "loss"
    DRAW = "draw"
    PENDING = "pending"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, raw: Any) -> "BetResult":
        """Map a free-text result cell to a :class:`BetResult`.

        Matching is by lower-cased substring, so ``"WIN (HT)"`` and
        ``"win"`` both resolve to :attr:`WIN`.  ``"Won"`` does **not**
        contain ``"win"`` and resolves to :attr:`UNKNOWN`.
        """
        if isinstance(raw, BetResult):
            return raw
        text = "" if raw is None else str(raw).strip().lower()
        if not text or text == "pending":
            return cls.PENDING
        if "win" in text:
            return cls.WIN
        if "loss" in text:
            return cls.LOSS
        if "draw" in text:
            return cls.DRAW
        return cls.UNKNOWN

    @property
    def is_settled(self) -> bool:
        return self in (BetResult.WIN, BetResult.LOSS)


# ---------------------------------------------------------------------------
# Cell parsing helpers
# ---------------------------------------------------------------------------


def parse_float(value: Any) -> Optional[float]:
    """Parse a numeric cell, returning ``None`` for blanks and garbage.

    Accepts a decimal comma (``"1,85"``) because European bet sheets use it.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        result = float(value)
    else:
        text = str(value).strip().replace(",", ".")
        if not text:
            return None
        try:
            result = float(text)
        except ValueError:
            return None
    if math.isnan(result) or math.isinf(result):
        return None
    return result


def parse_int(value: Any) -> Optional[int]:
    number = parse_float(value)
    return None if number is None else int(number)


def parse_odds(value: Any) -> Optional[float]:
    """Decimal odds; zero or negative prices count as missing."""
    number = parse_float(value)
    if number is None or number <= 0:
        return None
    return number


def parse_date(value: Any) -> Optional[date]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return None


def _text(value: Any) -> str:
    return "" if value is None else str(value).strip()


def _cell(row: Mapping[str, Any], key: str) -> Any:
    """Look up a sheet column by its upper-case name, then lower-case."""
    value = row.get(key)
    if value is None:
        value = row.get(key.lower())
    return value


# ---------------------------------------------------------------------------
# BetRecord
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class BetRecord:
    """One historical wager line.  Immutable once ingested.

    Attributes:
        date: Fixture date, ``None`` when the sheet cell could not be parsed.
        country, league: Competition identifiers, free text.
        home_team, away_team: Fixture participants.
        bet_type: Market name, e.g. ``"Win"`` or ``"Double Chance"``.
        bet_selection: Selection inside the market, e.g. ``"1"`` or ``"X2"``.
        team_included: The side actually backed.  May be empty for
            fixture-level markets such as totals.
        odds_home, odds_away, odds_draw: Decimal 1X2 prices (``ODDS1``,
            ``ODDS2``, ``ODDSX``).
        home_score, away_score: Final score, ``None`` while unplayed.
        result: Normalized outcome.
        bet_id: Slip identifier grouping legs of the same accumulator.

        --- League table context ---
        home_position, away_position: Table positions at kick-off.
        total_teams: Number of teams in the league.
        home_games_played, away_games_played: Matches played at kick-off.
    """

    date: Optional[date] = None
    country: str = ""
    league: str = ""
    home_team: str = ""
    away_team: str = ""
    bet_type: str = ""
    bet_selection: str = ""
    team_included: str = ""
    odds_home: Optional[float] = None
    odds_away: Optional[float] = None
    odds_draw: Optional[float] = None
    home_score: Optional[int] = None
    away_score: Optional[int] = None
    result: BetResult = BetResult.PENDING
    bet_id: str = NO_BET_ID

    # League table context
    home_position: Optional[int] = None
    away_position: Optional[int] = None
    total_teams: Optional[int] = None
    home_games_played: Optional[int] = None
    away_games_played: Optional[int] = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "BetRecord":
        """Build a record from a bet-sheet row keyed by column name."""
        if not isinstance(row, Mapping):
            raise TypeError(f"Bet row must be a mapping, got {type(row).__name__}")
        return cls(
            date=parse_date(_cell(row, "DATE")),
            country=_text(_cell(row, "COUNTRY")),
            league=_text(_cell(row, "LEAGUE")),
            home_team=_text(_cell(row, "HOME_TEAM")),
            away_team=_text(_cell(row, "AWAY_TEAM")),
            bet_type=_text(_cell(row, "BET_TYPE")),
            bet_selection=_text(_cell(row, "BET_SELECTION")),
            team_included=_text(_cell(row, "TEAM_INCLUDED")),
            odds_home=parse_odds(_cell(row, "ODDS1")),
            odds_away=parse_odds(_cell(row, "ODDS2")),
            odds_draw=parse_odds(_cell(row, "ODDSX")),
            home_score=parse_int(_cell(row, "HOME_SCORE")),
            away_score=parse_int(_cell(row, "AWAY_SCORE")),
            result=BetResult.parse(_cell(row, "RESULT")),
            bet_id=_text(_cell(row, "BET_ID")) or NO_BET_ID,
            home_position=parse_int(_cell(row, "HOME_TEAM_POSITION_NUMBER")),
            away_position=parse_int(_cell(row, "AWAY_TEAM_POSITION_NUMBER")),
            total_teams=parse_int(_cell(row, "TOTAL_TEAMS_IN_LEAGUE")),
            home_games_played=parse_int(_cell(row, "HOME_TEAM_GAMES_PLAYED")),
            away_games_played=parse_int(_cell(row, "AWAY_TEAM_GAMES_PLAYED")),
        )

    # ------------------------------------------------------------------
    # Derived views
    # ------------------------------------------------------------------

    @property
    def team(self) -> str:
        """The backed team: ``team_included``, else home, else away."""
        return self.team_included or self.home_team or self.away_team

    @property
    def is_settled(self) -> bool:
        return self.result.is_settled

    @property
    def date_key(self) -> str:
        return self.date.isoformat() if self.date else ""

    @property
    def identity_key(self) -> Tuple[str, str, str, str, str]:
        return (
            self.date_key,
            self.home_team,
            self.away_team,
            self.bet_type,
            self.bet_selection,
        )

    @property
    def entry_key(self) -> Tuple[str, ...]:
        """Wider key used when merging freshly entered bets into a sheet."""
        return self.identity_key + (self.country, self.league, self.team_included)

    @property
    def valid_odds(self) -> Tuple[float, ...]:
        return tuple(
            o for o in (self.odds_home, self.odds_away, self.odds_draw)
            if o is not None and o > 0
        )

    @property
    def has_score(self) -> bool:
        return self.home_score is not None and self.away_score is not None

    @property
    def side(self) -> str:
        """Whether the backed team played at home or away.

        Compares ``team_included`` case-insensitively with both participants
        and falls back to the selection text (``"home"``/``"1"`` or
        ``"away"``/``"2"``) when it matches neither.
        """
        backed = self.team_included.lower()
        if backed and backed == self.home_team.lower():
            return SIDE_HOME
        if backed and backed == self.away_team.lower():
            return SIDE_AWAY
        return _side_from_selection(self.bet_selection)

    @property
    def backed_odds(self) -> Optional[float]:
        """1X2 price relevant to the selection.

        Requires both home and away prices; the selection text decides which
        one applies, falling back to the home price.
        """
        if not (self.odds_home and self.odds_away):
            return None
        side = _side_from_selection(self.bet_selection)
        if side == SIDE_AWAY:
            return self.odds_away
        return self.odds_home


def _side_from_selection(selection: str) -> str:
    text = selection.lower()
    if "home" in text or "1" in text:
        return SIDE_HOME
    if "away" in text or "2" in text:
        return SIDE_AWAY
    return SIDE_UNKNOWN
