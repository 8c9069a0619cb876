"""
Pattern mining over settled bets.

Five families of patterns are counted in a single pass:

* **Combination**: fixed templates over side, market, league and country.
  Split into success (win rate >= 70%) and failure (< 50%) lists.
* **Team**: ``team - market - side``.
* **League**: ``league - market``.
* **Odds**: price band of the selection crossed with market.
* **Bet slip**: slips grouped by ``BET_ID`` and bucketed by composition.
  A slip counts as a win for its bucket at >= 70% settled legs won and as a
  loss below 50%; in between it only adds to the total.

Every family drops keys below its minimum support before ranking.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Optional

from wager_engine.core.policy import PatternPolicy
from wager_engine.core.records import SIDE_AWAY, SIDE_HOME, BetRecord, BetResult

logger = logging.getLogger(__name__)

UNKNOWN = "Unknown"

COMBINATION_TEMPLATES: List[Callable[[Dict[str, str]], str]] = [
    lambda f: f"{f['side']} + {f['bet_type']}",
    lambda f: f"{f['bet_type']} + {f['league']}",
    lambda f: f"{f['side']} + {f['bet_type']} + {f['league']}",
    lambda f: f"{f['country']} + {f['bet_type']}",
    lambda f: f"{f['side']} + {f['league']}",
]


# ---------------------------------------------------------------------------
# Data structures
# ---------------------------------------------------------------------------

@dataclass
class Pattern:
    key: str
    wins: int = 0
    losses: int = 0
    total: int = 0
    attributes: Dict[str, object] = field(default_factory=dict)

    @property
    def win_rate(self) -> float:
        return self.wins / self.total * 100 if self.total else 0.0

    def record(self, is_win: bool) -> None:
        if is_win:
            self.wins += 1
        else:
            self.losses += 1
        self.total += 1

    def to_dict(self) -> Dict:
        return {
            "pattern": self.key,
            "wins": self.wins,
            "losses": self.losses,
            "total": self.total,
            "win_rate": round(self.win_rate, 1),
            **self.attributes,
        }


@dataclass
class PatternReport:
    success: List[Pattern]
    failure: List[Pattern]
    team: List[Pattern]
    league: List[Pattern]
    odds: List[Pattern]
    betslip: List[Pattern]
    completed_bets: int

    def to_dict(self) -> Dict:
        return {
            "completed_bets": self.completed_bets,
            "success_patterns": [p.to_dict() for p in self.success],
            "failure_patterns": [p.to_dict() for p in self.failure],
            "team_patterns": [p.to_dict() for p in self.team],
            "league_patterns": [p.to_dict() for p in self.league],
            "odds_patterns": [p.to_dict() for p in self.odds],
            "betslip_patterns": [p.to_dict() for p in self.betslip],
        }


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def odds_band(odds: float) -> Optional[str]:
    if odds < 1.0:
        return None
    if odds < 1.5:
        return "1.0-1.5"
    if odds < 2.0:
        return "1.5-2.0"
    if odds < 3.0:
        return "2.0-3.0"
    return "3.0+"


def _bump(table: Dict[str, Pattern], key: str, is_win: bool, **attributes) -> None:
    pattern = table.get(key)
    if pattern is None:
        pattern = table[key] = Pattern(key=key, attributes=attributes)
    pattern.record(is_win)


def _supported(table: Dict[str, Pattern], min_support: int) -> List[Pattern]:
    return [p for p in table.values() if p.total >= min_support]


def _by_win_rate(patterns: List[Pattern], limit: int) -> List[Pattern]:
    return sorted(patterns, key=lambda p: p.win_rate, reverse=True)[:limit]


# ---------------------------------------------------------------------------
# Mining
# ---------------------------------------------------------------------------

def mine_betslip_patterns(
    records: Iterable[BetRecord],
    policy: PatternPolicy = PatternPolicy(),
) -> List[Pattern]:
    """Bucket slips by composition of their settled legs."""
    slips: Dict[str, List[BetRecord]] = {}
    for record in records:
        slips.setdefault(record.bet_id, []).append(record)

    table: Dict[str, Pattern] = {}
    for legs in slips.values():
        settled = [r for r in legs if r.is_settled]
        if not settled:
            continue
        wins = sum(1 for r in settled if r.result is BetResult.WIN)
        slip_rate = wins / len(settled) * 100
        n_types = len({r.bet_type for r in settled})
        sides = {r.side for r in settled}
        mixed = SIDE_HOME in sides and SIDE_AWAY in sides
        key = f"Bets: {len(settled)}, Types: {n_types}, Home/Away Mix: {str(mixed).lower()}"

        pattern = table.get(key)
        if pattern is None:
            pattern = table[key] = Pattern(
                key=key,
                attributes={"legs": len(settled), "bet_types": n_types, "home_away_mix": mixed},
            )
        if slip_rate >= policy.slip_win_rate:
            pattern.wins += 1
        elif slip_rate < policy.slip_loss_rate:
            pattern.losses += 1
        pattern.total += 1

    return _by_win_rate(_supported(table, policy.betslip_min_support), policy.max_betslip)


def mine_patterns(
    records: Iterable[BetRecord],
    policy: PatternPolicy = PatternPolicy(),
) -> PatternReport:
    """Mine every pattern family from ``records``.

    Only WIN/LOSS records feed the combination, team, league and odds
    families; bet-slip grouping sees all records but scores settled legs.
    """
    records = list(records)
    combos: Dict[str, Pattern] = {}
    teams: Dict[str, Pattern] = {}
    leagues: Dict[str, Pattern] = {}
    odds: Dict[str, Pattern] = {}

    completed = [r for r in records if r.is_settled]
    for record in completed:
        is_win = record.result is BetResult.WIN
        fields = {
            "side": record.side,
            "bet_type": record.bet_type or UNKNOWN,
            "league": record.league or UNKNOWN,
            "country": record.country or UNKNOWN,
        }
        for template in COMBINATION_TEMPLATES:
            _bump(combos, template(fields), is_win)

        team = record.team_included or UNKNOWN
        _bump(
            teams, f"{team} - {fields['bet_type']} - {fields['side']}", is_win,
            team=team, bet_type=fields["bet_type"], side=fields["side"],
        )
        _bump(
            leagues, f"{fields['league']} - {fields['bet_type']}", is_win,
            league=fields["league"], bet_type=fields["bet_type"],
        )

        price = record.backed_odds
        band = odds_band(price) if price else None
        if band:
            _bump(
                odds, f"{band} - {fields['bet_type']}", is_win,
                odds_range=band, bet_type=fields["bet_type"],
            )

    combined = _supported(combos, policy.min_support)
    success = sorted(
        (p for p in combined if p.win_rate >= policy.success_win_rate),
        key=lambda p: p.win_rate, reverse=True,
    )[: policy.max_success]
    failure = sorted(
        (p for p in combined if p.win_rate < policy.failure_win_rate),
        key=lambda p: p.win_rate,
    )[: policy.max_failure]

    report = PatternReport(
        success=success,
        failure=failure,
        team=_by_win_rate(_supported(teams, policy.min_support), policy.max_team),
        league=_by_win_rate(_supported(leagues, policy.min_support), policy.max_league),
        odds=_by_win_rate(_supported(odds, policy.min_support), policy.max_odds),
        betslip=mine_betslip_patterns(records, policy),
        completed_bets=len(completed),
    )
    logger.info(
        "mine_patterns: %d completed bets -> %d success, %d failure, %d team patterns",
        len(completed), len(report.success), len(report.failure), len(report.team),
    )
    return report
