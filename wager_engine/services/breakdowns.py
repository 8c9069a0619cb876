"""
Secondary breakdowns: best/worst performers, head-to-head matchups,
odds-range performance and bet-slip summaries.

All functions return plain dicts ready for JSON serialization.
"""

import functools
import logging
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from wager_engine.core.records import BetRecord, BetResult, NO_BET_ID
from wager_engine.services.aggregation import CountryStat, GroupStat, LeagueStat

logger = logging.getLogger(__name__)

MAJOR_LEAGUES = (
    "premier league",
    "la liga",
    "bundesliga",
    "serie a",
    "ligue 1",
    "champions league",
    "europa league",
    "conference league",
)

#: Upper bound (exclusive) and label of each odds band.
ODDS_RANGES: Sequence[Tuple[float, str]] = (
    (1.5, "1.0-1.49"),
    (2.0, "1.5-1.99"),
    (2.5, "2.0-2.49"),
    (3.0, "2.5-2.99"),
    (4.0, "3.0-3.99"),
    (5.0, "4.0-4.99"),
    (6.0, "5.0-5.99"),
    (8.0, "6.0-7.99"),
    (10.0, "8.0-9.99"),
    (float("inf"), "10.0+"),
)

#: Markets left out of the filtered odds view.
PROP_MARKETS = ("over 1.5", "over 0.5", "both")


def _win_rate(wins: int, total: int) -> float:
    return wins / total * 100 if total > 0 else 0.0


# ---------------------------------------------------------------------------
# Best / worst performers
# ---------------------------------------------------------------------------

def _is_major(league: LeagueStat) -> bool:
    name = league.name.lower()
    return any(major in name for major in MAJOR_LEAGUES)


def _best_league_order(a: LeagueStat, b: LeagueStat) -> int:
    a_major, b_major = _is_major(a), _is_major(b)
    if a_major and not b_major and a.win_rate >= 50:
        return -1
    if b_major and not a_major and b.win_rate >= 50:
        return 1
    diff = b.win_rate - a.win_rate
    if abs(diff) > 5:
        return -1 if diff < 0 else 1
    if a_major != b_major:
        return -1 if a_major else 1
    return b.total - a.total


def _close_rates_order(tolerance: float, ascending: bool):
    def order(a: GroupStat, b: GroupStat) -> int:
        diff = a.win_rate - b.win_rate if ascending else b.win_rate - a.win_rate
        if abs(diff) > tolerance:
            return -1 if diff < 0 else 1
        return b.total - a.total
    return order


def _first(items: List[GroupStat], order) -> Optional[GroupStat]:
    if not items:
        return None
    return sorted(items, key=functools.cmp_to_key(order))[0]


def best_performers(
    leagues: Sequence[LeagueStat],
    countries: Sequence[CountryStat],
    min_league_bets: int = 3,
    min_country_bets: int = 5,
) -> Dict:
    """
    Pick headline leagues and countries.

    Best league favours the major European competitions when they win at
    least half their settled bets; close win rates (within 5 points) fall
    back to volume.  Countries need more bets and use a 10-point band.
    When nothing meets the minimum the first/last entry of the input
    (already sorted by win rate) is used.
    """
    eligible_leagues = [l for l in leagues if l.total >= min_league_bets]
    eligible_countries = [c for c in countries if c.total >= min_country_bets]

    best_league = _first(eligible_leagues, _best_league_order) or (leagues[0] if leagues else None)
    worst_league = _first(eligible_leagues, _close_rates_order(5, ascending=True)) or (
        leagues[-1] if leagues else None
    )
    best_country = _first(eligible_countries, _close_rates_order(10, ascending=False)) or (
        countries[0] if countries else None
    )
    worst_country = countries[-1] if countries else None
    most_bets = max(leagues, key=lambda l: l.total, default=None)
    highest_odds = max(leagues, key=lambda l: l.avg_odds, default=None)

    def _d(stat: Optional[GroupStat]) -> Optional[Dict]:
        return stat.to_dict() if stat is not None else None

    return {
        "best_league": _d(best_league),
        "worst_league": _d(worst_league),
        "best_country": _d(best_country),
        "worst_country": _d(worst_country),
        "most_bets_league": _d(most_bets),
        "highest_odds_league": _d(highest_odds),
    }


# ---------------------------------------------------------------------------
# Head-to-head
# ---------------------------------------------------------------------------

def head_to_head(records: Iterable[BetRecord]) -> List[Dict]:
    """Settled bets grouped by fixture pairing, most-bet pairings first.

    Pairings are keyed by country, league and the alphabetically sorted
    lower-cased team names, so home and away legs land together.  Pairings
    with a single bet are dropped.
    """
    matchups: Dict[Tuple[str, str, str, str], Dict] = {}
    for r in records:
        home, away = r.home_team.lower(), r.away_team.lower()
        if not home or not away or not r.is_settled:
            continue
        team1, team2 = sorted((home, away))
        key = (r.country.lower(), r.league.lower(), team1, team2)
        m = matchups.get(key)
        if m is None:
            m = matchups[key] = {
                "country": r.country,
                "league": r.league,
                "team1": team1,
                "team2": team2,
                "bets": [],
                "total_bets": 0,
                "wins": 0,
                "losses": 0,
            }
        m["bets"].append({
            "date": r.date_key,
            "home_team": r.home_team,
            "away_team": r.away_team,
            "bet_type": r.bet_type,
            "bet_selection": r.bet_selection,
            "team_included": r.team_included,
            "result": r.result.value,
            "odds_home": r.odds_home,
            "odds_away": r.odds_away,
        })
        m["total_bets"] += 1
        if r.result is BetResult.WIN:
            m["wins"] += 1
        else:
            m["losses"] += 1

    result = []
    for m in matchups.values():
        if m["total_bets"] <= 1:
            continue
        m["win_rate"] = round(_win_rate(m["wins"], m["wins"] + m["losses"]), 1)
        result.append(m)
    result.sort(key=lambda m: m["total_bets"], reverse=True)
    return result


# ---------------------------------------------------------------------------
# Odds ranges
# ---------------------------------------------------------------------------

def headline_odds(record: BetRecord) -> float:
    """Mean of the home and away prices, or whichever one exists."""
    home, away = record.odds_home or 0.0, record.odds_away or 0.0
    if home > 0 and away > 0:
        return (home + away) / 2
    return max(home, away)


def odds_range_label(odds: float) -> Optional[str]:
    if odds <= 0:
        return None
    for upper, label in ODDS_RANGES:
        if odds < upper:
            return label
    return None


def _is_prop(record: BetRecord) -> bool:
    fields = (record.bet_type.lower(), record.bet_selection.lower(), record.team_included.lower())
    return any(market in text for market in PROP_MARKETS for text in fields)


def odds_ranges(records: Iterable[BetRecord], exclude_props: bool = False) -> List[Dict]:
    """Win rate per odds band, cheapest band first.

    With ``exclude_props`` the goal-line and both-teams-to-score markets are
    left out, since their prices are not 1X2 prices.
    """
    bands: Dict[str, Dict] = {}
    for r in records:
        if exclude_props and _is_prop(r):
            continue
        odds = headline_odds(r)
        label = odds_range_label(odds)
        if label is None:
            continue
        b = bands.setdefault(
            label, {"range": label, "total": 0, "wins": 0, "losses": 0, "pending": 0, "odds_sum": 0.0}
        )
        b["total"] += 1
        b["odds_sum"] += odds
        if r.result is BetResult.WIN:
            b["wins"] += 1
        elif r.result is BetResult.LOSS:
            b["losses"] += 1
        else:
            b["pending"] += 1

    result = []
    for b in bands.values():
        odds_sum = b.pop("odds_sum")
        b["win_rate"] = round(_win_rate(b["wins"], b["wins"] + b["losses"]), 1)
        b["avg_odds"] = round(odds_sum / b["total"], 2)
        result.append(b)
    result.sort(key=lambda b: b["avg_odds"])
    return result


# ---------------------------------------------------------------------------
# Bet slips
# ---------------------------------------------------------------------------

def bet_slips(records: Iterable[BetRecord]) -> List[Dict]:
    """One summary per slip, newest first then best win rate.

    Records without a real ``bet_id`` are not grouped.
    """
    slips: Dict[str, Dict] = {}
    for r in records:
        if not r.bet_id or r.bet_id == NO_BET_ID:
            continue
        s = slips.get(r.bet_id)
        if s is None:
            s = slips[r.bet_id] = {
                "bet_id": r.bet_id,
                "date": r.date,
                "total_bets": 0,
                "wins": 0,
                "losses": 0,
                "pending": 0,
            }
        s["total_bets"] += 1
        if r.result is BetResult.WIN:
            s["wins"] += 1
        elif r.result is BetResult.LOSS:
            s["losses"] += 1
        elif r.result is BetResult.PENDING:
            s["pending"] += 1

    result = []
    for s in slips.values():
        s["win_rate"] = round(_win_rate(s["wins"], s["wins"] + s["losses"]), 1)
        s["status"] = "Pending" if s["pending"] else "Complete"
        result.append(s)
    result.sort(key=lambda s: (s["date"].toordinal() if s["date"] else 0, s["win_rate"]), reverse=True)
    for s in result:
        s["date"] = s["date"].isoformat() if s["date"] else ""
    return result


def bet_slip_summary(records: Iterable[BetRecord]) -> Dict:
    slips = bet_slips(records)
    if not slips:
        return {
            "total_slips": 0,
            "overall_success_rate": 0.0,
            "average_bets_per_slip": 0.0,
            "best_slip": None,
        }
    total_bets = sum(s["total_bets"] for s in slips)
    wins = sum(s["wins"] for s in slips)
    losses = sum(s["losses"] for s in slips)
    settled = [s for s in slips if s["wins"] + s["losses"] > 0]
    best = max(settled, key=lambda s: (s["win_rate"], s["total_bets"]), default=None)
    return {
        "total_slips": len(slips),
        "overall_success_rate": round(_win_rate(wins, wins + losses), 1),
        "average_bets_per_slip": round(total_bets / len(slips), 2),
        "best_slip": best["bet_id"] if best else None,
    }
