"""
Entity aggregation: per-team, per-league and per-country statistics.

Every aggregate is rebuilt from scratch from the deduplicated record set on
each call; nothing here is updated incrementally.

Win rates are always ``wins / (wins + losses) * 100``.  Pending, drawn and
unrecognised results are counted separately and never depress the rate.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

from wager_engine.core.policy import PSEUDO_TEAMS, RankingPolicy
from wager_engine.core.records import BetRecord, BetResult

logger = logging.getLogger(__name__)

#: Column headers that end up as data when a sheet is pasted twice.
HEADER_TEAM_NAMES = frozenset({"team", "teams", "team_included", "home_team", "away_team"})
HEADER_LEAGUE_NAMES = frozenset({"league", "leagues"})
HEADER_COUNTRY_NAMES = frozenset({"country", "countries"})

UNKNOWN = "Unknown"

TeamKey = Tuple[str, str, str]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _win_rate(wins: int, losses: int) -> float:
    """Percentage of settled bets won; 0 when nothing has settled."""
    settled = wins + losses
    return wins / settled * 100 if settled else 0.0


def team_key(team: str, country: str, league: str) -> TeamKey:
    return (team.lower(), country.lower(), league.lower())


def is_artifact_team(name: str, excluded: Iterable[str] = PSEUDO_TEAMS) -> bool:
    """True for header rows and bet-type pseudo-teams such as "Over 1.5"."""
    lowered = name.strip().lower()
    return not lowered or lowered in HEADER_TEAM_NAMES or lowered in excluded


def mean_valid_odds(record: BetRecord) -> Optional[float]:
    odds = record.valid_odds
    return sum(odds) / len(odds) if odds else None


# ---------------------------------------------------------------------------
# Data structures
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class BetTypeBreakdown:
    """Settled record of one team in one market."""

    bet_type: str
    wins: int = 0
    losses: int = 0
    total: int = 0

    @property
    def total_with_result(self) -> int:
        return self.wins + self.losses

    @property
    def win_rate(self) -> float:
        return _win_rate(self.wins, self.losses)

    def to_dict(self) -> Dict:
        return {
            "bet_type": self.bet_type,
            "wins": self.wins,
            "losses": self.losses,
            "total": self.total,
            "total_with_result": self.total_with_result,
            "win_rate": round(self.win_rate, 1),
        }


@dataclass(frozen=True)
class TeamStat:
    """Aggregate for one ``(team, country, league)`` triple.

    ``composite_score`` is 0 until the ranking service fills it in.
    """

    team: str
    country: str
    league: str
    total_bets: int
    wins: int
    losses: int
    pending: int
    recent_wins: int
    recent_bets: int
    bet_type_breakdown: Dict[str, BetTypeBreakdown] = field(default_factory=dict)
    composite_score: float = 0.0

    @property
    def key(self) -> TeamKey:
        return team_key(self.team, self.country, self.league)

    @property
    def win_rate(self) -> float:
        return _win_rate(self.wins, self.losses)

    @property
    def recent_win_rate(self) -> float:
        return self.recent_wins / self.recent_bets * 100 if self.recent_bets else 0.0

    def breakdown_for(self, bet_type: str, exact: bool = False) -> Optional[BetTypeBreakdown]:
        """Breakdown for a market name, ignoring case.

        An equal name always wins.  Unless ``exact`` is set, a market whose
        name contains ``bet_type`` is accepted next.
        """
        needle = bet_type.strip().lower()
        if not needle:
            return None
        for name, breakdown in self.bet_type_breakdown.items():
            if name.lower() == needle:
                return breakdown
        if exact:
            return None
        for name, breakdown in self.bet_type_breakdown.items():
            if needle in name.lower():
                return breakdown
        return None

    def to_dict(self) -> Dict:
        return {
            "team": self.team,
            "country": self.country,
            "league": self.league,
            "total_bets": self.total_bets,
            "wins": self.wins,
            "losses": self.losses,
            "pending": self.pending,
            "win_rate": round(self.win_rate, 1),
            "recent_wins": self.recent_wins,
            "recent_bets": self.recent_bets,
            "recent_win_rate": round(self.recent_win_rate, 1),
            "composite_score": round(self.composite_score, 2),
            "bet_type_breakdown": [b.to_dict() for b in self.bet_type_breakdown.values()],
        }


@dataclass(frozen=True)
class GroupStat:
    """Aggregate for a league or a country."""

    name: str
    country: str
    wins: int
    losses: int
    pending: int
    avg_odds: float

    @property
    def total(self) -> int:
        return self.wins + self.losses + self.pending

    @property
    def win_rate(self) -> float:
        return _win_rate(self.wins, self.losses)

    def to_dict(self) -> Dict:
        return {
            "name": self.name,
            "country": self.country,
            "wins": self.wins,
            "losses": self.losses,
            "pending": self.pending,
            "total": self.total,
            "win_rate": round(self.win_rate, 1),
            "avg_odds": round(self.avg_odds, 2),
        }


@dataclass(frozen=True)
class LeagueStat(GroupStat):
    @property
    def display_name(self) -> str:
        return f"{self.name} ({self.country})"


@dataclass(frozen=True)
class CountryStat(GroupStat):
    pass


# ---------------------------------------------------------------------------
# Team aggregation
# ---------------------------------------------------------------------------

def _recent(records: List[BetRecord], window: int) -> List[BetRecord]:
    # Undated records sort last; ties keep input order.
    ordered = sorted(records, key=lambda r: r.date.toordinal() if r.date else 0, reverse=True)
    return ordered[:window]


def _breakdown(records: List[BetRecord]) -> Dict[str, BetTypeBreakdown]:
    counts: Dict[str, List[int]] = {}
    for record in records:
        c = counts.setdefault(record.bet_type or UNKNOWN, [0, 0, 0])
        c[2] += 1
        if record.result is BetResult.WIN:
            c[0] += 1
        elif record.result is BetResult.LOSS:
            c[1] += 1
    return {
        name: BetTypeBreakdown(bet_type=name, wins=w, losses=l, total=t)
        for name, (w, l, t) in counts.items()
    }


def group_by_team(
    records: Iterable[BetRecord],
    policy: RankingPolicy = RankingPolicy(),
) -> Dict[TeamKey, List[BetRecord]]:
    """Group records by resolved team, skipping artifacts and incomplete rows."""
    groups: Dict[TeamKey, List[BetRecord]] = {}
    skipped = 0
    for record in records:
        team = record.team
        if not team or not record.country or not record.league:
            skipped += 1
            continue
        if is_artifact_team(team, policy.excluded_teams):
            skipped += 1
            continue
        groups.setdefault(team_key(team, record.country, record.league), []).append(record)
    if skipped:
        logger.debug("group_by_team: skipped %d rows without a usable team", skipped)
    return groups


def build_team_stats(
    records: Iterable[BetRecord],
    policy: RankingPolicy = RankingPolicy(),
) -> List[TeamStat]:
    """One :class:`TeamStat` per team triple, in first-seen order.

    The team's display name, country and league are taken from the first
    record seen for the triple.
    """
    stats: List[TeamStat] = []
    for group in group_by_team(records, policy).values():
        first = group[0]
        wins = sum(1 for r in group if r.result is BetResult.WIN)
        losses = sum(1 for r in group if r.result is BetResult.LOSS)
        recent = _recent(group, policy.recent_window)
        stats.append(
            TeamStat(
                team=first.team,
                country=first.country,
                league=first.league,
                total_bets=len(group),
                wins=wins,
                losses=losses,
                pending=len(group) - wins - losses,
                recent_wins=sum(1 for r in recent if r.result is BetResult.WIN),
                recent_bets=len(recent),
                bet_type_breakdown=_breakdown(group),
            )
        )
    logger.info("build_team_stats: %d teams aggregated", len(stats))
    return stats


def index_team_stats(stats: Iterable[TeamStat]) -> Dict[TeamKey, TeamStat]:
    return {s.key: s for s in stats}


# ---------------------------------------------------------------------------
# League / country aggregation
# ---------------------------------------------------------------------------

class _Tally:
    __slots__ = ("name", "country", "wins", "losses", "pending", "odds_sum", "odds_count")

    def __init__(self, name: str, country: str):
        self.name = name
        self.country = country
        self.wins = self.losses = self.pending = self.odds_count = 0
        self.odds_sum = 0.0

    def add(self, record: BetRecord) -> None:
        if record.result is BetResult.WIN:
            self.wins += 1
        elif record.result is BetResult.LOSS:
            self.losses += 1
        else:
            self.pending += 1
        avg = mean_valid_odds(record)
        if avg is not None:
            self.odds_sum += avg
            self.odds_count += 1

    @property
    def avg_odds(self) -> float:
        return self.odds_sum / self.odds_count if self.odds_count else 0.0


def build_league_stats(records: Iterable[BetRecord]) -> List[LeagueStat]:
    """League aggregates keyed by ``(league, country)``, best win rate first."""
    tallies: Dict[Tuple[str, str], _Tally] = {}
    for record in records:
        if not record.league or record.league.lower() in HEADER_LEAGUE_NAMES:
            continue
        country = record.country or UNKNOWN
        key = (record.league, country)
        if key not in tallies:
            tallies[key] = _Tally(record.league, country)
        tallies[key].add(record)
    stats = [
        LeagueStat(t.name, t.country, t.wins, t.losses, t.pending, t.avg_odds)
        for t in tallies.values()
    ]
    stats.sort(key=lambda s: s.win_rate, reverse=True)
    return stats


def build_country_stats(records: Iterable[BetRecord]) -> List[CountryStat]:
    """Country aggregates, best win rate first."""
    tallies: Dict[str, _Tally] = {}
    for record in records:
        if not record.country or record.country.lower() in HEADER_COUNTRY_NAMES:
            continue
        if record.country not in tallies:
            tallies[record.country] = _Tally(record.country, record.country)
        tallies[record.country].add(record)
    stats = [
        CountryStat(t.name, t.country, t.wins, t.losses, t.pending, t.avg_odds)
        for t in tallies.values()
    ]
    stats.sort(key=lambda s: s.win_rate, reverse=True)
    return stats
