"""
Composite team ranking.

    composite = 0.5 · win_rate
              + 0.3 · min(wins · 2, 100)
              + 0.2 · recent_win_rate

All three components are on a 0-100 scale, so the composite is too (plus at
most 10 bonus points in a bet-type ranking).  Weights and cut-offs come from
:class:`~wager_engine.core.policy.RankingPolicy`.
"""

import logging
from dataclasses import replace
from typing import Dict, Iterable, List

from wager_engine.core.policy import RankingPolicy
from wager_engine.core.records import BetRecord
from wager_engine.services.aggregation import TeamStat, build_team_stats

logger = logging.getLogger(__name__)


def composite_score(
    win_rate: float,
    wins: int,
    recent_win_rate: float,
    policy: RankingPolicy = RankingPolicy(),
) -> float:
    volume = min(wins * policy.volume_per_win, policy.volume_cap)
    return (
        policy.win_rate_weight * win_rate
        + policy.volume_weight * volume
        + policy.recent_weight * recent_win_rate
    )


def specialization_bonus(settled: int, policy: RankingPolicy = RankingPolicy()) -> float:
    if settled < policy.specialization_floor:
        return 0.0
    return min(policy.specialization_cap, (settled - policy.specialization_floor) / policy.specialization_step)


def volume_bonus(settled: int, policy: RankingPolicy = RankingPolicy()) -> float:
    if settled < policy.volume_bonus_floor:
        return 0.0
    return min(policy.volume_bonus_cap, (settled - policy.volume_bonus_floor) / policy.volume_bonus_step)


def rank_teams(stats: Iterable[TeamStat], policy: RankingPolicy = RankingPolicy()) -> List[TeamStat]:
    """Score, sort and truncate to ``policy.top_n``.

    Teams with fewer than ``policy.min_total_bets`` bets are dropped.  Ties
    keep aggregation order.
    """
    scored = [
        replace(s, composite_score=composite_score(s.win_rate, s.wins, s.recent_win_rate, policy))
        for s in stats
        if s.total_bets >= policy.min_total_bets
    ]
    scored.sort(key=lambda s: s.composite_score, reverse=True)
    return scored[: policy.top_n]


def rank_teams_for_bet_type(
    stats: Iterable[TeamStat],
    bet_type: str,
    policy: RankingPolicy = RankingPolicy(),
) -> List[TeamStat]:
    """Ranking restricted to one market.

    Only teams with at least ``policy.min_bet_type_settled`` settled bets of
    ``bet_type`` qualify.  Their wins, losses and win rate are replaced by
    the market sub-aggregate before scoring, and the specialization and
    volume bonuses are added on top.
    """
    ranked: List[TeamStat] = []
    for s in stats:
        breakdown = s.breakdown_for(bet_type, exact=True)
        if breakdown is None or breakdown.total_with_result < policy.min_bet_type_settled:
            continue
        settled = breakdown.total_with_result
        score = (
            composite_score(breakdown.win_rate, breakdown.wins, s.recent_win_rate, policy)
            + specialization_bonus(settled, policy)
            + volume_bonus(settled, policy)
        )
        ranked.append(
            replace(
                s,
                wins=breakdown.wins,
                losses=breakdown.losses,
                composite_score=score,
            )
        )
    ranked.sort(key=lambda s: s.composite_score, reverse=True)
    logger.debug("rank_teams_for_bet_type(%s): %d qualifying teams", bet_type, len(ranked))
    return ranked[: policy.top_n_bet_type]


def top_teams(records: Iterable[BetRecord], policy: RankingPolicy = RankingPolicy()) -> List[TeamStat]:
    """Aggregate and rank in one call."""
    ranked = rank_teams(build_team_stats(records, policy), policy)
    logger.info("top_teams: %d teams ranked", len(ranked))
    return ranked


def bet_types(stats: Iterable[TeamStat]) -> List[str]:
    """Distinct market names seen across teams, sorted."""
    names: Dict[str, None] = {}
    for s in stats:
        for name in s.bet_type_breakdown:
            names[name] = None
    return sorted(names)
