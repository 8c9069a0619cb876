"""
Full analysis run over a bet sheet.

Workflow:
    1. Convert rows to BetRecords and drop duplicate wager lines
    2. Aggregate per team, rank the top teams
    3. Mine success/failure, team, league, odds and slip patterns
    4. League and country breakdowns, best performers, head-to-head,
       odds ranges and slip summary
    5. Scoring profiles per team
    6. Optional Monte Carlo risk for each ranked team

The result is a plain dict so it can be returned from an API handler,
dumped to JSON or handed to a snapshot store as-is.
"""

import logging
from typing import Dict, Iterable, List

from wager_engine.core.policy import AnalyticsSettings
from wager_engine.services.aggregation import build_country_stats, build_league_stats, build_team_stats
from wager_engine.services.breakdowns import bet_slip_summary, best_performers, head_to_head, odds_ranges
from wager_engine.services.dedup import RowOrRecord, deduplicate, load_records
from wager_engine.services.patterns import mine_patterns
from wager_engine.services.ranking import bet_types, rank_teams
from wager_engine.services.risk import RiskCandidate, assess_many
from wager_engine.services.scoring import scoring_patterns

logger = logging.getLogger(__name__)

#: Fallback price when a team has no usable odds on record.
DEFAULT_ODDS = 2.0


def _team_candidates(ranked, records) -> List[RiskCandidate]:
    prices: Dict[str, List[float]] = {}
    for r in records:
        price = r.backed_odds
        if price is not None and price >= 1.0:
            prices.setdefault(r.team_included.lower(), []).append(price)

    candidates = []
    for stat in ranked:
        settled = stat.wins + stat.losses
        team_prices = prices.get(stat.team.lower())
        candidates.append(RiskCandidate(
            label=f"{stat.team} ({stat.league}, {stat.country})",
            win_rate=stat.wins / settled if settled else 0.0,
            avg_odds=sum(team_prices) / len(team_prices) if team_prices else DEFAULT_ODDS,
            total_bets=settled,
        ))
    return candidates


def run_analysis(
    rows: Iterable[RowOrRecord],
    settings: AnalyticsSettings = AnalyticsSettings(),
    include_risk: bool = False,
) -> Dict:
    """Run every analytics stage over ``rows`` and return one report dict.

    Args:
        rows: Bet-sheet dicts or :class:`BetRecord` objects.
        settings: Policies and simulation sizing.
        include_risk: Also simulate risk for every ranked team.  Off by
            default since it dominates the run time.
    """
    records = deduplicate(load_records(rows))
    logger.info("Starting analysis over %d unique records", len(records))

    team_stats = build_team_stats(records, settings.ranking)
    ranked = rank_teams(team_stats, settings.ranking)
    logger.info("Ranked %d of %d teams", len(ranked), len(team_stats))

    patterns = mine_patterns(records, settings.patterns)
    logger.info("Mined patterns from %d completed bets", patterns.completed_bets)

    leagues = build_league_stats(records)
    countries = build_country_stats(records)
    logger.info("Aggregated %d leagues across %d countries", len(leagues), len(countries))

    report = {
        "total_records": len(records),
        "top_teams": [s.to_dict() for s in ranked],
        "bet_types": bet_types(team_stats),
        "patterns": patterns.to_dict(),
        "leagues": [l.to_dict() for l in leagues],
        "countries": [c.to_dict() for c in countries],
        "best_performers": best_performers(leagues, countries),
        "head_to_head": head_to_head(records),
        "odds_ranges": odds_ranges(records),
        "odds_ranges_filtered": odds_ranges(records, exclude_props=True),
        "bet_slips": bet_slip_summary(records),
        "scoring": [t.to_dict() for t in scoring_patterns(records)],
    }

    if include_risk and ranked:
        assessments = assess_many(
            _team_candidates(ranked, records),
            confidence_level=settings.confidence_level,
            policy=settings.risk,
            settings=settings.simulation,
        )
        report["risk"] = {label: a.to_dict() for label, a in assessments.items()}
        logger.info("Assessed risk for %d teams", len(assessments))

    logger.info("Analysis complete")
    return report
