"""
Ad-hoc query engine over bet records and team aggregates.

A query is an AND of :class:`~wager_engine.schemas.QueryFilter` objects and
runs in three passes:

1. **Row pass**: keep records matching every filter's ``field``/``value``.
   Text fields match by case-insensitive substring.  Numeric fields compare
   as floats with ``equals``/``greaterThan``/``lessThan``; if either side
   does not parse, or no comparison operator is set, they fall back to
   substring matching.
2. **Projection**: distinct ``(team, league, country)`` triples of the
   surviving records.
3. **Metric pass**: for filters carrying a metric predicate, look the
   metric up on the team's :class:`TeamStat` (or on one market's breakdown
   when the filter field is ``BET_TYPE``) and apply the operator.

Nothing here raises on a query that matches nothing; an empty list is a
valid answer.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from wager_engine.core.records import BetRecord, parse_float
from wager_engine.schemas import Metric, Operator, QueryField, QueryFilter
from wager_engine.services.aggregation import TeamStat, index_team_stats, team_key

logger = logging.getLogger(__name__)

UNKNOWN = "Unknown"


class FieldKind(str, Enum):
    TEXT = "text"
    NUMERIC = "numeric"


@dataclass(frozen=True)
class FieldSpec:
    label: str
    kind: FieldKind
    getter: Callable[[BetRecord], object]


def _date_text(record: BetRecord) -> object:
    return record.date_key


#: Column accessor table.  Every :class:`QueryField` has exactly one entry.
FIELDS: Dict[QueryField, FieldSpec] = {
    QueryField.BET_TYPE: FieldSpec("Bet Type", FieldKind.TEXT, lambda r: r.bet_type),
    QueryField.BET_SELECTION: FieldSpec("Bet Selection", FieldKind.TEXT, lambda r: r.bet_selection),
    QueryField.COUNTRY: FieldSpec("Country", FieldKind.TEXT, lambda r: r.country),
    QueryField.LEAGUE: FieldSpec("League", FieldKind.TEXT, lambda r: r.league),
    QueryField.TEAM_INCLUDED: FieldSpec("Team Included", FieldKind.TEXT, lambda r: r.team_included),
    QueryField.HOME_TEAM: FieldSpec("Home Team", FieldKind.TEXT, lambda r: r.home_team),
    QueryField.AWAY_TEAM: FieldSpec("Away Team", FieldKind.TEXT, lambda r: r.away_team),
    QueryField.RESULT: FieldSpec("Result", FieldKind.TEXT, lambda r: r.result.value),
    QueryField.ODDS1: FieldSpec("Odds 1", FieldKind.NUMERIC, lambda r: r.odds_home),
    QueryField.ODDS2: FieldSpec("Odds 2", FieldKind.NUMERIC, lambda r: r.odds_away),
    QueryField.ODDSX: FieldSpec("Odds X", FieldKind.NUMERIC, lambda r: r.odds_draw),
    QueryField.HOME_SCORE: FieldSpec("Home Score", FieldKind.NUMERIC, lambda r: r.home_score),
    QueryField.AWAY_SCORE: FieldSpec("Away Score", FieldKind.NUMERIC, lambda r: r.away_score),
    QueryField.DATE: FieldSpec("Date", FieldKind.TEXT, _date_text),
    QueryField.HOME_TEAM_POSITION_NUMBER: FieldSpec("Home Team Position", FieldKind.NUMERIC, lambda r: r.home_position),
    QueryField.AWAY_TEAM_POSITION_NUMBER: FieldSpec("Away Team Position", FieldKind.NUMERIC, lambda r: r.away_position),
    QueryField.TOTAL_TEAMS_IN_LEAGUE: FieldSpec("Total Teams in League", FieldKind.NUMERIC, lambda r: r.total_teams),
    QueryField.HOME_TEAM_GAMES_PLAYED: FieldSpec("Home Team Games Played", FieldKind.NUMERIC, lambda r: r.home_games_played),
    QueryField.AWAY_TEAM_GAMES_PLAYED: FieldSpec("Away Team Games Played", FieldKind.NUMERIC, lambda r: r.away_games_played),
}

METRIC_LABELS: Dict[Metric, str] = {
    Metric.WINS: "Wins",
    Metric.LOSSES: "Losses",
    Metric.WIN_RATE: "Win Rate",
    Metric.TOTAL: "Total Bets",
}

OPERATOR_LABELS: Dict[Operator, str] = {
    Operator.EQUALS: "Equals",
    Operator.GREATER_THAN: "Greater Than",
    Operator.LESS_THAN: "Less Than",
    Operator.CONTAINS: "Contains",
}


# ---------------------------------------------------------------------------
# Vocabulary
# ---------------------------------------------------------------------------

def available_fields() -> List[Dict[str, str]]:
    return [{"value": f.value, "label": spec.label, "kind": spec.kind.value} for f, spec in FIELDS.items()]


def available_metrics() -> List[Dict[str, str]]:
    return [{"value": m.value, "label": label} for m, label in METRIC_LABELS.items()]


def available_operators() -> List[Dict[str, str]]:
    return [{"value": o.value, "label": label} for o, label in OPERATOR_LABELS.items()]


def _as_text(value: object) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        # 2.0 displays as "2" in the sheet
        return str(int(value))
    return str(value)


def field_values(records: Iterable[BetRecord], field: Union[QueryField, str]) -> List[str]:
    """Sorted distinct non-empty values of ``field`` for pick lists."""
    spec = FIELDS[QueryField(field)]
    values = {_as_text(spec.getter(r)) for r in records}
    values.discard("")
    return sorted(values)


# ---------------------------------------------------------------------------
# Builder
# ---------------------------------------------------------------------------

class QueryBuilder:
    """Immutable list of filters.  Every edit returns a new builder."""

    def __init__(self, filters: Iterable[QueryFilter] = ()):
        self._filters: Tuple[QueryFilter, ...] = tuple(filters)

    @property
    def filters(self) -> Tuple[QueryFilter, ...]:
        return self._filters

    def __len__(self) -> int:
        return len(self._filters)

    def add(self, query_filter: Optional[QueryFilter] = None, **fields) -> "QueryBuilder":
        new = query_filter if query_filter is not None else QueryFilter(**fields)
        return QueryBuilder(self._filters + (new,))

    def remove(self, index: int) -> "QueryBuilder":
        self._check_index(index)
        return QueryBuilder(f for i, f in enumerate(self._filters) if i != index)

    def update(self, index: int, **changes) -> "QueryBuilder":
        """Replace fields of one filter.  The result is re-validated."""
        self._check_index(index)
        current = self._filters[index]
        replacement = QueryFilter(**{**current.model_dump(), **changes})
        return QueryBuilder(replacement if i == index else f for i, f in enumerate(self._filters))

    def clear(self) -> "QueryBuilder":
        return QueryBuilder()

    def execute(self, records: Iterable[BetRecord], team_stats: Iterable[TeamStat]) -> List[Dict[str, str]]:
        return execute_query(self._filters, records, team_stats)

    def _check_index(self, index: int) -> None:
        if not 0 <= index < len(self._filters):
            raise IndexError(f"filter index {index} out of range (have {len(self._filters)})")


# ---------------------------------------------------------------------------
# Evaluation
# ---------------------------------------------------------------------------

def _compare(left: float, op: Operator, right: float) -> bool:
    if op is Operator.EQUALS:
        return left == right
    if op is Operator.GREATER_THAN:
        return left > right
    if op is Operator.LESS_THAN:
        return left < right
    return False


def row_matches(record: BetRecord, query_filter: QueryFilter) -> bool:
    """Row-level predicate.  Filters without a field or value always pass."""
    if not query_filter.has_row_predicate:
        return True
    spec = FIELDS[query_filter.field]
    raw = spec.getter(record)
    text = _as_text(raw)
    if not text:
        return False
    needle = query_filter.value.strip()

    op = query_filter.operator
    if spec.kind is FieldKind.NUMERIC and op in (Operator.EQUALS, Operator.GREATER_THAN, Operator.LESS_THAN):
        left = parse_float(raw)
        right = parse_float(needle)
        if left is not None and right is not None:
            return _compare(left, op, right)
    return needle.lower() in text.lower()


def _metric_of(stat: TeamStat, query_filter: QueryFilter) -> Optional[float]:
    if query_filter.field is QueryField.BET_TYPE:
        breakdown = stat.breakdown_for(query_filter.value)
        if breakdown is None:
            return None
        wins, losses, win_rate = breakdown.wins, breakdown.losses, breakdown.win_rate
    else:
        wins, losses, win_rate = stat.wins, stat.losses, stat.win_rate
    return {
        Metric.WINS: wins,
        Metric.LOSSES: losses,
        Metric.TOTAL: wins + losses,
        Metric.WIN_RATE: round(win_rate, 1),
    }[query_filter.metric]


def metric_matches(stat: TeamStat, query_filter: QueryFilter) -> bool:
    """Team-level predicate.  An unresolvable metric is a non-match."""
    actual = _metric_of(stat, query_filter)
    if actual is None:
        return False
    if query_filter.operator is Operator.CONTAINS:
        return query_filter.metric_value in _as_text(float(actual))
    target = parse_float(query_filter.metric_value)
    if target is None:
        return False
    return _compare(float(actual), query_filter.operator, target)


def execute_query(
    filters: Iterable[QueryFilter],
    records: Iterable[BetRecord],
    team_stats: Union[Iterable[TeamStat], Mapping[Tuple[str, str, str], TeamStat]],
) -> List[Dict[str, str]]:
    """Run ``filters`` and return matching ``{team, league, country}`` rows.

    Rows are sorted by team, then country, then league.
    """
    filters = list(filters)
    index = team_stats if isinstance(team_stats, Mapping) else index_team_stats(team_stats)

    projected: Dict[Tuple[str, str, str], Dict[str, str]] = {}
    matched = 0
    for record in records:
        if not all(row_matches(record, f) for f in filters):
            continue
        matched += 1
        team = record.team
        if not team:
            continue
        row = {"team": team, "league": record.league or UNKNOWN, "country": record.country or UNKNOWN}
        projected.setdefault((team, row["league"], row["country"]), row)

    metric_filters = [f for f in filters if f.has_metric_predicate]
    results = list(projected.values())
    if metric_filters:
        kept = []
        for row in results:
            stat = index.get(team_key(row["team"], row["country"], row["league"]))
            if stat is None:
                continue
            if all(metric_matches(stat, f) for f in metric_filters):
                kept.append(row)
        results = kept

    results.sort(key=lambda r: (r["team"], r["country"], r["league"]))
    logger.info(
        "execute_query: %d filters, %d matching rows, %d teams returned",
        len(filters), matched, len(results),
    )
    return results
