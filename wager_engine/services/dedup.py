"""
Record ingestion and deduplication.

Bet sheets are appended to by hand and re-imported often, so the same wager
line routinely appears more than once.  Every downstream service works on
the deduplicated collection produced here.

Identity is ``(date, home_team, away_team, bet_type, bet_selection)``.  The
first record seen for a key wins; later copies are dropped even if their
result differs.  Missing fields take part in the key as empty strings.
"""

import logging
from typing import Any, Dict, Hashable, Iterable, List, Mapping, Union

from wager_engine.core.records import BetRecord, parse_float

logger = logging.getLogger(__name__)

ODDS_COLUMNS = ("ODDS1", "ODDS2", "ODDSX")

RowOrRecord = Union[BetRecord, Mapping[str, Any]]


def _require_iterable(records: Any, name: str = "records") -> None:
    if records is None or isinstance(records, (str, bytes, Mapping)):
        raise TypeError(f"{name} must be a collection of bet records, got {type(records).__name__}")
    if not isinstance(records, Iterable):
        raise TypeError(f"{name} must be iterable, got {type(records).__name__}")


def _unparseable_odds(row: Mapping[str, Any]) -> bool:
    for column in ODDS_COLUMNS:
        value = row.get(column, row.get(column.lower()))
        if value is not None and str(value).strip() and parse_float(value) is None:
            return True
    return False


def load_records(rows: Iterable[RowOrRecord]) -> List[BetRecord]:
    """Convert bet-sheet rows into :class:`BetRecord` objects.

    Rows that are already records pass through unchanged.  Rows whose date
    cell is present but unparseable are kept (with ``date=None``), as are
    rows with garbage in an odds column (stored as ``None``).  Both are
    counted and logged at WARNING.
    """
    _require_iterable(rows, "rows")
    records: List[BetRecord] = []
    bad_dates = bad_odds = 0
    for row in rows:
        if isinstance(row, BetRecord):
            records.append(row)
            continue
        record = BetRecord.from_row(row)
        if record.date is None and (row.get("DATE") or row.get("date")):
            bad_dates += 1
        if _unparseable_odds(row):
            bad_odds += 1
        records.append(record)
    if bad_dates:
        logger.warning("load_records: %d rows with unparseable dates", bad_dates)
    if bad_odds:
        logger.warning("load_records: %d rows with unparseable odds", bad_odds)
    logger.debug("load_records: %d rows loaded", len(records))
    return records


def _dedup_by(records: Iterable[BetRecord], attr: str) -> List[BetRecord]:
    seen: Dict[Hashable, None] = {}
    unique: List[BetRecord] = []
    for record in records:
        key = getattr(record, attr)
        if key in seen:
            continue
        seen[key] = None
        unique.append(record)
    return unique


def deduplicate(records: Iterable[BetRecord]) -> List[BetRecord]:
    """Keep the first record per identity key, preserving input order."""
    _require_iterable(records)
    records = list(records)
    unique = _dedup_by(records, "identity_key")
    dropped = len(records) - len(unique)
    if dropped:
        logger.info("deduplicate: dropped %d duplicate rows (%d unique)", dropped, len(unique))
    return unique


def dedup_new_bets(records: Iterable[BetRecord]) -> List[BetRecord]:
    """Deduplicate freshly entered bets on the wider entry key.

    Adds country, league and the backed team to the identity key so that
    two different selections on the same fixture entered in one batch are
    both kept.
    """
    _require_iterable(records)
    return _dedup_by(records, "entry_key")


def merge_new_bets(existing: Iterable[BetRecord], new: Iterable[BetRecord]) -> List[BetRecord]:
    """Append ``new`` bets whose identity key is not already present."""
    _require_iterable(existing, "existing")
    _require_iterable(new, "new")
    merged = list(existing)
    known = {r.identity_key for r in merged}
    added = skipped = 0
    for record in dedup_new_bets(new):
        if record.identity_key in known:
            skipped += 1
            continue
        known.add(record.identity_key)
        merged.append(record)
        added += 1
    logger.info("merge_new_bets: %d added, %d already present", added, skipped)
    return merged
