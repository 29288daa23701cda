"""
Trade validation and day bucketing.

A trade without a numeric pnl or a parsable date takes no part in any
computation: it is dropped rather than counted as zero, so a bad record
can never move equity.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, time
from decimal import Decimal
from typing import Any, Dict, FrozenSet, Iterable, List, Mapping, Optional, Tuple

import structlog

from ....shared.utils.money import as_decimal

logger = structlog.get_logger(__name__)

DAY_KEY_FORMAT = "%Y-%m-%d"


@dataclass(frozen=True)
class LedgerEntry:
    """A validated trade with its parsed timestamp and day key."""

    trade: Any
    pnl: Decimal
    occurred_at: datetime
    day_key: str


@dataclass(frozen=True)
class DayBuckets:
    """Valid ledger entries, in input order, and the same entries grouped by day."""

    entries: Tuple[LedgerEntry, ...] = ()
    by_day: Dict[str, Tuple[LedgerEntry, ...]] = field(default_factory=dict)
    rejected_count: int = 0

    @property
    def days_traded(self) -> FrozenSet[str]:
        return frozenset(self.by_day)

    def pnl_on(self, day_key: str) -> Decimal:
        """Sum of pnl for one day; zero when nothing was traded that day."""
        return sum((entry.pnl for entry in self.by_day.get(day_key, ())), Decimal("0"))


def parse_trade_date(value: Any) -> Optional[datetime]:
    """
    Parse a trade date into a datetime.

    Accepts datetime, date (midnight) and ISO-8601 strings with or without
    a time part. Timezone info is kept as given, never converted.
    """
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime.combine(value, time.min)
    if not isinstance(value, str):
        return None

    text = value.strip()
    if not text:
        return None
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return None


def day_key(moment: Any) -> Optional[str]:
    """Calendar-day key (YYYY-MM-DD) taken from the value's own date fields."""
    parsed = parse_trade_date(moment)
    if parsed is None:
        return None
    return parsed.strftime(DAY_KEY_FORMAT)


def _field(trade: Any, name: str) -> Any:
    if isinstance(trade, Mapping):
        return trade.get(name)
    return getattr(trade, name, None)


def validate_trade(trade: Any) -> Optional[LedgerEntry]:
    """Return the ledger entry for a well-formed trade, None otherwise."""
    if trade is None:
        return None

    pnl = as_decimal(_field(trade, "pnl"))
    if pnl is None:
        return None

    occurred_at = parse_trade_date(_field(trade, "date"))
    if occurred_at is None:
        return None

    return LedgerEntry(
        trade=trade,
        pnl=pnl,
        occurred_at=occurred_at,
        day_key=occurred_at.strftime(DAY_KEY_FORMAT),
    )


def bucketize_trades(trades: Optional[Iterable[Any]]) -> DayBuckets:
    """
    Filter malformed trades and group the rest by calendar day.

    Accepts Trade objects or plain mappings. Never raises for individual
    bad records.
    """
    entries: List[LedgerEntry] = []
    grouped: Dict[str, List[LedgerEntry]] = {}
    rejected = 0

    for trade in trades or ():
        entry = validate_trade(trade)
        if entry is None:
            rejected += 1
            logger.debug(
                "Trade excluded from status computation",
                trade_id=_field(trade, "id") if trade is not None else None,
            )
            continue
        entries.append(entry)
        grouped.setdefault(entry.day_key, []).append(entry)

    if rejected:
        logger.debug("Malformed trades excluded", rejected=rejected, accepted=len(entries))

    return DayBuckets(
        entries=tuple(entries),
        by_day={key: tuple(day_entries) for key, day_entries in grouped.items()},
        rejected_count=rejected,
    )


def latest_entry(buckets: DayBuckets) -> Optional[LedgerEntry]:
    """Most recent valid trade; input order decides when timestamps cannot be compared."""
    if not buckets.entries:
        return None
    try:
        return max(buckets.entries, key=lambda entry: entry.occurred_at)
    except TypeError:
        return buckets.entries[-1]


__all__ = [
    "DayBuckets",
    "LedgerEntry",
    "bucketize_trades",
    "day_key",
    "latest_entry",
    "parse_trade_date",
    "validate_trade",
]
