"""
Equity and high-water-mark tracking.

Equity is a plain sum and does not depend on trade order. The high-water
mark is path-dependent: trailing drawdown is measured from the highest
balance ever reached, which can sit above the final equity.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Sequence

import structlog

from .ledger import LedgerEntry

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class EquitySnapshot:
    """Equity figures derived from the valid ledger."""

    current_equity: Decimal
    high_water_mark: Decimal


class EquityTracker:
    """
    Pure equity arithmetic.

    All methods are deterministic and have no side effects.
    """

    @staticmethod
    def current_equity(account_size: Decimal, entries: Sequence[LedgerEntry]) -> Decimal:
        """account_size + sum of valid pnl."""
        return sum((entry.pnl for entry in entries), account_size)

    @staticmethod
    def high_water_mark(account_size: Decimal, entries: Sequence[LedgerEntry]) -> Decimal:
        """
        Replay trades in chronological order and return the peak balance.

        Ties keep input order. Raises TypeError when timestamps cannot be
        compared (timezone-aware mixed with naive).
        """
        ordered = sorted(entries, key=lambda entry: entry.occurred_at)

        peak = account_size
        running_balance = account_size
        for entry in ordered:
            running_balance += entry.pnl
            if running_balance > peak:
                peak = running_balance
        return peak

    @classmethod
    def track(cls, account_size: Decimal, entries: Sequence[LedgerEntry]) -> EquitySnapshot:
        """
        Compute equity and high-water mark.

        If the chronological replay cannot order the trades, the watermark
        falls back to max(account_size, current_equity) instead of failing.
        """
        current_equity = cls.current_equity(account_size, entries)

        try:
            high_water_mark = cls.high_water_mark(account_size, entries)
        except TypeError as e:
            logger.warning(
                "Chronological replay failed, using equity-based high-water mark",
                error=str(e),
                trade_count=len(entries),
            )
            high_water_mark = max(account_size, current_equity)

        return EquitySnapshot(current_equity=current_equity, high_water_mark=high_water_mark)
