"""
Account status snapshot and the engine's result wrapper.

The status is derived data: it is recomputed wholesale from the ledger on
every mutation and replaced, never patched in place.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import FrozenSet, Optional

from .enums import StatusSource
from .value_objects import ChallengeRules


@dataclass(frozen=True)
class AccountStatus:
    """Point-in-time risk and compliance snapshot of an account."""

    current_equity: Decimal
    high_water_mark: Decimal
    days_traded: FrozenSet[str] = field(default_factory=frozenset)
    distance_to_daily_drawdown: Decimal = Decimal("0")
    distance_to_overall_drawdown: Decimal = Decimal("0")
    is_daily_drawdown_violated: bool = False
    is_overall_drawdown_violated: bool = False
    is_passed: bool = False

    def __post_init__(self) -> None:
        if not isinstance(self.days_traded, frozenset):
            object.__setattr__(self, "days_traded", frozenset(self.days_traded))

    @classmethod
    def initial(cls, rules: ChallengeRules) -> "AccountStatus":
        """Status of an account with an empty ledger: full headroom, nothing violated."""
        return cls(
            current_equity=rules.account_size,
            high_water_mark=rules.account_size,
            days_traded=frozenset(),
            distance_to_daily_drawdown=rules.daily_loss_allowance,
            distance_to_overall_drawdown=rules.overall_loss_allowance,
        )

    @property
    def trading_day_count(self) -> int:
        return len(self.days_traded)


@dataclass(frozen=True)
class StatusEvaluation:
    """
    Result of one status computation.

    Callers that only need the snapshot use `status`; callers that must
    know whether it reflects the latest ledger check `is_fresh`.
    """

    status: AccountStatus
    source: StatusSource = StatusSource.FRESH
    reason: Optional[str] = None

    @property
    def is_fresh(self) -> bool:
        return self.source is StatusSource.FRESH
