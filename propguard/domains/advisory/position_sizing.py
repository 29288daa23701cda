"""Per-trade risk ceiling and maximum position size."""

from dataclasses import dataclass
from decimal import Decimal, ROUND_FLOOR
from typing import Any, Optional

from ...infrastructure.config.settings import AdvisoryConfig, get_settings
from ...shared.exceptions.base import ValidationError
from ...shared.utils.money import HUNDRED, parse_decimal, percent_of
from ..accounts.domain.value_objects import ChallengeRules

ZERO = Decimal("0")


def max_risk_per_trade(rules: ChallengeRules, config: Optional[AdvisoryConfig] = None) -> Decimal:
    """
    Largest loss a single trade should risk.

    min(max_risk_per_trade_pct of the account size,
        daily_allowance_share_pct of the daily loss allowance)
    """
    config = config or get_settings().advisory
    return min(
        percent_of(rules.account_size, config.max_risk_per_trade_pct),
        percent_of(rules.daily_loss_allowance, config.daily_allowance_share_pct),
    )


def _number(name: str, value: Any) -> Decimal:
    result = parse_decimal(value)
    if result is None:
        raise ValidationError(f"{name} must be a finite number, got {value!r}")
    return result


@dataclass(frozen=True)
class PositionSizeParams:
    """Inputs of a position size calculation. risk_pct is 0-100."""

    account_size: Decimal
    risk_pct: Decimal
    entry_price: Decimal
    stop_price: Decimal
    lot_size: Decimal = Decimal("1")

    def __post_init__(self) -> None:
        for name in ("account_size", "risk_pct", "entry_price", "stop_price", "lot_size"):
            object.__setattr__(self, name, _number(name, getattr(self, name)))
        if self.account_size <= ZERO:
            raise ValidationError(f"account_size must be positive: {self.account_size}")
        if not (ZERO <= self.risk_pct <= HUNDRED):
            raise ValidationError(f"risk_pct must be in [0, 100]: {self.risk_pct}")
        if self.lot_size <= ZERO:
            raise ValidationError(f"lot_size must be positive: {self.lot_size}")


@dataclass(frozen=True)
class PositionSizeResult:
    position_size: Decimal
    risk_amount: Decimal
    potential_loss: Decimal


def calculate_max_position_size(params: PositionSizeParams) -> PositionSizeResult:
    """
    Largest position whose loss at the stop stays within the risk budget.

    Lot sizes above one round the position down to whole lots. A stop at
    the entry price gives an all-zero result.
    """
    stop_distance = abs(params.entry_price - params.stop_price)
    if stop_distance == ZERO:
        return PositionSizeResult(position_size=ZERO, risk_amount=ZERO, potential_loss=ZERO)

    risk_amount = percent_of(params.account_size, params.risk_pct)
    position_size = risk_amount / stop_distance

    if params.lot_size > 1:
        lots = (position_size / params.lot_size).to_integral_value(rounding=ROUND_FLOOR)
        position_size = lots * params.lot_size

    position_size = max(ZERO, position_size)
    return PositionSizeResult(
        position_size=position_size,
        risk_amount=risk_amount,
        potential_loss=position_size * stop_distance,
    )
