"""Domain value objects: challenge rules and ledger trades."""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, Mapping, Optional, Tuple, Union

from ....shared.exceptions.base import ValidationError
from ....shared.utils.money import HUNDRED, parse_decimal, percent_of
from .enums import DrawdownType


def _required_decimal(name: str, value: Any) -> Decimal:
    result = parse_decimal(value)
    if result is None:
        raise ValidationError(f"{name} must be a finite number, got {value!r}")
    return result


@dataclass(frozen=True)
class ChallengeRules:
    """
    Rule parameters of a prop-firm challenge, fixed at account creation.

    Percentages are expressed 0-100. The profit target is an absolute
    currency amount, not a percentage.
    """

    account_size: Decimal
    profit_target: Decimal
    max_daily_drawdown_pct: Decimal
    max_overall_drawdown_pct: Decimal
    drawdown_type: DrawdownType = DrawdownType.STATIC
    min_trading_days: int = 0
    consistency_rule_pct: Optional[Decimal] = None
    firm_name: str = ""
    other_rules: Optional[str] = None

    def __post_init__(self) -> None:
        # Frozen: normalize through object.__setattr__
        account_size = _required_decimal("account_size", self.account_size)
        profit_target = _required_decimal("profit_target", self.profit_target)
        daily_pct = _required_decimal("max_daily_drawdown_pct", self.max_daily_drawdown_pct)
        overall_pct = _required_decimal("max_overall_drawdown_pct", self.max_overall_drawdown_pct)

        if account_size <= 0:
            raise ValidationError(f"account_size must be positive: {account_size}")
        if profit_target < 0:
            raise ValidationError(f"profit_target cannot be negative: {profit_target}")
        for name, pct in (("max_daily_drawdown_pct", daily_pct), ("max_overall_drawdown_pct", overall_pct)):
            if not (Decimal("0") < pct <= HUNDRED):
                raise ValidationError(f"{name} must be in (0, 100]: {pct}")

        try:
            drawdown_type = DrawdownType.parse(self.drawdown_type)
        except ValueError as e:
            raise ValidationError(str(e)) from e

        min_days = self.min_trading_days
        if isinstance(min_days, bool) or not isinstance(min_days, int) or min_days < 0:
            raise ValidationError(f"min_trading_days must be a non-negative integer: {min_days!r}")

        consistency = None
        if self.consistency_rule_pct is not None:
            consistency = _required_decimal("consistency_rule_pct", self.consistency_rule_pct)

        object.__setattr__(self, "account_size", account_size)
        object.__setattr__(self, "profit_target", profit_target)
        object.__setattr__(self, "max_daily_drawdown_pct", daily_pct)
        object.__setattr__(self, "max_overall_drawdown_pct", overall_pct)
        object.__setattr__(self, "drawdown_type", drawdown_type)
        object.__setattr__(self, "consistency_rule_pct", consistency)
        object.__setattr__(self, "firm_name", (self.firm_name or "").strip())

    @classmethod
    def personal_defaults(cls, account_size: Union[Decimal, int]) -> "ChallengeRules":
        """Synthetic rules used to evaluate a personal account."""
        return cls(
            account_size=account_size,
            profit_target=Decimal("0"),
            max_daily_drawdown_pct=Decimal("5"),
            max_overall_drawdown_pct=Decimal("10"),
            drawdown_type=DrawdownType.STATIC,
            min_trading_days=0,
        )

    @property
    def daily_loss_allowance(self) -> Decimal:
        """Absolute daily loss allowed, always against the static account size."""
        return percent_of(self.account_size, self.max_daily_drawdown_pct)

    @property
    def overall_loss_allowance(self) -> Decimal:
        """Absolute overall loss allowed against the static account size."""
        return percent_of(self.account_size, self.max_overall_drawdown_pct)

    @property
    def target_equity(self) -> Decimal:
        """Equity at which the profit target is met."""
        return self.account_size + self.profit_target


_TRADE_FIELDS = (
    "id", "date", "pnl", "symbol", "side", "entry_price", "exit_price", "quantity",
    "pnl_percentage", "commission", "setup", "notes", "tags", "duration", "risk_reward_ratio",
)

# Storage keys that differ from the Python attribute name
_TRADE_KEY_ALIASES = {
    "type": "side",
    "entryPrice": "entry_price",
    "exitPrice": "exit_price",
    "pnlPercentage": "pnl_percentage",
    "riskRewardRatio": "risk_reward_ratio",
}


@dataclass(frozen=True)
class Trade:
    """
    One ledger entry, owned by exactly one account.

    Only date and pnl matter to the status engine. Values are kept as
    given: a malformed trade is excluded by the engine, not rejected here.
    """

    id: str
    date: Any
    pnl: Any
    symbol: str = ""
    side: str = ""
    entry_price: Any = None
    exit_price: Any = None
    quantity: Any = None
    pnl_percentage: Any = None
    commission: Any = None
    setup: str = ""
    notes: Optional[str] = None
    tags: Tuple[str, ...] = ()
    duration: str = ""
    risk_reward_ratio: Any = None
    extra: Dict[str, Any] = field(default_factory=dict, compare=False, hash=False)

    @classmethod
    def from_mapping(cls, record: Mapping[str, Any]) -> "Trade":
        """Build a trade from a plain record without validating it."""
        values: Dict[str, Any] = {}
        extra: Dict[str, Any] = {}
        for key, value in record.items():
            name = _TRADE_KEY_ALIASES.get(key, key)
            if name in _TRADE_FIELDS:
                values[name] = value
            elif key != "extra":
                extra[key] = value

        if isinstance(record.get("extra"), Mapping):
            extra.update(record["extra"])

        tags = values.get("tags") or ()
        values["tags"] = tuple(tags) if isinstance(tags, (list, tuple)) else ()
        values["id"] = str(values.get("id") or "")
        values.setdefault("date", None)
        values.setdefault("pnl", None)
        return cls(extra=extra, **values)
