"""Predefined rule sets for supported prop firms."""

from decimal import Decimal
from typing import Dict, List, Tuple, Union

from ....shared.utils.money import HUNDRED, percent_of
from .enums import DrawdownType
from .value_objects import ChallengeRules

SUPPORTED_PROP_FIRMS: List[Tuple[str, str]] = [
    ("ftmo", "FTMO"),
    ("myforexfunds", "MyForexFunds"),
    ("fundednext", "Funded Next"),
    ("topsteptrader", "TopStep Trader"),
    ("earnforex", "Earn Forex"),
    ("truefunded", "TrueFunded"),
    ("apex", "Apex Trader Funding"),
    ("custom", "Custom"),
]

# firm key -> (firm name, size, target, daily %, overall %, drawdown type, min days, consistency %)
_PRESETS: Dict[str, tuple] = {
    "ftmo": ("FTMO", 100000, 10000, 5, 10, DrawdownType.STATIC, 10, 5),
    "myforexfunds": ("MyForexFunds", 100000, 8000, 4, 8, DrawdownType.STATIC, 5, None),
    "fundednext": ("Funded Next", 100000, 10000, 5, 12, DrawdownType.TRAILING, 0, None),
    "topsteptrader": ("TopStep Trader", 100000, 5000, 3, 6, DrawdownType.STATIC, 10, None),
    "earnforex": ("Earn Forex", 50000, 5000, 4, 8, DrawdownType.STATIC, 7, None),
    "truefunded": ("TrueFunded", 100000, 8000, 5, 10, DrawdownType.TRAILING, 5, None),
    "apex": ("Apex Trader Funding", 100000, 10000, 4, 8, DrawdownType.STATIC, 5, None),
    "custom": ("Custom", 100000, 10000, 5, 10, DrawdownType.STATIC, 0, None),
}


def get_predefined_rules(firm_name: str) -> ChallengeRules:
    """
    Return the preset rules for a prop firm.

    Lookup ignores case, spaces and underscores; unknown firms get the
    custom preset.
    """
    key = (firm_name or "").lower().replace(" ", "").replace("_", "")
    name, size, target, daily, overall, drawdown_type, min_days, consistency = _PRESETS.get(
        key, _PRESETS["custom"]
    )
    return ChallengeRules(
        account_size=Decimal(size),
        profit_target=Decimal(target),
        max_daily_drawdown_pct=Decimal(daily),
        max_overall_drawdown_pct=Decimal(overall),
        drawdown_type=drawdown_type,
        min_trading_days=min_days,
        consistency_rule_pct=Decimal(consistency) if consistency is not None else None,
        firm_name=name,
    )


def percent_to_amount(account_size: Union[Decimal, int], percentage: Union[Decimal, int]) -> Decimal:
    """Currency amount for a percentage of the account size."""
    return percent_of(Decimal(account_size), Decimal(percentage))


def amount_to_percent(account_size: Union[Decimal, int], amount: Union[Decimal, int]) -> Decimal:
    """Percentage of the account size represented by an amount."""
    return Decimal(amount) / Decimal(account_size) * HUNDRED
