"""Markdown trading plan derived from challenge rules."""

from decimal import Decimal
from typing import List, Optional

from ...infrastructure.config.settings import AdvisoryConfig, get_settings
from ...shared.exceptions.base import ValidationError
from ...shared.utils.money import HUNDRED, format_usd
from ..accounts.domain.enums import DrawdownType
from ..accounts.domain.value_objects import ChallengeRules
from .position_sizing import max_risk_per_trade


def _pct(value: Decimal) -> str:
    """5 -> '5', 4.50 -> '4.5'."""
    return f"{value.normalize():f}"


def generate_trading_plan(rules: ChallengeRules, config: Optional[AdvisoryConfig] = None) -> str:
    """
    Render a trading plan for a challenge.

    The daily gain target spreads the profit target over the minimum
    trading days, or over `default_plan_days` when there is no minimum.
    """
    if not isinstance(rules, ChallengeRules):
        raise ValidationError("A trading plan requires challenge rules")
    config = config or get_settings().advisory

    size = rules.account_size
    target = rules.profit_target
    ceiling = max_risk_per_trade(rules, config)
    plan_days = rules.min_trading_days or config.default_plan_days
    daily_gain = target / plan_days

    lines: List[str] = [
        f"# Trading Plan for {rules.firm_name or 'Prop Firm'} - {format_usd(size)}",
        "",
        "## Objectives",
        f"- **Profit target**: {format_usd(target)} ({target / size * HUNDRED:.2f}% of the account)",
    ]
    if rules.min_trading_days > 0:
        lines.append(f"- **Minimum trading days**: {rules.min_trading_days} days")
    lines.append("")

    lines += [
        "## Risk Management",
        f"- **Max daily drawdown**: {format_usd(rules.daily_loss_allowance)} ({_pct(rules.max_daily_drawdown_pct)}%)",
        f"- **Max overall drawdown**: {format_usd(rules.overall_loss_allowance)} "
        f"({_pct(rules.max_overall_drawdown_pct)}%)",
        f"- **Drawdown type**: {'Trailing' if rules.drawdown_type is DrawdownType.TRAILING else 'Static'}",
    ]
    if rules.consistency_rule_pct:
        lines.append(f"- **Consistency rule**: {_pct(rules.consistency_rule_pct)}% per day")
    lines.append("")

    lines += [
        "## Recommendations",
        f"- **Max risk per trade**: Risk at most {format_usd(ceiling)} "
        f"({ceiling / size * HUNDRED:.2f}%) on any single trade.",
    ]
    if rules.min_trading_days > 0:
        lines.append(
            f"- **Required daily average**: To reach your target in {plan_days} days you need an "
            f"average daily gain of {format_usd(daily_gain)}."
        )
    else:
        lines.append(
            f"- **Suggested daily goal**: To reach your target over a reasonable {plan_days} trading days, "
            f"aim for an average daily gain of {format_usd(daily_gain)}."
        )

    if rules.drawdown_type is DrawdownType.TRAILING:
        lines.append(
            "- **Trailing drawdown**: Your loss limit trails your highest balance, so every new peak "
            "raises the floor. Risk management gets stricter as you progress."
        )

    lines.append(
        "- **Protect the daily limit**: Consider stopping for the day once you reach 60-70% of your "
        "daily drawdown allowance."
    )

    return "\n".join(lines) + "\n"
