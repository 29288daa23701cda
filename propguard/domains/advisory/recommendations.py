"""
Advisory Generator - rule-based recommendations for an account.

Read-only: consumes the latest status, the rules and the ledger, and
returns an ordered list of messages. Not safety-critical; any internal
failure degrades to a single alert.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Iterable, List, Optional

import structlog

from ...infrastructure.config.settings import AdvisoryConfig, get_settings
from ...shared.utils.money import HUNDRED, format_usd
from ..accounts.domain.account import Account
from ..accounts.domain.enums import AccountKind, AdvisoryKind
from ..accounts.domain.status import AccountStatus
from ..accounts.domain.value_objects import ChallengeRules
from ..accounts.engine.ledger import bucketize_trades, latest_entry
from .position_sizing import max_risk_per_trade

logger = structlog.get_logger(__name__)

ZERO = Decimal("0")

FAILURE_TEXT = "Personalized recommendations could not be generated. Please check the account data."


@dataclass(frozen=True)
class AdvisoryItem:
    text: str
    kind: AdvisoryKind


def generate_advisories(
    status: AccountStatus,
    rules: Optional[ChallengeRules],
    trades: Optional[Iterable[Any]] = None,
    *,
    account_kind: Optional[AccountKind] = None,
    now: Optional[datetime] = None,
    config: Optional[AdvisoryConfig] = None,
) -> List[AdvisoryItem]:
    """
    Build recommendations from an account's state.

    Args:
        status: Latest account status
        rules: Challenge rules, or None for a personal account
        trades: The account's ledger, any order
        account_kind: Personal live/paper distinction for the balance message
        now: Local time of the trader; enables the volatility tip
        config: Advisory thresholds, defaults to the loaded settings

    Returns:
        Ordered advisory items; a single alert if generation fails
    """
    try:
        return _build_advisories(status, rules, trades, account_kind, now, config)
    except Exception:
        logger.exception("Failed to generate advisories")
        return [AdvisoryItem(FAILURE_TEXT, AdvisoryKind.ALERT)]


def generate_account_advisories(
    account: Account,
    now: Optional[datetime] = None,
    config: Optional[AdvisoryConfig] = None,
) -> List[AdvisoryItem]:
    """generate_advisories for a stored account."""
    return generate_advisories(
        account.status,
        account.rules,
        account.trades,
        account_kind=account.kind,
        now=now,
        config=config,
    )


def _build_advisories(
    status: AccountStatus,
    rules: Optional[ChallengeRules],
    trades: Optional[Iterable[Any]],
    account_kind: Optional[AccountKind],
    now: Optional[datetime],
    config: Optional[AdvisoryConfig],
) -> List[AdvisoryItem]:
    settings = get_settings()
    config = config or settings.advisory

    is_challenge = rules is not None
    effective = rules if is_challenge else ChallengeRules.personal_defaults(settings.engine.personal_account_size)
    size = effective.account_size

    profit = status.current_equity - size
    remaining_profit = max(ZERO, effective.profit_target - profit) if is_challenge else ZERO
    progress = profit / effective.profit_target * HUNDRED if is_challenge and effective.profit_target > 0 else ZERO
    days_remaining = max(0, effective.min_trading_days - status.trading_day_count) if is_challenge else 0

    daily_allowance = effective.daily_loss_allowance
    ceiling = max_risk_per_trade(effective, config)
    ceiling_pct = ceiling / size * HUNDRED

    items: List[AdvisoryItem] = []

    if is_challenge:
        items.append(AdvisoryItem(
            f"Limit your risk to at most {format_usd(ceiling)} ({ceiling_pct:.2f}%) per trade "
            f"to protect your capital.",
            AdvisoryKind.STRATEGY,
        ))
    else:
        label = "live" if account_kind is AccountKind.PERSONAL_LIVE else "paper"
        items.append(AdvisoryItem(
            f"This is a personal {label} account. Your current balance is {format_usd(status.current_equity)}.",
            AdvisoryKind.INFORMATION,
        ))
        items.append(AdvisoryItem(
            f"For personal accounts, limit your risk to 1-2% of capital per trade ({format_usd(ceiling)}).",
            AdvisoryKind.STRATEGY,
        ))

    last = latest_entry(bucketize_trades(trades))
    if last is not None and last.pnl < 0 and -last.pnl > ceiling:
        items.append(AdvisoryItem(
            f"Warning! Your last trade lost {format_usd(-last.pnl)}, above the recommended limit of "
            f"{format_usd(ceiling)}. Consider reducing your position size.",
            AdvisoryKind.ALERT,
        ))

    warning_threshold = daily_allowance * config.daily_warning_ratio_pct / HUNDRED
    if status.distance_to_daily_drawdown < warning_threshold:
        remaining_pct = status.distance_to_daily_drawdown / daily_allowance * HUNDRED
        items.append(AdvisoryItem(
            f"Risk alert! Only {remaining_pct:.0f}% of your daily drawdown allowance is left. "
            f"Consider stopping for today or sharply reducing position size.",
            AdvisoryKind.ALERT,
        ))

    if is_challenge and remaining_profit > 0 and days_remaining > 0:
        items.append(AdvisoryItem(
            f"To reach your target in the {days_remaining} remaining days you need an average daily gain of "
            f"{format_usd(remaining_profit / days_remaining)}.",
            AdvisoryKind.INSIGHT,
        ))

    if is_challenge and progress > 0:
        items.append(_progress_item(progress))

    if profit < 0:
        items.append(AdvisoryItem(
            f"You are currently down {format_usd(-profit)}. Focus on small trades to rebuild confidence "
            f"before increasing position size.",
            AdvisoryKind.TIP,
        ))

    if now is not None and config.volatile_hour_start <= now.hour <= config.volatile_hour_end:
        items.append(AdvisoryItem(
            "You are trading during a high-volatility window. Consider reducing position size by 20-30% "
            "to offset the added risk.",
            AdvisoryKind.TIP,
        ))

    return items


def _progress_item(progress: Decimal) -> AdvisoryItem:
    if progress < 25:
        return AdvisoryItem(
            f"You have completed {progress:.1f}% of your target. Keep building consistency and manage risk "
            f"carefully in this early phase.",
            AdvisoryKind.INSIGHT,
        )
    if progress < 50:
        return AdvisoryItem(
            f"You have reached {progress:.1f}% of your target. Consider keeping the strategy that is "
            f"producing these results.",
            AdvisoryKind.TIP,
        )
    if progress < 75:
        return AdvisoryItem(
            f"With {progress:.1f}% of the target reached, you are on the home stretch. It may be time to "
            f"scale risk down gradually to protect your gains.",
            AdvisoryKind.STRATEGY,
        )
    return AdvisoryItem(
        f"Excellent! You have completed {progress:.1f}% of your target. Focus on preserving capital and "
        f"consider cutting your risk per trade significantly.",
        AdvisoryKind.STRATEGY,
    )
