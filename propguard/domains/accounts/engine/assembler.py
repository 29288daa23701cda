"""
Status Assembler - orchestration and failure containment.

Flow for each computation:
1. Validate trades and bucket them by day
2. Compute equity and replay the high-water mark
3. Evaluate overall and daily drawdown
4. Determine pass/fail
5. Assemble an immutable AccountStatus

The engine reads no clock: the reference day is an explicit input. Any
exception is contained here and turned into a fallback result that says
where the returned status came from.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Iterable, Optional, Union

import structlog

from ....infrastructure.config.settings import EngineConfig, get_settings
from ....shared.exceptions.base import ConfigurationError, ValidationError
from ..domain.account import Account
from ..domain.enums import StatusSource
from ..domain.status import AccountStatus, StatusEvaluation
from ..domain.value_objects import ChallengeRules
from .drawdown import DrawdownEvaluator
from .equity import EquityTracker
from .ledger import bucketize_trades, day_key
from .verdict import PassFailDeterminer

logger = structlog.get_logger(__name__)

ReferenceDay = Union[date, datetime, str]


class StatusAssembler:
    """Turns a trade ledger and rules into an account status snapshot."""

    def __init__(
        self,
        personal_account_size: Optional[Decimal] = None,
        fallback_account_size: Optional[Decimal] = None,
    ):
        """Sizes left as None are read from the engine settings when first needed."""
        for name, size in (
            ("personal_account_size", personal_account_size),
            ("fallback_account_size", fallback_account_size),
        ):
            if size is not None and size <= 0:
                raise ValidationError(f"{name} must be positive: {size}")
        self.personal_account_size = personal_account_size
        self.fallback_account_size = fallback_account_size

    def _size(self, explicit: Optional[Decimal], setting: str) -> Decimal:
        """Explicit size, else the configured one, else the setting's declared default."""
        if explicit is not None:
            return explicit
        try:
            return getattr(get_settings().engine, setting)
        except ConfigurationError as e:
            logger.warning("Engine settings unavailable, using default size", setting=setting, error=str(e))
            return EngineConfig.model_fields[setting].default

    def evaluate(
        self,
        rules: Optional[ChallengeRules],
        trades: Optional[Iterable[Any]],
        today: ReferenceDay,
        previous: Optional[AccountStatus] = None,
    ) -> StatusEvaluation:
        """
        Compute the status, never raising.

        Args:
            rules: Challenge rules, or None for a personal account
            trades: Full current ledger (Trade objects or mappings, any order)
            today: Reference day for the daily drawdown axis
            previous: Last known status, returned if the computation fails

        Returns:
            StatusEvaluation with the status and its source
        """
        try:
            return StatusEvaluation(status=self.assemble(rules, trades, today))
        except Exception as e:
            logger.exception(
                "Status computation failed, returning fallback status",
                has_previous=previous is not None,
            )
            reason = f"{type(e).__name__}: {e}"
            if previous is not None:
                return StatusEvaluation(status=previous, source=StatusSource.PREVIOUS, reason=reason)
            return StatusEvaluation(
                status=self.default_status(rules),
                source=StatusSource.DEFAULT,
                reason=reason,
            )

    def assemble(
        self,
        rules: Optional[ChallengeRules],
        trades: Optional[Iterable[Any]],
        today: ReferenceDay,
    ) -> AccountStatus:
        """Run the pipeline; raises on unexpected input."""
        is_challenge = rules is not None
        effective_rules = rules if is_challenge else ChallengeRules.personal_defaults(
            self._size(self.personal_account_size, "personal_account_size")
        )

        today_key = day_key(today)
        if today_key is None:
            raise ValueError(f"Reference day is not a valid date: {today!r}")

        buckets = bucketize_trades(trades)
        if not buckets.entries:
            # Malformed trades count as absent, so an all-malformed ledger is an empty one
            return AccountStatus.initial(effective_rules)

        equity = EquityTracker.track(effective_rules.account_size, buckets.entries)

        overall = DrawdownEvaluator.evaluate_overall(
            effective_rules, equity.current_equity, equity.high_water_mark
        )
        daily = DrawdownEvaluator.evaluate_daily(effective_rules, buckets.pnl_on(today_key))

        days_traded = buckets.days_traded
        is_passed = PassFailDeterminer.is_passed(
            is_challenge=is_challenge,
            rules=effective_rules,
            current_equity=equity.current_equity,
            days_traded=days_traded,
            is_daily_drawdown_violated=daily.is_violated,
            is_overall_drawdown_violated=overall.is_violated,
        )

        status = AccountStatus(
            current_equity=equity.current_equity,
            high_water_mark=equity.high_water_mark,
            days_traded=days_traded,
            distance_to_daily_drawdown=daily.distance,
            distance_to_overall_drawdown=overall.distance,
            is_daily_drawdown_violated=daily.is_violated,
            is_overall_drawdown_violated=overall.is_violated,
            is_passed=is_passed,
        )

        logger.debug(
            "Account status computed",
            valid_trades=len(buckets.entries),
            rejected_trades=buckets.rejected_count,
            days_traded=len(days_traded),
            current_equity=str(status.current_equity),
            is_passed=status.is_passed,
        )
        return status

    def default_status(self, rules: Any) -> AccountStatus:
        """Full headroom, no violations, not passed."""
        if isinstance(rules, ChallengeRules):
            return AccountStatus.initial(rules)
        if rules is None:
            size = self._size(self.personal_account_size, "personal_account_size")
        else:
            size = self._size(self.fallback_account_size, "fallback_challenge_account_size")
        return AccountStatus.initial(ChallengeRules.personal_defaults(size))


def evaluate_status(
    rules: Optional[ChallengeRules],
    trades: Optional[Iterable[Any]],
    today: ReferenceDay,
    previous: Optional[AccountStatus] = None,
) -> StatusEvaluation:
    """Compute a status and report whether it is fresh or a fallback."""
    return StatusAssembler().evaluate(rules, trades, today, previous)


def compute_status(
    rules: Optional[ChallengeRules],
    trades: Optional[Iterable[Any]],
    today: ReferenceDay,
    previous: Optional[AccountStatus] = None,
) -> AccountStatus:
    """Compute a status snapshot; never raises."""
    return evaluate_status(rules, trades, today, previous).status


def compute_account_status(
    account: Account,
    today: ReferenceDay,
    assembler: Optional[StatusAssembler] = None,
) -> StatusEvaluation:
    """Recompute an account's status from its own ledger, falling back to its current status."""
    assembler = assembler or StatusAssembler()
    return assembler.evaluate(
        rules=account.rules if account.kind.is_challenge else None,
        trades=account.trades,
        today=today,
        previous=account.status,
    )
