"""Pass/fail determination for challenge accounts."""

from decimal import Decimal
from typing import FrozenSet

from ..domain.value_objects import ChallengeRules


class PassFailDeterminer:
    """
    Final verdict of a challenge.

    Re-evaluated on every computation: a pass is not locked in, so a later
    violating trade turns it back into not-passed.
    """

    @staticmethod
    def is_passed(
        is_challenge: bool,
        rules: ChallengeRules,
        current_equity: Decimal,
        days_traded: FrozenSet[str],
        is_daily_drawdown_violated: bool,
        is_overall_drawdown_violated: bool,
    ) -> bool:
        """
        A challenge passes when the target equity is reached, enough
        distinct days were traded and neither drawdown axis is violated.
        Personal accounts never pass.
        """
        return (
            is_challenge
            and current_equity >= rules.target_equity
            and len(days_traded) >= rules.min_trading_days
            and not is_overall_drawdown_violated
            and not is_daily_drawdown_violated
        )
