"""
Drawdown Evaluator - Pure Business Logic

Both drawdown axes are reported as a distance to violation (the room left
before the limit is hit) plus a flag. Distances are clamped at zero for
reporting; the flag is decided on the unclamped value.

Overall:
    allowed = max_overall_drawdown_pct / 100 * baseline
    baseline = account_size (static) or high_water_mark (trailing)
    distance = current_equity - (baseline - allowed)

Daily:
    allowed = max_daily_drawdown_pct / 100 * account_size   (never trailing)
    distance = allowed + pnl of trades on the reference day
    The allowance itself never compounds with earlier profits.
"""

from dataclasses import dataclass
from decimal import Decimal

from ....shared.utils.money import percent_of
from ..domain.enums import DrawdownType
from ..domain.value_objects import ChallengeRules

ZERO = Decimal("0")


@dataclass(frozen=True)
class DrawdownResult:
    """Room left on one drawdown axis."""

    raw_distance: Decimal
    allowed_loss: Decimal

    @property
    def distance(self) -> Decimal:
        """Distance clamped at zero so no caller sees negative room."""
        return max(ZERO, self.raw_distance)

    @property
    def is_violated(self) -> bool:
        return self.raw_distance <= ZERO


class DrawdownEvaluator:
    """
    Pure drawdown arithmetic.

    All methods are deterministic and have no side effects.
    """

    @staticmethod
    def overall_baseline(rules: ChallengeRules, high_water_mark: Decimal) -> Decimal:
        """Static drawdown anchors at the account size, trailing at the peak."""
        if rules.drawdown_type is DrawdownType.TRAILING:
            return high_water_mark
        return rules.account_size

    @classmethod
    def evaluate_overall(
        cls,
        rules: ChallengeRules,
        current_equity: Decimal,
        high_water_mark: Decimal,
    ) -> DrawdownResult:
        """
        Evaluate the overall drawdown axis.

        Trailing is stricter over time because its baseline only rises.
        """
        baseline = cls.overall_baseline(rules, high_water_mark)
        allowed_loss = percent_of(baseline, rules.max_overall_drawdown_pct)
        floor = baseline - allowed_loss
        return DrawdownResult(raw_distance=current_equity - floor, allowed_loss=allowed_loss)

    @staticmethod
    def evaluate_daily(rules: ChallengeRules, todays_pnl: Decimal) -> DrawdownResult:
        """
        Evaluate the daily drawdown axis for the reference day.

        Today's losses erode the allowance. The allowance is always measured
        against the static account size.
        """
        allowed_loss = rules.daily_loss_allowance
        return DrawdownResult(raw_distance=allowed_loss + todays_pnl, allowed_loss=allowed_loss)
