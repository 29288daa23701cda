"""Tests for the markdown trading plan."""

import pytest

from propguard.domains.accounts.domain.presets import get_predefined_rules
from propguard.domains.accounts.domain.value_objects import ChallengeRules
from propguard.domains.advisory.trading_plan import generate_trading_plan
from propguard.shared.exceptions.base import ValidationError


class TestTradingPlan:
    """Test plan sections and derived figures."""

    def test_sections_and_figures(self, static_rules):
        """WHEN a static $100K plan without a minimum-days rule is rendered
        THEN the daily goal spreads the target over the default 20 days
        """
        plan = generate_trading_plan(static_rules)

        assert plan.startswith("# Trading Plan for FTMO - $100,000.00\n")
        assert "## Objectives" in plan
        assert "## Risk Management" in plan
        assert "## Recommendations" in plan
        assert "- **Profit target**: $10,000.00 (10.00% of the account)" in plan
        assert "- **Max daily drawdown**: $5,000.00 (5%)" in plan
        assert "- **Drawdown type**: Static" in plan
        assert "Risk at most $2,000.00 (2.00%)" in plan
        assert "over a reasonable 20 trading days, aim for an average daily gain of $500.00" in plan
        assert "Minimum trading days" not in plan
        assert "Trailing drawdown" not in plan
        assert "60-70%" in plan
        assert plan.endswith("\n")

    def test_minimum_days_drive_the_daily_average(self):
        rules = get_predefined_rules("ftmo")

        plan = generate_trading_plan(rules)

        assert "- **Minimum trading days**: 10 days" in plan
        assert "in 10 days you need an average daily gain of $1,000.00" in plan
        assert "- **Consistency rule**: 5% per day" in plan

    def test_trailing_warning(self, trailing_rules):
        plan = generate_trading_plan(trailing_rules)

        assert "- **Drawdown type**: Trailing" in plan
        assert "**Trailing drawdown**" in plan

    def test_missing_firm_name(self):
        rules = ChallengeRules(
            account_size=25000, profit_target=2000, max_daily_drawdown_pct=4.5, max_overall_drawdown_pct=8
        )

        plan = generate_trading_plan(rules)

        assert plan.startswith("# Trading Plan for Prop Firm - $25,000.00")
        assert "(4.5%)" in plan

    def test_plan_requires_rules(self):
        with pytest.raises(ValidationError):
            generate_trading_plan(None)
