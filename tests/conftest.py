"""
Shared test fixtures and configuration for the PropGuard test suite.
"""

import os
from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from propguard.domains.accounts.domain.enums import DrawdownType
from propguard.domains.accounts.domain.value_objects import ChallengeRules
from propguard.infrastructure.config.settings import reload_settings
from propguard.infrastructure.persistence.document_store import InMemoryDocumentStore
from propguard.shared.events.event_bus import EventBus


class FakeClock:
    """Manually advanced clock injected wherever the code needs "now"."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture(autouse=True)
def app_settings(monkeypatch):
    """Settings rebuilt from a clean environment for every test."""
    for name in list(os.environ):
        if name.startswith("PROPGUARD_"):
            monkeypatch.delenv(name)
    settings = reload_settings()
    yield settings
    # Restore the environment a test may have broken before rebuilding from it
    monkeypatch.undo()
    reload_settings()


@pytest.fixture
def static_rules():
    """$100K challenge, $10K target, 5% daily, 10% overall, static."""
    return ChallengeRules(
        account_size=Decimal("100000"),
        profit_target=Decimal("10000"),
        max_daily_drawdown_pct=Decimal("5"),
        max_overall_drawdown_pct=Decimal("10"),
        drawdown_type=DrawdownType.STATIC,
        min_trading_days=0,
        firm_name="FTMO",
    )


@pytest.fixture
def trailing_rules():
    """Same challenge with a trailing overall drawdown."""
    return ChallengeRules(
        account_size=Decimal("100000"),
        profit_target=Decimal("10000"),
        max_daily_drawdown_pct=Decimal("5"),
        max_overall_drawdown_pct=Decimal("10"),
        drawdown_type=DrawdownType.TRAILING,
        min_trading_days=0,
        firm_name="Funded Next",
    )


@pytest.fixture
def clock():
    return FakeClock(datetime(2024, 3, 15, 10, 0, 0))


@pytest.fixture
def storage():
    return InMemoryDocumentStore()


@pytest.fixture
def event_bus():
    return EventBus()


@pytest.fixture
def make_trade():
    """Factory for plain trade records as the ledger stores them."""

    def _make(trade_id, date, pnl, **fields):
        return {"id": trade_id, "date": date, "pnl": pnl, **fields}

    return _make
