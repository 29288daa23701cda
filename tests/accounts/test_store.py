"""
Unit tests for the account store.

The clock is injected, so "today" and the save debounce are fully
deterministic. No threads, no sleeping.
"""

import json
from datetime import datetime
from decimal import Decimal
from unittest.mock import Mock

import pytest

from propguard.domains.accounts.application.store import AccountStatusChanged, AccountStore
from propguard.domains.accounts.domain.account import ChallengeAccount, PersonalAccount
from propguard.domains.accounts.domain.enums import AccountKind, ImportMethod, StatusSource
from propguard.domains.accounts.domain.status import AccountStatus
from propguard.domains.accounts.domain.value_objects import Trade
from propguard.domains.accounts.engine.drawdown import DrawdownEvaluator
from propguard.infrastructure.persistence.document_store import InMemoryDocumentStore
from propguard.shared.events.event_bus import ACCOUNT_ADDED, ACCOUNT_DELETED, ACCOUNT_STATUS_CHANGED
from propguard.shared.exceptions.base import (
    EntityNotFoundError,
    ImmutableAccountFieldError,
    PersistenceError,
    ValidationError,
)

TODAY = "2024-03-15T09:00:00"
YESTERDAY = "2024-03-14T15:00:00"


class CountingStore(InMemoryDocumentStore):
    """In-memory store that records every write."""

    def __init__(self):
        super().__init__()
        self.writes = []

    def set(self, key, value):
        self.writes.append(key)
        super().set(key, value)


class FailingStore(InMemoryDocumentStore):
    def set(self, key, value):
        raise PersistenceError("disk full", key=key)


class TombstoneFailingStore(InMemoryDocumentStore):
    """Fails the first deleted-ids write only."""

    def __init__(self):
        super().__init__()
        self.failed = False

    def set(self, key, value):
        if key == "deletedAccountIds" and not self.failed:
            self.failed = True
            raise PersistenceError("disk full", key=key)
        super().set(key, value)


@pytest.fixture
def store(storage, clock, event_bus):
    return AccountStore(storage, clock, event_bus=event_bus)


@pytest.fixture
def challenge(store, static_rules):
    return store.add_account("FTMO 100K", AccountKind.PROP_FIRM_CHALLENGE, static_rules, account_id="acc-1")


class TestAccounts:
    """Test account lifecycle."""

    def test_add_challenge_account(self, store, static_rules):
        """WHEN a challenge account is created without trades
        THEN it starts with the initial status and the clock's start date
        """
        account = store.add_account("FTMO 100K", AccountKind.PROP_FIRM_CHALLENGE, static_rules)

        assert isinstance(account, ChallengeAccount)
        assert account.status == AccountStatus.initial(static_rules)
        assert account.start_date == datetime(2024, 3, 15, 10, 0)
        assert store.get_account(account.id) is account
        assert store.list_accounts() == [account]

    def test_add_account_with_initial_ledger(self, store, static_rules, make_trade):
        """WHEN a challenge is created from imported trades
        THEN its status is computed from them and trades without an id get one
        """
        account = store.add_account(
            "Imported",
            AccountKind.PROP_FIRM_CHALLENGE,
            static_rules,
            import_method=ImportMethod.FILE_UPLOAD,
            trades=[make_trade("t1", YESTERDAY, 2500), {"date": TODAY, "pnl": -500}],
        )

        assert account.status.current_equity == Decimal("102000")
        assert account.status.distance_to_daily_drawdown == Decimal("4500")
        assert all(trade.id for trade in account.trades)

    def test_add_personal_account(self, store):
        account = store.add_account("Paper", "personal_paper")

        assert isinstance(account, PersonalAccount)
        assert account.status.current_equity == Decimal("10000")

    def test_challenge_requires_rules(self, store):
        with pytest.raises(ValidationError):
            store.add_account("No rules", AccountKind.PROP_FIRM_CHALLENGE)

    def test_personal_account_rejects_rules(self, store, static_rules):
        with pytest.raises(ValidationError):
            store.add_account("Live", AccountKind.PERSONAL_LIVE, static_rules)

    def test_duplicate_id_rejected(self, store, challenge, static_rules):
        with pytest.raises(ValidationError):
            store.add_account("Again", AccountKind.PROP_FIRM_CHALLENGE, static_rules, account_id="acc-1")

    def test_add_emits_event(self, storage, clock, static_rules):
        bus = Mock()
        store = AccountStore(storage, clock, event_bus=bus)

        account = store.add_account("FTMO", AccountKind.PROP_FIRM_CHALLENGE, static_rules)

        bus.emit.assert_called_once_with(ACCOUNT_ADDED, account)

    def test_update_descriptive_fields(self, store, challenge):
        updated = store.update_account("acc-1", name="Renamed", broker="IC Markets", import_method="auto_sync")

        assert updated.name == "Renamed"
        assert updated.broker == "IC Markets"
        assert updated.import_method is ImportMethod.AUTO_SYNC
        assert updated.rules == challenge.rules
        assert store.get_account("acc-1") is updated

    @pytest.mark.parametrize("field_name", ["id", "kind", "rules", "trades", "status"])
    def test_identity_and_rules_are_immutable(self, store, challenge, field_name):
        """WHEN an update touches identity, kind, rules or derived state
        THEN ImmutableAccountFieldError is raised and nothing changes
        """
        with pytest.raises(ImmutableAccountFieldError) as exc_info:
            store.update_account("acc-1", **{field_name: None})

        assert exc_info.value.field_name == field_name
        assert store.get_account("acc-1") is challenge

    def test_unknown_field_rejected(self, store, challenge):
        with pytest.raises(ValidationError):
            store.update_account("acc-1", colour="blue")

    def test_unknown_account_raises(self, store):
        with pytest.raises(EntityNotFoundError):
            store.get_account("missing")
        with pytest.raises(EntityNotFoundError):
            store.add_trade("missing", {"id": "t1", "date": TODAY, "pnl": 1})
        with pytest.raises(EntityNotFoundError):
            store.delete_account("missing")

    def test_selection(self, store, challenge):
        assert store.selected_account is None

        store.select_account("acc-1")
        assert store.selected_account is challenge

        store.select_account(None)
        assert store.selected_account is None

        with pytest.raises(EntityNotFoundError):
            store.select_account("missing")


class TestLedgerMutations:
    """Every ledger change recomputes the status wholesale."""

    def test_add_trade_recomputes_and_emits(self, store, challenge, event_bus):
        """WHEN a losing trade is added today
        THEN the status is replaced and ACCOUNT_STATUS_CHANGED carries both statuses
        """
        received = []
        event_bus.subscribe(ACCOUNT_STATUS_CHANGED, received.append)

        evaluation = store.add_trade("acc-1", {"id": "t1", "date": TODAY, "pnl": -3000})

        account = store.get_account("acc-1")
        assert evaluation.is_fresh
        assert account.status is evaluation.status
        assert account.status.current_equity == Decimal("97000")
        assert account.status.distance_to_daily_drawdown == Decimal("2000")
        assert len(received) == 1
        assert isinstance(received[0], AccountStatusChanged)
        assert received[0].previous == challenge.status
        assert received[0].current == account.status

    def test_previous_account_object_is_untouched(self, store, challenge):
        store.add_trade("acc-1", Trade(id="t1", date=TODAY, pnl=100))

        assert challenge.trades == ()
        assert challenge.status == AccountStatus.initial(challenge.rules)

    def test_update_trade(self, store, challenge):
        store.add_trade("acc-1", {"id": "t1", "date": TODAY, "pnl": -3000})

        store.update_trade("acc-1", {"id": "t1", "date": TODAY, "pnl": 1000})

        account = store.get_account("acc-1")
        assert len(account.trades) == 1
        assert account.status.current_equity == Decimal("101000")

    def test_delete_trade(self, store, challenge):
        store.add_trade("acc-1", {"id": "t1", "date": TODAY, "pnl": -3000})

        store.delete_trade("acc-1", "t1")

        assert store.get_account("acc-1").status == AccountStatus.initial(challenge.rules)

    def test_unknown_trade_raises(self, store, challenge):
        with pytest.raises(EntityNotFoundError):
            store.update_trade("acc-1", {"id": "nope", "date": TODAY, "pnl": 1})
        with pytest.raises(EntityNotFoundError):
            store.delete_trade("acc-1", "nope")

    def test_empty_trade_id_rejected(self, store, challenge):
        """WHEN update or delete is asked for a trade with an empty id
        THEN the call is rejected instead of matching every id-less trade
        """
        store.add_trade("acc-1", {"id": "t1", "date": TODAY, "pnl": -3000})

        with pytest.raises(ValidationError):
            store.delete_trade("acc-1", "")
        with pytest.raises(ValidationError):
            store.update_trade("acc-1", {"id": "", "date": TODAY, "pnl": 1})
        assert [t.id for t in store.get_account("acc-1").trades] == ["t1"]

    def test_replace_trades(self, store, challenge, make_trade):
        store.add_trade("acc-1", make_trade("old", TODAY, -100))

        store.replace_trades("acc-1", [make_trade("a", YESTERDAY, 6000), make_trade("b", TODAY, 4000)])

        account = store.get_account("acc-1")
        assert [t.id for t in account.trades] == ["a", "b"]
        assert account.status.is_passed is True

    def test_unchanged_status_emits_nothing(self, store, challenge, event_bus):
        """WHEN a malformed trade is added
        THEN the status is unchanged and no status event is emitted
        """
        received = []
        event_bus.subscribe(ACCOUNT_STATUS_CHANGED, received.append)

        store.add_trade("acc-1", {"id": "bad", "date": TODAY, "pnl": "abc"})

        assert received == []
        assert len(store.get_account("acc-1").trades) == 1

    def test_new_day_resets_daily_axis(self, store, challenge, clock, event_bus):
        """WHEN the clock moves to the next day and the status is recalculated
        THEN yesterday's losses no longer count against the daily allowance
        """
        store.add_trade("acc-1", {"id": "t1", "date": TODAY, "pnl": -3000})
        assert store.get_account("acc-1").status.distance_to_daily_drawdown == Decimal("2000")

        clock.advance(days=1)
        evaluation = store.recalculate_account_status("acc-1")

        assert evaluation.status.distance_to_daily_drawdown == Decimal("5000")
        assert evaluation.status.current_equity == Decimal("97000")

    def test_failed_computation_keeps_previous_status(self, store, challenge, monkeypatch):
        """WHEN the engine fails during a mutation
        THEN the account keeps its last status and the evaluation says so
        """
        store.add_trade("acc-1", {"id": "t1", "date": TODAY, "pnl": 500})
        before = store.get_account("acc-1").status

        def boom(*args, **kwargs):
            raise RuntimeError("engine down")

        monkeypatch.setattr(DrawdownEvaluator, "evaluate_daily", boom)
        evaluation = store.add_trade("acc-1", {"id": "t2", "date": TODAY, "pnl": -9000})

        assert evaluation.source is StatusSource.PREVIOUS
        assert store.get_account("acc-1").status is before
        assert len(store.get_account("acc-1").trades) == 2


class TestDebouncedPersistence:
    """Saves are scheduled on the injected clock and coalesced."""

    def test_save_waits_for_debounce(self, clock, static_rules):
        storage = CountingStore()
        store = AccountStore(storage, clock)

        store.add_account("FTMO", AccountKind.PROP_FIRM_CHALLENGE, static_rules, account_id="acc-1")

        assert store.has_pending_save
        assert store.flush_pending() is False
        assert storage.writes == []

        clock.advance(milliseconds=500)

        assert store.flush_pending() is True
        assert storage.writes == ["accounts"]
        assert not store.has_pending_save
        assert json.loads(storage.get("accounts"))[0]["id"] == "acc-1"

    def test_mutations_inside_window_coalesce(self, clock, static_rules):
        """WHEN several mutations land 200ms apart
        THEN the due time moves with each one and a single write happens
        """
        storage = CountingStore()
        store = AccountStore(storage, clock)
        store.add_account("FTMO", AccountKind.PROP_FIRM_CHALLENGE, static_rules, account_id="acc-1")

        for i in range(3):
            clock.advance(milliseconds=200)
            store.add_trade("acc-1", {"id": f"t{i}", "date": TODAY, "pnl": 100})
            assert store.flush_pending() is False

        clock.advance(milliseconds=500)
        assert store.flush_pending() is True
        assert storage.writes == ["accounts"]
        assert len(json.loads(storage.get("accounts"))[0]["trades"]) == 3

    def test_flush_writes_immediately(self, store, challenge, storage):
        store.flush()

        assert storage.get("accounts") is not None
        assert not store.has_pending_save

    def test_debounce_is_configurable(self, clock, static_rules, app_settings):
        settings = app_settings.model_copy(
            update={"persistence": app_settings.persistence.model_copy(update={"debounce_ms": 0})}
        )
        store = AccountStore(CountingStore(), clock, settings=settings)

        store.add_account("FTMO", AccountKind.PROP_FIRM_CHALLENGE, static_rules)

        assert store.flush_pending() is True

    def test_failed_flush_stays_pending(self, clock, static_rules):
        store = AccountStore(FailingStore(), clock)
        store.add_account("FTMO", AccountKind.PROP_FIRM_CHALLENGE, static_rules)

        with pytest.raises(PersistenceError):
            store.flush()

        assert store.has_pending_save


class TestLoadAndTombstones:
    """Test reloading and deleted-account tombstones."""

    def test_reload_restores_accounts(self, store, challenge, storage, clock):
        store.add_trade("acc-1", {"id": "t1", "date": TODAY, "pnl": 1200})
        store.add_account("Paper", AccountKind.PERSONAL_PAPER, account_id="p1")
        store.flush()

        reloaded = AccountStore(storage, clock)
        accounts = reloaded.load()

        assert [a.id for a in accounts] == ["acc-1", "p1"]
        assert reloaded.get_account("acc-1").status == store.get_account("acc-1").status
        assert reloaded.get_account("acc-1").rules == challenge.rules
        assert not reloaded.has_pending_save

    def test_delete_records_tombstone(self, store, challenge, storage, clock, event_bus):
        """WHEN an account is deleted
        THEN its id is saved immediately and a later load skips it
        """
        deleted = []
        event_bus.subscribe(ACCOUNT_DELETED, deleted.append)
        store.flush()
        store.select_account("acc-1")

        store.delete_account("acc-1")

        assert json.loads(storage.get("deletedAccountIds")) == ["acc-1"]
        assert store.selected_account is None
        assert deleted == [challenge]

        # The accounts document still holds acc-1 until the debounced save runs
        reloaded = AccountStore(storage, clock)
        assert reloaded.load() == []
        assert reloaded.deleted_account_ids == frozenset({"acc-1"})

    def test_unreadable_records_are_skipped(self, clock):
        storage = InMemoryDocumentStore({
            "accounts": json.dumps([{"id": "p1", "name": "Ok"}, {"name": "no id"}, None]),
        })
        store = AccountStore(storage, clock)

        accounts = store.load()

        assert [a.id for a in accounts] == ["p1"]

    def test_corrupt_document_raises(self, clock):
        store = AccountStore(InMemoryDocumentStore({"accounts": "{not json"}), clock)

        with pytest.raises(PersistenceError):
            store.load()

    def test_empty_storage_loads_nothing(self, store):
        assert store.load() == []

    def test_string_pnl_stays_excluded_after_reload(self, store, challenge, storage, clock):
        """WHEN a trade with a numeric-string pnl is saved and reloaded
        THEN it is still excluded from the equity
        """
        store.add_trade("acc-1", {"id": "t1", "date": TODAY, "pnl": "-6000"})
        store.flush()

        reloaded = AccountStore(storage, clock)
        reloaded.load()
        evaluation = reloaded.recalculate_account_status("acc-1")

        assert reloaded.get_account("acc-1").trades[0].pnl == "-6000"
        assert evaluation.status.current_equity == Decimal("100000")
        assert evaluation.status == store.get_account("acc-1").status

    def test_failed_tombstone_write_changes_nothing(self, clock, static_rules):
        """WHEN saving the tombstone fails
        THEN the account stays and a later delete records only its own id
        """
        storage = TombstoneFailingStore()
        store = AccountStore(storage, clock)
        store.add_account("A", AccountKind.PROP_FIRM_CHALLENGE, static_rules, account_id="a")

        with pytest.raises(PersistenceError):
            store.delete_account("a")

        assert [a.id for a in store.list_accounts()] == ["a"]
        assert store.deleted_account_ids == frozenset()

        store.add_account("B", AccountKind.PROP_FIRM_CHALLENGE, static_rules, account_id="b")
        store.delete_account("b")
        store.flush()

        reloaded = AccountStore(storage, clock)
        assert [a.id for a in reloaded.load()] == ["a"]
        assert reloaded.deleted_account_ids == frozenset({"b"})

    def test_stored_trades_without_ids_get_distinct_ids(self, clock):
        storage = InMemoryDocumentStore({
            "accounts": json.dumps([{
                "id": "p1",
                "trades": [
                    {"date": "2024-03-14", "pnl": 100},
                    {"date": "2024-03-14", "pnl": 200},
                    {"id": "kept", "date": "2024-03-15", "pnl": 300},
                ],
            }]),
        })
        store = AccountStore(storage, clock)

        ids = [t.id for t in store.load()[0].trades]

        assert ids[2] == "kept"
        assert all(ids)
        assert len(set(ids)) == 3

        store.delete_trade("p1", ids[0])
        assert [t.pnl for t in store.get_account("p1").trades] == [200, 300]
