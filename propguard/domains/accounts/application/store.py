"""
Account Store - application state for accounts and their ledgers.

Owns the account collection, keeps every account's status in step with
its ledger and persists through a DocumentStore with a debounced save.
Time comes only from the injected clock: it is "today" for the daily
drawdown axis and the basis of the save debounce.
"""

import json
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Set, Union
from uuid import uuid4

import structlog

from ....infrastructure.common.context import ExecutionContext, with_execution_context
from ....infrastructure.config.settings import AppSettings, get_settings
from ....infrastructure.persistence.document_store import DocumentStore
from ....shared.events.event_bus import (
    ACCOUNT_ADDED,
    ACCOUNT_DELETED,
    ACCOUNT_STATUS_CHANGED,
    EventBus,
)
from ....shared.exceptions.base import (
    EntityNotFoundError,
    HydrationError,
    ImmutableAccountFieldError,
    PersistenceError,
    ValidationError,
)
from ..domain.account import Account, ChallengeAccount, PersonalAccount
from ..domain.enums import AccountKind, ImportMethod
from ..domain.status import AccountStatus, StatusEvaluation
from ..domain.value_objects import ChallengeRules, Trade
from ..engine.assembler import StatusAssembler, compute_account_status
from ..persistence.codec import AccountCodec

logger = structlog.get_logger(__name__)

Clock = Callable[[], datetime]
TradeInput = Union[Trade, Mapping[str, Any]]

_IMMUTABLE_FIELDS = frozenset({"id", "kind", "rules", "trades", "status"})
_EDITABLE_FIELDS = frozenset({"name", "broker", "import_method", "start_date", "end_date"})


@dataclass(frozen=True)
class AccountStatusChanged:
    """Payload of ACCOUNT_STATUS_CHANGED."""

    account_id: str
    previous: AccountStatus
    current: AccountStatus
    evaluation: StatusEvaluation


def _coerce_trade(trade: TradeInput) -> Trade:
    if isinstance(trade, Trade):
        return trade
    if isinstance(trade, Mapping):
        return Trade.from_mapping(trade)
    raise ValidationError(f"Trade must be a Trade or a mapping, got {type(trade).__name__}")


def _with_id(trade: Trade) -> Trade:
    return trade if trade.id else replace(trade, id=str(uuid4()))


def _require_trade_id(trade_id: Any) -> None:
    if not trade_id:
        raise ValidationError("A trade id is required to update or delete a trade")


class AccountStore:
    """
    In-process account state with debounced document persistence.

    Not thread-safe; one store serves one session.
    """

    def __init__(
        self,
        storage: DocumentStore,
        clock: Clock,
        settings: Optional[AppSettings] = None,
        event_bus: Optional[EventBus] = None,
    ):
        self.storage = storage
        self.clock = clock
        self.settings = settings or get_settings()
        self.event_bus = event_bus or EventBus()
        self.assembler = StatusAssembler(
            personal_account_size=self.settings.engine.personal_account_size,
            fallback_account_size=self.settings.engine.fallback_challenge_account_size,
        )

        self._accounts: Dict[str, Account] = {}
        self._deleted_ids: Set[str] = set()
        self._selected_id: Optional[str] = None
        self._save_due_at: Optional[datetime] = None

    # ------------------------------------------------------------------
    # Loading and persistence
    # ------------------------------------------------------------------

    def load(self) -> List[Account]:
        """
        Replace the in-memory state with the stored documents.

        Tombstoned accounts are skipped. An account record that cannot be
        hydrated is skipped with a warning; unreadable documents raise.

        Raises:
            PersistenceError: If a document is not valid JSON
        """
        persistence = self.settings.persistence
        deleted_ids = self._read_document(persistence.deleted_ids_key, default=[])
        records = self._read_document(persistence.accounts_key, default=[])

        self._deleted_ids = {str(account_id) for account_id in deleted_ids} if isinstance(deleted_ids, list) else set()
        self._accounts = {}

        skipped = 0
        for record in records if isinstance(records, list) else []:
            try:
                account = AccountCodec.hydrate(record, now=self.clock)
            except HydrationError as e:
                skipped += 1
                logger.warning("Skipping unreadable account record", error=str(e))
                continue
            if account.id in self._deleted_ids:
                continue
            if not all(trade.id for trade in account.trades):
                account = replace(account, trades=tuple(_with_id(trade) for trade in account.trades))
            self._accounts[account.id] = account

        if self._selected_id not in self._accounts:
            self._selected_id = None
        self._save_due_at = None

        logger.info(
            "Accounts loaded",
            accounts=len(self._accounts),
            tombstones=len(self._deleted_ids),
            skipped=skipped,
        )
        return self.list_accounts()

    def _read_document(self, key: str, default: Any) -> Any:
        text = self.storage.get(key)
        if text is None:
            return default
        try:
            return json.loads(text)
        except ValueError as e:
            logger.error("Stored document is not valid JSON", key=key, error=str(e))
            raise PersistenceError(f"Stored document is not valid JSON: {e}", key=key) from e

    @property
    def has_pending_save(self) -> bool:
        return self._save_due_at is not None

    @property
    def save_due_at(self) -> Optional[datetime]:
        return self._save_due_at

    def _schedule_save(self) -> None:
        """Push the save due time out; mutations inside the window coalesce into one write."""
        self._save_due_at = self.clock() + timedelta(milliseconds=self.settings.persistence.debounce_ms)

    def flush_pending(self) -> bool:
        """Write the accounts if a scheduled save is due. Returns True when a write happened."""
        if self._save_due_at is None or self.clock() < self._save_due_at:
            return False
        self.flush()
        return True

    def flush(self) -> None:
        """
        Write the accounts document now and clear any pending save.

        Raises:
            PersistenceError: If the storage backend fails; the save stays pending
        """
        key = self.settings.persistence.accounts_key
        records = [AccountCodec.dehydrate(account) for account in self._accounts.values()]
        try:
            try:
                document = json.dumps(records)
            except (TypeError, ValueError) as e:
                raise PersistenceError(f"Accounts are not JSON serializable: {e}", key=key) from e
            self.storage.set(key, document)
        except PersistenceError:
            logger.exception("Failed to save accounts", accounts=len(records))
            raise
        self._save_due_at = None
        logger.info("Accounts saved", accounts=len(records))

    def _save_deleted_ids(self, deleted_ids: Set[str]) -> None:
        try:
            self.storage.set(
                self.settings.persistence.deleted_ids_key,
                json.dumps(sorted(deleted_ids)),
            )
        except PersistenceError:
            logger.exception("Failed to save deleted account ids", tombstones=len(deleted_ids))
            raise

    # ------------------------------------------------------------------
    # Accounts
    # ------------------------------------------------------------------

    def add_account(
        self,
        name: str,
        kind: Union[AccountKind, str] = AccountKind.PROP_FIRM_CHALLENGE,
        rules: Optional[ChallengeRules] = None,
        *,
        broker: str = "Unknown",
        import_method: Union[ImportMethod, str] = ImportMethod.MANUAL,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        trades: Iterable[TradeInput] = (),
        account_id: Optional[str] = None,
    ) -> Account:
        """
        Create an account with an optional initial ledger.

        Raises:
            ValidationError: If a challenge has no rules, a personal account
                has rules, or the id is already taken
        """
        kind = AccountKind(kind)
        account_id = account_id or str(uuid4())
        if account_id in self._accounts:
            raise ValidationError(f"Account {account_id} already exists")

        context = ExecutionContext.create_for_operation("add_account", account_id=account_id)
        with with_execution_context(context):
            ledger = tuple(_with_id(_coerce_trade(trade)) for trade in trades)
            common = dict(
                id=account_id,
                name=name,
                broker=broker or "Unknown",
                import_method=ImportMethod(import_method),
                start_date=start_date or self.clock(),
                end_date=end_date,
                trades=ledger,
            )

            if kind.is_challenge:
                if not isinstance(rules, ChallengeRules):
                    raise ValidationError("A challenge account requires rules")
                account: Account = ChallengeAccount(
                    rules=rules, status=AccountStatus.initial(rules), **common
                )
            else:
                if rules is not None:
                    raise ValidationError("Personal accounts do not carry rules")
                account = PersonalAccount(
                    kind=kind, status=self.assembler.default_status(None), **common
                )

            if ledger:
                evaluation = compute_account_status(account, self.clock(), self.assembler)
                account = replace(account, status=evaluation.status)

            self._accounts[account.id] = account
            self._schedule_save()

            logger.info("Account added", kind=kind.value, trades=len(ledger))
            self.event_bus.emit(ACCOUNT_ADDED, account)
            return account

    def get_account(self, account_id: str) -> Account:
        """
        Raises:
            EntityNotFoundError: If no such account exists
        """
        account = self._accounts.get(account_id)
        if account is None:
            raise EntityNotFoundError("Account", account_id)
        return account

    def list_accounts(self) -> List[Account]:
        return list(self._accounts.values())

    def update_account(self, account_id: str, **changes: Any) -> Account:
        """
        Change descriptive fields of an account.

        Raises:
            EntityNotFoundError: If no such account exists
            ImmutableAccountFieldError: For id, kind, rules, trades or status
            ValidationError: For fields an account does not have
        """
        account = self.get_account(account_id)
        for field_name in changes:
            if field_name in _IMMUTABLE_FIELDS:
                raise ImmutableAccountFieldError(account_id, field_name)
            if field_name not in _EDITABLE_FIELDS:
                raise ValidationError(f"Unknown account field: {field_name}")

        if "import_method" in changes:
            changes["import_method"] = ImportMethod(changes["import_method"])

        updated = replace(account, **changes)
        self._accounts[account_id] = updated
        self._schedule_save()
        logger.info("Account updated", account_id=account_id, fields=sorted(changes))
        return updated

    def delete_account(self, account_id: str) -> None:
        """
        Remove an account and remember its id so a later load skips it.

        The tombstone is written first; if that fails nothing changes.

        Raises:
            EntityNotFoundError: If no such account exists
            PersistenceError: If the tombstone cannot be saved
        """
        account = self.get_account(account_id)
        context = ExecutionContext.create_for_operation("delete_account", account_id=account_id)
        with with_execution_context(context):
            deleted_ids = self._deleted_ids | {account_id}
            self._save_deleted_ids(deleted_ids)
            self._deleted_ids = deleted_ids

            del self._accounts[account_id]
            if self._selected_id == account_id:
                self._selected_id = None
            self._schedule_save()

            logger.info("Account deleted")
            self.event_bus.emit(ACCOUNT_DELETED, account)

    @property
    def deleted_account_ids(self) -> frozenset:
        return frozenset(self._deleted_ids)

    def select_account(self, account_id: Optional[str]) -> None:
        """Select an account, or clear the selection with None."""
        if account_id is not None:
            self.get_account(account_id)
        self._selected_id = account_id

    @property
    def selected_account(self) -> Optional[Account]:
        if self._selected_id is None:
            return None
        return self._accounts.get(self._selected_id)

    # ------------------------------------------------------------------
    # Ledger
    # ------------------------------------------------------------------

    def add_trade(self, account_id: str, trade: TradeInput) -> StatusEvaluation:
        """Append a trade; a trade without an id gets one."""
        account = self.get_account(account_id)
        new_trade = _with_id(_coerce_trade(trade))
        return self._apply_ledger(account, account.trades + (new_trade,), "add_trade")

    def update_trade(self, account_id: str, trade: TradeInput) -> StatusEvaluation:
        """
        Replace the trade with the same id.

        Raises:
            EntityNotFoundError: If the account or the trade does not exist
            ValidationError: If the trade has no id
        """
        account = self.get_account(account_id)
        updated = _coerce_trade(trade)
        _require_trade_id(updated.id)
        if not any(existing.id == updated.id for existing in account.trades):
            raise EntityNotFoundError("Trade", updated.id)

        trades = tuple(updated if existing.id == updated.id else existing for existing in account.trades)
        return self._apply_ledger(account, trades, "update_trade")

    def delete_trade(self, account_id: str, trade_id: str) -> StatusEvaluation:
        """
        Raises:
            EntityNotFoundError: If the account or the trade does not exist
            ValidationError: If trade_id is empty
        """
        account = self.get_account(account_id)
        _require_trade_id(trade_id)
        trades = tuple(existing for existing in account.trades if existing.id != trade_id)
        if len(trades) == len(account.trades):
            raise EntityNotFoundError("Trade", trade_id)
        return self._apply_ledger(account, trades, "delete_trade")

    def replace_trades(self, account_id: str, trades: Iterable[TradeInput]) -> StatusEvaluation:
        """Swap in a whole ledger, e.g. after a file import."""
        account = self.get_account(account_id)
        ledger = tuple(_with_id(_coerce_trade(trade)) for trade in trades)
        return self._apply_ledger(account, ledger, "replace_trades")

    def recalculate_account_status(self, account_id: str) -> StatusEvaluation:
        """Recompute against the current clock; a new day resets the daily axis."""
        account = self.get_account(account_id)
        return self._apply_ledger(account, account.trades, "recalculate_status")

    def _apply_ledger(self, account: Account, trades: tuple, operation: str) -> StatusEvaluation:
        context = ExecutionContext.create_for_operation(operation, account_id=account.id)
        with with_execution_context(context):
            candidate = replace(account, trades=trades)
            evaluation = compute_account_status(candidate, self.clock(), self.assembler)
            updated = replace(candidate, status=evaluation.status)

            self._accounts[account.id] = updated
            status_changed = updated.status != account.status
            if status_changed or trades != account.trades:
                self._schedule_save()

            logger.info(
                "Ledger updated",
                trades=len(trades),
                status_source=evaluation.source.value,
                status_changed=status_changed,
            )

            if status_changed:
                self.event_bus.emit(
                    ACCOUNT_STATUS_CHANGED,
                    AccountStatusChanged(
                        account_id=account.id,
                        previous=account.status,
                        current=updated.status,
                        evaluation=evaluation,
                    ),
                )
            return evaluation
