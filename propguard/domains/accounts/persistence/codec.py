"""
Persistence codec: in-memory entities <-> storage-safe plain records.

dehydrate: Decimal -> str, datetime -> ISO string, day set -> sorted list,
enum -> value. hydrate reverses it with fallback defaults; it only
raises when the top-level record itself is missing.

Statuses, rules and trades round-trip exactly. A trade record lists the
keys it stored from Decimal or datetime values under "valueTypes"; only
those are converted back, so a string pnl stays a string and the engine
keeps excluding it.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Callable, Dict, Mapping, Optional

import structlog

from ....infrastructure.config.settings import get_settings
from ....shared.exceptions.base import HydrationError, ValidationError
from ....shared.utils.money import parse_decimal
from ..domain.account import Account, ChallengeAccount, PersonalAccount
from ..domain.enums import AccountKind, DrawdownType, ImportMethod
from ..domain.presets import get_predefined_rules
from ..domain.status import AccountStatus
from ..domain.value_objects import ChallengeRules, Trade
from ..engine.ledger import parse_trade_date

logger = structlog.get_logger(__name__)

PlainRecord = Dict[str, Any]
Clock = Callable[[], datetime]

_DECIMAL_STATUS_FIELDS = (
    ("currentEquity", "current_equity"),
    ("highWaterMark", "high_water_mark"),
    ("distanceToDailyDrawdown", "distance_to_daily_drawdown"),
    ("distanceToOverallDrawdown", "distance_to_overall_drawdown"),
)
_BOOL_STATUS_FIELDS = (
    ("isDailyDrawdownViolated", "is_daily_drawdown_violated"),
    ("isOverallDrawdownViolated", "is_overall_drawdown_violated"),
    ("isPassed", "is_passed"),
)


def _require_record(record: Any, entity: str) -> Mapping[str, Any]:
    if record is None or not isinstance(record, Mapping):
        raise HydrationError(f"Invalid {entity} data: expected a record, got {type(record).__name__}")
    return record


VALUE_TYPES_KEY = "valueTypes"

# Storage key -> Trade attribute for fields that may hold Decimal or date values
_TYPED_TRADE_FIELDS = (
    ("date", "date"),
    ("pnl", "pnl"),
    ("entryPrice", "entry_price"),
    ("exitPrice", "exit_price"),
    ("quantity", "quantity"),
    ("pnlPercentage", "pnl_percentage"),
    ("commission", "commission"),
    ("riskRewardRatio", "risk_reward_ratio"),
)


def _dump_value(value: Any) -> Any:
    """Storage-safe form of a loose trade field."""
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


def _value_type(value: Any) -> Optional[str]:
    if isinstance(value, Decimal):
        return "decimal"
    if isinstance(value, datetime):
        return "datetime"
    if isinstance(value, date):
        return "date"
    return None


def _load_typed(value: Any, value_type: Any) -> Any:
    """Reverse _dump_value for a tagged field; a value that does not parse stays as stored."""
    if not isinstance(value, str):
        return value
    try:
        if value_type == "decimal":
            parsed = parse_decimal(value)
            return value if parsed is None else parsed
        if value_type == "datetime":
            return datetime.fromisoformat(value)
        if value_type == "date":
            return date.fromisoformat(value)
    except ValueError:
        return value
    return value


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class StatusCodec:
    """Codec for AccountStatus."""

    @staticmethod
    def dehydrate(status: AccountStatus) -> PlainRecord:
        record: PlainRecord = {
            storage_key: str(getattr(status, attr)) for storage_key, attr in _DECIMAL_STATUS_FIELDS
        }
        record["daysTraded"] = sorted(status.days_traded)
        for storage_key, attr in _BOOL_STATUS_FIELDS:
            record[storage_key] = bool(getattr(status, attr))
        return record

    @staticmethod
    def hydrate(record: Any, fallback: Optional[AccountStatus] = None) -> AccountStatus:
        """
        Rebuild a status.

        Missing or invalid fields come from `fallback`, else zero/False.
        A missing or invalid day set becomes an empty set.
        """
        record = _require_record(record, "status")

        values: Dict[str, Any] = {}
        for storage_key, attr in _DECIMAL_STATUS_FIELDS:
            amount = parse_decimal(record.get(storage_key))
            if amount is None:
                amount = getattr(fallback, attr) if fallback is not None else Decimal("0")
            values[attr] = amount

        for storage_key, attr in _BOOL_STATUS_FIELDS:
            flag = record.get(storage_key)
            if not isinstance(flag, bool):
                flag = getattr(fallback, attr) if fallback is not None else False
            values[attr] = flag

        days = record.get("daysTraded")
        if isinstance(days, (list, tuple, set, frozenset)):
            values["days_traded"] = frozenset(str(day) for day in days)
        else:
            values["days_traded"] = frozenset()

        return AccountStatus(**values)


class TradeCodec:
    """Codec for ledger trades. Malformed values are preserved as stored."""

    @staticmethod
    def dehydrate(trade: Trade) -> PlainRecord:
        record: PlainRecord = dict(trade.extra)
        record.update({
            "id": trade.id,
            "date": _dump_value(trade.date),
            "pnl": _dump_value(trade.pnl),
            "symbol": trade.symbol,
            "type": trade.side,
            "entryPrice": _dump_value(trade.entry_price),
            "exitPrice": _dump_value(trade.exit_price),
            "quantity": _dump_value(trade.quantity),
            "pnlPercentage": _dump_value(trade.pnl_percentage),
            "commission": _dump_value(trade.commission),
            "setup": trade.setup,
            "notes": trade.notes,
            "tags": list(trade.tags),
            "duration": trade.duration,
            "riskRewardRatio": _dump_value(trade.risk_reward_ratio),
        })
        record.pop(VALUE_TYPES_KEY, None)

        value_types = {
            storage_key: _value_type(getattr(trade, attr))
            for storage_key, attr in _TYPED_TRADE_FIELDS
            if _value_type(getattr(trade, attr)) is not None
        }
        if value_types:
            record[VALUE_TYPES_KEY] = value_types
        return record

    @staticmethod
    def hydrate(record: Any) -> Trade:
        """Values are taken as stored except those tagged in valueTypes."""
        record = _require_record(record, "trade")
        values = dict(record)
        value_types = values.pop(VALUE_TYPES_KEY, None)
        if isinstance(value_types, Mapping):
            for storage_key, _ in _TYPED_TRADE_FIELDS:
                if storage_key in value_types and storage_key in values:
                    values[storage_key] = _load_typed(values[storage_key], value_types[storage_key])
        return Trade.from_mapping(values)


class RulesCodec:
    """Codec for ChallengeRules."""

    @staticmethod
    def dehydrate(rules: ChallengeRules) -> PlainRecord:
        return {
            "firmName": rules.firm_name,
            "accountSize": str(rules.account_size),
            "profitTarget": str(rules.profit_target),
            "maxDailyDrawdown": str(rules.max_daily_drawdown_pct),
            "maxOverallDrawdown": str(rules.max_overall_drawdown_pct),
            "drawdownType": rules.drawdown_type.value,
            "minTradingDays": rules.min_trading_days,
            "consistencyRulePercentage": (
                str(rules.consistency_rule_pct) if rules.consistency_rule_pct is not None else None
            ),
            "otherRules": rules.other_rules,
        }

    @staticmethod
    def hydrate(record: Any) -> ChallengeRules:
        """Raises ValidationError when the stored rules are unusable."""
        if not isinstance(record, Mapping):
            raise ValidationError("Rules record missing")
        return ChallengeRules(
            account_size=record.get("accountSize"),
            profit_target=record.get("profitTarget"),
            max_daily_drawdown_pct=record.get("maxDailyDrawdown"),
            max_overall_drawdown_pct=record.get("maxOverallDrawdown"),
            drawdown_type=record.get("drawdownType") or DrawdownType.STATIC,
            min_trading_days=record.get("minTradingDays") or 0,
            consistency_rule_pct=record.get("consistencyRulePercentage"),
            firm_name=record.get("firmName") or "",
            other_rules=record.get("otherRules"),
        )


def _parse_enum(enum_cls, value: Any, default):
    try:
        return enum_cls(value)
    except ValueError:
        return default


class AccountCodec:
    """Codec for ChallengeAccount / PersonalAccount."""

    @staticmethod
    def dehydrate(account: Account) -> PlainRecord:
        return {
            "id": account.id,
            "name": account.name,
            "type": account.kind.value,
            "importMethod": account.import_method.value,
            "broker": account.broker,
            "startDate": account.start_date.isoformat(),
            "endDate": account.end_date.isoformat() if account.end_date else None,
            "rules": RulesCodec.dehydrate(account.rules) if account.rules is not None else None,
            "status": StatusCodec.dehydrate(account.status),
            "trades": [TradeCodec.dehydrate(trade) for trade in account.trades],
        }

    @staticmethod
    def hydrate(record: Any, now: Optional[Clock] = None) -> Account:
        """
        Rebuild an account with defaults for missing fields.

        Raises:
            HydrationError: If the record itself is missing or has no id
        """
        record = _require_record(record, "account")
        account_id = record.get("id")
        if not account_id:
            raise HydrationError("Invalid account data: missing id")
        account_id = str(account_id)

        start_date = parse_trade_date(record.get("startDate"))
        if start_date is None:
            start_date = (now or _utc_now)()

        kind = _parse_enum(AccountKind, record.get("type"), AccountKind.PERSONAL_PAPER)
        raw_trades = record.get("trades")
        trades = tuple(
            TradeCodec.hydrate(item)
            for item in (raw_trades if isinstance(raw_trades, list) else [])
            if isinstance(item, Mapping)
        )

        common = dict(
            id=account_id,
            name=record.get("name") or "Unnamed account",
            broker=record.get("broker") or "Unknown",
            import_method=_parse_enum(ImportMethod, record.get("importMethod"), ImportMethod.MANUAL),
            start_date=start_date,
            end_date=parse_trade_date(record.get("endDate")),
            trades=trades,
        )

        if kind.is_challenge:
            try:
                rules = RulesCodec.hydrate(record.get("rules"))
            except ValidationError as e:
                logger.warning(
                    "Stored challenge rules unusable, using custom preset",
                    account_id=account_id,
                    error=str(e),
                )
                rules = get_predefined_rules("custom")
            status = AccountCodec._hydrate_status(record.get("status"), rules)
            return ChallengeAccount(rules=rules, status=status, **common)

        personal_rules = ChallengeRules.personal_defaults(get_settings().engine.personal_account_size)
        status = AccountCodec._hydrate_status(record.get("status"), personal_rules)
        return PersonalAccount(kind=kind, status=status, **common)

    @staticmethod
    def _hydrate_status(record: Any, rules: ChallengeRules) -> AccountStatus:
        initial = AccountStatus.initial(rules)
        if not isinstance(record, Mapping):
            return initial
        return StatusCodec.hydrate(record, fallback=initial)
