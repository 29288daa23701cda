"""
Account variants.

A challenge account carries rules and can pass; a personal account has no
rules and is evaluated against synthetic defaults. Accounts are immutable:
the store replaces the whole object whenever the ledger or status changes.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Tuple, Union

from ....shared.exceptions.base import ValidationError
from .enums import AccountKind, ImportMethod
from .status import AccountStatus
from .value_objects import ChallengeRules, Trade


@dataclass(frozen=True, kw_only=True)
class _AccountBase:
    id: str
    name: str
    status: AccountStatus
    start_date: datetime
    broker: str = "Unknown"
    import_method: ImportMethod = ImportMethod.MANUAL
    end_date: Optional[datetime] = None
    trades: Tuple[Trade, ...] = field(default=())

    def __post_init__(self) -> None:
        if not self.id:
            raise ValidationError("Account id cannot be empty")
        if not isinstance(self.trades, tuple):
            object.__setattr__(self, "trades", tuple(self.trades))


@dataclass(frozen=True, kw_only=True)
class ChallengeAccount(_AccountBase):
    """Prop-firm challenge account."""

    rules: ChallengeRules

    @property
    def kind(self) -> AccountKind:
        return AccountKind.PROP_FIRM_CHALLENGE


@dataclass(frozen=True, kw_only=True)
class PersonalAccount(_AccountBase):
    """Personal live or paper account; no rules, never passes."""

    kind: AccountKind = AccountKind.PERSONAL_PAPER

    def __post_init__(self) -> None:
        super().__post_init__()
        if self.kind.is_challenge:
            raise ValidationError("A personal account cannot be of challenge kind")

    @property
    def rules(self) -> None:
        return None


Account = Union[ChallengeAccount, PersonalAccount]
