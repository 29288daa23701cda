"""Domain enums for accounts and the status engine."""

from enum import Enum
from typing import Union


class DrawdownType(Enum):
    """How the overall drawdown floor is anchored."""

    STATIC = "static"
    TRAILING = "trailing"

    @classmethod
    def parse(cls, value: Union["DrawdownType", str]) -> "DrawdownType":
        """Accept an enum member or its name/value in any case."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            normalized = value.strip().lower()
            for member in cls:
                if member.value == normalized:
                    return member
        raise ValueError(f"Unknown drawdown type: {value!r}")


class AccountKind(Enum):
    """Account variants."""

    PROP_FIRM_CHALLENGE = "prop_firm_challenge"
    PERSONAL_LIVE = "personal_live"
    PERSONAL_PAPER = "personal_paper"

    @property
    def is_challenge(self) -> bool:
        """Only challenges carry rules and can pass."""
        return self is AccountKind.PROP_FIRM_CHALLENGE


class ImportMethod(Enum):
    """How the account's trades reach the ledger."""

    AUTO_SYNC = "auto_sync"
    FILE_UPLOAD = "file_upload"
    MANUAL = "manual"


class AdvisoryKind(Enum):
    """Category of an advisory message."""

    ALERT = "alert"
    INSIGHT = "insight"
    TIP = "tip"
    STRATEGY = "strategy"
    INFORMATION = "information"


class StatusSource(Enum):
    """Where a returned status came from."""

    FRESH = "fresh"        # computed from the supplied ledger
    PREVIOUS = "previous"  # computation failed, last known status returned
    DEFAULT = "default"    # computation failed, no previous status
