"""
PropGuard - account status engine for prop-firm challenges and personal accounts.

Turns a trade ledger and challenge rules into a risk/compliance snapshot:

- Equity and high-water mark from a chronological replay
- Daily and overall drawdown distance under static or trailing policy
- Pass/fail verdict against profit target and minimum trading days
- Rule-based advisories, trading plans and position sizing
- Account store with debounced document persistence
"""

from .domains.accounts.application.store import AccountStatusChanged, AccountStore
from .domains.accounts.domain.account import Account, ChallengeAccount, PersonalAccount
from .domains.accounts.domain.enums import (
    AccountKind,
    AdvisoryKind,
    DrawdownType,
    ImportMethod,
    StatusSource,
)
from .domains.accounts.domain.presets import (
    SUPPORTED_PROP_FIRMS,
    amount_to_percent,
    get_predefined_rules,
    percent_to_amount,
)
from .domains.accounts.domain.status import AccountStatus, StatusEvaluation
from .domains.accounts.domain.value_objects import ChallengeRules, Trade
from .domains.accounts.engine.assembler import (
    StatusAssembler,
    compute_account_status,
    compute_status,
    evaluate_status,
)
from .domains.accounts.persistence.codec import AccountCodec, StatusCodec, TradeCodec
from .domains.advisory.position_sizing import (
    PositionSizeParams,
    PositionSizeResult,
    calculate_max_position_size,
)
from .domains.advisory.recommendations import (
    AdvisoryItem,
    generate_account_advisories,
    generate_advisories,
)
from .domains.advisory.trading_plan import generate_trading_plan

__version__ = "0.1.0"
