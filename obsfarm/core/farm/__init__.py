"""`farm`: pure-Python staking farm with deferred settlement.

Depositors stake a base asset for a lock-up period and accrue a reward
denominated in a second asset. The package is built like a small kernel:
- integer-only fixed-point math with explicit overflow checks,
- immutable records (frozen dataclasses),
- fail-closed guards and invariant checks,
- outbound transfers described as settlement chains and resolved by callbacks.

Public API:
- `FarmState.initialize(config, store=None) -> FarmState`
- `FarmState.open(store) -> FarmState`
- `FarmState.stake / unstake / register_account / ft_on_transfer / on_transfer`
- `FarmState.dispatch_ready() / resolve(...)`
"""

from .accrual import touch
from .engine import FarmState
from .errors import (
    AlreadyInitializedError,
    FarmError,
    FarmGuardError,
    FarmInvariantError,
    FarmOverflowError,
    InsufficientStakeError,
    LockupNotElapsedError,
    MissingPaymentUnitError,
    NotInitializedError,
    SettlementNotExpiredError,
    SettlementPendingError,
    UnauthorizedCallerError,
    UnknownSettlementError,
)
from .math import SCALE, mul_div_scaled, staking_fee
from .types import (
    ActionKind,
    CallContext,
    Command,
    CommandResult,
    DispatchTicket,
    Event,
    ExternalAction,
    FarmConfig,
    FarmerAccountView,
    FarmStats,
    FarmTotals,
    SettlementStatus,
    TransferChain,
)

__all__ = [
    "FarmState",
    "touch",
    "SCALE",
    "mul_div_scaled",
    "staking_fee",
    "ActionKind",
    "CallContext",
    "Command",
    "CommandResult",
    "DispatchTicket",
    "Event",
    "ExternalAction",
    "FarmConfig",
    "FarmerAccountView",
    "FarmStats",
    "FarmTotals",
    "SettlementStatus",
    "TransferChain",
    "FarmError",
    "FarmGuardError",
    "FarmInvariantError",
    "FarmOverflowError",
    "InsufficientStakeError",
    "LockupNotElapsedError",
    "MissingPaymentUnitError",
    "NotInitializedError",
    "AlreadyInitializedError",
    "SettlementNotExpiredError",
    "SettlementPendingError",
    "UnauthorizedCallerError",
    "UnknownSettlementError",
]
