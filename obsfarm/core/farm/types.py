"""Data types for the staking farm.

Records are frozen dataclasses; updates go through `dataclasses.replace()`.

Units/conventions:
- balances are u128 integer token units,
- `*_rate` values are plain integer multipliers,
- times are non-negative integer time units (seconds in the defaults).
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, unique
from typing import Optional

from ...state.account_key import AccountId, AccountKey
from ...state.ledger import Account

# Gas attached to each outbound call.
BASE_GAS: int = 5_000_000_000_000
PROMISE_CALL: int = 5_000_000_000_000
GAS_FOR_ACCOUNT_REGISTRATION: int = BASE_GAS
GAS_FOR_ON_TRANSFER: int = BASE_GAS + PROMISE_CALL

NO_DEPOSIT: int = 0

# How long an account-locking settlement chain may stay unresolved before it can be expired.
DEFAULT_SETTLEMENT_TIMEOUT: int = 60 * 60 * 24

# Memo that marks an inbound notification as stake intake.
STAKE_MSG = "Stake"


@dataclass(frozen=True)
class FarmConfig:
    """Immutable farm configuration, fixed at initialization."""

    farm_id: str
    base_asset_id: str
    reward_asset_id: str
    reward_rate: int = 1800
    staking_fee_rate: int = 25
    cliff_time: int = 60 * 60 * 24 * 10
    reward_interval: int = 60 * 60 * 24 * 365
    payment_unit: int = 1
    gas_for_on_transfer: int = GAS_FOR_ON_TRANSFER
    gas_for_account_registration: int = GAS_FOR_ACCOUNT_REGISTRATION
    settlement_timeout: int = DEFAULT_SETTLEMENT_TIMEOUT

    def __post_init__(self) -> None:
        for name in ("farm_id", "base_asset_id", "reward_asset_id"):
            v = getattr(self, name)
            if not isinstance(v, str) or not v:
                raise ValueError(f"{name} must be a non-empty str")
        if len({self.farm_id, self.base_asset_id, self.reward_asset_id}) != 3:
            raise ValueError("farm_id, base_asset_id and reward_asset_id must be distinct")
        for name in (
            "reward_rate",
            "staking_fee_rate",
            "cliff_time",
            "reward_interval",
            "payment_unit",
            "gas_for_on_transfer",
            "gas_for_account_registration",
            "settlement_timeout",
        ):
            v = getattr(self, name)
            if not isinstance(v, int) or isinstance(v, bool) or v < 0:
                raise ValueError(f"{name} must be a non-negative int")
        if self.reward_interval == 0:
            raise ValueError("reward_interval must be positive")
        if self.payment_unit == 0:
            raise ValueError("payment_unit must be positive")
        if self.settlement_timeout == 0:
            raise ValueError("settlement_timeout must be positive")


@dataclass(frozen=True)
class FarmTotals:
    """Global aggregates owned by the farm."""

    obs_per_reward_rate: int = 0
    total_staked: int = 0
    total_reward_farmed: int = 0
    total_reward_claimed: int = 0


@dataclass(frozen=True)
class TotalsDelta:
    """Signed change a single command applied to `FarmTotals`."""

    obs_per_reward_rate: int = 0
    total_staked: int = 0
    total_reward_farmed: int = 0
    total_reward_claimed: int = 0


@dataclass(frozen=True)
class CallContext:
    """Who is calling, when, and with what payment attached."""

    predecessor: AccountId
    now: int
    attached_deposit: int = NO_DEPOSIT


@unique
class Command(Enum):
    STAKE = "stake"
    UNSTAKE = "unstake"
    REGISTER_FARM = "register_farm"


@unique
class Event(Enum):
    STAKED = "Staked"
    UNSTAKED = "Unstaked"


@unique
class ActionKind(Enum):
    FT_TRANSFER = "ft_transfer"
    ON_TRANSFER = "on_transfer"
    REGISTER_ACCOUNT = "register_account"


@unique
class SettlementStatus(Enum):
    PENDING = "pending"
    SETTLED = "settled"
    FAILED = "failed"


@dataclass(frozen=True)
class ExternalAction:
    """One outbound call in a settlement chain.

    `target` is the party that executes the call (an asset service, or the
    farm itself for the `on_transfer` self-callback) and therefore the only
    party allowed to report its outcome.
    """

    kind: ActionKind
    target: str
    receiver: str
    amount: int = 0
    memo: Optional[str] = None
    deposit: int = NO_DEPOSIT
    gas: int = 0


@dataclass(frozen=True)
class Compensation:
    """What to undo if the chain fails before any step settles."""

    account_key: AccountKey
    account_before: Account
    totals_delta: TotalsDelta


@dataclass(frozen=True)
class TransferChain:
    """An ordered list of external actions driven by an execution cursor."""

    chain_id: int
    command: Command
    account_id: AccountId
    actions: tuple[ExternalAction, ...]
    cursor: int = 0
    in_flight: bool = False
    status: SettlementStatus = SettlementStatus.PENDING
    compensation: Optional[Compensation] = None
    compensated: bool = False
    failure_reason: Optional[str] = None
    opened_at: Optional[int] = None

    @property
    def current_action(self) -> Optional[ExternalAction]:
        if self.status is not SettlementStatus.PENDING or self.cursor >= len(self.actions):
            return None
        return self.actions[self.cursor]

    @property
    def is_terminal(self) -> bool:
        return self.status is not SettlementStatus.PENDING


@dataclass(frozen=True)
class DispatchTicket:
    """Handle for one dispatched step; echoed back with its outcome."""

    chain_id: int
    step: int
    action: ExternalAction


@dataclass(frozen=True)
class CommandResult:
    """Outcome of a committed command."""

    event: Event
    account: Account
    chain_id: Optional[int] = None
    actions: tuple[ExternalAction, ...] = ()


@dataclass(frozen=True)
class Accrual:
    """Result of bringing one account's reward up to date."""

    account: Account
    farmed: int
    rate_snapshot: int


@dataclass(frozen=True)
class FarmerAccountView:
    staked_balance: int
    reward_balance: int
    reward_claimed: int


@dataclass(frozen=True)
class FarmStats:
    total_staked: int
    total_reward_claimed: int
    total_reward_farmed: int
