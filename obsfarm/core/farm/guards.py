"""Precondition checks for farm commands.

Each guard inspects the PRE-state and raises a `FarmGuardError` subclass when
the command must not proceed. Guards run before any value is computed for
commit, so a raised guard never leaves partial state behind.
"""

from __future__ import annotations

from typing import Iterable

from ...state.ledger import Account
from .errors import (
    FarmGuardError,
    InsufficientStakeError,
    LockupNotElapsedError,
    MissingPaymentUnitError,
    SettlementPendingError,
    UnauthorizedCallerError,
)
from .types import CallContext, FarmConfig


def guard_payment_unit(ctx: CallContext, config: FarmConfig) -> None:
    """Commands require exactly one minimal payment unit attached."""
    if ctx.attached_deposit != config.payment_unit:
        raise MissingPaymentUnitError(
            f"requires attached deposit of exactly {config.payment_unit}, got {ctx.attached_deposit}"
        )


def guard_positive_amount(amount: int) -> None:
    if not isinstance(amount, int) or isinstance(amount, bool):
        raise TypeError("amount must be an int")
    if amount <= 0:
        raise FarmGuardError("Amount must be greater than 0")


def guard_not_pending(account_id: str, pending: bool) -> None:
    if pending:
        raise SettlementPendingError(f"settlement already in flight for @{account_id}")


def guard_sufficient_stake(account: Account, amount: int) -> None:
    if account.staked_balance < amount:
        raise InsufficientStakeError(
            f"unstake amount {amount} exceeds staked balance {account.staked_balance}"
        )


def guard_lockup_elapsed(account: Account, config: FarmConfig, now: int) -> None:
    # A clock reading before the deposit counts as "not yet elapsed".
    if now < account.deposit_time or now - account.deposit_time < config.cliff_time:
        raise LockupNotElapsedError("You can unstake only after the lock-up period since deposit")


def guard_caller(ctx: CallContext, allowed: Iterable[str], *, what: str) -> None:
    allowed = tuple(allowed)
    if ctx.predecessor not in allowed:
        raise UnauthorizedCallerError(f"{what}: caller @{ctx.predecessor} is not one of {list(allowed)}")
