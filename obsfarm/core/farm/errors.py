"""Exception types for the staking farm.

Every command raises before it commits anything, so catching one of these
means the farm is exactly as it was before the call.
"""

from __future__ import annotations


class FarmError(Exception):
    """Base class for all farm failures."""


class FarmGuardError(FarmError):
    """Raised when a command's precondition is not satisfied."""


class MissingPaymentUnitError(FarmGuardError):
    """The caller did not attach exactly one minimal payment unit."""


class InsufficientStakeError(FarmGuardError):
    """Unstake amount exceeds the account's staked balance."""


class LockupNotElapsedError(FarmGuardError):
    """Unstake attempted before the cliff has elapsed since deposit."""


class UnauthorizedCallerError(FarmGuardError):
    """A callback or notification arrived from a party that may not send it."""


class SettlementPendingError(FarmGuardError):
    """The account already has a settlement chain in flight."""


class FarmOverflowError(FarmError):
    """Raised when arithmetic leaves the u128/u256 domain (or time runs backwards)."""


class FarmInvariantError(FarmError):
    """Raised when a post-state violates one or more invariants."""

    def __init__(self, violations: list[str]) -> None:
        self.violations = violations
        super().__init__(f"invariant violations: {', '.join(violations)}")


class UnknownSettlementError(FarmError):
    """A settlement callback does not match any in-flight step."""


class AlreadyInitializedError(FarmError):
    """The backing store already holds a farm record."""


class NotInitializedError(FarmError):
    """The backing store holds no farm record."""


class SettlementNotExpiredError(FarmGuardError):
    """Expiry requested for a chain that is still within its settlement timeout."""
