"""Fixed-point arithmetic for the staking farm.

Every function is stateless and operates on plain Python ints.

Python ints never wrap, so the fixed widths of the ledger are
enforced explicitly: balances live in u128, the multiply-then-divide
intermediate lives in u256, and leaving either domain raises
`FarmOverflowError` instead of truncating. Division is `//` (floor).
"""

from __future__ import annotations

from ...state.ledger import U128_MAX
from .errors import FarmOverflowError

# Fixed-point denominator (10**18 precision).
SCALE: int = 1_000_000_000_000_000_000

WIDE_MAX: int = (1 << 256) - 1


def _require_u128(value: int, name: str) -> int:
    if not isinstance(value, int) or isinstance(value, bool):
        raise TypeError(f"{name} must be an int")
    if value < 0 or value > U128_MAX:
        raise FarmOverflowError(f"{name} outside u128: {value}")
    return value


# -- Checked u128 helpers ----------------------------------------------------

def checked_add(a: int, b: int, *, name: str = "sum") -> int:
    """``a + b``, failing when the result leaves u128."""
    _require_u128(a, name)
    _require_u128(b, name)
    out = a + b
    if out > U128_MAX:
        raise FarmOverflowError(f"overflow in {name}")
    return out


def checked_sub(a: int, b: int, *, name: str = "difference") -> int:
    """``a - b``, failing when the result would be negative."""
    _require_u128(a, name)
    _require_u128(b, name)
    if b > a:
        raise FarmOverflowError(f"underflow in {name}: {a} - {b}")
    return a - b


def checked_mul(*factors: int, name: str = "product") -> int:
    """Product of all factors, failing when the result leaves u128."""
    out = 1
    for f in factors:
        _require_u128(f, name)
        out *= f
    if out > U128_MAX:
        raise FarmOverflowError(f"overflow in {name}")
    return out


# -- Wide multiply-then-divide -----------------------------------------------

def mul_div_scaled(a: int, b: int, c: int, d: int, *, scale: int = SCALE) -> int:
    """``((a * b * c) // d) * scale`` with a u256 intermediate.

    The full product is formed before the division so no precision is lost
    to an early truncation. The result is floored back to u128.
    """
    _require_u128(a, "a")
    _require_u128(b, "b")
    _require_u128(c, "c")
    _require_u128(d, "d")
    if d == 0:
        raise ValueError("divisor must be positive")

    product = a * b * c
    if product > WIDE_MAX:
        raise FarmOverflowError("overflow in u256 intermediate product")
    scaled = (product // d) * scale
    if scaled > WIDE_MAX:
        raise FarmOverflowError("overflow in u256 scaled quotient")
    if scaled > U128_MAX:
        raise FarmOverflowError("fixed-point result does not fit in u128")
    return scaled


def staking_fee(amount: int, staking_fee_rate: int) -> int:
    """Fee charged on top of a stake: ``amount * staking_fee_rate * SCALE``."""
    return checked_mul(amount, staking_fee_rate, SCALE, name="staking fee")


def gross_with_fee(amount: int, staking_fee_rate: int) -> int:
    """Principal plus fee, the quantity actually moved by a transfer."""
    return checked_add(amount, staking_fee(amount, staking_fee_rate), name="gross amount")


def elapsed_since(now: int, then: int) -> int:
    """Time difference ``now - then``; time running backwards is fatal."""
    if now < then:
        raise FarmOverflowError(f"timestamp {now} precedes {then}")
    return now - then
