"""Tests for obsfarm/core/farm/math.py: checked u128 helpers and mul_div_scaled."""

import pytest

from obsfarm.core.farm.errors import FarmOverflowError
from obsfarm.core.farm.math import (
    SCALE,
    U128_MAX,
    checked_add,
    checked_mul,
    checked_sub,
    elapsed_since,
    gross_with_fee,
    mul_div_scaled,
    staking_fee,
)


# ---------------------------------------------------------------------------
# mul_div_scaled
# ---------------------------------------------------------------------------

class TestMulDivScaled:
    def test_basic(self):
        assert mul_div_scaled(1000, 864_001, 1800, 31_536_000) == (1000 * 864_001 * 1800 // 31_536_000) * SCALE

    def test_floors_before_scaling(self):
        # 1 * 1 * 1 // 2 == 0: the fraction is lost before the scale is applied.
        assert mul_div_scaled(1, 1, 1, 2) == 0

    def test_zero_operand(self):
        assert mul_div_scaled(0, 10**9, 1800, 31_536_000) == 0
        assert mul_div_scaled(10**9, 0, 1800, 31_536_000) == 0

    def test_custom_scale(self):
        assert mul_div_scaled(10, 10, 10, 3, scale=1) == 333

    def test_wide_intermediate_ok(self):
        # a*b*c exceeds u128 but the quotient fits.
        a = 1 << 100
        assert mul_div_scaled(a, a, 1, a, scale=1) == a

    def test_intermediate_overflow(self):
        with pytest.raises(FarmOverflowError):
            mul_div_scaled(U128_MAX, U128_MAX, U128_MAX, 1)

    def test_result_outside_u128(self):
        with pytest.raises(FarmOverflowError):
            mul_div_scaled(U128_MAX, 1, 1, 1)

    def test_zero_divisor(self):
        with pytest.raises(ValueError):
            mul_div_scaled(1, 1, 1, 0)

    def test_negative_operand(self):
        with pytest.raises(FarmOverflowError):
            mul_div_scaled(-1, 1, 1, 1)

    def test_bool_operand_rejected(self):
        with pytest.raises(TypeError):
            mul_div_scaled(True, 1, 1, 1)


# ---------------------------------------------------------------------------
# Checked helpers
# ---------------------------------------------------------------------------

class TestChecked:
    def test_add(self):
        assert checked_add(2, 3) == 5

    def test_add_overflow(self):
        with pytest.raises(FarmOverflowError):
            checked_add(U128_MAX, 1)

    def test_sub(self):
        assert checked_sub(5, 3) == 2

    def test_sub_underflow(self):
        with pytest.raises(FarmOverflowError, match="underflow in staked"):
            checked_sub(3, 5, name="staked")

    def test_mul(self):
        assert checked_mul(2, 3, 7) == 42

    def test_mul_overflow(self):
        with pytest.raises(FarmOverflowError):
            checked_mul(1 << 64, 1 << 64)


# ---------------------------------------------------------------------------
# Fees and time
# ---------------------------------------------------------------------------

class TestFee:
    def test_fee_is_amount_times_rate_times_scale(self):
        assert staking_fee(1000, 25) == 1000 * 25 * SCALE

    def test_zero_rate(self):
        assert staking_fee(1000, 0) == 0
        assert gross_with_fee(1000, 0) == 1000

    def test_gross(self):
        assert gross_with_fee(7, 25) == 7 + 7 * 25 * SCALE

    def test_fee_overflow(self):
        with pytest.raises(FarmOverflowError):
            gross_with_fee(U128_MAX // SCALE, 25)


class TestElapsed:
    def test_forward(self):
        assert elapsed_since(100, 40) == 60

    def test_same_instant(self):
        assert elapsed_since(5, 5) == 0

    def test_backwards(self):
        with pytest.raises(FarmOverflowError):
            elapsed_since(4, 5)
