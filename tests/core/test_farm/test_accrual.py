"""Tests for obsfarm/core/farm/accrual.py: the pure touch() step."""

import pytest

from obsfarm.core.farm.accrual import earned_since_deposit, touch
from obsfarm.core.farm.errors import FarmOverflowError
from obsfarm.core.farm.math import SCALE
from obsfarm.core.farm.types import FarmConfig
from obsfarm.state.ledger import Account

CLIFF = 864_000
INTERVAL = 31_536_000
T0 = 1_700_000_000


def _config(**kwargs) -> FarmConfig:
    base = dict(
        farm_id="farm.test",
        base_asset_id="obs.test",
        reward_asset_id="reward.test",
        staking_fee_rate=0,
    )
    base.update(kwargs)
    return FarmConfig(**base)


def _expected(staked: int, elapsed: int, rate: int = 1800) -> int:
    return (staked * elapsed * rate // INTERVAL) * SCALE


class TestTouch:
    def test_zero_elapsed_credits_nothing(self):
        acct = Account(staked_balance=1000, deposit_time=T0)
        r = touch(acct, _config(), T0)
        assert r.account == acct
        assert r.farmed == 0

    def test_within_cliff_credits_nothing(self):
        acct = Account(staked_balance=1000, deposit_time=T0)
        r = touch(acct, _config(), T0 + CLIFF)
        assert r.account.reward_balance == 0
        assert r.farmed == 0

    def test_past_cliff_credits_formula(self):
        elapsed = CLIFF + 1
        acct = Account(staked_balance=1000, deposit_time=T0)
        r = touch(acct, _config(), T0 + elapsed)
        assert r.account.reward_balance == _expected(1000, elapsed)
        assert r.farmed == _expected(1000, elapsed)

    def test_one_year(self):
        acct = Account(staked_balance=1000, deposit_time=T0)
        r = touch(acct, _config(), T0 + INTERVAL)
        assert r.account.reward_balance == 1000 * 1800 * SCALE

    def test_does_not_mutate_input(self):
        acct = Account(staked_balance=1000, deposit_time=T0)
        touch(acct, _config(), T0 + 2 * CLIFF)
        assert acct.reward_balance == 0

    def test_rate_snapshot_passthrough(self):
        acct = Account(staked_balance=1, deposit_time=T0, reward_rate_snapshot=42)
        assert touch(acct, _config(), T0 + 2 * CLIFF).rate_snapshot == 42

    def test_twice_at_zero_elapsed_is_stable(self):
        acct = Account(staked_balance=1000, deposit_time=T0)
        once = touch(acct, _config(), T0).account
        twice = touch(once, _config(), T0).account
        assert twice.reward_balance == once.reward_balance == 0

    def test_twice_past_cliff_credits_twice(self):
        # Accrual is anchored at deposit_time, so every application adds the full amount.
        now = T0 + CLIFF + 10_000
        acct = Account(staked_balance=1000, deposit_time=T0)
        first = touch(acct, _config(), now)
        second = touch(first.account, _config(), now)
        assert second.account.reward_balance == 2 * _expected(1000, CLIFF + 10_000)
        assert second.farmed == first.farmed

    def test_clock_before_deposit(self):
        acct = Account(staked_balance=1000, deposit_time=T0)
        with pytest.raises(FarmOverflowError):
            touch(acct, _config(), T0 - 1)

    def test_reward_overflow(self):
        acct = Account(staked_balance=10**30, deposit_time=T0)
        with pytest.raises(FarmOverflowError):
            touch(acct, _config(), T0 + INTERVAL)


class TestEarnedSinceDeposit:
    def test_ignores_cliff(self):
        acct = Account(staked_balance=1000, deposit_time=T0)
        assert earned_since_deposit(acct, _config(), T0 + 100) == _expected(1000, 100)

    def test_touch_credits_the_same_amount_past_cliff(self):
        acct = Account(staked_balance=1000, reward_balance=7, deposit_time=T0)
        now = T0 + CLIFF + 1
        r = touch(acct, _config(), now)
        assert r.farmed == earned_since_deposit(acct, _config(), now)
        assert r.account.reward_balance == 7 + r.farmed
