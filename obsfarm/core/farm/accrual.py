"""Reward accrual ("touch").

`touch()` brings an account's `reward_balance` up to date as of `now`. It is
a pure function: the input account is never modified, and the caller decides
whether to persist the returned account and add `farmed` to the farm's
`total_reward_farmed`. A query can therefore run it on the stored value
without any side effect.

Accrual is anchored at `deposit_time`, not at the last touch. Past the cliff,
every application adds the full `earned` amount again, so touching twice
credits twice.
"""

from __future__ import annotations

from dataclasses import replace

from ...state.ledger import Account
from .math import checked_add, elapsed_since, mul_div_scaled
from .types import Accrual, FarmConfig


def earned_since_deposit(account: Account, config: FarmConfig, now: int) -> int:
    """``(staked * elapsed * reward_rate // reward_interval) * SCALE``."""
    elapsed = elapsed_since(now, account.deposit_time)
    return mul_div_scaled(account.staked_balance, elapsed, config.reward_rate, config.reward_interval)


def touch(account: Account, config: FarmConfig, now: int) -> Accrual:
    earned = earned_since_deposit(account, config, now)
    if now - account.deposit_time > config.cliff_time:
        updated = replace(
            account,
            reward_balance=checked_add(account.reward_balance, earned, name="reward_balance"),
        )
        return Accrual(account=updated, farmed=earned, rate_snapshot=account.reward_rate_snapshot)
    return Accrual(account=account, farmed=0, rate_snapshot=account.reward_rate_snapshot)
