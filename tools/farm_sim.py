#!/usr/bin/env python3
"""
Offline staking farm simulation.

Builds a farm from a YAML config, wires it to in-memory asset services, and
runs stake -> wait -> unstake through the settlement runner. Prints the final
stats, account view and token balances as JSON.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from obsfarm.core.farm import CallContext, FarmState
from obsfarm.integration import InMemoryAssetService, SettlementRunner, farm_config_from_env, load_farm_config


DEFAULT_CONFIG = ROOT / "config" / "farm.example.yaml"


def main(argv: list[str] | None = None) -> int:
    ap = argparse.ArgumentParser(description="Simulate one stake/unstake cycle against an in-memory farm")
    ap.add_argument("--config", type=Path, default=DEFAULT_CONFIG, help="Farm YAML config")
    ap.add_argument("--account", default="alice.example", help="Depositor account id")
    ap.add_argument("--amount", type=int, default=1000, help="Amount to stake")
    ap.add_argument("--start", type=int, default=1_700_000_000, help="Stake timestamp (must be >= cliff_time)")
    ap.add_argument("--wait", type=int, default=None, help="Seconds between stake and unstake (default: cliff + 1 day)")
    ap.add_argument("--reward-pool", type=int, default=10**30, help="Reward asset held by the farm")
    ap.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    args = ap.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    config = farm_config_from_env(load_farm_config(args.config))
    wait = config.cliff_time + 86_400 if args.wait is None else args.wait

    base = InMemoryAssetService(config.base_asset_id)
    reward = InMemoryAssetService(config.reward_asset_id, balances={config.farm_id: args.reward_pool})

    farm = FarmState.initialize(config)
    runner = SettlementRunner(farm, [base, reward])
    runner.pump(args.start)

    t0 = args.start
    stake = farm.stake(CallContext(args.account, t0, config.payment_unit), args.amount)
    base.mint(args.account, stake.account.staked_balance)
    reward.mint(args.account, 0)
    runner.pump(t0)

    t1 = t0 + wait
    accrued = farm.get_reward_balance(args.account, t1)
    farm.unstake(CallContext(args.account, t1, config.payment_unit), args.amount)
    runner.pump(t1)

    view = farm.get_account(args.account)
    stats = farm.get_stats()
    out = {
        "stake_time": t0,
        "unstake_time": t1,
        "reward_before_unstake": accrued,
        "account": None if view is None else vars(view),
        "stats": vars(stats),
        "balances": {
            config.base_asset_id: dict(base.balances),
            config.reward_asset_id: dict(reward.balances),
        },
        "unreconciled": [c.chain_id for c in farm.unreconciled_settlements()],
    }
    print(json.dumps(out, indent=2, sort_keys=True))
    return 1 if out["unreconciled"] else 0


if __name__ == "__main__":
    raise SystemExit(main())
