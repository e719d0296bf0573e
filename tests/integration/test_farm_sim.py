# [TESTER] v1

from __future__ import annotations

import importlib.util
import json
from pathlib import Path

from obsfarm.core.farm.math import SCALE

REPO_ROOT = Path(__file__).resolve().parents[2]


def _load_sim():
    path = REPO_ROOT / "tools" / "farm_sim.py"
    spec = importlib.util.spec_from_file_location("farm_sim", path)
    assert spec and spec.loader
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def test_farm_sim_runs_full_cycle(capsys, monkeypatch) -> None:
    monkeypatch.delenv("OBSFARM_CLIFF_TIME", raising=False)
    sim = _load_sim()
    rc = sim.main(["--amount", "1000", "--start", "1700000000", "--wait", "950400"])
    assert rc == 0
    out = json.loads(capsys.readouterr().out)

    reward = (1000 * 950400 * 1800 // 31_536_000) * SCALE
    assert out["reward_before_unstake"] == reward
    assert out["account"] == {"staked_balance": 0, "reward_balance": 0, "reward_claimed": reward}
    assert out["stats"] == {
        "total_staked": 0,
        "total_reward_claimed": 1000 + reward,
        "total_reward_farmed": reward,
    }
    assert out["balances"]["obs.example"]["alice.example"] == 1000
    assert out["balances"]["reward.example"]["alice.example"] == 1000
    assert out["unreconciled"] == []
