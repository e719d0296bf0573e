"""Tests for obsfarm/core/farm/state.py: farm record serialization and store access."""

import pytest

from obsfarm.core.farm.errors import NotInitializedError
from obsfarm.core.farm.settlement import stake_actions
from obsfarm.core.farm.state import (
    FARM_RECORD_KEY,
    FarmRecord,
    chain_from_dict,
    chain_to_dict,
    has_farm_record,
    initial_totals,
    load_farm_record,
    record_from_dict,
    record_to_dict,
    save_farm_record,
)
from obsfarm.core.farm.types import (
    Command,
    Compensation,
    FarmConfig,
    FarmTotals,
    SettlementStatus,
    TotalsDelta,
    TransferChain,
)
from obsfarm.state import Account, derive_account_key
from obsfarm.state.canonical import canonical_json_loads

CFG = FarmConfig(farm_id="farm.test", base_asset_id="obs.test", reward_asset_id="reward.test", cliff_time=60)


def _chain() -> TransferChain:
    return TransferChain(
        chain_id=7,
        command=Command.UNSTAKE,
        account_id="alice.test",
        actions=stake_actions(CFG, "alice.test", 1000),
        cursor=1,
        status=SettlementStatus.FAILED,
        compensation=Compensation(
            account_key=derive_account_key("alice.test"),
            account_before=Account(staked_balance=1000, deposit_time=5),
            totals_delta=TotalsDelta(total_staked=-1000, total_reward_claimed=1000),
        ),
        failure_reason="step 1: boom",
        opened_at=1_700_000_000,
    )


class TestRecordDict:
    def test_chain_roundtrip_keeps_negative_delta(self):
        c = _chain()
        assert chain_from_dict(chain_to_dict(c)) == c

    def test_record_roundtrip(self):
        r = FarmRecord(
            config=CFG,
            totals=FarmTotals(obs_per_reward_rate=3, total_staked=2, total_reward_farmed=1),
            chains=(_chain(),),
            next_chain_id=8,
        )
        assert record_from_dict(record_to_dict(r)) == r

    def test_version_checked(self):
        d = record_to_dict(FarmRecord(config=CFG, totals=initial_totals()))
        d["version"] = 99
        with pytest.raises(ValueError):
            record_from_dict(d)

    def test_missing_field(self):
        d = record_to_dict(FarmRecord(config=CFG, totals=initial_totals()))
        del d["totals"]
        with pytest.raises(KeyError):
            record_from_dict(d)


class TestStore:
    def test_save_and_load(self):
        store = {}
        assert not has_farm_record(store)
        r = FarmRecord(config=CFG, totals=initial_totals())
        save_farm_record(store, r)
        assert has_farm_record(store)
        assert load_farm_record(store) == r

    def test_stored_as_canonical_json(self):
        store = {}
        save_farm_record(store, FarmRecord(config=CFG, totals=initial_totals()))
        obj = canonical_json_loads(store[FARM_RECORD_KEY])
        assert obj["config"]["cliff_time"] == 60
        assert b" " not in store[FARM_RECORD_KEY]

    def test_load_missing(self):
        with pytest.raises(NotInitializedError):
            load_farm_record({})

    def test_load_non_object(self):
        with pytest.raises(ValueError):
            load_farm_record({FARM_RECORD_KEY: b"[]"})
