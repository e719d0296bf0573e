# [TESTER] v1

from __future__ import annotations

import pytest

from obsfarm.state import Account, AccountLedger, derive_account_key
from obsfarm.state.ledger import ACCOUNT_PREFIX, U128_MAX, U64_MAX, account_from_dict, account_to_dict


def test_lookup_missing_is_none() -> None:
    ledger = AccountLedger()
    key = derive_account_key("alice.test")
    assert ledger.lookup(key) is None
    assert not ledger.exists(key)


def test_upsert_then_lookup() -> None:
    ledger = AccountLedger()
    key = derive_account_key("alice.test")
    acct = Account(staked_balance=10, reward_balance=2, reward_claimed=1, reward_rate_snapshot=9, deposit_time=5)
    ledger.upsert(key, acct)
    assert ledger.exists(key)
    assert ledger.lookup(key) == acct


def test_upsert_overwrites() -> None:
    ledger = AccountLedger()
    key = derive_account_key("alice.test")
    ledger.upsert(key, Account(staked_balance=10))
    ledger.upsert(key, Account(staked_balance=3))
    assert ledger.lookup(key).staked_balance == 3


def test_rows_stored_under_prefixed_key() -> None:
    store: dict[bytes, bytes] = {}
    ledger = AccountLedger(store)
    key = derive_account_key("alice.test")
    ledger.upsert(key, Account())
    assert list(store) == [ACCOUNT_PREFIX + key.raw]
    assert store[ACCOUNT_PREFIX + key.raw] == (
        b'{"deposit_time":0,"reward_balance":0,"reward_claimed":0,"reward_rate_snapshot":0,"staked_balance":0}'
    )


def test_raw_identifier_not_used_as_key() -> None:
    store: dict[bytes, bytes] = {}
    AccountLedger(store).upsert(derive_account_key("alice.test"), Account())
    assert all(b"alice" not in k for k in store)


def test_rejects_raw_identifier_key() -> None:
    with pytest.raises(TypeError):
        AccountLedger().lookup("alice.test")  # type: ignore[arg-type]


def test_account_bounds() -> None:
    Account(staked_balance=U128_MAX, deposit_time=U64_MAX)
    with pytest.raises(ValueError):
        Account(staked_balance=U128_MAX + 1)
    with pytest.raises(ValueError):
        Account(deposit_time=U64_MAX + 1)
    with pytest.raises(ValueError):
        Account(reward_balance=-1)


def test_account_dict_rejects_unknown_fields() -> None:
    d = account_to_dict(Account())
    d["extra"] = 1
    with pytest.raises(ValueError):
        account_from_dict(d)


def test_corrupt_row() -> None:
    store: dict[bytes, bytes] = {}
    key = derive_account_key("alice.test")
    store[ACCOUNT_PREFIX + key.raw] = b"[1,2]"
    with pytest.raises(ValueError):
        AccountLedger(store).lookup(key)
