"""
Per-depositor account records and the keyed ledger that stores them.

The ledger is a thin typed view over a byte-level key/value store: rows are
addressed by `AccountKey` and encoded with canonical JSON. There is no
iteration, deletion, or secondary index.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Any, Dict, Mapping, MutableMapping, Optional

from .account_key import AccountKey
from .canonical import canonical_json_bytes, canonical_json_loads, require_uint


U128_MAX = (1 << 128) - 1
U64_MAX = (1 << 64) - 1

# Storage prefix for account rows.
ACCOUNT_PREFIX = b"a"


@dataclass(frozen=True)
class Account:
    """Staking state for one depositor."""

    staked_balance: int = 0
    reward_balance: int = 0
    reward_claimed: int = 0
    reward_rate_snapshot: int = 0
    deposit_time: int = 0

    def __post_init__(self) -> None:
        for name in ("staked_balance", "reward_balance", "reward_claimed", "reward_rate_snapshot"):
            require_uint(getattr(self, name), name=name, max_value=U128_MAX)
        require_uint(self.deposit_time, name="deposit_time", max_value=U64_MAX)


ACCOUNT_FIELDS: tuple[str, ...] = tuple(f.name for f in fields(Account))


def account_to_dict(account: Account) -> Dict[str, int]:
    return {name: getattr(account, name) for name in ACCOUNT_FIELDS}


def account_from_dict(d: Mapping[str, Any]) -> Account:
    """Inverse of `account_to_dict`. Raises KeyError on missing fields."""
    unknown = set(d) - set(ACCOUNT_FIELDS)
    if unknown:
        raise ValueError(f"unknown account fields: {sorted(unknown)}")
    return Account(**{name: d[name] for name in ACCOUNT_FIELDS})


class AccountLedger:
    """
    Keyed store of `Account` rows.

    The backing store is any `MutableMapping[bytes, bytes]`; by default an
    in-memory dict. Values read back are fresh `Account` objects, so callers
    can work on them freely without affecting what is stored.
    """

    def __init__(self, store: Optional[MutableMapping[bytes, bytes]] = None, *, prefix: bytes = ACCOUNT_PREFIX):
        if not isinstance(prefix, bytes) or not prefix:
            raise TypeError("prefix must be non-empty bytes")
        self._store: MutableMapping[bytes, bytes] = {} if store is None else store
        self._prefix = prefix

    def _storage_key(self, key: AccountKey) -> bytes:
        if not isinstance(key, AccountKey):
            raise TypeError(f"expected AccountKey, got {type(key).__name__}")
        return self._prefix + key.raw

    def lookup(self, key: AccountKey) -> Optional[Account]:
        raw = self._store.get(self._storage_key(key))
        if raw is None:
            return None
        obj = canonical_json_loads(raw)
        if not isinstance(obj, dict):
            raise ValueError(f"corrupt account row for {key}")
        return account_from_dict(obj)

    def upsert(self, key: AccountKey, account: Account) -> None:
        if not isinstance(account, Account):
            raise TypeError(f"expected Account, got {type(account).__name__}")
        self._store[self._storage_key(key)] = canonical_json_bytes(account_to_dict(account))

    def exists(self, key: AccountKey) -> bool:
        return self._storage_key(key) in self._store
