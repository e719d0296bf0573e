"""
Space-saving ledger keys derived from account identifiers.

The ledger never stores raw identifiers. Each identifier is hashed with
SHA-256 and truncated to 20 bytes, which bounds the per-account key cost.

Note: truncation makes the key NOT collision-free. Two identifiers that
share a 20-byte prefix of their digest address the same ledger row; nothing
here detects that.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass

from .canonical import hex_to_bytes_allow_0x


ACCOUNT_KEY_NBYTES = 20

AccountId = str


@dataclass(frozen=True, order=True)
class AccountKey:
    raw: bytes

    def __post_init__(self) -> None:
        if not isinstance(self.raw, bytes):
            raise TypeError("AccountKey.raw must be bytes")
        if len(self.raw) != ACCOUNT_KEY_NBYTES:
            raise ValueError(f"AccountKey must be {ACCOUNT_KEY_NBYTES} bytes, got {len(self.raw)}")

    @property
    def hex(self) -> str:
        return "0x" + self.raw.hex()

    @classmethod
    def from_hex(cls, hex_str: str) -> "AccountKey":
        return cls(hex_to_bytes_allow_0x(hex_str, name="account key", expected_nbytes=ACCOUNT_KEY_NBYTES))

    def __str__(self) -> str:
        return self.hex


def derive_account_key(account_id: AccountId) -> AccountKey:
    """Derive the ledger key for `account_id` (sha256, first 20 bytes)."""
    if not isinstance(account_id, str) or not account_id:
        raise TypeError("account_id must be a non-empty str")
    digest = hashlib.sha256(account_id.encode("utf-8")).digest()
    return AccountKey(digest[:ACCOUNT_KEY_NBYTES])
