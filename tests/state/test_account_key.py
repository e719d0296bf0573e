# [TESTER] v1

from __future__ import annotations

import hashlib

import pytest

from obsfarm.state.account_key import ACCOUNT_KEY_NBYTES, AccountKey, derive_account_key


def test_derive_is_truncated_sha256() -> None:
    key = derive_account_key("alice.test")
    assert key.raw == hashlib.sha256(b"alice.test").digest()[:20]
    assert len(key.raw) == ACCOUNT_KEY_NBYTES


def test_derive_is_stable_and_distinct() -> None:
    assert derive_account_key("alice.test") == derive_account_key("alice.test")
    assert derive_account_key("alice.test") != derive_account_key("bob.test")


def test_hex_roundtrip() -> None:
    key = derive_account_key("alice.test")
    assert key.hex.startswith("0x")
    assert AccountKey.from_hex(key.hex) == key
    assert AccountKey.from_hex(key.hex[2:]) == key
    assert str(key) == key.hex


def test_rejects_wrong_length() -> None:
    with pytest.raises(ValueError):
        AccountKey(b"\x00" * 19)
    with pytest.raises(ValueError):
        AccountKey.from_hex("0x" + "00" * 32)


def test_rejects_non_bytes() -> None:
    with pytest.raises(TypeError):
        AccountKey("00" * 20)  # type: ignore[arg-type]


def test_rejects_empty_account_id() -> None:
    with pytest.raises(TypeError):
        derive_account_key("")
