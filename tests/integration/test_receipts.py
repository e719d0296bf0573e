# [TESTER] v1

from __future__ import annotations

import pytest

pytest.importorskip("py_ecc.bls", reason="py_ecc not installed (install py-ecc to run signing tests)")

from py_ecc.bls import G2Basic

from obsfarm.core.farm import FarmConfig, FarmState, SettlementStatus
from obsfarm.integration import InMemoryAssetService, SettlementReceipt, SettlementRunner
from obsfarm.integration.receipts import pubkey_hex, receipt_digest, sign_receipt, verify_receipt
from obsfarm.integration.runner import ReceiptRejectedError

FARM = "farm.test"
BASE = "obs.test"
REWARD = "reward.test"


def _keypair(seed: bytes) -> tuple[int, str]:
    # Deterministic keypair from fixed seed.
    sk = G2Basic.KeyGen(seed * 32)
    return sk, pubkey_hex(sk)


def test_receipt_digest_binds_farm_and_outcome() -> None:
    r = SettlementReceipt(FARM, BASE, 1, 0, True)
    assert receipt_digest(r) == receipt_digest(SettlementReceipt(FARM, BASE, 1, 0, True))
    assert receipt_digest(r) != receipt_digest(SettlementReceipt(FARM, BASE, 1, 0, False))
    assert receipt_digest(r) != receipt_digest(SettlementReceipt("other.test", BASE, 1, 0, True))
    assert len(receipt_digest(r)) == 32


def test_receipt_signature_roundtrip_bls_g2basic() -> None:
    sk, pk = _keypair(b"\x01")
    r = SettlementReceipt(FARM, BASE, 3, 1, False, "timeout")
    ok, err = verify_receipt(r, pubkey=pk, signature=sign_receipt(r, sk))
    assert ok, err


def test_receipt_signature_rejects_tampering() -> None:
    sk, pk = _keypair(b"\x02")
    sig = sign_receipt(SettlementReceipt(FARM, BASE, 3, 0, False, "timeout"), sk)
    # Flip the outcome; signature must no longer verify.
    ok, err = verify_receipt(SettlementReceipt(FARM, BASE, 3, 0, True), pubkey=pk, signature=sig)
    assert not ok
    assert err == "invalid receipt signature"


def test_receipt_signature_rejects_malformed_hex() -> None:
    _sk, pk = _keypair(b"\x03")
    ok, err = verify_receipt(SettlementReceipt(FARM, BASE, 1, 0, True), pubkey=pk, signature="0x1234")
    assert not ok
    assert "verification error" in err


def test_runner_accepts_signed_receipt_and_rejects_foreign_key() -> None:
    sk_base, pk_base = _keypair(b"\x04")
    sk_other, _ = _keypair(b"\x05")
    farm = FarmState.initialize(FarmConfig(farm_id=FARM, base_asset_id=BASE, reward_asset_id=REWARD))
    base = InMemoryAssetService(BASE, defer=True)
    reward = InMemoryAssetService(REWARD)
    runner = SettlementRunner(farm, [base, reward], service_pubkeys={BASE: pk_base})
    runner.pump(0)

    t = base.deferred[0]
    receipt = SettlementReceipt(FARM, BASE, t.chain_id, t.step, True)
    with pytest.raises(ReceiptRejectedError):
        runner.deliver(receipt, 0, signature=sign_receipt(receipt, sk_other))
    chain = runner.deliver(receipt, 0, signature=sign_receipt(receipt, sk_base))
    assert chain.status is SettlementStatus.SETTLED
    assert farm.pending_settlements() == []
