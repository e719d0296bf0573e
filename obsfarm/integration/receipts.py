"""
Signed settlement receipts.

A service that answers a dispatched step asynchronously sends back a
`SettlementReceipt`. When the runner is configured with the service's BLS
public key, the receipt must carry a valid G2Basic signature over:

    sha256(domain_sep("settlement_receipt:<farm_id>") || canonical_json(receipt))

Keys are 48-byte G1 public keys and signatures are 96-byte G2 points, both
hex-encoded with an optional 0x prefix.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

from py_ecc.bls import G2Basic

from ..state.canonical import canonical_json_bytes, domain_sep_bytes, hex_to_bytes_allow_0x


@dataclass(frozen=True)
class SettlementReceipt:
    farm_id: str
    service_id: str
    chain_id: int
    step: int
    ok: bool
    reason: Optional[str] = None


def receipt_to_dict(receipt: SettlementReceipt) -> Dict[str, Any]:
    return {
        "farm_id": receipt.farm_id,
        "service_id": receipt.service_id,
        "chain_id": receipt.chain_id,
        "step": receipt.step,
        "ok": receipt.ok,
        "reason": receipt.reason,
    }


def receipt_digest(receipt: SettlementReceipt) -> bytes:
    msg = domain_sep_bytes(f"settlement_receipt:{receipt.farm_id}", version=1) + canonical_json_bytes(
        receipt_to_dict(receipt)
    )
    return hashlib.sha256(msg).digest()


def pubkey_hex(privkey: int) -> str:
    return "0x" + bytes(G2Basic.SkToPk(privkey)).hex()


def sign_receipt(receipt: SettlementReceipt, privkey: int) -> str:
    return "0x" + bytes(G2Basic.Sign(privkey, receipt_digest(receipt))).hex()


def verify_receipt(receipt: SettlementReceipt, *, pubkey: str, signature: str) -> Tuple[bool, Optional[str]]:
    try:
        pubkey_bytes = hex_to_bytes_allow_0x(pubkey, name="pubkey", expected_nbytes=48)
        sig_bytes = hex_to_bytes_allow_0x(signature, name="signature", expected_nbytes=96)
        ok = bool(G2Basic.Verify(pubkey_bytes, receipt_digest(receipt), sig_bytes))
    except Exception as exc:
        return False, f"receipt signature verification error: {exc}"
    if not ok:
        return False, "invalid receipt signature"
    return True, None
