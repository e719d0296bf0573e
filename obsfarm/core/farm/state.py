"""Farm record construction and serialization.

The farm record is the single non-account value in the backing store: the
configuration, the global aggregates, and the settlement book. Accounts are
stored as separate rows by `AccountLedger`.

Round-trip property (tested): `record_from_dict(record_to_dict(r)) == r`.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Any, Dict, List, Mapping, MutableMapping, Optional

from ...state.account_key import AccountKey
from ...state.canonical import canonical_json_bytes, canonical_json_loads
from ...state.ledger import account_from_dict, account_to_dict
from .errors import NotInitializedError
from .types import (
    ActionKind,
    Command,
    Compensation,
    ExternalAction,
    FarmConfig,
    FarmTotals,
    SettlementStatus,
    TotalsDelta,
    TransferChain,
)

FARM_RECORD_KEY = b"STATE"
FARM_RECORD_VERSION = 1

CONFIG_FIELDS: tuple[str, ...] = tuple(f.name for f in fields(FarmConfig))
TOTALS_FIELDS: tuple[str, ...] = tuple(f.name for f in fields(FarmTotals))


@dataclass(frozen=True)
class FarmRecord:
    config: FarmConfig
    totals: FarmTotals
    chains: tuple[TransferChain, ...] = ()
    next_chain_id: int = 1


def initial_totals() -> FarmTotals:
    return FarmTotals()


# -- Encoding ----------------------------------------------------------------

def _action_to_dict(a: ExternalAction) -> Dict[str, Any]:
    return {
        "kind": a.kind.value,
        "target": a.target,
        "receiver": a.receiver,
        "amount": a.amount,
        "memo": a.memo,
        "deposit": a.deposit,
        "gas": a.gas,
    }


def _action_from_dict(d: Mapping[str, Any]) -> ExternalAction:
    return ExternalAction(
        kind=ActionKind(d["kind"]),
        target=d["target"],
        receiver=d["receiver"],
        amount=int(d["amount"]),
        memo=d["memo"],
        deposit=int(d["deposit"]),
        gas=int(d["gas"]),
    )


def _compensation_to_dict(c: Optional[Compensation]) -> Optional[Dict[str, Any]]:
    if c is None:
        return None
    return {
        "account_key": c.account_key.hex,
        "account_before": account_to_dict(c.account_before),
        "totals_delta": {name: getattr(c.totals_delta, name) for name in TOTALS_FIELDS},
    }


def _compensation_from_dict(d: Optional[Mapping[str, Any]]) -> Optional[Compensation]:
    if d is None:
        return None
    return Compensation(
        account_key=AccountKey.from_hex(d["account_key"]),
        account_before=account_from_dict(d["account_before"]),
        totals_delta=TotalsDelta(**{name: int(d["totals_delta"][name]) for name in TOTALS_FIELDS}),
    )


def chain_to_dict(c: TransferChain) -> Dict[str, Any]:
    return {
        "chain_id": c.chain_id,
        "command": c.command.value,
        "account_id": c.account_id,
        "actions": [_action_to_dict(a) for a in c.actions],
        "cursor": c.cursor,
        "in_flight": c.in_flight,
        "status": c.status.value,
        "compensation": _compensation_to_dict(c.compensation),
        "compensated": c.compensated,
        "failure_reason": c.failure_reason,
        "opened_at": c.opened_at,
    }


def chain_from_dict(d: Mapping[str, Any]) -> TransferChain:
    return TransferChain(
        chain_id=int(d["chain_id"]),
        command=Command(d["command"]),
        account_id=d["account_id"],
        actions=tuple(_action_from_dict(a) for a in d["actions"]),
        cursor=int(d["cursor"]),
        in_flight=bool(d["in_flight"]),
        status=SettlementStatus(d["status"]),
        compensation=_compensation_from_dict(d["compensation"]),
        compensated=bool(d["compensated"]),
        failure_reason=d["failure_reason"],
        opened_at=None if d["opened_at"] is None else int(d["opened_at"]),
    )


def record_to_dict(record: FarmRecord) -> Dict[str, Any]:
    return {
        "version": FARM_RECORD_VERSION,
        "config": {name: getattr(record.config, name) for name in CONFIG_FIELDS},
        "totals": {name: getattr(record.totals, name) for name in TOTALS_FIELDS},
        "chains": [chain_to_dict(c) for c in record.chains],
        "next_chain_id": record.next_chain_id,
    }


def record_from_dict(d: Mapping[str, Any]) -> FarmRecord:
    """Deserialize a farm record. Raises KeyError on missing fields."""
    version = d["version"]
    if version != FARM_RECORD_VERSION:
        raise ValueError(f"unsupported farm record version: {version!r}")
    chains: List[TransferChain] = [chain_from_dict(c) for c in d["chains"]]
    return FarmRecord(
        config=FarmConfig(**{name: d["config"][name] for name in CONFIG_FIELDS}),
        totals=FarmTotals(**{name: int(d["totals"][name]) for name in TOTALS_FIELDS}),
        chains=tuple(chains),
        next_chain_id=int(d["next_chain_id"]),
    )


# -- Store access ------------------------------------------------------------

def has_farm_record(store: Mapping[bytes, bytes]) -> bool:
    return FARM_RECORD_KEY in store


def save_farm_record(store: MutableMapping[bytes, bytes], record: FarmRecord) -> None:
    store[FARM_RECORD_KEY] = canonical_json_bytes(record_to_dict(record))


def load_farm_record(store: Mapping[bytes, bytes]) -> FarmRecord:
    raw = store.get(FARM_RECORD_KEY)
    if raw is None:
        raise NotInitializedError("store holds no farm record")
    obj = canonical_json_loads(raw)
    if not isinstance(obj, dict):
        raise ValueError("farm record must be a JSON object")
    return record_from_dict(obj)
