"""
Settlement runner: drives a farm's settlement chains against asset services.

`pump(now)` dispatches every ready step, performs it, and feeds the outcome
back into the farm through `FarmState.resolve()`, repeating until nothing is
left to dispatch. Steps whose service defers stay in flight until a
`SettlementReceipt` for them arrives through `deliver()`.

The runner reports each outcome with the step's executing party as the
caller, so the farm's own caller check applies unchanged.

Receipts from a service without a configured public key are taken at their
word: `deliver()` then trusts the transport to authenticate `service_id`.
Pass `require_signed_receipts=True` to refuse unsigned delivery entirely.

Each `pump()` first expires locking chains that have outlived the farm's
settlement timeout, so an unanswered step cannot hold an account forever.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Mapping, Optional

from ..core.farm.engine import FarmState
from ..core.farm.errors import UnauthorizedCallerError
from ..core.farm.types import ActionKind, CallContext, DispatchTicket, TransferChain
from .asset_service import AssetService, TransferOutcome
from .receipts import SettlementReceipt, verify_receipt

logger = logging.getLogger(__name__)


class ReceiptRejectedError(UnauthorizedCallerError):
    """A delivered receipt is for another farm or is not properly signed."""


class SettlementRunner:
    def __init__(
        self,
        farm: FarmState,
        services: Iterable[AssetService],
        *,
        service_pubkeys: Optional[Mapping[str, str]] = None,
        require_signed_receipts: bool = False,
    ) -> None:
        self._farm = farm
        self._services: Dict[str, AssetService] = {s.service_id: s for s in services}
        self._pubkeys: Dict[str, str] = dict(service_pubkeys or {})
        self._require_signed = require_signed_receipts

    def _sender_of(self, ticket: DispatchTicket) -> str:
        farm_id = self._farm.config.farm_id
        if ticket.action.receiver == farm_id:
            return self._farm.settlement(ticket.chain_id).account_id
        return farm_id

    def _execute(self, ticket: DispatchTicket, now: int) -> Optional[TransferOutcome]:
        action = ticket.action
        if action.kind is ActionKind.ON_TRANSFER:
            self._farm.on_transfer(
                CallContext(predecessor=action.target, now=now),
                action.receiver,
                action.amount,
                action.memo,
            )
            return TransferOutcome(ok=True)

        service = self._services.get(action.target)
        if service is None:
            return TransferOutcome(ok=False, reason=f"no asset service @{action.target}")
        try:
            if action.kind is ActionKind.FT_TRANSFER:
                return service.ft_transfer(
                    self._sender_of(ticket), action.receiver, action.amount, action.memo, ticket=ticket
                )
            return service.register_account(action.receiver, ticket=ticket)
        except Exception as exc:
            logger.warning("asset service @%s raised on chain %d step %d: %s", action.target, ticket.chain_id, ticket.step, exc)
            return TransferOutcome(ok=False, reason=f"asset service error: {exc}")

    def pump(self, now: int) -> List[TransferChain]:
        """Expire stale chains, then run every dispatchable step.

        Returns the chains as left by each expiry and resolution.
        """
        resolved: List[TransferChain] = self._farm.expire_stale(now)
        while True:
            tickets = self._farm.dispatch_ready()
            if not tickets:
                return resolved
            for ticket in tickets:
                outcome = self._execute(ticket, now)
                if outcome is None:
                    logger.debug("chain %d step %d deferred by @%s", ticket.chain_id, ticket.step, ticket.action.target)
                    continue
                resolved.append(
                    self._farm.resolve(
                        CallContext(predecessor=ticket.action.target, now=now),
                        ticket.chain_id,
                        ticket.step,
                        outcome.ok,
                        outcome.reason,
                    )
                )

    def deliver(self, receipt: SettlementReceipt, now: int, signature: Optional[str] = None) -> TransferChain:
        """Apply an asynchronously delivered step outcome."""
        if receipt.farm_id != self._farm.config.farm_id:
            raise ReceiptRejectedError(f"receipt is for farm @{receipt.farm_id}")
        pubkey = self._pubkeys.get(receipt.service_id)
        if pubkey is None and self._require_signed:
            raise ReceiptRejectedError(f"no public key configured for @{receipt.service_id}")
        if pubkey is not None:
            if signature is None:
                raise ReceiptRejectedError(f"receipt from @{receipt.service_id} must be signed")
            ok, err = verify_receipt(receipt, pubkey=pubkey, signature=signature)
            if not ok:
                raise ReceiptRejectedError(err or "invalid receipt signature")
        return self._farm.resolve(
            CallContext(predecessor=receipt.service_id, now=now),
            receipt.chain_id,
            receipt.step,
            receipt.ok,
            receipt.reason,
        )
