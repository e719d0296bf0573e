"""
Asset-service boundary used by the settlement runner.

An asset service is the external ledger of one token (the base asset or the
reward asset). The farm never calls it directly: commands open settlement
chains, and `SettlementRunner` turns each dispatched step into one of the
calls below.

A service may answer synchronously (return a `TransferOutcome`) or defer
(return None) and later deliver a signed `SettlementReceipt`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Protocol, Set

from ..core.farm.types import DispatchTicket

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TransferOutcome:
    ok: bool
    reason: Optional[str] = None


class AssetService(Protocol):
    service_id: str

    def ft_transfer(
        self,
        sender: str,
        receiver: str,
        amount: int,
        memo: Optional[str],
        *,
        ticket: DispatchTicket,
    ) -> Optional[TransferOutcome]:
        ...

    def register_account(self, account_id: str, *, ticket: DispatchTicket) -> Optional[TransferOutcome]:
        ...


class InMemoryAssetService:
    """
    Balance-table token used by the simulator and the tests.

    Transfers require both parties to be registered and the sender to hold
    enough balance. `fail_next` queues reasons for the next calls to fail
    with; `defer` makes every call return None and park the ticket in
    `deferred` for the caller to answer later.
    """

    def __init__(self, service_id: str, *, balances: Optional[Dict[str, int]] = None, defer: bool = False) -> None:
        self.service_id = service_id
        self.balances: Dict[str, int] = dict(balances or {})
        self.registered: Set[str] = set(self.balances)
        self.fail_next: List[str] = []
        self.defer = defer
        self.deferred: List[DispatchTicket] = []

    def balance_of(self, account_id: str) -> int:
        return self.balances.get(account_id, 0)

    def mint(self, account_id: str, amount: int) -> None:
        self.registered.add(account_id)
        self.balances[account_id] = self.balance_of(account_id) + amount

    def _injected_failure(self) -> Optional[TransferOutcome]:
        if self.fail_next:
            return TransferOutcome(ok=False, reason=self.fail_next.pop(0))
        return None

    def ft_transfer(
        self,
        sender: str,
        receiver: str,
        amount: int,
        memo: Optional[str],
        *,
        ticket: DispatchTicket,
    ) -> Optional[TransferOutcome]:
        if self.defer:
            self.deferred.append(ticket)
            return None
        failure = self._injected_failure()
        if failure is not None:
            return failure
        if sender not in self.registered:
            return TransferOutcome(ok=False, reason=f"sender @{sender} is not registered")
        if receiver not in self.registered:
            return TransferOutcome(ok=False, reason=f"receiver @{receiver} is not registered")
        if self.balance_of(sender) < amount:
            return TransferOutcome(ok=False, reason="The account doesn't have enough balance")
        self.balances[sender] = self.balance_of(sender) - amount
        self.balances[receiver] = self.balance_of(receiver) + amount
        logger.debug("[%s] transfer %d from @%s to @%s", self.service_id, amount, sender, receiver)
        return TransferOutcome(ok=True)

    def register_account(self, account_id: str, *, ticket: DispatchTicket) -> Optional[TransferOutcome]:
        if self.defer:
            self.deferred.append(ticket)
            return None
        failure = self._injected_failure()
        if failure is not None:
            return failure
        self.registered.add(account_id)
        self.balances.setdefault(account_id, 0)
        return TransferOutcome(ok=True)
