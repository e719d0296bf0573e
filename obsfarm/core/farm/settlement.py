"""Settlement chains: ordered outbound actions with an execution cursor.

A command commits its ledger mutation optimistically and opens a chain that
describes the external calls still owed. The chain moves through:

    PENDING --(every step ok)--> SETTLED
    PENDING --(a step fails)---> FAILED

Only one step per chain is in flight at a time. A step is dispatched, then
resolved by a later, separate callback; the next step is not dispatched
until the previous one resolved ok. Chains on different accounts advance
independently and in any order.

When the first step of a chain fails, nothing has left custody yet, so the
chain's `Compensation` (account pre-image plus totals delta) is handed back
to the farm to undo the optimistic mutation. A failure after some step has
already settled cannot be undone locally; the chain is left FAILED and
uncompensated for manual reconciliation.

While an account has a PENDING chain it is locked against further commands.
A locking chain records when it was opened; once it has been unresolved for
the farm's settlement timeout it may be expired, which fails it at its
cursor exactly like a failed callback would (including compensation).
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Dict, Iterable, List, Optional, Tuple

from ...state.account_key import AccountId, AccountKey
from .errors import FarmInvariantError, SettlementNotExpiredError, UnknownSettlementError
from .invariants import check_all
from .types import (
    ActionKind,
    Command,
    Compensation,
    DispatchTicket,
    ExternalAction,
    FarmConfig,
    NO_DEPOSIT,
    SettlementStatus,
    TransferChain,
)

logger = logging.getLogger(__name__)


# -- Chain builders ----------------------------------------------------------

def stake_actions(config: FarmConfig, account_id: AccountId, gross: int) -> tuple[ExternalAction, ...]:
    """Pull `gross` base asset into farm custody, then self-notify."""
    return (
        ExternalAction(
            kind=ActionKind.FT_TRANSFER,
            target=config.base_asset_id,
            receiver=config.farm_id,
            amount=gross,
            deposit=config.payment_unit,
            gas=config.gas_for_on_transfer,
        ),
        ExternalAction(
            kind=ActionKind.ON_TRANSFER,
            target=config.farm_id,
            receiver=account_id,
            amount=gross,
            deposit=NO_DEPOSIT,
            gas=config.gas_for_on_transfer,
        ),
    )


def unstake_actions(config: FarmConfig, account_id: AccountId, gross: int) -> tuple[ExternalAction, ...]:
    """Pay `gross` out of the base asset, then the same amount of reward asset."""
    return (
        ExternalAction(
            kind=ActionKind.FT_TRANSFER,
            target=config.base_asset_id,
            receiver=account_id,
            amount=gross,
            deposit=config.payment_unit,
            gas=config.gas_for_on_transfer,
        ),
        ExternalAction(
            kind=ActionKind.FT_TRANSFER,
            target=config.reward_asset_id,
            receiver=account_id,
            amount=gross,
            deposit=config.payment_unit,
            gas=config.gas_for_on_transfer,
        ),
    )


def registration_actions(config: FarmConfig) -> tuple[tuple[ExternalAction, ...], ...]:
    """One independent single-step chain per asset service."""
    return tuple(
        (
            ExternalAction(
                kind=ActionKind.REGISTER_ACCOUNT,
                target=service_id,
                receiver=config.farm_id,
                deposit=NO_DEPOSIT,
                gas=config.gas_for_account_registration,
            ),
        )
        for service_id in (config.base_asset_id, config.reward_asset_id)
    )


# -- Book --------------------------------------------------------------------

class SettlementBook:
    """All settlement chains of one farm, keyed by chain id."""

    def __init__(self, chains: Iterable[TransferChain] = (), next_chain_id: int = 1) -> None:
        self._chains: Dict[int, TransferChain] = {}
        for chain in chains:
            self._chains[chain.chain_id] = chain
        if self._chains and next_chain_id <= max(self._chains):
            raise ValueError("next_chain_id must exceed every existing chain id")
        self._next_chain_id = next_chain_id

    @property
    def next_chain_id(self) -> int:
        return self._next_chain_id

    def _store(self, chain: TransferChain) -> TransferChain:
        violations = check_all(chain=chain)
        if violations:
            raise FarmInvariantError(violations)
        self._chains[chain.chain_id] = chain
        return chain

    def open_chain(
        self,
        command: Command,
        account_id: AccountId,
        actions: tuple[ExternalAction, ...],
        compensation: Optional[Compensation] = None,
        *,
        opened_at: Optional[int] = None,
    ) -> TransferChain:
        if not actions:
            raise ValueError("a settlement chain needs at least one action")
        chain = TransferChain(
            chain_id=self._next_chain_id,
            command=command,
            account_id=account_id,
            actions=actions,
            compensation=compensation,
            opened_at=opened_at,
        )
        self._store(chain)
        self._next_chain_id += 1
        logger.debug("opened settlement chain %d (%s) for @%s", chain.chain_id, command.value, account_id)
        return chain

    def get(self, chain_id: int) -> TransferChain:
        chain = self._chains.get(chain_id)
        if chain is None:
            raise UnknownSettlementError(f"unknown settlement chain {chain_id}")
        return chain

    def all(self) -> List[TransferChain]:
        return [self._chains[k] for k in sorted(self._chains)]

    def pending(self) -> List[TransferChain]:
        return [c for c in self.all() if c.status is SettlementStatus.PENDING]

    def unreconciled(self) -> List[TransferChain]:
        """Failed chains whose optimistic mutation could not be reverted."""
        return [c for c in self.all() if c.status is SettlementStatus.FAILED and not c.compensated]

    def is_locked(self, key: AccountKey) -> bool:
        return any(
            c.compensation is not None and c.compensation.account_key == key
            for c in self.pending()
        )

    @staticmethod
    def is_stale(chain: TransferChain, now: int, timeout: int) -> bool:
        if chain.is_terminal or chain.opened_at is None:
            return False
        return now - chain.opened_at >= timeout

    def stale(self, now: int, timeout: int) -> List[TransferChain]:
        return [c for c in self.pending() if self.is_stale(c, now, timeout)]

    def dispatch_ready(self) -> List[DispatchTicket]:
        """Mark the cursor step of every idle PENDING chain in flight."""
        tickets: List[DispatchTicket] = []
        for chain in self.pending():
            if chain.in_flight:
                continue
            action = chain.current_action
            if action is None:
                continue
            self._store(replace(chain, in_flight=True))
            tickets.append(DispatchTicket(chain_id=chain.chain_id, step=chain.cursor, action=action))
        return tickets

    def in_flight_action(self, chain_id: int, step: int) -> ExternalAction:
        """The action a callback for `(chain_id, step)` refers to.

        Stale, duplicate and never-dispatched steps are rejected.
        """
        chain = self.get(chain_id)
        if chain.is_terminal:
            raise UnknownSettlementError(f"chain {chain_id} is already {chain.status.value}")
        if step != chain.cursor or not chain.in_flight:
            raise UnknownSettlementError(
                f"chain {chain_id} has no in-flight step {step} (cursor={chain.cursor}, in_flight={chain.in_flight})"
            )
        return chain.actions[step]

    def expirable(self, chain_id: int, now: int, timeout: int) -> TransferChain:
        """The chain `expire()` would fail; raises if it may not be expired at `now`."""
        chain = self.get(chain_id)
        if chain.is_terminal:
            raise UnknownSettlementError(f"chain {chain_id} is already {chain.status.value}")
        if not self.is_stale(chain, now, timeout):
            raise SettlementNotExpiredError(
                f"chain {chain_id} opened at {chain.opened_at} has not exceeded the settlement timeout at {now}"
            )
        return chain

    def resolve(
        self,
        chain_id: int,
        step: int,
        ok: bool,
        reason: Optional[str] = None,
    ) -> Tuple[TransferChain, Optional[Compensation]]:
        """Fold one step outcome into its chain.

        Returns the updated chain and, when the caller must revert the
        optimistic mutation, the compensation to apply.
        """
        self.in_flight_action(chain_id, step)
        chain = self._chains[chain_id]

        if ok:
            cursor = chain.cursor + 1
            status = SettlementStatus.SETTLED if cursor == len(chain.actions) else SettlementStatus.PENDING
            updated = self._store(replace(chain, cursor=cursor, in_flight=False, status=status))
            if status is SettlementStatus.SETTLED:
                logger.info("settlement chain %d (%s) settled", chain_id, chain.command.value)
            return updated, None
        return self._fail(chain, step, reason or "transfer failed")

    def expire(self, chain_id: int, now: int, timeout: int) -> Tuple[TransferChain, Optional[Compensation]]:
        """Fail a chain left unresolved past `timeout`, at whatever step it reached."""
        chain = self.expirable(chain_id, now, timeout)
        return self._fail(chain, chain.cursor, f"settlement timed out after {now - chain.opened_at}")

    def _fail(self, chain: TransferChain, step: int, reason: str) -> Tuple[TransferChain, Optional[Compensation]]:
        chain_id = chain.chain_id
        compensate = chain.cursor == 0 and chain.compensation is not None
        updated = self._store(
            replace(
                chain,
                in_flight=False,
                status=SettlementStatus.FAILED,
                compensated=compensate,
                failure_reason=f"step {step}: {reason}",
            )
        )
        if compensate:
            logger.warning(
                "settlement chain %d (%s) failed at step %d (%s); reverting ledger for @%s",
                chain_id, chain.command.value, step, reason, chain.account_id,
            )
            return updated, chain.compensation
        if chain.compensation is None:
            logger.warning("settlement chain %d (%s) failed: %s", chain_id, chain.command.value, reason)
        else:
            logger.error(
                "settlement chain %d (%s) failed at step %d after %d settled step(s): %s; "
                "ledger for @%s needs manual reconciliation",
                chain_id, chain.command.value, step, chain.cursor, reason, chain.account_id,
            )
        return updated, None
