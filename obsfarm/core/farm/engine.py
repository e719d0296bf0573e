"""The staking farm: commands, callbacks, and queries over one farm record.

`FarmState` is the imperative shell around the pure pieces in this package:

1. Guards check preconditions against the PRE-state (`guards.py`).
2. Accrual and fixed-point math compute every new value (`accrual.py`, `math.py`).
3. Only then is anything committed: the account row, the aggregates, and a
   new settlement chain are written together, and the farm record is saved.

A command that raises has changed nothing. Outbound transfers are never run
here; commands only open settlement chains, which a runner dispatches and
whose outcomes come back through `resolve()`.

One `FarmState` exists per farm. It is created once with `initialize()` (or
reloaded with `open()`) and passed explicitly to whoever drives it.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import List, MutableMapping, Optional

from ...state.account_key import AccountId, AccountKey, derive_account_key
from ...state.ledger import Account, AccountLedger, U128_MAX
from .accrual import touch
from .errors import AlreadyInitializedError, FarmInvariantError, FarmOverflowError
from .guards import (
    guard_caller,
    guard_lockup_elapsed,
    guard_not_pending,
    guard_payment_unit,
    guard_positive_amount,
    guard_sufficient_stake,
)
from .invariants import check_all
from .math import checked_add, checked_sub, elapsed_since, gross_with_fee, mul_div_scaled
from .settlement import SettlementBook, registration_actions, stake_actions, unstake_actions
from .state import (
    TOTALS_FIELDS,
    FarmRecord,
    has_farm_record,
    initial_totals,
    load_farm_record,
    save_farm_record,
)
from .types import (
    STAKE_MSG,
    CallContext,
    Command,
    CommandResult,
    Compensation,
    DispatchTicket,
    Event,
    ExternalAction,
    FarmConfig,
    FarmerAccountView,
    FarmStats,
    FarmTotals,
    TotalsDelta,
    TransferChain,
)

logger = logging.getLogger(__name__)


class FarmState:
    """Configuration, aggregates, ledger and settlement book of one farm."""

    def __init__(self, record: FarmRecord, store: MutableMapping[bytes, bytes]) -> None:
        self._store = store
        self._config = record.config
        self._totals = record.totals
        self._ledger = AccountLedger(store)
        self._book = SettlementBook(record.chains, record.next_chain_id)

    # -- Lifecycle -----------------------------------------------------------

    @classmethod
    def initialize(cls, config: FarmConfig, store: Optional[MutableMapping[bytes, bytes]] = None) -> "FarmState":
        """Create a new farm in `store` and queue its asset-service registrations."""
        store = {} if store is None else store
        if has_farm_record(store):
            raise AlreadyInitializedError("Already initialized")
        farm = cls(FarmRecord(config=config, totals=initial_totals()), store)
        for actions in registration_actions(config):
            farm._book.open_chain(Command.REGISTER_FARM, config.farm_id, actions)
        farm._save()
        logger.info(
            "initialized farm @%s (base=@%s, reward=@%s)",
            config.farm_id, config.base_asset_id, config.reward_asset_id,
        )
        return farm

    @classmethod
    def open(cls, store: MutableMapping[bytes, bytes]) -> "FarmState":
        """Reload a farm previously created with `initialize()`."""
        return cls(load_farm_record(store), store)

    @property
    def config(self) -> FarmConfig:
        return self._config

    @property
    def totals(self) -> FarmTotals:
        return self._totals

    def _save(self) -> None:
        save_farm_record(
            self._store,
            FarmRecord(
                config=self._config,
                totals=self._totals,
                chains=tuple(self._book.all()),
                next_chain_id=self._book.next_chain_id,
            ),
        )

    # -- Internal helpers ----------------------------------------------------

    def _new_account(self) -> Account:
        return Account(reward_rate_snapshot=self._totals.obs_per_reward_rate)

    def _load_or_new(self, key: AccountKey) -> Account:
        account = self._ledger.lookup(key)
        return self._new_account() if account is None else account

    def _shift_totals(self, delta: TotalsDelta, sign: int) -> FarmTotals:
        values = {}
        for name in TOTALS_FIELDS:
            v = getattr(self._totals, name) + sign * getattr(delta, name)
            if v < 0:
                raise FarmOverflowError(f"underflow in {name}")
            if v > U128_MAX:
                raise FarmOverflowError(f"overflow in {name}")
            values[name] = v
        totals = FarmTotals(**values)
        violations = check_all(totals=totals)
        if violations:
            raise FarmInvariantError(violations)
        return totals

    def _commit(
        self,
        key: AccountKey,
        account: Account,
        totals: FarmTotals,
        command: Command,
        account_id: AccountId,
        actions: tuple[ExternalAction, ...],
        compensation: Compensation,
        now: int,
    ) -> TransferChain:
        chain = self._book.open_chain(command, account_id, actions, compensation, opened_at=now)
        self._ledger.upsert(key, account)
        self._totals = totals
        self._save()
        return chain

    # -- Commands ------------------------------------------------------------

    def stake(self, ctx: CallContext, amount: int) -> CommandResult:
        """Stake `amount` (plus fee) of the base asset for the caller."""
        cfg = self._config
        guard_payment_unit(ctx, cfg)
        guard_positive_amount(amount)
        key = derive_account_key(ctx.predecessor)
        guard_not_pending(ctx.predecessor, self._book.is_locked(key))

        gross = gross_with_fee(amount, cfg.staking_fee_rate)
        before = self._load_or_new(key)
        restaked = replace(
            before,
            staked_balance=gross,
            reward_balance=0,
            reward_claimed=0,
            deposit_time=ctx.now,
        )
        accrual = touch(restaked, cfg, ctx.now)
        account = replace(accrual.account, reward_rate_snapshot=accrual.rate_snapshot)

        obs_per_reward = mul_div_scaled(
            gross,
            elapsed_since(ctx.now, cfg.cliff_time),
            cfg.reward_rate,
            cfg.reward_interval,
        )
        delta = TotalsDelta(
            obs_per_reward_rate=obs_per_reward,
            total_staked=gross,
            total_reward_farmed=accrual.farmed,
        )
        totals = self._shift_totals(delta, +1)

        chain = self._commit(
            key, account, totals, Command.STAKE, ctx.predecessor,
            stake_actions(cfg, ctx.predecessor, gross),
            Compensation(account_key=key, account_before=before, totals_delta=delta),
            ctx.now,
        )
        logger.info("@%s staked %d (gross %d), settlement chain %d", ctx.predecessor, amount, gross, chain.chain_id)
        return CommandResult(event=Event.STAKED, account=account, chain_id=chain.chain_id, actions=chain.actions)

    def unstake(self, ctx: CallContext, amount: int) -> CommandResult:
        """Withdraw `amount` of stake and claim the accrued reward."""
        cfg = self._config
        guard_payment_unit(ctx, cfg)
        guard_positive_amount(amount)
        key = derive_account_key(ctx.predecessor)
        guard_not_pending(ctx.predecessor, self._book.is_locked(key))

        before = self._load_or_new(key)
        guard_sufficient_stake(before, amount)
        guard_lockup_elapsed(before, cfg, ctx.now)

        accrual = touch(before, cfg, ctx.now)
        claimed = accrual.account.reward_balance
        account = replace(
            accrual.account,
            staked_balance=checked_sub(accrual.account.staked_balance, amount, name="staked_balance"),
            reward_claimed=claimed,
            reward_balance=0,
        )
        # Principal is folded into the claimed aggregate along with the reward.
        delta = TotalsDelta(
            total_staked=-amount,
            total_reward_farmed=accrual.farmed,
            total_reward_claimed=checked_add(amount, claimed, name="total_reward_claimed"),
        )
        totals = self._shift_totals(delta, +1)
        gross = gross_with_fee(amount, cfg.staking_fee_rate)

        chain = self._commit(
            key, account, totals, Command.UNSTAKE, ctx.predecessor,
            unstake_actions(cfg, ctx.predecessor, gross),
            Compensation(account_key=key, account_before=before, totals_delta=delta),
            ctx.now,
        )
        logger.info(
            "@%s unstaked %d, claimed reward %d, payout %d, settlement chain %d",
            ctx.predecessor, amount, claimed, gross, chain.chain_id,
        )
        return CommandResult(event=Event.UNSTAKED, account=account, chain_id=chain.chain_id, actions=chain.actions)

    def register_account(self, ctx: CallContext) -> bool:
        """Make sure the caller has a ledger row. Returns True if one was created."""
        key = derive_account_key(ctx.predecessor)
        if self._ledger.exists(key):
            return False
        self._ledger.upsert(key, self._new_account())
        logger.info("registered account @%s (key %s)", ctx.predecessor, key)
        return True

    # -- Inbound notifications -----------------------------------------------

    def ft_on_transfer(self, ctx: CallContext, sender_id: AccountId, amount: int, msg: str) -> int:
        """Receiver hook called by the base-asset service after moving funds here.

        Returns the amount to hand back to `sender_id`: 0 for stake intake,
        the whole `amount` otherwise (nothing was consumed).
        """
        guard_caller(ctx, (self._config.base_asset_id,), what="Only supports the one fungible token contract")
        logger.info("in %d tokens from @%s ft_on_transfer, msg = %s", amount, sender_id, msg)
        if msg == STAKE_MSG:
            return 0
        self._handle_on_transfer(sender_id, amount, msg)
        return amount

    def on_transfer(self, ctx: CallContext, sender_id: AccountId, amount: int, msg: Optional[str] = None) -> None:
        """Second-stage transfer handler; also the stake chain's self-callback."""
        guard_caller(
            ctx,
            (self._config.base_asset_id, self._config.farm_id),
            what="Only supports the one fungible token contract",
        )
        self._handle_on_transfer(sender_id, amount, msg)

    def _handle_on_transfer(self, sender_id: AccountId, amount: int, msg: Optional[str]) -> None:
        logger.info("%d tokens from @%s on_transfer, msg = %s", amount, sender_id, msg or "")

    # -- Settlement ----------------------------------------------------------

    def dispatch_ready(self) -> List[DispatchTicket]:
        """Hand out every settlement step that may run now."""
        tickets = self._book.dispatch_ready()
        if tickets:
            self._save()
        return tickets

    def resolve(
        self,
        ctx: CallContext,
        chain_id: int,
        step: int,
        ok: bool,
        reason: Optional[str] = None,
    ) -> TransferChain:
        """Callback entry point: the outcome of one dispatched step.

        Only the party that executed the step may report it. A failure of the
        first step of a stake/unstake chain reverts that command's ledger and
        aggregate changes.
        """
        action = self._book.in_flight_action(chain_id, step)
        guard_caller(ctx, (action.target,), what="settlement callback")

        reverted = None if ok else self._reversal(self._book.get(chain_id))
        chain, compensation = self._book.resolve(chain_id, step, ok, reason)
        self._apply_compensation(compensation, reverted)
        self._save()
        return chain

    def expire_settlement(self, chain_id: int, now: int) -> TransferChain:
        """Fail a locking chain that stayed unresolved for `settlement_timeout`.

        The chain fails at its cursor as if that step had been reported
        failed: before any step settled the command is reverted, otherwise
        the chain is left for manual reconciliation. Either way the account
        lock is released. Late callbacks for the chain are then rejected.
        """
        timeout = self._config.settlement_timeout
        reverted = self._reversal(self._book.expirable(chain_id, now, timeout))
        chain, compensation = self._book.expire(chain_id, now, timeout)
        self._apply_compensation(compensation, reverted)
        self._save()
        return chain

    def expire_stale(self, now: int) -> List[TransferChain]:
        """Expire every locking chain past its settlement timeout."""
        timeout = self._config.settlement_timeout
        return [self.expire_settlement(c.chain_id, now) for c in self._book.stale(now, timeout)]

    def _reversal(self, chain: TransferChain) -> Optional[FarmTotals]:
        # Computed before the book changes, so an overflow leaves everything untouched.
        if chain.cursor == 0 and chain.compensation is not None:
            return self._shift_totals(chain.compensation.totals_delta, -1)
        return None

    def _apply_compensation(self, compensation: Optional[Compensation], reverted: Optional[FarmTotals]) -> None:
        if compensation is not None and reverted is not None:
            self._ledger.upsert(compensation.account_key, compensation.account_before)
            self._totals = reverted

    # -- Queries -------------------------------------------------------------

    def account_exists(self, account_id: AccountId) -> bool:
        return self._ledger.exists(derive_account_key(account_id))

    def get_account(self, account_id: AccountId) -> Optional[FarmerAccountView]:
        account = self._ledger.lookup(derive_account_key(account_id))
        if account is None:
            return None
        return FarmerAccountView(
            staked_balance=account.staked_balance,
            reward_balance=account.reward_balance,
            reward_claimed=account.reward_claimed,
        )

    def get_reward_balance(self, account_id: AccountId, now: int) -> int:
        """Reward the account would hold if touched at `now`; changes nothing."""
        account = self._ledger.lookup(derive_account_key(account_id))
        if account is None:
            return 0
        return touch(account, self._config, now).account.reward_balance

    def get_stats(self) -> FarmStats:
        return FarmStats(
            total_staked=self._totals.total_staked,
            total_reward_claimed=self._totals.total_reward_claimed,
            total_reward_farmed=self._totals.total_reward_farmed,
        )

    def settlement(self, chain_id: int) -> TransferChain:
        return self._book.get(chain_id)

    def pending_settlements(self) -> List[TransferChain]:
        return self._book.pending()

    def unreconciled_settlements(self) -> List[TransferChain]:
        return self._book.unreconciled()

    def is_settling(self, account_id: AccountId) -> bool:
        return self._book.is_locked(derive_account_key(account_id))
