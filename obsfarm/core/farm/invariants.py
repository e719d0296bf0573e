"""Invariant checkers for the farm's committed records.

Each function returns True when the invariant holds, and `check_all()` returns
the list of violated invariant IDs (empty = all pass).

Note: these are per-record invariants. The ledger cannot be iterated, so the
"aggregates equal the sum over accounts" relation is not checked here.
"""

from __future__ import annotations

from typing import Callable

from ...state.ledger import U128_MAX
from .types import FarmTotals, SettlementStatus, TransferChain


def inv_totals_in_range(t: FarmTotals) -> bool:
    return all(
        0 <= v <= U128_MAX
        for v in (t.obs_per_reward_rate, t.total_staked, t.total_reward_farmed, t.total_reward_claimed)
    )


TOTALS_INVARIANTS: dict[str, Callable[[FarmTotals], bool]] = {
    "inv_totals_in_range": inv_totals_in_range,
}


def inv_cursor_in_bounds(c: TransferChain) -> bool:
    return 0 <= c.cursor <= len(c.actions)


def inv_settled_cursor_at_end(c: TransferChain) -> bool:
    if c.status is not SettlementStatus.SETTLED:
        return True
    return c.cursor == len(c.actions)


def inv_terminal_not_in_flight(c: TransferChain) -> bool:
    return not (c.is_terminal and c.in_flight)


def inv_compensated_only_failed(c: TransferChain) -> bool:
    if not c.compensated:
        return True
    return c.status is SettlementStatus.FAILED and c.compensation is not None


def inv_failed_has_reason(c: TransferChain) -> bool:
    if c.status is not SettlementStatus.FAILED:
        return True
    return bool(c.failure_reason)


CHAIN_INVARIANTS: dict[str, Callable[[TransferChain], bool]] = {
    "inv_cursor_in_bounds": inv_cursor_in_bounds,
    "inv_settled_cursor_at_end": inv_settled_cursor_at_end,
    "inv_terminal_not_in_flight": inv_terminal_not_in_flight,
    "inv_compensated_only_failed": inv_compensated_only_failed,
    "inv_failed_has_reason": inv_failed_has_reason,
}


def check_all(
    *,
    totals: FarmTotals | None = None,
    chain: TransferChain | None = None,
) -> list[str]:
    """Return list of violated invariant IDs (empty = all pass)."""
    violations: list[str] = []
    if totals is not None:
        violations += [k for k, fn in TOTALS_INVARIANTS.items() if not fn(totals)]
    if chain is not None:
        violations += [k for k, fn in CHAIN_INVARIANTS.items() if not fn(chain)]
    return violations
