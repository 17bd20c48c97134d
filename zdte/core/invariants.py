"""Invariant checkers for the vault state.

Each function returns True when the invariant holds, and `check_all()` returns
the list of violated invariant IDs (empty = all pass). `vault.step()` runs
`check_all()` on every post-state and rejects the step on any violation.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Callable

from ..state.pools import PoolSide
from .collateral import locking_mismatches

if TYPE_CHECKING:
    from .vault import VaultState


def inv_pool_sides(s: VaultState) -> bool:
    return s.quote_pool.side is PoolSide.QUOTE and s.base_pool.side is PoolSide.BASE


def inv_locked_matches_positions(s: VaultState) -> bool:
    return not locking_mismatches(s.pools(), s.book)


def inv_share_supply_matches_holdings(s: VaultState) -> bool:
    return all(
        pool.total_shares == s.shares.total(side) for side, pool in s.pools().items()
    )


def inv_payout_within_lock(s: VaultState) -> bool:
    return all(p.payout <= p.locked_amount for p in s.book if p.settled)


def inv_settlement_price_pinned(s: VaultState) -> bool:
    if any(p.settled for p in s.book):
        return s.settlement_price > 0
    return True


def inv_single_expiry(s: VaultState) -> bool:
    return len({p.expiry for p in s.book}) <= 1


INVARIANT_REGISTRY: dict[str, Callable[["VaultState"], bool]] = {
    "inv_pool_sides": inv_pool_sides,
    "inv_locked_matches_positions": inv_locked_matches_positions,
    "inv_share_supply_matches_holdings": inv_share_supply_matches_holdings,
    "inv_payout_within_lock": inv_payout_within_lock,
    "inv_settlement_price_pinned": inv_settlement_price_pinned,
    "inv_single_expiry": inv_single_expiry,
}


def check_all(state: VaultState) -> list[str]:
    """Return list of violated invariant IDs (empty = all pass).

    Book-wide checks rescan every position, so each step costs O(len(book)).
    """
    return [
        inv_id
        for inv_id, check_fn in INVARIANT_REGISTRY.items()
        if not check_fn(state)
    ]
