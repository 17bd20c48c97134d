"""
Share pool arithmetic (mint/burn shares, lock/release collateral).

All functions are pure: they take a `PoolState` and return a new one.
Rounding is integer floor division and always favors the pool:
- deposits mint floor(amount * shares / assets),
- withdrawals pay floor(shares * assets / shares_total).
"""

from __future__ import annotations

from dataclasses import replace
from typing import Tuple

from ..state.balances import Amount
from ..state.pools import PoolState
from .errors import InsufficientLiquidity, InvalidParam


def _require_positive(name: str, value: int) -> None:
    if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
        raise InvalidParam(f"{name} must be a positive int: {value!r}")


def compute_shares_minted(pool: PoolState, amount: Amount) -> int:
    """
    Shares minted for depositing `amount` into `pool`.

    For an empty pool (total_shares == 0):
        shares = amount
    Otherwise:
        shares = floor(amount * total_shares / total_assets)
    """
    _require_positive("amount", amount)
    if pool.total_shares == 0:
        return amount
    if pool.total_assets == 0:
        raise InvalidParam(
            f"{pool.side.value} pool has {pool.total_shares} shares outstanding but no assets"
        )
    return (amount * pool.total_shares) // pool.total_assets


def compute_assets_for_shares(pool: PoolState, shares: int) -> Amount:
    """Assets redeemable for `shares`: floor(shares * total_assets / total_shares)."""
    _require_positive("shares", shares)
    if pool.total_shares == 0:
        raise InsufficientLiquidity(f"{pool.side.value} pool is empty")
    return (shares * pool.total_assets) // pool.total_shares


def deposit(pool: PoolState, amount: Amount) -> Tuple[PoolState, int]:
    """Add `amount` to the pool. Returns (new_pool, shares_minted)."""
    shares = compute_shares_minted(pool, amount)
    if shares == 0:
        raise InvalidParam(f"deposit of {amount} mints zero shares")
    new_pool = replace(
        pool,
        total_assets=pool.total_assets + amount,
        total_shares=pool.total_shares + shares,
    )
    return new_pool, shares


def withdraw(pool: PoolState, shares: int) -> Tuple[PoolState, Amount]:
    """
    Burn `shares` against the pool. Returns (new_pool, amount_paid).

    A pool drained by settlement payouts (shares outstanding, no assets)
    lets holders burn their shares for nothing, so it can return to empty.

    Raises:
        InsufficientLiquidity: if the payout exceeds the unlocked assets.
    """
    amount = compute_assets_for_shares(pool, shares)
    if amount > pool.available_assets:
        raise InsufficientLiquidity(
            f"Not enough available assets to satisfy withdrawal: "
            f"{amount} > {pool.available_assets} ({pool.side.value} pool)"
        )
    if amount == 0 and pool.total_assets:
        raise InvalidParam(f"withdrawal of {shares} shares pays zero assets")
    new_pool = replace(
        pool,
        total_assets=pool.total_assets - amount,
        total_shares=pool.total_shares - shares,
    )
    return new_pool, amount


def lock(pool: PoolState, amount: Amount) -> PoolState:
    """Reserve `amount` of the pool's free assets."""
    if amount < 0:
        raise InvalidParam(f"lock amount must be non-negative: {amount}")
    if amount > pool.available_assets:
        raise InsufficientLiquidity(
            f"Insufficient liquidity to lock {amount} in {pool.side.value} pool "
            f"(available {pool.available_assets})"
        )
    return replace(pool, locked_assets=pool.locked_assets + amount)


def release(pool: PoolState, amount: Amount) -> PoolState:
    """Return `amount` of reserved assets to the free balance."""
    if amount < 0 or amount > pool.locked_assets:
        raise ValueError(
            f"release of {amount} outside locked range [0, {pool.locked_assets}] "
            f"({pool.side.value} pool)"
        )
    return replace(pool, locked_assets=pool.locked_assets - amount)


def receive(pool: PoolState, amount: Amount) -> PoolState:
    """Credit revenue (premium) to the pool without minting shares."""
    if amount < 0:
        raise InvalidParam(f"revenue must be non-negative: {amount}")
    if amount and pool.total_shares == 0:
        raise InsufficientLiquidity(f"{pool.side.value} pool has no shareholders to receive revenue")
    return replace(pool, total_assets=pool.total_assets + amount)


def pay_out(pool: PoolState, amount: Amount) -> PoolState:
    """Debit a settlement payout from the pool's free assets."""
    if amount < 0:
        raise InvalidParam(f"payout must be non-negative: {amount}")
    if amount > pool.available_assets:
        raise InsufficientLiquidity(
            f"payout {amount} exceeds available {pool.side.value} assets {pool.available_assets}"
        )
    return replace(pool, total_assets=pool.total_assets - amount)


def assets_per_share_e8(pool: PoolState) -> int:
    """Exchange rate scaled by 1e8 (1e8 for an empty pool)."""
    if pool.total_shares == 0:
        return 100_000_000
    return (pool.total_assets * 100_000_000) // pool.total_shares
