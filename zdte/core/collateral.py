"""
Collateral policy: how much each position locks, and from which pool.

Covered-call / cash-secured-put model:
- long call: `amount` base units from the base pool,
- long put:  quote value of `amount` at the strike from the quote pool,
- spread:    only the strike width is at risk; puts lock its quote value,
             calls lock ceil(width * amount / short_strike) base units (the
             call spread's payout peaks when the price reaches the short strike).

`lock_position` / `release_position` are the only writers of
`PoolState.locked_assets` and run exactly once per position.
"""

from __future__ import annotations

from typing import Dict, Iterable, Mapping, Tuple

from ..state.pools import PoolSide, PoolState
from ..state.positions import Position, PositionKind
from . import share_pool
from .errors import InvalidParam
from .payoff import quote_value


def _ceil_div(a: int, b: int) -> int:
    return -((-a) // b)


def required_collateral(
    *,
    kind: PositionKind,
    is_put: bool,
    amount: int,
    strike: int,
    short_strike: int,
    divisor: int,
) -> Tuple[PoolSide, int]:
    """Return (pool side, amount) a new position must lock."""
    if kind is PositionKind.LONG:
        if is_put:
            locked = (PoolSide.QUOTE, quote_value(amount, strike, divisor))
        else:
            locked = (PoolSide.BASE, amount)
    else:
        width = abs(strike - short_strike)
        if is_put:
            locked = (PoolSide.QUOTE, quote_value(amount, width, divisor))
        else:
            locked = (PoolSide.BASE, _ceil_div(width * amount, short_strike))
    if locked[1] <= 0:
        raise InvalidParam(f"amount {amount} is too small to carry any collateral")
    return locked


def lock_position(pool: PoolState, position: Position) -> PoolState:
    if pool.side is not position.locked_pool:
        raise ValueError(f"position {position.id} locks {position.locked_pool.value}, got {pool.side.value} pool")
    return share_pool.lock(pool, position.locked_amount)


def release_position(pool: PoolState, position: Position) -> PoolState:
    if pool.side is not position.locked_pool:
        raise ValueError(f"position {position.id} locks {position.locked_pool.value}, got {pool.side.value} pool")
    return share_pool.release(pool, position.locked_amount)


def locked_by_pool(positions: Iterable[Position]) -> Dict[PoolSide, int]:
    """Recompute per-pool locked totals from the unsettled positions."""
    totals = {PoolSide.QUOTE: 0, PoolSide.BASE: 0}
    for pos in positions:
        if not pos.settled:
            totals[pos.locked_pool] += pos.locked_amount
    return totals


def locking_mismatches(
    pools: Mapping[PoolSide, PoolState], positions: Iterable[Position]
) -> list[PoolSide]:
    """Sides whose `locked_assets` disagree with the open positions."""
    expected = locked_by_pool(positions)
    return [side for side, pool in pools.items() if pool.locked_assets != expected[side]]
