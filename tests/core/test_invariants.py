"""Invariant checkers: each one flags exactly the corruption it guards against."""

from dataclasses import replace

from zdte.core.invariants import INVARIANT_REGISTRY, check_all
from zdte.core.vault import VaultState, init_vault_state
from zdte.state.pools import PoolSide, PoolState
from zdte.state.positions import Position, PositionBook, PositionKind
from zdte.state.shares import ShareTable


def _position(pid=0, expiry=100, **kw) -> Position:
    params = dict(
        id=pid, owner="alice", kind=PositionKind.LONG, is_put=False, amount=10,
        strike=1600, short_strike=0, premium=0, fee=0, locked_amount=10,
        locked_pool=PoolSide.BASE, opened_at=1, expiry=expiry,
    )
    params.update(kw)
    return Position(**params)


def _healthy() -> VaultState:
    shares = ShareTable()
    shares.mint("lp1", PoolSide.BASE, 50)
    return VaultState(
        base_pool=PoolState(side=PoolSide.BASE, total_assets=50, total_shares=50, locked_assets=10),
        shares=shares,
        book=PositionBook((_position(),)),
    )


def test_registry_ids_match_function_names():
    for inv_id, fn in INVARIANT_REGISTRY.items():
        assert fn.__name__ == inv_id


def test_empty_and_healthy_states_pass():
    assert check_all(init_vault_state()) == []
    assert check_all(_healthy()) == []


def test_lock_mismatch():
    s = _healthy()
    s = s.with_pool(replace(s.base_pool, locked_assets=11))
    assert check_all(s) == ["inv_locked_matches_positions"]


def test_share_supply_mismatch():
    s = _healthy()
    s.shares.mint("lp2", PoolSide.BASE, 1)
    assert check_all(s) == ["inv_share_supply_matches_holdings"]


def test_swapped_pools():
    s = replace(init_vault_state(), quote_pool=PoolState(side=PoolSide.BASE))
    assert "inv_pool_sides" in check_all(s)


def test_settled_without_price():
    s = _healthy()
    s = replace(
        s.with_pool(replace(s.base_pool, locked_assets=0)),
        book=s.book.mark_settled(0, payout=0, settled_at=100),
    )
    assert check_all(s) == ["inv_settlement_price_pinned"]
    assert check_all(replace(s, settlement_price=1650)) == []


def test_payout_above_lock():
    s = _healthy()
    s = replace(
        s.with_pool(replace(s.base_pool, locked_assets=0)),
        book=s.book.mark_settled(0, payout=11, settled_at=100),
        settlement_price=1650,
    )
    assert check_all(s) == ["inv_payout_within_lock"]


def test_mixed_expiries():
    s = _healthy()
    s = replace(
        s.with_pool(replace(s.base_pool, locked_assets=20)),
        book=s.book.append(_position(1, expiry=200)),
    )
    assert check_all(s) == ["inv_single_expiry"]
