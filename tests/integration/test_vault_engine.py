"""End-to-end scenarios through the `ZdteVault` facade with in-memory custody."""

from __future__ import annotations

from dataclasses import replace

import pytest
from loguru import logger

from zdte.core.errors import (
    AlreadySettled,
    InsufficientBalance,
    InsufficientLiquidity,
    InvalidLongStrike,
    InvalidParam,
    InvalidStrike,
    NotYetExpired,
    OptionExpired,
)
from zdte.core.invariants import check_all
from zdte.integration.custody import InMemoryCustody
from zdte.integration.interfaces import StaticPriceOracle, StaticVolatilityOracle
from zdte.integration.snapshot import state_root
from zdte.integration.vault_engine import ZdteVault
from zdte.state.pools import PoolSide, PoolState

E8 = 10**8
ETH = 10**18
USDC = 10**6
VAULT = "zdte-vault"


def _settle_time(vault, clock) -> None:
    clock.now = vault.config.expiry


class _FeeRejectingCustody(InMemoryCustody):
    """Custody whose payments to the fee distributor always fail."""

    def transfer_out(self, asset: str, holder: str, amount: int) -> None:
        if holder == "treasury":
            raise RuntimeError("treasury transfer refused")
        super().transfer_out(asset, holder, amount)


class TestLiquidity:
    def test_deposit_moves_assets_and_mints_shares(self, vault, custody):
        minted = vault.deposit("lp1", True, 5_000 * USDC)
        assert minted == 5_000 * USDC
        assert vault.share_balance("lp1", True) == 5_000 * USDC
        assert vault.share_balance("lp1", False) == 0
        assert custody.balance_of(VAULT, "USDC") == 5_000 * USDC
        assert custody.balance_of("lp1", "USDC") == 995_000 * USDC

    def test_withdraw_returns_assets(self, funded_vault, custody):
        paid = funded_vault.withdraw("lp1", False, 40 * ETH)
        assert paid == 40 * ETH
        assert custody.balance_of("lp1", "WETH") == 940 * ETH
        assert funded_vault.available_assets(False) == 60 * ETH

    def test_deposit_without_funds_changes_nothing(self, vault, custody):
        before = vault.state
        with pytest.raises(InsufficientBalance):
            vault.deposit("carol", True, 1 * USDC)
        assert vault.state is before
        assert custody.balance_of(VAULT, "USDC") == 0

    def test_withdraw_more_than_held(self, funded_vault):
        funded_vault.deposit("lp2", True, 1_000 * USDC)
        with pytest.raises(InsufficientBalance):
            funded_vault.withdraw("lp2", True, 1_001 * USDC)

    def test_lp_earns_premium(self, funded_vault, custody, clock):
        funded_vault.open_long_position("alice", False, ETH, 1650 * E8)
        _settle_time(funded_vault, clock)
        assert funded_vault.expire_position(0) == 0
        paid = funded_vault.withdraw("lp1", True, 100_000 * USDC)
        assert paid == 100_010 * USDC
        assert funded_vault.assets_per_share_e8(True) == 100_000_000


class TestOpening:
    def test_long_call_collects_premium_and_locks_base(self, funded_vault, custody, pricing):
        pid = funded_vault.open_long_position("alice", False, ETH, 1650 * E8)
        assert pid == 0
        pos = funded_vault.get_position(pid)
        assert pos.owner == "alice"
        assert pos.locked_pool is PoolSide.BASE
        assert pos.locked_amount == ETH
        assert pos.premium == 10 * USDC
        assert funded_vault.pool(False).locked_assets == ETH
        assert funded_vault.available_assets(False) == 99 * ETH
        assert custody.balance_of("alice", "USDC") == 999_990 * USDC
        # Pricing saw the live spot, the seconds left and the oracle volatility.
        assert pricing.calls == [(1600 * E8, 1650 * E8, 3600, 80, ETH, False)]

    def test_long_put_locks_quote(self, funded_vault):
        pid = funded_vault.open_long_position("alice", True, ETH, 1600 * E8)
        assert funded_vault.get_position(pid).locked_amount == 1600 * USDC
        assert funded_vault.pool(True).locked_assets == 1600 * USDC

    def test_strike_band(self, funded_vault):
        funded_vault.open_long_position("alice", False, ETH, 1650 * E8)
        with pytest.raises(InvalidStrike):
            funded_vault.open_long_position("alice", False, ETH, 1800 * E8)
        with pytest.raises(InvalidStrike):
            funded_vault.open_long_position("alice", False, ETH, 1625 * E8)

    def test_call_spread_ordering(self, funded_vault, pricing):
        pricing.by_strike = {1600 * E8: 40 * USDC, 1700 * E8: 15 * USDC}
        pid = funded_vault.open_spread_position("bob", False, ETH, 1600 * E8, 1700 * E8)
        assert funded_vault.get_position(pid).premium == 25 * USDC
        with pytest.raises(InvalidLongStrike):
            funded_vault.open_spread_position("bob", False, ETH, 1600 * E8, 1500 * E8)

    def test_put_spread(self, funded_vault):
        pid = funded_vault.open_spread_position("bob", True, ETH, 1600 * E8, 1500 * E8)
        pos = funded_vault.get_position(pid)
        assert pos.locked_pool is PoolSide.QUOTE
        assert pos.locked_amount == 100 * USDC

    def test_insufficient_liquidity(self, funded_vault):
        with pytest.raises(InsufficientLiquidity):
            funded_vault.open_long_position("alice", False, 101 * ETH, 1600 * E8)

    def test_buyer_without_funds_changes_nothing(self, funded_vault):
        before = funded_vault.state
        with pytest.raises(InsufficientBalance):
            funded_vault.open_long_position("carol", False, ETH, 1600 * E8)
        assert funded_vault.state is before
        assert funded_vault.pool(False).locked_assets == 0

    def test_open_after_expiry(self, funded_vault, clock):
        _settle_time(funded_vault, clock)
        with pytest.raises(OptionExpired):
            funded_vault.open_long_position("alice", False, ETH, 1600 * E8)

    def test_opening_fee_forwarded(self, config, custody, oracle, pricing, clock):
        cfg = replace(config, fee_open_position_bps=100, fee_distributor="treasury")
        vault = ZdteVault(
            cfg, custody=custody, price_oracle=oracle,
            volatility_oracle=StaticVolatilityOracle(80), pricing=pricing, clock=clock,
        )
        vault.deposit("lp1", True, 10_000 * USDC)
        vault.deposit("lp1", False, 10 * ETH)
        vault.open_long_position("alice", False, ETH, 1600 * E8)
        assert custody.balance_of("alice", "USDC") == 1_000_000 * USDC - 10_100_000
        assert custody.balance_of("treasury", "USDC") == 100_000
        assert vault.pool(True).total_assets == 10_010 * USDC

    def test_failed_fee_forward_refunds_buyer(self, config, oracle, pricing, clock):
        custody = _FeeRejectingCustody(VAULT)
        custody.fund("lp1", "USDC", 1_000_000 * USDC)
        custody.fund("lp1", "WETH", 1_000 * ETH)
        custody.fund("alice", "USDC", 1_000_000 * USDC)
        cfg = replace(config, fee_open_position_bps=100, fee_distributor="treasury")
        vault = ZdteVault(
            cfg, custody=custody, price_oracle=oracle,
            volatility_oracle=StaticVolatilityOracle(80), pricing=pricing, clock=clock,
        )
        vault.deposit("lp1", True, 10_000 * USDC)
        vault.deposit("lp1", False, 10 * ETH)
        before = vault.state
        with pytest.raises(RuntimeError, match="treasury"):
            vault.open_long_position("alice", False, ETH, 1600 * E8)
        assert vault.state is before
        assert custody.balance_of("alice", "USDC") == 1_000_000 * USDC
        assert custody.balance_of(VAULT, "USDC") == vault.pool(True).total_assets
        assert custody.balance_of("treasury", "USDC") == 0

    def test_invalid_strike_is_logged(self, funded_vault):
        lines = []
        handler_id = logger.add(lines.append, level="WARNING", format="{level} {message}")
        try:
            with pytest.raises(InvalidStrike):
                funded_vault.open_long_position("alice", False, ETH, 1800 * E8)
            with pytest.raises(InvalidLongStrike):
                funded_vault.open_spread_position("bob", False, ETH, 1600 * E8, 1500 * E8)
        finally:
            logger.remove(handler_id)
        assert any("open_long rejected (invalid_strike)" in line for line in lines)
        assert any("open_spread rejected" in line for line in lines)

    def test_quote_premium_is_a_preview(self, funded_vault):
        quote = funded_vault.quote_premium(True, ETH, 1600 * E8, 1500 * E8)
        assert quote.premium == 0  # both legs priced at the default premium
        assert quote.locked_pool is PoolSide.QUOTE
        assert quote.locked_amount == 100 * USDC
        assert quote.total_cost == 0
        assert funded_vault.open_positions() == []


class TestSettlement:
    def test_long_call_scenario(self, funded_vault, custody, oracle, clock):
        pid = funded_vault.open_long_position("alice", False, ETH, 1600 * E8)
        oracle.update_price(1650 * E8)
        _settle_time(funded_vault, clock)
        assert funded_vault.calc_payout(pid) == 30_303_030_303_030_303
        payout = funded_vault.expire_position(pid)
        assert payout == 30_303_030_303_030_303
        assert custody.balance_of("alice", "WETH") == 1_000 * ETH + payout
        assert funded_vault.pool(False).locked_assets == 0
        assert funded_vault.pool(False).total_assets == 100 * ETH - payout

    def test_long_put_scenario(self, funded_vault, custody, oracle, clock):
        pid = funded_vault.open_long_position("alice", True, ETH, 1600 * E8)
        oracle.update_price(1550 * E8)
        _settle_time(funded_vault, clock)
        assert funded_vault.expire_position(pid) == 50 * USDC
        assert custody.balance_of("alice", "USDC") == 1_000_000 * USDC - 10 * USDC + 50 * USDC

    def test_call_spread_capped(self, funded_vault, custody, oracle, clock):
        pid = funded_vault.open_spread_position("bob", False, ETH, 1600 * E8, 1700 * E8)
        oracle.update_price(2000 * E8)
        _settle_time(funded_vault, clock)
        payout = funded_vault.expire_position(pid)
        assert payout == 5 * 10**16
        assert payout <= funded_vault.get_position(pid).locked_amount

    def test_not_yet_expired(self, funded_vault):
        pid = funded_vault.open_long_position("alice", False, ETH, 1600 * E8)
        with pytest.raises(NotYetExpired):
            funded_vault.expire_position(pid)

    def test_second_expire_pays_nothing_more(self, funded_vault, custody, oracle, clock):
        pid = funded_vault.open_long_position("alice", True, ETH, 1600 * E8)
        oracle.update_price(1550 * E8)
        _settle_time(funded_vault, clock)
        funded_vault.expire_position(pid)
        balance = custody.balance_of("alice", "USDC")
        with pytest.raises(AlreadySettled):
            funded_vault.expire_position(pid)
        assert custody.balance_of("alice", "USDC") == balance
        assert funded_vault.calc_payout(pid) == 0

    def test_anyone_can_settle_but_owner_is_paid(self, funded_vault, custody, oracle, clock):
        pid = funded_vault.open_long_position("alice", True, ETH, 1600 * E8)
        oracle.update_price(1550 * E8)
        _settle_time(funded_vault, clock)
        bob_before = custody.balance_of("bob", "USDC")
        funded_vault.expire_position(pid)  # called by a keeper, not the owner
        assert custody.balance_of("bob", "USDC") == bob_before
        assert funded_vault.get_position(pid).payout == 50 * USDC

    def test_settlement_price_pinned(self, funded_vault, oracle, clock):
        first = funded_vault.open_long_position("alice", True, ETH, 1600 * E8)
        second = funded_vault.open_long_position("bob", True, ETH, 1600 * E8)
        oracle.update_price(1550 * E8)
        _settle_time(funded_vault, clock)
        funded_vault.expire_position(first)
        oracle.update_price(1500 * E8)
        assert funded_vault.expire_position(second) == 50 * USDC
        assert funded_vault.state.settlement_price == 1550 * E8

    def test_expire_all_open(self, funded_vault, oracle, clock):
        funded_vault.open_long_position("alice", True, ETH, 1600 * E8)
        funded_vault.open_long_position("bob", False, ETH, 1650 * E8)
        oracle.update_price(1550 * E8)
        _settle_time(funded_vault, clock)
        assert funded_vault.expire_positions() == {0: 50 * USDC, 1: 0}
        assert funded_vault.open_positions() == []
        assert funded_vault.pool(True).locked_assets == 0
        assert funded_vault.pool(False).locked_assets == 0

    def test_unknown_position(self, funded_vault):
        with pytest.raises(InvalidParam):
            funded_vault.expire_position(42)


class TestNoOverWithdrawal:
    def test_fully_locked_pool(self, vault, custody, clock):
        vault.deposit("lp1", True, 1_000 * USDC)
        vault.deposit("lp1", False, 2 * ETH)
        vault.open_long_position("alice", False, 2 * ETH, 1600 * E8)
        assert vault.available_assets(False) == 0
        with pytest.raises(InsufficientLiquidity):
            vault.withdraw("lp1", False, 1)
        assert custody.balance_of(VAULT, "WETH") == 2 * ETH

        _settle_time(vault, clock)
        vault.expire_position(0)
        assert vault.withdraw("lp1", False, 2 * ETH) == 2 * ETH

    def test_state_stays_consistent(self, funded_vault, oracle, clock):
        funded_vault.open_long_position("alice", True, ETH, 1600 * E8)
        funded_vault.open_spread_position("bob", False, 3 * ETH, 1600 * E8, 1700 * E8)
        funded_vault.withdraw("lp1", True, 50_000 * USDC)
        oracle.update_price(1680 * E8)
        _settle_time(funded_vault, clock)
        funded_vault.expire_positions()
        assert check_all(funded_vault.state) == []
        assert len(funded_vault.positions_of("bob")) == 1


class TestDrainedPool:
    def test_drain_exit_and_redeposit(self, vault, custody, oracle, clock):
        vault.deposit("lp1", False, ETH)
        # ceil(100 * 17 / 1700) ETH locks the whole base pool; settling at the
        # short strike pays all of it out.
        pid = vault.open_spread_position("bob", False, 17 * ETH, 1600 * E8, 1700 * E8)
        assert vault.get_position(pid).locked_amount == ETH
        oracle.update_price(1700 * E8)
        _settle_time(vault, clock)
        assert vault.expire_position(pid) == ETH
        assert vault.pool(False).total_assets == 0
        assert vault.pool(False).total_shares == ETH

        with pytest.raises(InvalidParam, match="no assets"):
            vault.deposit("lp2", False, ETH)

        weth_before = custody.balance_of("lp1", "WETH")
        assert vault.withdraw("lp1", False, ETH) == 0
        assert vault.share_balance("lp1", False) == 0
        assert vault.pool(False) == PoolState(side=PoolSide.BASE)
        assert custody.balance_of("lp1", "WETH") == weth_before

        assert vault.deposit("lp2", False, 2 * ETH) == 2 * ETH
        assert check_all(vault.state) == []


class TestRestore:
    def test_restored_vault_matches(self, funded_vault, custody, oracle, pricing, clock):
        funded_vault.open_long_position("alice", True, ETH, 1600 * E8)
        snap = funded_vault.snapshot()
        restored = ZdteVault.from_snapshot(
            funded_vault.config, snap.data,
            custody=custody, price_oracle=oracle,
            volatility_oracle=StaticVolatilityOracle(80), pricing=pricing, clock=clock,
        )
        assert state_root(restored.state) == state_root(funded_vault.state)
        assert restored.get_position(0).owner == "alice"


def test_fresh_vault_views(config):
    vault = ZdteVault(
        config,
        custody=InMemoryCustody(),
        price_oracle=StaticPriceOracle(1600 * E8),
        volatility_oracle=StaticVolatilityOracle(80),
        pricing=None,
    )
    assert vault.available_assets(True) == 0
    assert vault.assets_per_share_e8(False) == 100_000_000
    assert vault.positions_of("alice") == []
