"""Shared fixtures: a fully wired vault with deterministic collaborators."""

from __future__ import annotations

from typing import Dict, Optional

import pytest

from zdte.config import VaultConfig
from zdte.integration.custody import InMemoryCustody
from zdte.integration.interfaces import OptionPricing, StaticPriceOracle, StaticVolatilityOracle
from zdte.integration.vault_engine import ZdteVault

E8 = 10**8
ETH = 10**18
USDC = 10**6

EXPIRY = 1_767_268_800
SPOT = 1600 * E8


class FixedPricing(OptionPricing):
    """Premium per strike (falls back to `default`); records every call."""

    def __init__(self, default: int = 10 * USDC, by_strike: Optional[Dict[int, int]] = None) -> None:
        self.default = default
        self.by_strike = dict(by_strike or {})
        self.calls: list[tuple[int, int, int, int, int, bool]] = []

    def price(self, spot, strike, time_to_expiry, volatility, amount, is_put):
        self.calls.append((spot, strike, time_to_expiry, volatility, amount, is_put))
        return self.by_strike.get(strike, self.default)


class ManualClock:
    def __init__(self, now: int) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now


def make_config(**overrides) -> VaultConfig:
    params = dict(
        base_asset="WETH",
        quote_asset="USDC",
        strike_increment=50 * E8,
        max_otm_percent=10,
        expiry=EXPIRY,
    )
    params.update(overrides)
    return VaultConfig(**params)


@pytest.fixture
def config() -> VaultConfig:
    return make_config()


@pytest.fixture
def oracle() -> StaticPriceOracle:
    return StaticPriceOracle(SPOT)


@pytest.fixture
def pricing() -> FixedPricing:
    return FixedPricing()


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock(EXPIRY - 3600)


@pytest.fixture
def custody(config) -> InMemoryCustody:
    c = InMemoryCustody(vault_account=config.vault_account)
    for holder in ("lp1", "lp2", "alice", "bob"):
        c.fund(holder, "USDC", 1_000_000 * USDC)
        c.fund(holder, "WETH", 1_000 * ETH)
    return c


@pytest.fixture
def vault(config, custody, oracle, pricing, clock) -> ZdteVault:
    return ZdteVault(
        config,
        custody=custody,
        price_oracle=oracle,
        volatility_oracle=StaticVolatilityOracle(80),
        pricing=pricing,
        clock=clock,
    )


@pytest.fixture
def funded_vault(vault) -> ZdteVault:
    """Vault with 100k USDC and 100 WETH of LP liquidity from lp1."""
    vault.deposit("lp1", True, 100_000 * USDC)
    vault.deposit("lp1", False, 100 * ETH)
    return vault
