"""
Vault configuration.

`VaultConfig` is set once when a vault is built and never changes afterwards.
It can be constructed directly or loaded from a YAML file, with `ZDTE_*`
environment variables taking precedence over file values:

    ZDTE_MARKET=ETH-USD-ZDTE
    ZDTE_EXPIRY=1767268800
    ZDTE_FEE_OPEN_POSITION_BPS=5
"""

from __future__ import annotations

import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml
from loguru import logger

from .core.payoff import quote_divisor
from .state.pools import PoolSide


@dataclass(frozen=True)
class VaultConfig:
    """Immutable market parameters.

    `strike_increment` is a 1e8-scaled price step (50 USD = 5_000_000_000).
    `expiry` is the unix timestamp every position of this market settles at.
    """

    base_asset: str
    quote_asset: str
    strike_increment: int
    max_otm_percent: int
    expiry: int
    market: str = "ETH-USD-ZDTE"
    base_decimals: int = 18
    quote_decimals: int = 6
    fee_open_position_bps: int = 0
    fee_distributor: str = ""
    vault_account: str = "zdte-vault"

    def __post_init__(self) -> None:
        for name in ("base_asset", "quote_asset", "market", "vault_account"):
            val = getattr(self, name)
            if not isinstance(val, str) or not val.strip():
                raise ValueError(f"{name} must be a non-empty string")
        if self.base_asset == self.quote_asset:
            raise ValueError("base_asset and quote_asset must differ")
        for name in (
            "strike_increment", "max_otm_percent", "expiry",
            "base_decimals", "quote_decimals", "fee_open_position_bps",
        ):
            val = getattr(self, name)
            if not isinstance(val, int) or isinstance(val, bool):
                raise TypeError(f"{name} must be an int")
        if self.strike_increment <= 0:
            raise ValueError(f"strike_increment must be positive: {self.strike_increment}")
        if not (0 < self.max_otm_percent < 100):
            raise ValueError(f"max_otm_percent must be in (0, 100): {self.max_otm_percent}")
        if self.expiry <= 0:
            raise ValueError(f"expiry must be a positive timestamp: {self.expiry}")
        if self.base_decimals < 0 or self.quote_decimals < 0:
            raise ValueError("decimals must be non-negative")
        if not (0 <= self.fee_open_position_bps <= 10_000):
            raise ValueError(f"fee_open_position_bps must be in [0, 10000]: {self.fee_open_position_bps}")
        if self.fee_open_position_bps and not self.fee_distributor:
            raise ValueError("fee_distributor is required when an opening fee is charged")
        # Raises on an unusable decimals pair.
        quote_divisor(self.base_decimals, self.quote_decimals)

    @property
    def quote_divisor(self) -> int:
        return quote_divisor(self.base_decimals, self.quote_decimals)

    def asset_for(self, side: PoolSide) -> str:
        return self.quote_asset if side is PoolSide.QUOTE else self.base_asset


_INT_FIELDS = {
    f.name for f in fields(VaultConfig) if f.type in ("int", int)
}


def config_from_dict(data: Mapping[str, Any]) -> VaultConfig:
    """Build a `VaultConfig`, rejecting unknown keys."""
    known = {f.name for f in fields(VaultConfig)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ValueError(f"unknown config keys: {', '.join(unknown)}")
    return VaultConfig(**dict(data))


def merge_config_with_env(
    config_data: Dict[str, Any], environ: Optional[Mapping[str, str]] = None
) -> Dict[str, Any]:
    """
    Overlay `ZDTE_<FIELD>` environment variables on file values.

    Integer fields are parsed with `int()`; everything else is taken verbatim.
    """
    env = os.environ if environ is None else environ
    merged = dict(config_data)
    for f in fields(VaultConfig):
        key = f"ZDTE_{f.name.upper()}"
        if key not in env:
            continue
        raw = env[key]
        merged[f.name] = int(raw) if f.name in _INT_FIELDS else raw
        logger.debug(f"Config override from {key}")
    return merged


def load_vault_config(
    path: str | Path, environ: Optional[Mapping[str, str]] = None
) -> VaultConfig:
    """
    Load a vault configuration from YAML.

    Raises:
        FileNotFoundError: If the file does not exist
        TypeError: If the YAML document is not a mapping
        ValueError: If a value is invalid
    """
    config_file = Path(path)
    if not config_file.exists():
        raise FileNotFoundError(f"Config file not found: {config_file}")

    with open(config_file, "r", encoding="utf-8") as f:
        config_data = yaml.safe_load(f) or {}
    if not isinstance(config_data, dict):
        raise TypeError("vault config YAML must be a mapping")

    config_data = merge_config_with_env(config_data, environ)
    config = config_from_dict(config_data)
    logger.info(f"Loaded vault config for {config.market} from {config_file}")
    return config
