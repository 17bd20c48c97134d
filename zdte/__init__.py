"""
Zero-days-to-expiry options vault
"""

from .config import VaultConfig, load_vault_config
from .core.errors import (
    AlreadySettled,
    InsufficientBalance,
    InsufficientLiquidity,
    InvalidLongStrike,
    InvalidParam,
    InvalidStrike,
    NotYetExpired,
    OptionExpired,
    SettlementOverrun,
    VaultInvariantError,
    ZdteError,
)
from .integration.vault_engine import PremiumQuote, ZdteVault
from .logging_config import configure_logging

__version__ = "0.1.0"

__all__ = [
    "VaultConfig",
    "load_vault_config",
    "AlreadySettled",
    "InsufficientBalance",
    "InsufficientLiquidity",
    "InvalidLongStrike",
    "InvalidParam",
    "InvalidStrike",
    "NotYetExpired",
    "OptionExpired",
    "SettlementOverrun",
    "VaultInvariantError",
    "ZdteError",
    "PremiumQuote",
    "ZdteVault",
    "configure_logging",
]
