"""
Vault shell: custody, collaborator interfaces and the stateful facade
"""

from .custody import InMemoryCustody
from .interfaces import (
    AssetTransfer,
    OptionPricing,
    PriceOracle,
    StaticPriceOracle,
    StaticVolatilityOracle,
    VolatilityOracle,
)
from .snapshot import VaultSnapshot, snapshot_from_state, state_from_snapshot, state_root
from .vault_engine import PremiumQuote, ZdteVault

__all__ = [
    "InMemoryCustody",
    "AssetTransfer",
    "OptionPricing",
    "PriceOracle",
    "StaticPriceOracle",
    "StaticVolatilityOracle",
    "VolatilityOracle",
    "VaultSnapshot",
    "snapshot_from_state",
    "state_from_snapshot",
    "state_root",
    "PremiumQuote",
    "ZdteVault",
]
