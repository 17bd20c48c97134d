"""
Core vault algorithms (pure functions over integer state)
"""

from .collateral import locked_by_pool, required_collateral
from .errors import (
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
from .invariants import check_all
from .payoff import settlement_payout
from .share_pool import compute_assets_for_shares, compute_shares_minted
from .strikes import validate_spread, validate_strike
from .vault import VaultCommand, VaultState, VaultStepResult
from .vault import init_vault_state, step as vault_step, step_or_raise as vault_step_or_raise

__all__ = [
    "locked_by_pool",
    "required_collateral",
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
    "check_all",
    "settlement_payout",
    "compute_assets_for_shares",
    "compute_shares_minted",
    "validate_spread",
    "validate_strike",
    "VaultCommand",
    "VaultState",
    "VaultStepResult",
    "init_vault_state",
    "vault_step",
    "vault_step_or_raise",
]
