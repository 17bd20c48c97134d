"""
State records for the zdte options vault
"""

from .balances import BalanceTable
from .pools import PoolSide, PoolState, empty_pool
from .positions import Position, PositionBook, PositionKind
from .shares import ShareTable

__all__ = [
    "BalanceTable",
    "PoolSide",
    "PoolState",
    "empty_pool",
    "Position",
    "PositionBook",
    "PositionKind",
    "ShareTable",
]
