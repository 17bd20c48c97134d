"""
Vault share balances, scoped per pool side.

Share balances are tracked separately from asset balances: holding quote-pool
shares says nothing about a holder's base-pool shares.
"""

from __future__ import annotations

from typing import Dict, Iterator, Tuple

from .balances import Holder
from .pools import PoolSide


class ShareTable:
    """
    Share balance table mapping (holder, side) -> shares.

    Notes:
    - Balances are always non-negative.
    - A holder's entry is created on first mint and kept at zero after a full
      burn, so past depositors stay visible in snapshots.
    """

    def __init__(self) -> None:
        self._balances: Dict[Tuple[Holder, PoolSide], int] = {}

    def get(self, holder: Holder, side: PoolSide) -> int:
        """Get share balance for (holder, side). Returns 0 if not found."""
        return self._balances.get((holder, side), 0)

    def mint(self, holder: Holder, side: PoolSide, shares: int) -> None:
        if shares < 0:
            raise ValueError(f"Minted shares must be non-negative: {shares}")
        self._balances[(holder, side)] = self.get(holder, side) + shares

    def burn(self, holder: Holder, side: PoolSide, shares: int) -> None:
        if shares < 0:
            raise ValueError(f"Burned shares must be non-negative: {shares}")
        current = self.get(holder, side)
        if shares > current:
            raise ValueError(f"Insufficient shares: {current} - {shares} < 0")
        self._balances[(holder, side)] = current - shares

    def total(self, side: PoolSide) -> int:
        """Sum of all holders' shares on one side."""
        return sum(shares for (_, s), shares in self._balances.items() if s == side)

    def holders(self, side: PoolSide) -> list[Holder]:
        return sorted(h for (h, s) in self._balances if s == side)

    def items(self) -> Iterator[Tuple[Tuple[Holder, PoolSide], int]]:
        return iter(self._balances.items())

    def copy(self) -> "ShareTable":
        out = ShareTable()
        out._balances = dict(self._balances)
        return out

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ShareTable):
            return NotImplemented
        return self._balances == other._balances

    def __repr__(self) -> str:
        return f"ShareTable({len(self._balances)} entries)"
