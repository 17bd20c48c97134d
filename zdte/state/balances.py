"""
Holder asset balances for the in-memory custody adapter.

Implements BalanceTable[Holder, AssetId] -> Amount
"""

from __future__ import annotations

from typing import Dict, Tuple


# Type aliases
Holder = str  # account identity (address or any opaque string)
AssetId = str  # asset identity, e.g. "WETH" or a token address
Amount = int  # Non-negative integer in the asset's smallest unit


class BalanceTable:
    """
    Balance table mapping (holder, asset) -> amount.

    Zero balances are dropped to keep the table sparse. Callers that need a
    stable order (snapshots) must sort keys themselves.
    """

    def __init__(self) -> None:
        self._balances: Dict[Tuple[Holder, AssetId], Amount] = {}

    def get(self, holder: Holder, asset: AssetId) -> Amount:
        """Get balance for (holder, asset). Returns 0 if not found."""
        return self._balances.get((holder, asset), 0)

    def set(self, holder: Holder, asset: AssetId, amount: Amount) -> None:
        """
        Set balance for (holder, asset).

        Raises:
            ValueError: If amount is negative
        """
        if amount < 0:
            raise ValueError(f"Balance cannot be negative: {amount}")
        if amount == 0:
            self._balances.pop((holder, asset), None)
        else:
            self._balances[(holder, asset)] = amount

    def credit(self, holder: Holder, asset: AssetId, amount: Amount) -> None:
        if amount < 0:
            raise ValueError(f"Credit must be non-negative: {amount}")
        self.set(holder, asset, self.get(holder, asset) + amount)

    def debit(self, holder: Holder, asset: AssetId, amount: Amount) -> None:
        """
        Remove `amount` from a holder's balance.

        Raises:
            ValueError: If amount is negative or exceeds the balance
        """
        if amount < 0:
            raise ValueError(f"Debit must be non-negative: {amount}")
        current = self.get(holder, asset)
        if amount > current:
            raise ValueError(
                f"Insufficient balance: {holder} holds {current} {asset}, needs {amount}"
            )
        self.set(holder, asset, current - amount)

    def transfer(self, src: Holder, dst: Holder, asset: AssetId, amount: Amount) -> None:
        """Move `amount` of `asset` from `src` to `dst` (debit first, so a failure moves nothing)."""
        self.debit(src, asset, amount)
        self.credit(dst, asset, amount)

    def total(self, asset: AssetId) -> Amount:
        return sum(amount for (_, a), amount in self._balances.items() if a == asset)

    def get_all_balances(self) -> Dict[Tuple[Holder, AssetId], Amount]:
        return dict(self._balances)

    def __repr__(self) -> str:
        return f"BalanceTable({len(self._balances)} entries)"
