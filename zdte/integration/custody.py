"""
In-memory token custody.

Backs the `AssetTransfer` interface with a `BalanceTable`. The vault's own
holdings sit under `vault_account`; every transfer is a debit followed by a
credit, so a failed debit leaves both sides untouched.
"""

from __future__ import annotations

from loguru import logger

from ..core.errors import InsufficientBalance, InvalidParam
from ..state.balances import BalanceTable
from .interfaces import AssetTransfer


class InMemoryCustody(AssetTransfer):
    def __init__(self, vault_account: str = "zdte-vault", balances: BalanceTable | None = None) -> None:
        self.vault_account = vault_account
        self.balances = balances if balances is not None else BalanceTable()

    def fund(self, holder: str, asset: str, amount: int) -> None:
        """Credit `holder` with freshly issued assets (genesis / test setup)."""
        self.balances.credit(holder, asset, amount)

    def balance_of(self, holder: str, asset: str) -> int:
        return self.balances.get(holder, asset)

    def _move(self, src: str, dst: str, asset: str, amount: int) -> None:
        if not isinstance(amount, int) or isinstance(amount, bool) or amount < 0:
            raise InvalidParam(f"transfer amount must be a non-negative int: {amount!r}")
        held = self.balances.get(src, asset)
        if amount > held:
            raise InsufficientBalance(f"transfer amount exceeds balance: {src} holds {held} {asset}, needs {amount}")
        self.balances.transfer(src, dst, asset, amount)

    def transfer_in(self, asset: str, holder: str, amount: int) -> None:
        self._move(holder, self.vault_account, asset, amount)
        logger.debug(f"Custody: {holder} -> vault {amount} {asset}")

    def transfer_out(self, asset: str, holder: str, amount: int) -> None:
        self._move(self.vault_account, holder, asset, amount)
        logger.debug(f"Custody: vault -> {holder} {amount} {asset}")
