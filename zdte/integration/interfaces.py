"""
Collaborator interfaces consumed by the vault shell.

The vault never prices options, reads markets or moves tokens itself; it calls
these objects synchronously. Any exception they raise aborts the operation in
progress before the vault state is committed.
"""

from __future__ import annotations


class AssetTransfer:
    """Token custody: moves assets between holders and the vault."""

    def transfer_in(self, asset: str, holder: str, amount: int) -> None:
        """Pull `amount` of `asset` from `holder` into the vault.

        Must raise `InsufficientBalance` when the holder cannot pay, and must
        not move anything in that case.
        """
        raise NotImplementedError

    def transfer_out(self, asset: str, holder: str, amount: int) -> None:
        """Push `amount` of `asset` from the vault to `holder`."""
        raise NotImplementedError


class PriceOracle:
    """Spot price source, quote-per-base scaled by 1e8."""

    def get_spot_price(self) -> int:
        raise NotImplementedError


class VolatilityOracle:
    """Annualized implied volatility source (integer, oracle-defined scale)."""

    def get_implied_volatility(self) -> int:
        raise NotImplementedError


class OptionPricing:
    """Black-box premium engine.

    Returns the premium in quote smallest units for `amount` base units of one
    option leg. `time_to_expiry` is in seconds.
    """

    def price(
        self,
        spot: int,
        strike: int,
        time_to_expiry: int,
        volatility: int,
        amount: int,
        is_put: bool,
    ) -> int:
        raise NotImplementedError


class StaticPriceOracle(PriceOracle):
    """Price oracle holding a manually published price."""

    def __init__(self, price: int) -> None:
        self.update_price(price)

    def update_price(self, price: int) -> None:
        if not isinstance(price, int) or isinstance(price, bool) or price <= 0:
            raise ValueError(f"price must be a positive int: {price!r}")
        self._price = price

    def get_spot_price(self) -> int:
        return self._price


class StaticVolatilityOracle(VolatilityOracle):
    def __init__(self, volatility: int) -> None:
        if not isinstance(volatility, int) or isinstance(volatility, bool) or volatility < 0:
            raise ValueError(f"volatility must be a non-negative int: {volatility!r}")
        self._volatility = volatility

    def get_implied_volatility(self) -> int:
        return self._volatility
