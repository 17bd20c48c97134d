"""
Pool records for the two vault sides (quote and base).

A pool is a single asset balance with fungible shares on top of it. Part of
the balance can be reserved ("locked") against open option obligations; only
the remainder is withdrawable.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, unique

from .balances import Amount


@unique
class PoolSide(Enum):
    """Which asset a pool (and a share balance) is denominated in."""

    QUOTE = "quote"
    BASE = "base"

    @classmethod
    def from_is_quote(cls, is_quote: bool) -> "PoolSide":
        return cls.QUOTE if is_quote else cls.BASE


@dataclass(frozen=True)
class PoolState:
    """
    Immutable pool record.

    Invariants enforced on construction:
    - all fields are non-negative ints,
    - locked_assets <= total_assets,
    - an empty share supply holds no assets.

    Note: the converse (shares outstanding => assets > 0) does not hold in
    general; settlement payouts may drain a pool whose shares are still held.
    Such a pool takes no deposits until its holders burn their shares
    (`share_pool.withdraw` pays 0), which brings it back to empty.
    """

    side: PoolSide
    total_assets: Amount = 0
    total_shares: int = 0
    locked_assets: Amount = 0

    def __post_init__(self) -> None:
        if not isinstance(self.side, PoolSide):
            raise TypeError(f"side must be a PoolSide: {self.side!r}")
        for name in ("total_assets", "total_shares", "locked_assets"):
            val = getattr(self, name)
            if not isinstance(val, int) or isinstance(val, bool):
                raise TypeError(f"{name} must be an int")
            if val < 0:
                raise ValueError(f"{name} must be non-negative: {val}")
        if self.locked_assets > self.total_assets:
            raise ValueError(
                f"locked_assets exceeds total_assets: {self.locked_assets} > {self.total_assets}"
            )
        if self.total_shares == 0 and self.total_assets != 0:
            raise ValueError(f"pool without shares must hold no assets: {self.total_assets}")

    @property
    def available_assets(self) -> Amount:
        """Assets not reserved against open positions."""
        return self.total_assets - self.locked_assets

    def to_dict(self) -> dict[str, int | str]:
        return {
            "side": self.side.value,
            "total_assets": self.total_assets,
            "total_shares": self.total_shares,
            "locked_assets": self.locked_assets,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "PoolState":
        return cls(
            side=PoolSide(d["side"]),
            total_assets=int(d["total_assets"]),
            total_shares=int(d["total_shares"]),
            locked_assets=int(d["locked_assets"]),
        )


def empty_pool(side: PoolSide) -> PoolState:
    return PoolState(side=side)
