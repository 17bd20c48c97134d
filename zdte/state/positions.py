"""
Option positions and the position book.

The book is the only owner of `Position` records. It is immutable: opening or
settling a position returns a new book. Position ids are the index into the
book, so they increase monotonically and are never reused.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum, unique
from typing import Iterator, Optional

from .balances import Amount, Holder
from .pools import PoolSide


@unique
class PositionKind(Enum):
    LONG = "long"
    SPREAD = "spread"


@dataclass(frozen=True)
class Position:
    """One option position.

    For LONG positions `strike` is the option strike and `short_strike` is 0.
    For SPREAD positions `strike` is the long leg and `short_strike` the short leg.
    `premium` is the (net) premium paid in quote units, `fee` the opening fee.
    """

    id: int
    owner: Holder
    kind: PositionKind
    is_put: bool
    amount: Amount
    strike: int
    short_strike: int
    premium: Amount
    fee: Amount
    locked_amount: Amount
    locked_pool: PoolSide
    opened_at: int
    expiry: int
    settled: bool = False
    payout: Amount = 0
    settled_at: int = 0

    def __post_init__(self) -> None:
        if not isinstance(self.kind, PositionKind):
            raise TypeError(f"kind must be a PositionKind: {self.kind!r}")
        if not isinstance(self.locked_pool, PoolSide):
            raise TypeError(f"locked_pool must be a PoolSide: {self.locked_pool!r}")
        for name in (
            "id", "amount", "strike", "short_strike", "premium", "fee",
            "locked_amount", "opened_at", "expiry", "payout", "settled_at",
        ):
            val = getattr(self, name)
            if not isinstance(val, int) or isinstance(val, bool):
                raise TypeError(f"{name} must be an int")
            if val < 0:
                raise ValueError(f"{name} must be non-negative: {val}")
        if self.amount == 0:
            raise ValueError("amount must be positive")
        if self.kind is PositionKind.LONG and self.short_strike != 0:
            raise ValueError("long positions have no short strike")
        if self.kind is PositionKind.SPREAD and self.short_strike == 0:
            raise ValueError("spread positions need a short strike")
        if not self.settled and (self.payout != 0 or self.settled_at != 0):
            raise ValueError("open positions carry no settlement data")

    @property
    def long_strike(self) -> int:
        return self.strike

    @property
    def width(self) -> int:
        """Distance between the legs (0 for single-leg positions)."""
        if self.kind is PositionKind.LONG:
            return 0
        return abs(self.strike - self.short_strike)

    def to_dict(self) -> dict[str, bool | int | str]:
        return {
            "id": self.id,
            "owner": self.owner,
            "kind": self.kind.value,
            "is_put": self.is_put,
            "amount": self.amount,
            "strike": self.strike,
            "short_strike": self.short_strike,
            "premium": self.premium,
            "fee": self.fee,
            "locked_amount": self.locked_amount,
            "locked_pool": self.locked_pool.value,
            "opened_at": self.opened_at,
            "expiry": self.expiry,
            "settled": self.settled,
            "payout": self.payout,
            "settled_at": self.settled_at,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "Position":
        return cls(
            id=int(d["id"]),
            owner=str(d["owner"]),
            kind=PositionKind(d["kind"]),
            is_put=bool(d["is_put"]),
            amount=int(d["amount"]),
            strike=int(d["strike"]),
            short_strike=int(d["short_strike"]),
            premium=int(d["premium"]),
            fee=int(d["fee"]),
            locked_amount=int(d["locked_amount"]),
            locked_pool=PoolSide(d["locked_pool"]),
            opened_at=int(d["opened_at"]),
            expiry=int(d["expiry"]),
            settled=bool(d["settled"]),
            payout=int(d["payout"]),
            settled_at=int(d["settled_at"]),
        )


@dataclass(frozen=True)
class PositionBook:
    """Append-only ledger of positions, indexed by id."""

    positions: tuple[Position, ...] = ()

    def __post_init__(self) -> None:
        for idx, pos in enumerate(self.positions):
            if pos.id != idx:
                raise ValueError(f"position id {pos.id} stored at index {idx}")

    @property
    def next_id(self) -> int:
        return len(self.positions)

    def __len__(self) -> int:
        return len(self.positions)

    def __iter__(self) -> Iterator[Position]:
        return iter(self.positions)

    def find(self, position_id: int) -> Optional[Position]:
        if not isinstance(position_id, int) or isinstance(position_id, bool):
            return None
        if 0 <= position_id < len(self.positions):
            return self.positions[position_id]
        return None

    def append(self, position: Position) -> "PositionBook":
        """Return a new book with `position` recorded under the next id."""
        if position.id != self.next_id:
            raise ValueError(f"expected position id {self.next_id}, got {position.id}")
        if position.settled:
            raise ValueError("cannot record an already settled position")
        # O(n) copy per open; a book only spans one expiry.
        return PositionBook(positions=self.positions + (position,))

    def mark_settled(self, position_id: int, *, payout: Amount, settled_at: int) -> "PositionBook":
        """Return a new book where position `position_id` is settled (OPEN -> SETTLED)."""
        pos = self.find(position_id)
        if pos is None:
            raise KeyError(position_id)
        if pos.settled:
            raise ValueError(f"position {position_id} already settled")
        settled = replace(pos, settled=True, payout=payout, settled_at=settled_at)
        positions = list(self.positions)
        positions[position_id] = settled
        return PositionBook(positions=tuple(positions))

    def unsettled(self) -> list[Position]:
        return [p for p in self.positions if not p.settled]

    def of_owner(self, owner: Holder) -> list[Position]:
        return [p for p in self.positions if p.owner == owner]
