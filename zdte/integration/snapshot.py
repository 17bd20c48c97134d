"""
Vault state snapshot encoding.

Goals:
- Deterministic JSON serialization for hashing / audit.
- Round-trippable into the functional-core `VaultState`.
- Restored states are re-checked against the vault invariants.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from typing import Any, Dict, Mapping

from ..core.errors import VaultInvariantError
from ..core.invariants import check_all
from ..core.vault import VaultState
from ..state.canonical import canonical_json_bytes, domain_sep_bytes, sha256_hex
from ..state.pools import PoolSide, PoolState
from ..state.positions import Position, PositionBook
from ..state.shares import ShareTable


VAULT_SNAPSHOT_VERSION = 1


def _require_int(value: Any, *, name: str) -> int:
    if not isinstance(value, int) or isinstance(value, bool):
        raise TypeError(f"{name} must be an int")
    if value < 0:
        raise ValueError(f"{name} must be non-negative")
    return value


@dataclass(frozen=True)
class VaultSnapshot:
    """Versioned, JSON-ready image of a `VaultState`.

    `data` never contains its own hash; the state root is derived from it.
    """

    version: int
    data: Dict[str, Any]

    def canonical_bytes(self) -> bytes:
        return canonical_json_bytes(self.data)

    def _hashed_payload(self) -> bytes:
        return domain_sep_bytes("vault_snapshot", version=self.version) + self.canonical_bytes()

    def commitment_bytes(self) -> bytes:
        return hashlib.sha256(self._hashed_payload()).digest()

    def commitment_hex(self) -> str:
        return sha256_hex(self._hashed_payload())


def snapshot_from_state(state: VaultState, *, version: int = VAULT_SNAPSHOT_VERSION) -> VaultSnapshot:
    if not isinstance(version, int) or isinstance(version, bool) or version <= 0:
        raise ValueError("version must be a positive int")

    share_entries = [
        {"holder": holder, "side": side.value, "shares": int(shares)}
        for (holder, side), shares in state.shares.items()
    ]
    share_entries.sort(key=lambda e: (e["side"], e["holder"]))

    data: Dict[str, Any] = {
        "version": int(version),
        "quote_pool": state.quote_pool.to_dict(),
        "base_pool": state.base_pool.to_dict(),
        "shares": share_entries,
        "positions": [p.to_dict() for p in state.book],
        "settlement_price": int(state.settlement_price),
    }
    return VaultSnapshot(version=version, data=data)


def state_from_snapshot(snapshot: Mapping[str, Any]) -> VaultState:
    """Rebuild a `VaultState`; raises `VaultInvariantError` for inconsistent data."""
    if not isinstance(snapshot, Mapping):
        raise TypeError("snapshot must be a mapping")

    version = snapshot.get("version", VAULT_SNAPSHOT_VERSION)
    if not isinstance(version, int) or isinstance(version, bool) or version <= 0:
        raise ValueError("snapshot.version must be a positive int")
    if version != VAULT_SNAPSHOT_VERSION:
        raise ValueError(f"unsupported snapshot version: {version}")

    pools: Dict[str, PoolState] = {}
    for key, side in (("quote_pool", PoolSide.QUOTE), ("base_pool", PoolSide.BASE)):
        entry = snapshot.get(key)
        if not isinstance(entry, Mapping):
            raise TypeError(f"snapshot.{key} must be an object")
        pool = PoolState.from_dict(dict(entry))
        if pool.side is not side:
            raise ValueError(f"snapshot.{key} has side {pool.side.value}")
        pools[key] = pool

    shares = ShareTable()
    share_entries = snapshot.get("shares") or []
    if not isinstance(share_entries, list):
        raise TypeError("snapshot.shares must be a list")
    seen: set[tuple[str, PoolSide]] = set()
    for entry in share_entries:
        if not isinstance(entry, Mapping):
            raise TypeError("snapshot.shares entries must be objects")
        holder = entry.get("holder")
        if not isinstance(holder, str) or not holder:
            raise ValueError("share entry holder must be a non-empty string")
        side = PoolSide(entry.get("side"))
        if (holder, side) in seen:
            raise ValueError("duplicate share entry (holder, side)")
        seen.add((holder, side))
        shares.mint(holder, side, _require_int(entry.get("shares"), name="shares"))

    position_entries = snapshot.get("positions") or []
    if not isinstance(position_entries, list):
        raise TypeError("snapshot.positions must be a list")
    book = PositionBook(tuple(Position.from_dict(dict(e)) for e in position_entries))

    state = VaultState(
        quote_pool=pools["quote_pool"],
        base_pool=pools["base_pool"],
        shares=shares,
        book=book,
        settlement_price=_require_int(snapshot.get("settlement_price", 0), name="settlement_price"),
    )
    violations = check_all(state)
    if violations:
        raise VaultInvariantError(violations)
    return state


def state_root(state: VaultState) -> str:
    """0x-prefixed SHA-256 commitment to the full vault state."""
    return snapshot_from_state(state).commitment_hex()
