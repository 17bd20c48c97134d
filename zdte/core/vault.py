"""
Options vault kernel: deposits, withdrawals, position opening and expiry.

This is a pure state machine intended for the functional core:
- Inputs are integers already resolved by the shell (spot price, premiums,
  current time); the kernel never calls an oracle or moves tokens.
- Outputs are (next_state, effects) or an error code.
- The pre-state is never mutated, so a rejected step leaves nothing behind.

The shell (`zdte.integration.vault_engine`) performs the asset transfers that
the effects describe and only then commits the new state.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any, Callable, Dict, Literal, Mapping, Tuple

from ..state.pools import PoolSide, PoolState, empty_pool
from ..state.positions import Position, PositionBook, PositionKind
from ..state.shares import ShareTable
from . import share_pool
from .collateral import lock_position, release_position, required_collateral
from .errors import (
    AlreadySettled,
    InsufficientBalance,
    InsufficientLiquidity,
    InvalidParam,
    NotYetExpired,
    OptionExpired,
    SettlementOverrun,
    VaultInvariantError,
    ZdteError,
    error_from_code,
)
from .invariants import check_all
from .payoff import net_premium, opening_fee, settlement_payout
from .strikes import validate_spread, validate_strike

if TYPE_CHECKING:
    from ..config import VaultConfig


@dataclass(frozen=True)
class VaultState:
    """Complete durable state of one vault."""

    quote_pool: PoolState = field(default_factory=lambda: empty_pool(PoolSide.QUOTE))
    base_pool: PoolState = field(default_factory=lambda: empty_pool(PoolSide.BASE))
    shares: ShareTable = field(default_factory=ShareTable)
    book: PositionBook = field(default_factory=PositionBook)
    # Settlement price recorded by the first expiry; 0 until then.
    settlement_price: int = 0

    def __post_init__(self) -> None:
        if not isinstance(self.shares, ShareTable):
            raise TypeError("shares must be a ShareTable")
        if not isinstance(self.book, PositionBook):
            raise TypeError("book must be a PositionBook")
        if self.settlement_price < 0:
            raise ValueError(f"settlement_price must be non-negative: {self.settlement_price}")

    def pool(self, side: PoolSide) -> PoolState:
        return self.quote_pool if side is PoolSide.QUOTE else self.base_pool

    def pools(self) -> Dict[PoolSide, PoolState]:
        return {PoolSide.QUOTE: self.quote_pool, PoolSide.BASE: self.base_pool}

    def with_pool(self, pool: PoolState) -> "VaultState":
        if pool.side is PoolSide.QUOTE:
            return replace(self, quote_pool=pool)
        return replace(self, base_pool=pool)


VaultTag = Literal["deposit", "withdraw", "open_long", "open_spread", "expire"]


@dataclass(frozen=True)
class VaultCommand:
    tag: VaultTag
    args: Mapping[str, Any]


@dataclass(frozen=True)
class VaultStepResult:
    ok: bool
    state: VaultState | None = None
    effects: Mapping[str, Any] | None = None
    error: str | None = None
    code: str | None = None


def init_vault_state() -> VaultState:
    return VaultState()


# -- Argument helpers --------------------------------------------------------

def _int_arg(args: Mapping[str, Any], name: str, *, minimum: int = 1) -> int:
    val = args.get(name)
    if not isinstance(val, int) or isinstance(val, bool) or val < minimum:
        raise InvalidParam(f"invalid param {name}: {val!r}")
    return val


def _bool_arg(args: Mapping[str, Any], name: str) -> bool:
    val = args.get(name)
    if not isinstance(val, bool):
        raise InvalidParam(f"invalid param {name}: {val!r}")
    return val


def _str_arg(args: Mapping[str, Any], name: str) -> str:
    val = args.get(name)
    if not isinstance(val, str) or not val:
        raise InvalidParam(f"invalid param {name}: {val!r}")
    return val


def _side_arg(args: Mapping[str, Any]) -> PoolSide:
    val = args.get("side")
    if not isinstance(val, PoolSide):
        raise InvalidParam(f"invalid param side: {val!r}")
    return val


# -- Liquidity provision -----------------------------------------------------

def _deposit(config: VaultConfig, state: VaultState, args: Mapping[str, Any]) -> Tuple[VaultState, Dict[str, Any]]:
    holder = _str_arg(args, "holder")
    side = _side_arg(args)
    amount = _int_arg(args, "amount")

    new_pool, minted = share_pool.deposit(state.pool(side), amount)
    shares = state.shares.copy()
    shares.mint(holder, side, minted)

    new_state = replace(state.with_pool(new_pool), shares=shares)
    return new_state, {"holder": holder, "side": side, "amount": amount, "shares_minted": minted}


def _withdraw(config: VaultConfig, state: VaultState, args: Mapping[str, Any]) -> Tuple[VaultState, Dict[str, Any]]:
    holder = _str_arg(args, "holder")
    side = _side_arg(args)
    shares_in = _int_arg(args, "shares")

    pool = state.pool(side)
    # Liquidity before ownership: over-sized requests report InsufficientLiquidity.
    amount = share_pool.compute_assets_for_shares(pool, shares_in)
    if amount > pool.available_assets:
        raise InsufficientLiquidity(
            f"Not enough available assets to satisfy withdrawal: "
            f"{amount} > {pool.available_assets} ({side.value} pool)"
        )
    held = state.shares.get(holder, side)
    if shares_in > held:
        raise InsufficientBalance(f"{holder} holds {held} {side.value} shares, asked to burn {shares_in}")

    new_pool, paid = share_pool.withdraw(pool, shares_in)
    shares = state.shares.copy()
    shares.burn(holder, side, shares_in)

    new_state = replace(state.with_pool(new_pool), shares=shares)
    return new_state, {"holder": holder, "side": side, "shares": shares_in, "assets_paid": paid}


# -- Opening positions -------------------------------------------------------

def _record_position(
    config: VaultConfig,
    state: VaultState,
    *,
    owner: str,
    kind: PositionKind,
    is_put: bool,
    amount: int,
    strike: int,
    short_strike: int,
    premium: int,
    now: int,
) -> Tuple[VaultState, Dict[str, Any]]:
    """Lock collateral, credit the premium and append the position (in that order)."""
    locked_pool, locked_amount = required_collateral(
        kind=kind,
        is_put=is_put,
        amount=amount,
        strike=strike,
        short_strike=short_strike,
        divisor=config.quote_divisor,
    )
    fee = opening_fee(premium, config.fee_open_position_bps)
    position = Position(
        id=state.book.next_id,
        owner=owner,
        kind=kind,
        is_put=is_put,
        amount=amount,
        strike=strike,
        short_strike=short_strike,
        premium=premium,
        fee=fee,
        locked_amount=locked_amount,
        locked_pool=locked_pool,
        opened_at=now,
        expiry=config.expiry,
    )

    new_state = state.with_pool(lock_position(state.pool(locked_pool), position))
    new_state = new_state.with_pool(share_pool.receive(new_state.quote_pool, premium))
    new_state = replace(new_state, book=new_state.book.append(position))
    return new_state, {
        "position_id": position.id,
        "owner": owner,
        "premium": premium,
        "fee": fee,
        "locked_pool": locked_pool,
        "locked_amount": locked_amount,
    }


def _require_not_expired(config: VaultConfig, now: int) -> None:
    if now >= config.expiry:
        raise OptionExpired(f"market {config.market} expired at {config.expiry} (now {now})")


def _open_long(config: VaultConfig, state: VaultState, args: Mapping[str, Any]) -> Tuple[VaultState, Dict[str, Any]]:
    owner = _str_arg(args, "owner")
    is_put = _bool_arg(args, "is_put")
    amount = _int_arg(args, "amount")
    strike = _int_arg(args, "strike")
    spot = _int_arg(args, "spot")
    premium = _int_arg(args, "premium", minimum=0)
    now = _int_arg(args, "now", minimum=0)

    _require_not_expired(config, now)
    validate_strike(
        strike,
        spot=spot,
        is_put=is_put,
        strike_increment=config.strike_increment,
        max_otm_percent=config.max_otm_percent,
    )
    return _record_position(
        config, state,
        owner=owner, kind=PositionKind.LONG, is_put=is_put, amount=amount,
        strike=strike, short_strike=0, premium=premium, now=now,
    )


def _open_spread(config: VaultConfig, state: VaultState, args: Mapping[str, Any]) -> Tuple[VaultState, Dict[str, Any]]:
    owner = _str_arg(args, "owner")
    is_put = _bool_arg(args, "is_put")
    amount = _int_arg(args, "amount")
    long_strike = _int_arg(args, "long_strike")
    short_strike = _int_arg(args, "short_strike")
    spot = _int_arg(args, "spot")
    long_premium = _int_arg(args, "long_premium", minimum=0)
    short_premium = _int_arg(args, "short_premium", minimum=0)
    now = _int_arg(args, "now", minimum=0)

    _require_not_expired(config, now)
    validate_spread(
        long_strike,
        short_strike,
        spot=spot,
        is_put=is_put,
        strike_increment=config.strike_increment,
        max_otm_percent=config.max_otm_percent,
    )
    return _record_position(
        config, state,
        owner=owner, kind=PositionKind.SPREAD, is_put=is_put, amount=amount,
        strike=long_strike, short_strike=short_strike,
        premium=net_premium(long_premium, short_premium), now=now,
    )


# -- Expiry ------------------------------------------------------------------

def _expire(config: VaultConfig, state: VaultState, args: Mapping[str, Any]) -> Tuple[VaultState, Dict[str, Any]]:
    position_id = _int_arg(args, "position_id", minimum=0)
    now = _int_arg(args, "now", minimum=0)

    position = state.book.find(position_id)
    if position is None:
        raise InvalidParam(f"unknown position id: {position_id}")
    if position.settled:
        raise AlreadySettled(f"position {position_id} already settled")
    if now < position.expiry:
        raise NotYetExpired(f"position {position_id} expires at {position.expiry} (now {now})")

    price = state.settlement_price or _int_arg(args, "price")
    payout = settlement_payout(position, price, config.quote_divisor)
    if payout > position.locked_amount:
        raise SettlementOverrun(
            f"position {position_id} payout {payout} exceeds locked collateral {position.locked_amount}"
        )

    pool = release_position(state.pool(position.locked_pool), position)
    pool = share_pool.pay_out(pool, payout)
    new_state = replace(
        state.with_pool(pool),
        book=state.book.mark_settled(position_id, payout=payout, settled_at=now),
        settlement_price=price,
    )
    return new_state, {
        "position_id": position_id,
        "owner": position.owner,
        "payout": payout,
        "payout_pool": position.locked_pool,
        "released": position.locked_amount,
        "settlement_price": price,
    }


# -- Dispatch ----------------------------------------------------------------

HandlerFn = Callable[["VaultConfig", VaultState, Mapping[str, Any]], Tuple[VaultState, Dict[str, Any]]]

_DISPATCH: dict[str, HandlerFn] = {
    "deposit": _deposit,
    "withdraw": _withdraw,
    "open_long": _open_long,
    "open_spread": _open_spread,
    "expire": _expire,
}


def step(config: VaultConfig, state: VaultState, cmd: VaultCommand) -> VaultStepResult:
    """Execute a vault command.

    Returns ``VaultStepResult`` with ``ok=True`` and the post-state on success,
    or ``ok=False`` with an error message and code. Post-states that break an
    invariant are rejected with code ``invariant``.
    """
    handler = _DISPATCH.get(cmd.tag)
    if handler is None:
        return VaultStepResult(ok=False, error=f"unknown action: {cmd.tag}", code=InvalidParam.code)
    try:
        new_state, effects = handler(config, state, cmd.args)
    except ZdteError as exc:
        return VaultStepResult(ok=False, error=str(exc), code=exc.code)

    violations = check_all(new_state)
    if violations:
        return VaultStepResult(
            ok=False,
            error=",".join(violations),
            code=VaultInvariantError.code,
        )
    return VaultStepResult(ok=True, state=new_state, effects=effects)


def step_or_raise(config: VaultConfig, state: VaultState, cmd: VaultCommand) -> VaultStepResult:
    """Like ``step()`` but raises the typed ``ZdteError`` on rejection."""
    result = step(config, state, cmd)
    if result.ok:
        return result
    raise error_from_code(result.code, result.error)
