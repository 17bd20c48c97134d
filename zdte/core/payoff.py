"""
Premium and settlement arithmetic.

Units/conventions:
- prices and strikes are quote-per-base scaled by 1e8 (`PRICE_DECIMALS`),
- `amount` is the notional in base smallest units,
- the quote value of `amount` at `price` is `amount * price // quote_divisor`,
  with `quote_divisor = 10**(base_decimals + 8 - quote_decimals)`.

Every function is stateless and uses `//` (floor) so payouts round toward the
pool.
"""

from __future__ import annotations

from ..state.positions import Position, PositionKind

PRICE_DECIMALS: int = 8
PRICE_SCALE: int = 10**PRICE_DECIMALS
BPS_SCALE: int = 10_000


def quote_divisor(base_decimals: int, quote_decimals: int) -> int:
    exponent = base_decimals + PRICE_DECIMALS - quote_decimals
    if exponent < 0:
        raise ValueError(
            f"quote_decimals {quote_decimals} exceed base_decimals + {PRICE_DECIMALS}"
        )
    return 10**exponent


def quote_value(amount: int, price: int, divisor: int) -> int:
    """Quote units worth `amount` base units at `price` (floor)."""
    return (amount * price) // divisor


def clip(value: int, low: int, high: int) -> int:
    return max(low, min(value, high))


# -- Premium -----------------------------------------------------------------

def net_premium(long_premium: int, short_premium: int) -> int:
    """Spread premium: long leg minus short leg, never negative."""
    return max(long_premium - short_premium, 0)


def opening_fee(premium: int, fee_bps: int) -> int:
    return (premium * fee_bps) // BPS_SCALE


def time_to_expiry(now: int, expiry: int) -> int:
    """Seconds left until expiry (0 once expired)."""
    return max(expiry - now, 0)


# -- Settlement --------------------------------------------------------------

def call_payout(amount: int, strike: int, price: int) -> int:
    """Base units: max(0, S - K) * amount / S."""
    return (max(price - strike, 0) * amount) // price


def put_payout(amount: int, strike: int, price: int, divisor: int) -> int:
    """Quote units: max(0, K - S) * amount."""
    return quote_value(amount, max(strike - price, 0), divisor)


def spread_payout(
    is_put: bool,
    amount: int,
    long_strike: int,
    short_strike: int,
    price: int,
    divisor: int,
) -> int:
    """Long leg minus short leg, computed as one leg clipped to the strike width.

    Netting the intrinsic values before dividing keeps the result within the
    collateral computed by `collateral.required_collateral`.
    """
    width = abs(long_strike - short_strike)
    if is_put:
        intrinsic = clip(long_strike - price, 0, width)
        return quote_value(amount, intrinsic, divisor)
    intrinsic = clip(price - long_strike, 0, width)
    return (intrinsic * amount) // price


def settlement_payout(position: Position, price: int, divisor: int) -> int:
    """Payout owed to `position` at settlement price `price`, in the locked pool's asset."""
    if price <= 0:
        raise ValueError(f"settlement price must be positive: {price}")
    if position.kind is PositionKind.SPREAD:
        return spread_payout(
            position.is_put,
            position.amount,
            position.strike,
            position.short_strike,
            price,
            divisor,
        )
    if position.is_put:
        return put_payout(position.amount, position.strike, price, divisor)
    return call_payout(position.amount, position.strike, price)
