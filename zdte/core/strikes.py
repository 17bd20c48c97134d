"""
Strike validation against the live spot price.

Strikes must sit on the `strike_increment` grid and inside the out-of-the-money
band:
- calls: spot <= strike <= spot * (100 + max_otm_percent) / 100
- puts:  spot * (100 - max_otm_percent) / 100 <= strike <= spot

Band checks cross-multiply instead of dividing, so no rounding is involved.
"""

from __future__ import annotations

from .errors import InvalidLongStrike, InvalidParam, InvalidStrike


def _require_price(name: str, value: int) -> None:
    if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
        raise InvalidParam(f"{name} must be a positive int: {value!r}")


def otm_band(spot: int, is_put: bool, max_otm_percent: int) -> tuple[int, int]:
    """Inclusive (low, high) strike bounds, rounded inward to whole price units."""
    _require_price("spot", spot)
    if is_put:
        low = -((-spot * (100 - max_otm_percent)) // 100)  # ceil
        return low, spot
    return spot, (spot * (100 + max_otm_percent)) // 100


def is_on_grid(strike: int, strike_increment: int) -> bool:
    return strike % strike_increment == 0


def validate_strike(
    strike: int,
    *,
    spot: int,
    is_put: bool,
    strike_increment: int,
    max_otm_percent: int,
) -> None:
    """Raise `InvalidStrike` unless `strike` is quantized and inside the OTM band."""
    _require_price("strike", strike)
    _require_price("spot", spot)
    if not is_on_grid(strike, strike_increment):
        raise InvalidStrike(f"Invalid strike: {strike} is not a multiple of {strike_increment}")
    if is_put:
        if strike > spot:
            raise InvalidStrike(f"Invalid strike: put strike {strike} above spot {spot}")
        if strike * 100 < spot * (100 - max_otm_percent):
            raise InvalidStrike(
                f"Invalid strike: put strike {strike} more than {max_otm_percent}% OTM (spot {spot})"
            )
    else:
        if strike < spot:
            raise InvalidStrike(f"Invalid strike: call strike {strike} below spot {spot}")
        if strike * 100 > spot * (100 + max_otm_percent):
            raise InvalidStrike(
                f"Invalid strike: call strike {strike} more than {max_otm_percent}% OTM (spot {spot})"
            )


def validate_spread_order(is_put: bool, long_strike: int, short_strike: int) -> None:
    """The long leg must be the nearer-the-money strike.

    Call spreads buy the lower strike and sell the higher one; put spreads buy
    the higher strike and sell the lower one.
    """
    if is_put and not long_strike > short_strike:
        raise InvalidLongStrike(
            f"Invalid long strike: put spread long {long_strike} must be above short {short_strike}"
        )
    if not is_put and not long_strike < short_strike:
        raise InvalidLongStrike(
            f"Invalid long strike: call spread long {long_strike} must be below short {short_strike}"
        )


def validate_spread(
    long_strike: int,
    short_strike: int,
    *,
    spot: int,
    is_put: bool,
    strike_increment: int,
    max_otm_percent: int,
) -> None:
    """Leg ordering first, then grid and band for both legs."""
    _require_price("long_strike", long_strike)
    _require_price("short_strike", short_strike)
    validate_spread_order(is_put, long_strike, short_strike)
    for strike in (long_strike, short_strike):
        validate_strike(
            strike,
            spot=spot,
            is_put=is_put,
            strike_increment=strike_increment,
            max_otm_percent=max_otm_percent,
        )
