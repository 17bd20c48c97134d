"""Exception types for the zdte vault kernel.

Every error carries a stable ``code``. ``step()`` in ``vault.py`` reports the
code in ``VaultStepResult``; ``step_or_raise()`` turns it back into the typed
exception via ``error_from_code()``.
"""

from __future__ import annotations


class ZdteError(Exception):
    """Base class for all vault rejections."""

    code = "zdte_error"


class InsufficientBalance(ZdteError):
    """Caller lacks the assets (or shares) needed for a transfer."""

    code = "insufficient_balance"


class InsufficientLiquidity(ZdteError):
    """A withdrawal or lock would exceed a pool's available assets."""

    code = "insufficient_liquidity"


class InvalidStrike(ZdteError):
    """Strike is not on the increment grid or lies outside the OTM band."""

    code = "invalid_strike"


class InvalidLongStrike(ZdteError):
    """Spread legs are ordered the wrong way for the option direction."""

    code = "invalid_long_strike"


class NotYetExpired(ZdteError):
    code = "not_yet_expired"


class AlreadySettled(ZdteError):
    code = "already_settled"


class OptionExpired(ZdteError):
    """Position opened at or after the market expiry."""

    code = "option_expired"


class InvalidParam(ZdteError):
    """Parameter outside its domain (non-positive amount, unknown id, dust rounding)."""

    code = "invalid_param"


class VaultInvariantError(ZdteError):
    """Raised when a post-state violates one or more invariants."""

    code = "invariant"

    def __init__(self, violations: list[str] | str) -> None:
        if isinstance(violations, str):
            violations = [v for v in violations.split(",") if v]
        self.violations = violations
        super().__init__(f"invariant violations: {', '.join(violations)}")


class SettlementOverrun(VaultInvariantError):
    """Payout would exceed the collateral released for the position."""

    code = "settlement_overrun"

    def __init__(self, message: str) -> None:
        self.violations = ["settlement_overrun"]
        Exception.__init__(self, message)


_BY_CODE: dict[str, type[ZdteError]] = {
    cls.code: cls
    for cls in (
        InsufficientBalance,
        InsufficientLiquidity,
        InvalidStrike,
        InvalidLongStrike,
        NotYetExpired,
        AlreadySettled,
        OptionExpired,
        InvalidParam,
        VaultInvariantError,
        SettlementOverrun,
    )
}


def error_from_code(code: str | None, message: str | None) -> ZdteError:
    """Rebuild the typed exception for a rejected step."""
    cls = _BY_CODE.get(code or "", ZdteError)
    if cls is VaultInvariantError:
        return VaultInvariantError(message or "")
    return cls(message or code or "rejected")
