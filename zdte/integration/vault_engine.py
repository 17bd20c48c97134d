"""
Vault execution adapter (imperative shell around `zdte.core.vault`).

`ZdteVault` owns the single `VaultState` aggregate and the collaborators
(custody, price/volatility oracles, pricing engine, clock). Each public
operation:

1. reads what it needs from the collaborators,
2. computes the complete post-state with the pure kernel (`step_or_raise`),
3. performs the asset transfers the kernel's effects describe (inbound first),
4. commits the post-state.

Any exception before step 4 leaves the vault exactly as it was. All
operations run under one re-entrant lock, so they are applied strictly one at
a time.

Settlement is permissionless: anyone may call `expire_position`, but the
payout always goes to the position's recorded owner.
"""

from __future__ import annotations

import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, Iterator, List, Mapping, Optional

from loguru import logger

from ..config import VaultConfig
from ..core import share_pool
from ..core.collateral import required_collateral
from ..core.errors import InvalidParam, ZdteError
from ..core.payoff import net_premium, opening_fee, settlement_payout, time_to_expiry
from ..core.strikes import validate_spread, validate_strike
from ..core.vault import VaultCommand, VaultState, VaultStepResult, init_vault_state, step_or_raise
from ..state.pools import PoolSide, PoolState
from ..state.positions import Position, PositionKind
from .interfaces import AssetTransfer, OptionPricing, PriceOracle, VolatilityOracle
from .snapshot import VaultSnapshot, snapshot_from_state, state_from_snapshot


def _wall_clock() -> int:
    return int(time.time())


@dataclass(frozen=True)
class PremiumQuote:
    """Preview of what opening a position would cost and lock."""

    premium: int
    fee: int
    locked_pool: PoolSide
    locked_amount: int
    spot: int
    volatility: int

    @property
    def total_cost(self) -> int:
        return self.premium + self.fee


class ZdteVault:
    def __init__(
        self,
        config: VaultConfig,
        *,
        custody: AssetTransfer,
        price_oracle: PriceOracle,
        volatility_oracle: VolatilityOracle,
        pricing: OptionPricing,
        clock: Callable[[], int] = _wall_clock,
        state: Optional[VaultState] = None,
    ) -> None:
        self.config = config
        self.custody = custody
        self.price_oracle = price_oracle
        self.volatility_oracle = volatility_oracle
        self.pricing = pricing
        self.clock = clock
        self._state = state if state is not None else init_vault_state()
        self._lock = threading.RLock()

    @classmethod
    def from_snapshot(cls, config: VaultConfig, snapshot: Mapping[str, Any], **collaborators: Any) -> "ZdteVault":
        """Rebuild a vault from `snapshot().data`; the state is re-checked against the invariants."""
        state = state_from_snapshot(snapshot)
        logger.info(f"{config.market}: restored vault with {len(state.book)} positions")
        return cls(config, state=state, **collaborators)

    # -- Views ---------------------------------------------------------------

    @property
    def state(self) -> VaultState:
        return self._state

    def pool(self, is_quote: bool) -> PoolState:
        return self._state.pool(PoolSide.from_is_quote(is_quote))

    def available_assets(self, is_quote: bool) -> int:
        return self.pool(is_quote).available_assets

    def assets_per_share_e8(self, is_quote: bool) -> int:
        return share_pool.assets_per_share_e8(self.pool(is_quote))

    def share_balance(self, holder: str, is_quote: bool) -> int:
        return self._state.shares.get(holder, PoolSide.from_is_quote(is_quote))

    def get_position(self, position_id: int) -> Position:
        position = self._state.book.find(position_id)
        if position is None:
            raise InvalidParam(f"unknown position id: {position_id}")
        return position

    def positions_of(self, owner: str) -> List[Position]:
        return self._state.book.of_owner(owner)

    def open_positions(self) -> List[Position]:
        return self._state.book.unsettled()

    def snapshot(self) -> VaultSnapshot:
        with self._lock:
            return snapshot_from_state(self._state)

    # -- Internals -----------------------------------------------------------

    def _now(self) -> int:
        return int(self.clock())

    @contextmanager
    def _rejections(self, tag: str) -> Iterator[None]:
        try:
            yield
        except ZdteError as exc:
            logger.warning(f"{self.config.market}: {tag} rejected ({exc.code}): {exc}")
            raise

    def _run(self, tag: str, args: Mapping[str, Any]) -> VaultStepResult:
        with self._rejections(tag):
            return step_or_raise(self.config, self._state, VaultCommand(tag=tag, args=args))

    def _commit(self, result: VaultStepResult) -> None:
        assert result.state is not None
        self._state = result.state

    def _asset(self, side: PoolSide) -> str:
        return self.config.asset_for(side)

    def _price_leg(self, *, spot: int, strike: int, volatility: int, amount: int, is_put: bool, now: int) -> int:
        premium = self.pricing.price(
            spot,
            strike,
            time_to_expiry(now, self.config.expiry),
            volatility,
            amount,
            is_put,
        )
        if not isinstance(premium, int) or isinstance(premium, bool) or premium < 0:
            raise ValueError(f"pricing engine returned an invalid premium: {premium!r}")
        return premium

    def _collect_premium(self, owner: str, effects: Mapping[str, Any]) -> None:
        premium, fee = effects["premium"], effects["fee"]
        if premium + fee:
            self.custody.transfer_in(self.config.quote_asset, owner, premium + fee)
        if fee:
            try:
                self.custody.transfer_out(self.config.quote_asset, self.config.fee_distributor, fee)
            except Exception:
                # Refund the buyer; the open is aborted.
                self.custody.transfer_out(self.config.quote_asset, owner, premium + fee)
                raise

    # -- Liquidity provision -------------------------------------------------

    def deposit(self, holder: str, is_quote: bool, amount: int) -> int:
        """Deposit assets into the quote or base pool. Returns shares minted."""
        side = PoolSide.from_is_quote(is_quote)
        with self._lock:
            result = self._run("deposit", {"holder": holder, "side": side, "amount": amount})
            self.custody.transfer_in(self._asset(side), holder, amount)
            self._commit(result)
        minted = result.effects["shares_minted"]
        logger.info(f"{self.config.market}: {holder} deposited {amount} {self._asset(side)} for {minted} {side.value} shares")
        return minted

    def withdraw(self, holder: str, is_quote: bool, shares: int) -> int:
        """Burn shares for their pro-rata assets. Returns assets paid."""
        side = PoolSide.from_is_quote(is_quote)
        with self._lock:
            result = self._run("withdraw", {"holder": holder, "side": side, "shares": shares})
            paid = result.effects["assets_paid"]
            if paid:
                self.custody.transfer_out(self._asset(side), holder, paid)
            self._commit(result)
        logger.info(f"{self.config.market}: {holder} withdrew {paid} {self._asset(side)} for {shares} {side.value} shares")
        return paid

    # -- Trading -------------------------------------------------------------

    def open_long_position(self, owner: str, is_put: bool, amount: int, strike: int) -> int:
        """Buy a single-leg option. Returns the new position id."""
        with self._lock:
            now = self._now()
            spot = self.price_oracle.get_spot_price()
            with self._rejections("open_long"):
                validate_strike(
                    strike,
                    spot=spot,
                    is_put=is_put,
                    strike_increment=self.config.strike_increment,
                    max_otm_percent=self.config.max_otm_percent,
                )
            volatility = self.volatility_oracle.get_implied_volatility()
            premium = self._price_leg(
                spot=spot, strike=strike, volatility=volatility, amount=amount, is_put=is_put, now=now,
            )
            result = self._run(
                "open_long",
                {
                    "owner": owner,
                    "is_put": is_put,
                    "amount": amount,
                    "strike": strike,
                    "spot": spot,
                    "premium": premium,
                    "now": now,
                },
            )
            self._collect_premium(owner, result.effects)
            self._commit(result)
        effects = result.effects
        logger.info(
            f"{self.config.market}: {owner} opened long {'put' if is_put else 'call'} #{effects['position_id']} "
            f"amount={amount} strike={strike} premium={effects['premium']} "
            f"locked={effects['locked_amount']} {effects['locked_pool'].value}"
        )
        return effects["position_id"]

    def open_spread_position(
        self, owner: str, is_put: bool, amount: int, long_strike: int, short_strike: int
    ) -> int:
        """Buy a vertical spread. Returns the new position id."""
        with self._lock:
            now = self._now()
            spot = self.price_oracle.get_spot_price()
            with self._rejections("open_spread"):
                validate_spread(
                    long_strike,
                    short_strike,
                    spot=spot,
                    is_put=is_put,
                    strike_increment=self.config.strike_increment,
                    max_otm_percent=self.config.max_otm_percent,
                )
            volatility = self.volatility_oracle.get_implied_volatility()
            long_premium = self._price_leg(
                spot=spot, strike=long_strike, volatility=volatility, amount=amount, is_put=is_put, now=now,
            )
            short_premium = self._price_leg(
                spot=spot, strike=short_strike, volatility=volatility, amount=amount, is_put=is_put, now=now,
            )
            result = self._run(
                "open_spread",
                {
                    "owner": owner,
                    "is_put": is_put,
                    "amount": amount,
                    "long_strike": long_strike,
                    "short_strike": short_strike,
                    "spot": spot,
                    "long_premium": long_premium,
                    "short_premium": short_premium,
                    "now": now,
                },
            )
            self._collect_premium(owner, result.effects)
            self._commit(result)
        effects = result.effects
        logger.info(
            f"{self.config.market}: {owner} opened {'put' if is_put else 'call'} spread #{effects['position_id']} "
            f"amount={amount} strikes={long_strike}/{short_strike} premium={effects['premium']} "
            f"locked={effects['locked_amount']} {effects['locked_pool'].value}"
        )
        return effects["position_id"]

    def quote_premium(
        self,
        is_put: bool,
        amount: int,
        strike: int,
        short_strike: Optional[int] = None,
    ) -> PremiumQuote:
        """Price a position without opening it (single leg, or a spread when `short_strike` is given)."""
        with self._lock:
            now = self._now()
            spot = self.price_oracle.get_spot_price()
            volatility = self.volatility_oracle.get_implied_volatility()
            kind = PositionKind.LONG if short_strike is None else PositionKind.SPREAD
            with self._rejections("quote_premium"):
                if kind is PositionKind.LONG:
                    validate_strike(
                        strike,
                        spot=spot,
                        is_put=is_put,
                        strike_increment=self.config.strike_increment,
                        max_otm_percent=self.config.max_otm_percent,
                    )
                else:
                    validate_spread(
                        strike,
                        short_strike,
                        spot=spot,
                        is_put=is_put,
                        strike_increment=self.config.strike_increment,
                        max_otm_percent=self.config.max_otm_percent,
                    )
            premium = self._price_leg(
                spot=spot, strike=strike, volatility=volatility, amount=amount, is_put=is_put, now=now,
            )
            if kind is PositionKind.SPREAD:
                premium = net_premium(
                    premium,
                    self._price_leg(
                        spot=spot, strike=short_strike, volatility=volatility,
                        amount=amount, is_put=is_put, now=now,
                    ),
                )
            locked_pool, locked_amount = required_collateral(
                kind=kind,
                is_put=is_put,
                amount=amount,
                strike=strike,
                short_strike=short_strike or 0,
                divisor=self.config.quote_divisor,
            )
        quote = PremiumQuote(
            premium=premium,
            fee=opening_fee(premium, self.config.fee_open_position_bps),
            locked_pool=locked_pool,
            locked_amount=locked_amount,
            spot=spot,
            volatility=volatility,
        )
        logger.debug(f"{self.config.market}: premium quote {quote}")
        return quote

    # -- Settlement ----------------------------------------------------------

    def _settlement_price(self) -> int:
        return self._state.settlement_price or self.price_oracle.get_spot_price()

    def calc_payout(self, position_id: int) -> int:
        """Payout `position_id` would receive if it settled now (0 once settled)."""
        with self._lock:
            position = self.get_position(position_id)
            if position.settled:
                return 0
            return settlement_payout(position, self._settlement_price(), self.config.quote_divisor)

    def expire_position(self, position_id: int) -> int:
        """Settle an expired position and pay its owner. Returns the payout."""
        with self._lock:
            now = self._now()
            position = self._state.book.find(position_id)
            args: Dict[str, Any] = {"position_id": position_id, "now": now}
            # Only read the oracle once the position is known to be settleable.
            if position is not None and not position.settled and now >= position.expiry:
                args["price"] = self._settlement_price()
            result = self._run("expire", args)
            effects = result.effects
            if effects["payout"]:
                self.custody.transfer_out(self._asset(effects["payout_pool"]), effects["owner"], effects["payout"])
            self._commit(result)
        logger.info(
            f"{self.config.market}: position #{position_id} settled at {effects['settlement_price']}, "
            f"payout {effects['payout']} {self._asset(effects['payout_pool'])} to {effects['owner']}, "
            f"released {effects['released']}"
        )
        return effects["payout"]

    def expire_positions(self, position_ids: Optional[Iterable[int]] = None) -> Dict[int, int]:
        """Settle several positions (all open ones by default). Returns id -> payout.

        Each position settles as its own operation; an error stops the batch
        with the earlier settlements kept.
        """
        with self._lock:
            ids = list(position_ids) if position_ids is not None else [p.id for p in self.open_positions()]
            return {pid: self.expire_position(pid) for pid in ids}
