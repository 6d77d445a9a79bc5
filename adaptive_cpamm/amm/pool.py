"""
Adaptive CPAMM Pool

Public surface of one constant-product pool with a dynamic fee, an EMA
reference price and a volatility circuit breaker.

Security features:
  - Execution lock around every public, admin and view operation
    (re-entrant calls from a token callback are rejected, other threads wait)
  - Breaker rejection before any value moves
  - Reserves resynchronized to observed balances after every operation
  - Compensating rollback when the second transfer leg fails
  - Admin parameters validated at the setter, read once per operation
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Dict, Iterator, Optional

from ..constants import DEFAULT_EMA_ALPHA
from ..exceptions import InvalidParameter, ReentrancyError, Unauthorized
from .breaker import BreakerConfig, CircuitBreaker
from .context import PoolContext
from .events import EventBus, ParametersUpdated
from .fees import FeeConfig, FeeQuote
from .ledger import PoolLedger
from .liquidity import BurnResult, LiquidityEngine, MintResult
from .oracle import OracleTracker, price_of, validate_alpha
from .swap import SwapEngine, SwapResult
from .tokens import TokenCapability

if TYPE_CHECKING:
    from ..config import AMMConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PoolSnapshot:
    """Read-only view returned by get_state()."""
    spot_price: Optional[int]
    ema_price: int
    reserve0: int
    reserve1: int
    last_update_timestamp: int


class AdaptivePool:
    """
    Single-pair adaptive constant-product pool.

    Implements:
      - swap / add_liquidity / remove_liquidity
      - get_dynamic_fee preview and get_state view
      - authority-gated parameter updates
    """

    def __init__(
        self,
        token0: TokenCapability,
        token1: TokenCapability,
        *,
        token0_id: str = "token0",
        token1_id: str = "token1",
        address: str = "pool",
        authority: str = "admin",
        fee_config: Optional[FeeConfig] = None,
        breaker_config: Optional[BreakerConfig] = None,
        ema_alpha: int = DEFAULT_EMA_ALPHA,
        clock: Optional[Callable[[], int]] = None,
        events: Optional[EventBus] = None,
    ):
        if token0_id == token1_id:
            raise InvalidParameter(f"Pool tokens must differ: {token0_id}")
        if not authority:
            raise InvalidParameter("Pool authority cannot be empty")

        self.authority = authority
        self.ctx = PoolContext(
            address=address,
            token0_id=token0_id,
            token1_id=token1_id,
            token0=token0,
            token1=token1,
            ledger=PoolLedger(),
            oracle=OracleTracker(alpha=ema_alpha, clock=clock),
            fee_config=fee_config or FeeConfig(),
            breaker_config=breaker_config or BreakerConfig(),
            breaker=CircuitBreaker(),
            events=events or EventBus(),
        )
        self._swaps = SwapEngine(self.ctx)
        self._liquidity = LiquidityEngine(self.ctx)

        self._mutex = threading.Lock()
        self._owner: Optional[int] = None

        logger.info(
            "Pool %s opened: %s/%s fee=[%d, %d] bps", address, token0_id, token1_id,
            self.ctx.fee_config.min_fee_bps, self.ctx.fee_config.max_fee_bps,
        )

    @classmethod
    def from_config(
        cls,
        config: "AMMConfig",
        token0: TokenCapability,
        token1: TokenCapability,
        **kwargs: Any,
    ) -> "AdaptivePool":
        """Build a pool from a loaded AMMConfig."""
        return cls(
            token0,
            token1,
            token0_id=config.pool.token0,
            token1_id=config.pool.token1,
            address=config.pool.address,
            authority=config.pool.authority,
            fee_config=FeeConfig(
                min_fee_bps=config.fees.min_fee_bps,
                max_fee_bps=config.fees.max_fee_bps,
                beta_vol=config.fees.beta_vol,
                gamma_slip=config.fees.gamma_slip,
                delta_shallow=config.fees.delta_shallow,
            ),
            breaker_config=BreakerConfig(vol_threshold=config.breaker.vol_threshold),
            ema_alpha=config.oracle.ema_alpha,
            **kwargs,
        )

    # -- Execution lock -----------------------------------------------------

    @contextmanager
    def _locked(self) -> Iterator[None]:
        ident = threading.get_ident()
        if self._owner == ident:
            raise ReentrancyError("Reentrancy detected: pool is locked")
        with self._mutex:
            self._owner = ident
            try:
                yield
            finally:
                self._owner = None

    # -- Read-only views ----------------------------------------------------

    @property
    def address(self) -> str:
        return self.ctx.address

    @property
    def ledger(self) -> PoolLedger:
        return self.ctx.ledger

    @property
    def oracle(self) -> OracleTracker:
        return self.ctx.oracle

    @property
    def events(self) -> EventBus:
        return self.ctx.events

    @property
    def fee_config(self) -> FeeConfig:
        return self.ctx.fee_config

    @property
    def breaker_config(self) -> BreakerConfig:
        return self.ctx.breaker_config

    @property
    def breaker(self) -> CircuitBreaker:
        return self.ctx.breaker

    def shares_of(self, owner: str) -> int:
        return self.ctx.ledger.shares_of(owner)

    def get_dynamic_fee(self, token_in: str, amount_in: int) -> FeeQuote:
        """Fee preview for a prospective trade. No state change."""
        with self._locked():
            return self._swaps.preview(token_in, amount_in)

    def get_state(self) -> PoolSnapshot:
        """Consistent view of reserves and oracle; waits for any running operation."""
        with self._locked():
            return self._snapshot()

    def _snapshot(self) -> PoolSnapshot:
        ledger = self.ctx.ledger
        reserve0, reserve1 = ledger.reserve0, ledger.reserve1
        spot = price_of(reserve0, reserve1) if reserve0 > 0 and reserve1 > 0 else None
        return PoolSnapshot(
            spot_price=spot,
            ema_price=self.ctx.oracle.ema_price,
            reserve0=reserve0,
            reserve1=reserve1,
            last_update_timestamp=self.ctx.oracle.last_update_timestamp,
        )

    # -- Trading ------------------------------------------------------------

    def swap(self, sender: str, token_in: str, amount_in: int) -> SwapResult:
        """
        Exact-in swap of `amount_in` of `token_in`.

        Raises:
            InvalidToken, ZeroAmount, NoLiquidity, CircuitBreakerTripped,
            ZeroOutput, TransferInFailed, TransferOutFailed, ReentrancyError
        """
        with self._locked():
            return self._swaps.execute(sender, token_in, amount_in)

    def add_liquidity(self, sender: str, amount0: int, amount1: int) -> MintResult:
        with self._locked():
            return self._liquidity.add_liquidity(sender, amount0, amount1)

    def remove_liquidity(self, sender: str, shares: int) -> BurnResult:
        with self._locked():
            return self._liquidity.remove_liquidity(sender, shares)

    # -- Admin --------------------------------------------------------------

    def _require_authority(self, caller: str) -> None:
        if caller != self.authority:
            raise Unauthorized(f"{caller} is not the pool authority")

    def _announce(self, caller: str, **changes: int) -> None:
        logger.info("Parameters updated by %s: %s", caller, changes)
        self.ctx.events.emit(ParametersUpdated(caller=caller, changes=tuple(sorted(changes.items()))))

    def set_fee_bounds(self, caller: str, min_fee_bps: int, max_fee_bps: int) -> None:
        with self._locked():
            self._require_authority(caller)
            self.ctx.fee_config = self.ctx.fee_config.with_bounds(min_fee_bps, max_fee_bps)
            self._announce(caller, min_fee_bps=min_fee_bps, max_fee_bps=max_fee_bps)

    def set_coefficients(self, caller: str, beta_vol: int, gamma_slip: int, delta_shallow: int) -> None:
        with self._locked():
            self._require_authority(caller)
            self.ctx.fee_config = self.ctx.fee_config.with_coefficients(
                beta_vol, gamma_slip, delta_shallow
            )
            self._announce(caller, beta_vol=beta_vol, gamma_slip=gamma_slip, delta_shallow=delta_shallow)

    def set_ema_config(self, caller: str, alpha: int) -> None:
        with self._locked():
            self._require_authority(caller)
            self.ctx.oracle.set_alpha(alpha)
            self._announce(caller, ema_alpha=alpha)

    def set_breaker(self, caller: str, vol_threshold: int) -> None:
        with self._locked():
            self._require_authority(caller)
            self.ctx.breaker_config = BreakerConfig(vol_threshold=vol_threshold)
            self._announce(caller, breaker_vol_threshold=vol_threshold)

    def set_params(
        self,
        caller: str,
        *,
        min_fee_bps: int,
        max_fee_bps: int,
        beta_vol: int,
        gamma_slip: int,
        delta_shallow: int,
        ema_alpha: int,
        breaker_vol_threshold: int,
    ) -> None:
        """Replace every tunable parameter at once; nothing changes unless all validate."""
        with self._locked():
            self._require_authority(caller)
            fee_config = FeeConfig(
                min_fee_bps=min_fee_bps,
                max_fee_bps=max_fee_bps,
                beta_vol=beta_vol,
                gamma_slip=gamma_slip,
                delta_shallow=delta_shallow,
            )
            breaker_config = BreakerConfig(vol_threshold=breaker_vol_threshold)
            validate_alpha(ema_alpha)

            self.ctx.fee_config = fee_config
            self.ctx.breaker_config = breaker_config
            self.ctx.oracle.set_alpha(ema_alpha)
            self._announce(
                caller,
                min_fee_bps=min_fee_bps,
                max_fee_bps=max_fee_bps,
                beta_vol=beta_vol,
                gamma_slip=gamma_slip,
                delta_shallow=delta_shallow,
                ema_alpha=ema_alpha,
                breaker_vol_threshold=breaker_vol_threshold,
            )

    def transfer_authority(self, caller: str, new_authority: str) -> None:
        with self._locked():
            self._require_authority(caller)
            if not new_authority:
                raise InvalidParameter("New authority cannot be empty")
            self.authority = new_authority
            logger.info("Pool %s authority transferred to %s", self.address, new_authority)

    # -- Serialization ------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        with self._locked():
            state = self._snapshot()
            fee_config = self.ctx.fee_config
            return {
                "address": self.address,
                "authority": self.authority,
                "tokens": [self.ctx.token0_id, self.ctx.token1_id],
                "ledger": self.ctx.ledger.to_dict(),
                "oracle": self.ctx.oracle.to_dict(),
                "spot_price": state.spot_price,
                "fee_config": {
                    "min_fee_bps": fee_config.min_fee_bps,
                    "max_fee_bps": fee_config.max_fee_bps,
                    "beta_vol": fee_config.beta_vol,
                    "gamma_slip": fee_config.gamma_slip,
                    "delta_shallow": fee_config.delta_shallow,
                },
                "breaker": {
                    "vol_threshold": self.ctx.breaker_config.vol_threshold,
                    "trip_count": self.breaker.trip_count,
                },
            }
