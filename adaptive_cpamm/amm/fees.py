"""
Adaptive CPAMM Dynamic Fee Model

Fee in basis points composed from three risk proxies (SCALE fractions):
  - volatility:  |spot - ema| / ema          (0 while the oracle is uninitialized)
  - slippage:    amount_in / (reserve_in + amount_in)
  - shallowness: 1 - min_reserve / (min_reserve + K)

  fee = min_fee + beta*vol + gamma*slip + delta*shallow   (each term coef*proxy/SCALE)

then clamped to [min_fee, max_fee]. Clamping is silent; the raw composite
can be recomputed from the returned proxies. The model only prices risk;
refusing service is the circuit breaker's job.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace

from ..constants import (
    DEFAULT_BETA_VOL,
    DEFAULT_DELTA_SHALLOW,
    DEFAULT_GAMMA_SLIP,
    DEFAULT_MAX_FEE_BPS,
    DEFAULT_MIN_FEE_BPS,
    DEPTH_SCALE_K,
    FEE_HARD_CAP_BPS,
    SCALE,
)
from ..exceptions import InvalidParameter, NoLiquidity, ZeroAmount
from .fixed_point import checked_add, mul_div
from .ledger import PoolLedger
from .oracle import OracleTracker, price_of

logger = logging.getLogger(__name__)


def _require_int(name: str, value: int) -> None:
    if not isinstance(value, int) or isinstance(value, bool):
        raise InvalidParameter(f"{name} must be an int, got {type(value).__name__}")
    if value < 0:
        raise InvalidParameter(f"{name} must be non-negative: {value}")


@dataclass(frozen=True)
class FeeConfig:
    """Fee bounds and per-proxy coefficients (bps per 1.0 of proxy)."""
    min_fee_bps: int = DEFAULT_MIN_FEE_BPS
    max_fee_bps: int = DEFAULT_MAX_FEE_BPS
    beta_vol: int = DEFAULT_BETA_VOL
    gamma_slip: int = DEFAULT_GAMMA_SLIP
    delta_shallow: int = DEFAULT_DELTA_SHALLOW

    def __post_init__(self) -> None:
        for name in ("min_fee_bps", "max_fee_bps", "beta_vol", "gamma_slip", "delta_shallow"):
            _require_int(name, getattr(self, name))
        if not (self.min_fee_bps <= self.max_fee_bps <= FEE_HARD_CAP_BPS):
            raise InvalidParameter(
                f"Fee bounds must satisfy min <= max <= {FEE_HARD_CAP_BPS}: "
                f"({self.min_fee_bps}, {self.max_fee_bps})"
            )

    def with_bounds(self, min_fee_bps: int, max_fee_bps: int) -> "FeeConfig":
        return replace(self, min_fee_bps=min_fee_bps, max_fee_bps=max_fee_bps)

    def with_coefficients(self, beta_vol: int, gamma_slip: int, delta_shallow: int) -> "FeeConfig":
        return replace(self, beta_vol=beta_vol, gamma_slip=gamma_slip, delta_shallow=delta_shallow)


@dataclass(frozen=True)
class FeeQuote:
    """Fee applied to a trade plus the proxies it was derived from."""
    fee_bps: int
    vol_proxy: int
    slip_proxy: int
    shallow_proxy: int

    def composite_fee_bps(self, config: FeeConfig) -> int:
        """The unclamped fee these proxies produce under `config`."""
        return composite_fee_bps(config, self.vol_proxy, self.slip_proxy, self.shallow_proxy)


# ---------------------------------------------------------------------------
# Proxies
# ---------------------------------------------------------------------------

def slippage_proxy(amount_in: int, reserve_in: int) -> int:
    return mul_div(amount_in, SCALE, checked_add(reserve_in, amount_in))


def shallow_proxy(reserve0: int, reserve1: int, depth_k: int = DEPTH_SCALE_K) -> int:
    min_res = min(reserve0, reserve1)
    return SCALE - mul_div(min_res, SCALE, checked_add(min_res, depth_k))


def composite_fee_bps(config: FeeConfig, vol: int, slip: int, shallow: int) -> int:
    return (
        config.min_fee_bps
        + mul_div(config.beta_vol, vol, SCALE)
        + mul_div(config.gamma_slip, slip, SCALE)
        + mul_div(config.delta_shallow, shallow, SCALE)
    )


def clamp_fee(raw_bps: int, config: FeeConfig) -> int:
    return max(config.min_fee_bps, min(raw_bps, config.max_fee_bps))


# ---------------------------------------------------------------------------
# Quote
# ---------------------------------------------------------------------------

def quote(
    side: int,
    amount_in: int,
    ledger: PoolLedger,
    oracle: OracleTracker,
    config: FeeConfig,
    depth_k: int = DEPTH_SCALE_K,
) -> FeeQuote:
    """
    Price a trade of `amount_in` on `side` (0 = token0 in) against the
    ledger's current reserves.

    `config` is a frozen snapshot, so a concurrent admin update cannot mix
    old and new coefficients within one quote.

    Raises:
        ZeroAmount: amount_in == 0
        NoLiquidity: either reserve is empty
    """
    if amount_in <= 0:
        raise ZeroAmount("Swap amount must be positive")
    if not ledger.has_liquidity:
        raise NoLiquidity(
            f"No liquidity in pool: ({ledger.reserve0}, {ledger.reserve1})"
        )

    reserve_in, _ = ledger.reserves_for(side)
    spot = price_of(ledger.reserve0, ledger.reserve1)

    vol = oracle.volatility(spot)
    slip = slippage_proxy(amount_in, reserve_in)
    shallow = shallow_proxy(ledger.reserve0, ledger.reserve1, depth_k)

    raw = composite_fee_bps(config, vol, slip, shallow)
    fee_bps = clamp_fee(raw, config)

    logger.debug(
        "Fee quote side=%d amount_in=%d vol=%d slip=%d shallow=%d raw=%d fee=%d bps",
        side, amount_in, vol, slip, shallow, raw, fee_bps,
    )
    return FeeQuote(fee_bps=fee_bps, vol_proxy=vol, slip_proxy=slip, shallow_proxy=shallow)
