"""
Adaptive CPAMM EMA Oracle

Oracle-free reference price for a single pool:
  - Spot price:  reserve1 * SCALE / reserve0  (token0 priced in token1)
  - EMA update:  ema += sign(spot - ema) * |spot - ema| * alpha / SCALE
  - First sample bootstraps the EMA to spot with no smoothing
  - Refreshed on every swap and liquidity event

alpha == SCALE tracks spot exactly; alpha close to 0 makes the EMA nearly
static. The EMA moves toward spot on every update and never overshoots.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional, Union

from ..constants import DEFAULT_EMA_ALPHA, SCALE
from ..exceptions import DivisionByZero, InvalidParameter
from .fixed_point import abs_diff, mul_div

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Oracle state (tagged)
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Uninitialized:
    """No price sample has been recorded yet."""


@dataclass(frozen=True)
class Initialized:
    """EMA holds a smoothed price."""
    price: int


OracleState = Union[Uninitialized, Initialized]

UNINITIALIZED = Uninitialized()


def price_of(reserve0: int, reserve1: int) -> int:
    """Spot price of token0 in token1 units, scaled by SCALE."""
    if reserve0 == 0 or reserve1 == 0:
        raise DivisionByZero(
            f"Price undefined for empty reserve: ({reserve0}, {reserve1})"
        )
    return mul_div(reserve1, SCALE, reserve0)


def validate_alpha(alpha: int) -> int:
    if not isinstance(alpha, int) or isinstance(alpha, bool):
        raise InvalidParameter(f"alpha must be an int, got {type(alpha).__name__}")
    if not (0 < alpha <= SCALE):
        raise InvalidParameter(f"alpha must be in (0, {SCALE}]: {alpha}")
    return alpha


# ---------------------------------------------------------------------------
# EMA tracker
# ---------------------------------------------------------------------------

class OracleTracker:
    """
    Holds and updates the EMA reference price of one pool.

    Timestamps come from `clock` (unix seconds) unless passed explicitly.
    """

    def __init__(
        self,
        alpha: int = DEFAULT_EMA_ALPHA,
        clock: Optional[Callable[[], int]] = None,
        state: OracleState = UNINITIALIZED,
        last_update_timestamp: int = 0,
    ):
        self.alpha = validate_alpha(alpha)
        self._clock = clock or (lambda: int(time.time()))
        self.state: OracleState = state
        self.last_update_timestamp = last_update_timestamp

    @property
    def is_initialized(self) -> bool:
        return isinstance(self.state, Initialized)

    @property
    def ema_price(self) -> int:
        """EMA price, or 0 while uninitialized."""
        if isinstance(self.state, Initialized):
            return self.state.price
        return 0

    def set_alpha(self, alpha: int) -> None:
        self.alpha = validate_alpha(alpha)

    # -- Recording ----------------------------------------------------------

    def update(self, spot_price: int, timestamp: Optional[int] = None) -> int:
        """
        Fold a spot price sample into the EMA.

        Returns:
            The new EMA price.
        """
        now = timestamp if timestamp is not None else self._clock()

        if isinstance(self.state, Initialized):
            ema = self.state.price
            delta = mul_div(abs_diff(spot_price, ema), self.alpha, SCALE)
            new_ema = ema + delta if spot_price >= ema else ema - delta
        else:
            # Bootstrap: first sample is taken as-is
            new_ema = spot_price
            logger.info("EMA oracle bootstrapped at %d", new_ema)

        self.state = Initialized(new_ema)
        self.last_update_timestamp = now
        return new_ema

    def refresh_from_reserves(
        self,
        reserve0: int,
        reserve1: int,
        timestamp: Optional[int] = None,
    ) -> Optional[int]:
        """Update from reserves when both are non-zero; otherwise leave state untouched."""
        if reserve0 == 0 or reserve1 == 0:
            return None
        return self.update(price_of(reserve0, reserve1), timestamp)

    def volatility(self, spot_price: int) -> int:
        """|spot - ema| / ema as a SCALE fraction; 0 while uninitialized."""
        if not isinstance(self.state, Initialized):
            return 0
        ema = self.state.price
        if ema == 0:
            return 0
        return mul_div(abs_diff(spot_price, ema), SCALE, ema)

    def to_dict(self) -> dict:
        return {
            "initialized": self.is_initialized,
            "ema_price": self.ema_price,
            "alpha": self.alpha,
            "last_update_timestamp": self.last_update_timestamp,
        }
