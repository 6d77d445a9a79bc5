"""
Adaptive CPAMM Circuit Breaker

Hard reject gate on the volatility proxy of the trade being attempted:
  - REJECT iff vol_proxy > threshold (strict)
  - No history; the proxy is computed against pre-trade reserves
  - A rejected swap has no side effects

Governance may effectively disable the breaker with a very large
threshold; no bound is enforced.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

from ..constants import DEFAULT_BREAKER_VOL_THRESHOLD
from ..exceptions import InvalidParameter

logger = logging.getLogger(__name__)


class BreakerDecision(Enum):
    ALLOW = "allow"
    REJECT = "reject"


@dataclass(frozen=True)
class BreakerConfig:
    """Volatility threshold as a SCALE fraction."""
    vol_threshold: int = DEFAULT_BREAKER_VOL_THRESHOLD

    def __post_init__(self) -> None:
        if not isinstance(self.vol_threshold, int) or isinstance(self.vol_threshold, bool):
            raise InvalidParameter("vol_threshold must be an int")
        if self.vol_threshold < 0:
            raise InvalidParameter(f"vol_threshold must be non-negative: {self.vol_threshold}")


def check(vol_proxy: int, threshold: int) -> BreakerDecision:
    """Pure trip condition."""
    if vol_proxy > threshold:
        return BreakerDecision.REJECT
    return BreakerDecision.ALLOW


class CircuitBreaker:
    """
    Stateless gate with trip bookkeeping for observability.

    The counters are never consulted when deciding; each decision depends
    only on the proxy and threshold passed in.
    """

    def __init__(self) -> None:
        self._trip_count: int = 0
        self._last_trip_reason: str = ""

    @property
    def trip_count(self) -> int:
        return self._trip_count

    @property
    def last_trip_reason(self) -> str:
        return self._last_trip_reason

    def evaluate(self, vol_proxy: int, config: BreakerConfig) -> BreakerDecision:
        decision = check(vol_proxy, config.vol_threshold)
        if decision is BreakerDecision.REJECT:
            self._trip_count += 1
            self._last_trip_reason = (
                f"volatility {vol_proxy} > threshold {config.vol_threshold}"
            )
            logger.warning("Circuit breaker TRIPPED: %s", self._last_trip_reason)
        return decision
