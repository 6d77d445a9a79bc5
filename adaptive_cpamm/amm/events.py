"""
Adaptive CPAMM Notifications

Observability events emitted by a pool:
  - SwapExecuted / BreakerTripped
  - LiquidityMinted / LiquidityBurned
  - ParametersUpdated

Listeners run synchronously after the operation completed (or was
rejected). They cannot revert anything; a failing listener is logged and
skipped. The engine never reads its own events.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from enum import Flag, auto
from typing import Any, Callable, Dict, List, Tuple

logger = logging.getLogger(__name__)


class EventKind(Flag):
    NONE = 0
    SWAP = auto()
    MINT = auto()
    BURN = auto()
    PARAMS = auto()
    BREAKER = auto()
    ALL = SWAP | MINT | BURN | PARAMS | BREAKER


# ---------------------------------------------------------------------------
# Event payloads
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SwapExecuted:
    kind = EventKind.SWAP
    trader: str
    token_in: str
    token_out: str
    amount_in: int
    amount_out: int
    fee_bps: int
    vol_proxy: int
    slip_proxy: int
    shallow_proxy: int
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "SwapExecuted",
            "trader": self.trader,
            "tokenIn": self.token_in,
            "tokenOut": self.token_out,
            "amountIn": self.amount_in,
            "amountOut": self.amount_out,
            "feeBps": self.fee_bps,
            "vol": self.vol_proxy,
            "slip": self.slip_proxy,
            "shallow": self.shallow_proxy,
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class BreakerTripped:
    kind = EventKind.BREAKER
    trader: str
    token_in: str
    amount_in: int
    vol_proxy: int
    threshold: int
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "BreakerTripped",
            "trader": self.trader,
            "tokenIn": self.token_in,
            "amountIn": self.amount_in,
            "vol": self.vol_proxy,
            "threshold": self.threshold,
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class LiquidityMinted:
    kind = EventKind.MINT
    provider: str
    amount0: int
    amount1: int
    shares: int
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "LiquidityMinted",
            "provider": self.provider,
            "amount0": self.amount0,
            "amount1": self.amount1,
            "shares": self.shares,
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class LiquidityBurned:
    kind = EventKind.BURN
    provider: str
    shares: int
    amount0: int
    amount1: int
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "LiquidityBurned",
            "provider": self.provider,
            "shares": self.shares,
            "amount0": self.amount0,
            "amount1": self.amount1,
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class ParametersUpdated:
    kind = EventKind.PARAMS
    caller: str
    changes: Tuple[Tuple[str, int], ...]
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "ParametersUpdated",
            "caller": self.caller,
            "changes": dict(self.changes),
            "timestamp": self.timestamp,
        }


PoolEvent = Any
Listener = Callable[[PoolEvent], None]


# ---------------------------------------------------------------------------
# Event bus
# ---------------------------------------------------------------------------

class EventBus:
    """
    Fan-out of pool events to registered listeners, in registration order.
    """

    def __init__(self) -> None:
        self._listeners: List[Tuple[Listener, EventKind]] = []

    def register(self, listener: Listener, kinds: EventKind = EventKind.ALL) -> None:
        self._listeners.append((listener, kinds))
        logger.debug("Listener registered: %r (kinds=%s)", listener, kinds)

    def unregister(self, listener: Listener) -> None:
        self._listeners = [(l, k) for l, k in self._listeners if l is not listener]

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def emit(self, event: PoolEvent) -> None:
        for listener, kinds in self._listeners:
            if event.kind in kinds:
                try:
                    listener(event)
                except Exception as e:
                    logger.error("Listener %r failed on %s: %s", listener, type(event).__name__, e)


class EventRecorder:
    """Listener that keeps every event it receives."""

    def __init__(self) -> None:
        self.events: List[PoolEvent] = []

    def __call__(self, event: PoolEvent) -> None:
        self.events.append(event)

    def of_type(self, event_type: type) -> List[PoolEvent]:
        return [e for e in self.events if isinstance(e, event_type)]
