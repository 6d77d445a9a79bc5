"""
Adaptive CPAMM Engine

Single-pair constant-product market maker that prices trades with a
bounded dynamic fee, tracks its own reference price and throttles itself
under abnormal volatility.

Components:
  - FixedPointMath (1e18 ratios, 1e4 basis points, integer sqrt)
  - EMA Oracle (oracle-free reference price)
  - Dynamic Fee Model (volatility / slippage / shallow-depth proxies)
  - Circuit Breaker (hard reject on excessive deviation)
  - Pool Ledger (reserves + share accounting)
  - Swap and Liquidity Engines
  - AdaptivePool facade (public and admin operations, execution lock)
"""

from .fixed_point import (
    SCALE,
    BPS_DENOM,
    U256_MAX,
    isqrt,
    mul_div,
)
from .oracle import (
    Initialized,
    Uninitialized,
    OracleTracker,
    price_of,
)
from .fees import (
    FeeConfig,
    FeeQuote,
    quote,
)
from .breaker import (
    BreakerConfig,
    BreakerDecision,
    CircuitBreaker,
    check,
)
from .ledger import (
    LedgerSnapshot,
    PoolLedger,
)
from .tokens import (
    InMemoryToken,
    TokenAccount,
    TokenCapability,
)
from .events import (
    BreakerTripped,
    EventBus,
    EventKind,
    EventRecorder,
    LiquidityBurned,
    LiquidityMinted,
    ParametersUpdated,
    SwapExecuted,
)
from .swap import (
    SwapEngine,
    SwapResult,
    amount_out_for,
)
from .liquidity import (
    BurnResult,
    LiquidityEngine,
    MintResult,
)
from .pool import (
    AdaptivePool,
    PoolSnapshot,
)

__all__ = [
    # Fixed point
    "SCALE", "BPS_DENOM", "U256_MAX", "isqrt", "mul_div",
    # Oracle
    "Initialized", "Uninitialized", "OracleTracker", "price_of",
    # Fees
    "FeeConfig", "FeeQuote", "quote",
    # Breaker
    "BreakerConfig", "BreakerDecision", "CircuitBreaker", "check",
    # Ledger
    "LedgerSnapshot", "PoolLedger",
    # Tokens
    "InMemoryToken", "TokenAccount", "TokenCapability",
    # Events
    "BreakerTripped", "EventBus", "EventKind", "EventRecorder",
    "LiquidityBurned", "LiquidityMinted", "ParametersUpdated", "SwapExecuted",
    # Engines
    "SwapEngine", "SwapResult", "amount_out_for",
    "BurnResult", "LiquidityEngine", "MintResult",
    # Pool
    "AdaptivePool", "PoolSnapshot",
]
