"""
Adaptive CPAMM Liquidity Engine

Proportional mint / burn of pool shares:
  - First deposit:   shares = isqrt(amount0 * amount1), seeds the EMA oracle
                     with the deposit price
  - Later deposits:  ratio must match reserves exactly,
                     shares = min(a0 * T / r0, a1 * T / r1)
  - Withdrawal:      amount_x = shares * balance_x / T against observed balances

Zero-redemption policy: a burn is rejected only when BOTH redeemed amounts
round to zero. A small holder can always exit even if one side floors to
zero.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from ..constants import SCALE
from ..exceptions import (
    InsufficientShares,
    NoLiquidity,
    RatioMismatch,
    TransferInFailed,
    TransferOutFailed,
    ZeroAmount,
    ZeroRedemption,
    ZeroShares,
)
from .context import PoolContext
from .events import LiquidityBurned, LiquidityMinted
from .fixed_point import isqrt, mul_div

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MintResult:
    provider: str
    amount0: int
    amount1: int
    shares: int


@dataclass(frozen=True)
class BurnResult:
    provider: str
    shares: int
    amount0: int
    amount1: int


def shares_for_deposit(
    amount0: int,
    amount1: int,
    reserve0: int,
    reserve1: int,
    total_shares: int,
) -> int:
    """Shares minted for a deposit; floors toward zero."""
    if total_shares == 0:
        return isqrt(amount0 * amount1)
    if reserve0 == 0 or reserve1 == 0:
        raise NoLiquidity(
            f"Pool has {total_shares} shares but empty reserves ({reserve0}, {reserve1})"
        )
    return min(
        mul_div(amount0, total_shares, reserve0),
        mul_div(amount1, total_shares, reserve1),
    )


def redemption_for(shares: int, balance0: int, balance1: int, total_shares: int):
    """(amount0, amount1) paid out for burning `shares`."""
    return (
        mul_div(shares, balance0, total_shares),
        mul_div(shares, balance1, total_shares),
    )


class LiquidityEngine:
    """Runs deposits and withdrawals against a PoolContext. Callers hold the pool lock."""

    def __init__(self, ctx: PoolContext):
        self.ctx = ctx

    # -- Add ----------------------------------------------------------------

    def add_liquidity(self, provider: str, amount0: int, amount1: int) -> MintResult:
        ctx = self.ctx
        ledger = ctx.ledger

        if amount0 <= 0 or amount1 <= 0:
            raise ZeroAmount(f"Deposit amounts must be positive: ({amount0}, {amount1})")

        if ledger.has_liquidity:
            if ledger.reserve0 * amount1 != ledger.reserve1 * amount0:
                raise RatioMismatch(
                    f"Deposit ratio {amount0}:{amount1} does not match reserves "
                    f"{ledger.reserve0}:{ledger.reserve1}"
                )

        shares = shares_for_deposit(
            amount0, amount1, ledger.reserve0, ledger.reserve1, ledger.total_shares
        )
        if shares == 0:
            raise ZeroShares(f"Deposit ({amount0}, {amount1}) mints zero shares")
        seed_oracle = not ctx.oracle.is_initialized

        # -- Pull both legs ------------------------------------------------
        if not ctx.pull(0, provider, amount0):
            raise TransferInFailed(f"Pulling {amount0} {ctx.token0_id} from {provider} failed")
        if not ctx.pull(1, provider, amount1):
            refunded = ctx.push(0, provider, amount0)
            ctx.sync_reserves()
            if not refunded:
                logger.error(
                    "Refund of %d %s to %s failed after second deposit leg failed",
                    amount0, ctx.token0_id, provider,
                )
            raise TransferInFailed(f"Pulling {amount1} {ctx.token1_id} from {provider} failed")

        # -- Effects -------------------------------------------------------
        ledger.mint(provider, shares)
        ctx.sync_reserves()
        if seed_oracle:
            ctx.oracle.update(mul_div(amount1, SCALE, amount0))
        ctx.oracle.refresh_from_reserves(ledger.reserve0, ledger.reserve1)

        ctx.events.emit(LiquidityMinted(
            provider=provider, amount0=amount0, amount1=amount1, shares=shares,
        ))
        logger.info(
            "Liquidity minted: %s deposited (%d, %d) for %d shares", provider, amount0, amount1, shares
        )
        return MintResult(provider=provider, amount0=amount0, amount1=amount1, shares=shares)

    # -- Remove -------------------------------------------------------------

    def remove_liquidity(self, provider: str, shares: int) -> BurnResult:
        ctx = self.ctx
        ledger = ctx.ledger

        if shares <= 0:
            raise ZeroShares("Share amount must be positive")
        held = ledger.shares_of(provider)
        if held < shares:
            raise InsufficientShares(f"{provider} holds {held} shares, cannot burn {shares}")

        balance0, balance1 = ctx.observed_balances()
        amount0, amount1 = redemption_for(shares, balance0, balance1, ledger.total_shares)
        if amount0 == 0 and amount1 == 0:
            raise ZeroRedemption(f"Burning {shares} shares redeems nothing")

        snap = ledger.snapshot()
        ledger.burn(provider, shares)

        # -- Push both legs ------------------------------------------------
        if amount0 and not ctx.push(0, provider, amount0):
            ledger.restore(snap)
            ctx.sync_reserves()
            raise TransferOutFailed(
                f"Sending {amount0} {ctx.token0_id} to {provider} failed; shares restored",
                refunded=True,
            )
        if amount1 and not ctx.push(1, provider, amount1):
            self._claw_back_first_leg(provider, amount0, snap)

        ctx.sync_reserves()
        ctx.oracle.refresh_from_reserves(ledger.reserve0, ledger.reserve1)

        ctx.events.emit(LiquidityBurned(
            provider=provider, shares=shares, amount0=amount0, amount1=amount1,
        ))
        logger.info(
            "Liquidity burned: %s redeemed %d shares for (%d, %d)", provider, shares, amount0, amount1
        )
        return BurnResult(provider=provider, shares=shares, amount0=amount0, amount1=amount1)

    def _claw_back_first_leg(self, provider: str, amount0: int, snap) -> None:
        """Second withdrawal leg failed: pull back the first leg, then raise."""
        ctx = self.ctx
        if amount0 == 0 or ctx.pull(0, provider, amount0):
            ctx.ledger.restore(snap)
            ctx.sync_reserves()
            logger.warning("Withdrawal for %s rolled back after second leg failed", provider)
            raise TransferOutFailed(
                f"Sending {ctx.token1_id} to {provider} failed; withdrawal rolled back",
                refunded=True,
            )
        # Provider keeps the first leg; the burn stands and reserves follow balances
        ctx.sync_reserves()
        logger.error(
            "Withdrawal for %s partially settled: %d %s paid, %s leg failed",
            provider, amount0, ctx.token0_id, ctx.token1_id,
        )
        raise TransferOutFailed(
            f"Sending {ctx.token1_id} to {provider} failed after {amount0} {ctx.token0_id} was paid",
            refunded=False,
        )
