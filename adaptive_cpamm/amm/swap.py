"""
Adaptive CPAMM Swap Engine

Executes one exact-in trade:

  Validate -> Quote -> BreakerCheck -> Settle -> OracleRefresh -> Done
      \\__________________\\______________> Rejected

Settle prices with the fee-discounted input against pre-trade reserves:

  after_fee  = amount_in * (BPS_DENOM - fee_bps) / BPS_DENOM
  amount_out = reserve_out * after_fee / (reserve_in + after_fee)

The fee stays in the pool, so reserve0 * reserve1 never decreases across
a swap. Reserves are resynchronized to observed balances afterwards.

Failure of the output leg triggers a compensating refund of the input
leg; see TransferOutFailed. A token capability that raises counts as
a failed leg.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Tuple

from ..constants import BPS_DENOM
from ..exceptions import (
    CircuitBreakerTripped,
    TransferInFailed,
    TransferOutFailed,
    ZeroAmount,
    ZeroOutput,
)
from . import fees
from .breaker import BreakerDecision
from .context import PoolContext
from .events import BreakerTripped, SwapExecuted
from .fixed_point import checked_add, mul_div

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SwapResult:
    """Outcome of a swap, with the proxies used to price it."""
    token_in: str
    token_out: str
    amount_in: int
    amount_out: int
    fee_bps: int
    vol_proxy: int
    slip_proxy: int
    shallow_proxy: int


def amount_out_for(
    amount_in: int,
    reserve_in: int,
    reserve_out: int,
    fee_bps: int,
) -> Tuple[int, int]:
    """
    Constant-product output for a fee-discounted input.

    Returns:
        (amount_out, amount_in_after_fee)
    """
    after_fee = mul_div(amount_in, BPS_DENOM - fee_bps, BPS_DENOM)
    if after_fee == 0:
        return 0, 0
    amount_out = mul_div(reserve_out, after_fee, checked_add(reserve_in, after_fee))
    return amount_out, after_fee


class SwapEngine:
    """Runs swaps against a PoolContext. Callers hold the pool lock."""

    def __init__(self, ctx: PoolContext):
        self.ctx = ctx

    def preview(self, token_in: str, amount_in: int) -> fees.FeeQuote:
        """Fee quote for a prospective trade; no state change."""
        side = self.ctx.side_of(token_in)
        if amount_in <= 0:
            raise ZeroAmount("Swap amount must be positive")
        return fees.quote(side, amount_in, self.ctx.ledger, self.ctx.oracle, self.ctx.fee_config)

    def execute(self, trader: str, token_in: str, amount_in: int) -> SwapResult:
        ctx = self.ctx

        # -- Validate ----------------------------------------------------
        side = ctx.side_of(token_in)
        if amount_in <= 0:
            raise ZeroAmount("Swap amount must be positive")
        out_side = 1 - side

        # -- Quote (config read once) ------------------------------------
        fee_config = ctx.fee_config
        breaker_config = ctx.breaker_config
        fq = fees.quote(side, amount_in, ctx.ledger, ctx.oracle, fee_config)

        # -- Breaker check -----------------------------------------------
        if ctx.breaker.evaluate(fq.vol_proxy, breaker_config) is BreakerDecision.REJECT:
            ctx.events.emit(BreakerTripped(
                trader=trader,
                token_in=token_in,
                amount_in=amount_in,
                vol_proxy=fq.vol_proxy,
                threshold=breaker_config.vol_threshold,
            ))
            raise CircuitBreakerTripped(fq.vol_proxy, breaker_config.vol_threshold)

        # -- Settle ------------------------------------------------------
        reserve_in, reserve_out = ctx.ledger.reserves_for(side)
        amount_out, _ = amount_out_for(amount_in, reserve_in, reserve_out, fq.fee_bps)
        if amount_out == 0:
            raise ZeroOutput(
                f"Swap of {amount_in} {token_in} at {fq.fee_bps} bps yields zero output"
            )

        if not ctx.pull(side, trader, amount_in):
            raise TransferInFailed(f"Pulling {amount_in} {token_in} from {trader} failed")

        if not ctx.push(out_side, trader, amount_out):
            self._refund_input(trader, side, amount_in)

        # -- Ledger resync + oracle refresh ------------------------------
        ctx.sync_reserves()
        ctx.oracle.refresh_from_reserves(ctx.ledger.reserve0, ctx.ledger.reserve1)

        result = SwapResult(
            token_in=token_in,
            token_out=ctx.token_id(out_side),
            amount_in=amount_in,
            amount_out=amount_out,
            fee_bps=fq.fee_bps,
            vol_proxy=fq.vol_proxy,
            slip_proxy=fq.slip_proxy,
            shallow_proxy=fq.shallow_proxy,
        )
        ctx.events.emit(SwapExecuted(
            trader=trader,
            token_in=result.token_in,
            token_out=result.token_out,
            amount_in=result.amount_in,
            amount_out=result.amount_out,
            fee_bps=result.fee_bps,
            vol_proxy=result.vol_proxy,
            slip_proxy=result.slip_proxy,
            shallow_proxy=result.shallow_proxy,
        ))
        logger.debug(
            "Swap %s: %d %s -> %d %s at %d bps",
            trader, amount_in, token_in, amount_out, result.token_out, fq.fee_bps,
        )
        return result

    def _refund_input(self, trader: str, side: int, amount_in: int) -> None:
        """Undo the input leg after the output leg failed, then raise."""
        ctx = self.ctx
        token_in = ctx.token_id(side)
        refunded = ctx.push(side, trader, amount_in)
        ctx.sync_reserves()
        if refunded:
            logger.warning("Swap output leg failed for %s; input refunded", trader)
            raise TransferOutFailed(
                f"Sending swap output to {trader} failed; input refunded", refunded=True
            )
        logger.error(
            "Swap output leg and input refund both failed for %s (%d %s held by pool)",
            trader, amount_in, token_in,
        )
        raise TransferOutFailed(
            f"Sending swap output to {trader} failed and refund of {amount_in} {token_in} failed",
            refunded=False,
        )
