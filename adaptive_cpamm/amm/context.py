"""
Shared state of one pool, passed to the swap and liquidity engines.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Tuple

from ..exceptions import InvalidToken
from .breaker import BreakerConfig, CircuitBreaker
from .events import EventBus
from .fees import FeeConfig
from .ledger import PoolLedger
from .oracle import OracleTracker
from .tokens import TokenCapability

logger = logging.getLogger(__name__)


@dataclass
class PoolContext:
    """
    Everything a pool operation reads or mutates.

    `fee_config` and `breaker_config` are frozen values; admin updates
    replace them wholesale, so reading each once at the start of an
    operation gives a consistent view.
    """
    address: str
    token0_id: str
    token1_id: str
    token0: TokenCapability
    token1: TokenCapability
    ledger: PoolLedger
    oracle: OracleTracker
    fee_config: FeeConfig
    breaker_config: BreakerConfig
    breaker: CircuitBreaker = field(default_factory=CircuitBreaker)
    events: EventBus = field(default_factory=EventBus)

    def side_of(self, token_id: str) -> int:
        if token_id == self.token0_id:
            return 0
        if token_id == self.token1_id:
            return 1
        raise InvalidToken(
            f"Token {token_id!r} is not in pool ({self.token0_id}, {self.token1_id})"
        )

    def token_id(self, side: int) -> str:
        return self.token0_id if side == 0 else self.token1_id

    def capability(self, side: int) -> TokenCapability:
        return self.token0 if side == 0 else self.token1

    def observed_balances(self) -> Tuple[int, int]:
        return (
            self.token0.balance_of(self.address),
            self.token1.balance_of(self.address),
        )

    def sync_reserves(self) -> None:
        """Resynchronize ledger reserves to the pool's actual token balances."""
        self.ledger.sync(*self.observed_balances())

    # -- Token legs ---------------------------------------------------------

    def pull(self, side: int, owner: str, amount: int) -> bool:
        """Move `amount` from `owner` into the pool. A raising capability counts as a refusal."""
        try:
            return bool(self.capability(side).transfer_from(owner, self.address, amount))
        except Exception as e:
            logger.error("Pull of %d %s from %s raised: %s", amount, self.token_id(side), owner, e)
            return False

    def push(self, side: int, to: str, amount: int) -> bool:
        """Move `amount` from the pool to `to`. A raising capability counts as a refusal."""
        try:
            return bool(self.capability(side).transfer(to, amount))
        except Exception as e:
            logger.error("Push of %d %s to %s raised: %s", amount, self.token_id(side), to, e)
            return False
