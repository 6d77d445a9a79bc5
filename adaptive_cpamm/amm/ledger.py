"""
Pool ledger: reserves and liquidity-share accounting.

The ledger is the single source of truth for value held by a pool.
Reserves are never incremented arithmetically; they are resynchronized
to the token balances observed after each transfer.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Tuple

from ..exceptions import InsufficientShares, InvalidToken, ZeroShares
from .fixed_point import checked_add, checked_sub

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LedgerSnapshot:
    """Immutable copy of ledger state, used for compensating rollback."""
    reserve0: int
    reserve1: int
    total_shares: int
    share_balance: Tuple[Tuple[str, int], ...]


@dataclass
class PoolLedger:
    """
    Reserves and share balances of one pool.

    Invariants:
      - sum(share_balance.values()) == total_shares
      - total_shares == 0  <=>  reserve0 == reserve1 == 0
        (holds after every completed pool operation)
    """
    reserve0: int = 0
    reserve1: int = 0
    total_shares: int = 0
    share_balance: Dict[str, int] = field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return self.total_shares == 0

    @property
    def has_liquidity(self) -> bool:
        return self.reserve0 > 0 and self.reserve1 > 0

    def reserves_for(self, side: int) -> Tuple[int, int]:
        """(reserve_in, reserve_out) for an input on `side` (0 or 1)."""
        if side == 0:
            return self.reserve0, self.reserve1
        if side == 1:
            return self.reserve1, self.reserve0
        raise InvalidToken(f"Side must be 0 or 1, got {side}")

    def shares_of(self, owner: str) -> int:
        return self.share_balance.get(owner, 0)

    # -- Mutation -----------------------------------------------------------

    def sync(self, balance0: int, balance1: int) -> None:
        """Resynchronize reserves to freshly observed token balances."""
        self.reserve0 = balance0
        self.reserve1 = balance1

    def mint(self, owner: str, shares: int) -> None:
        if shares <= 0:
            raise ZeroShares(f"Cannot mint {shares} shares")
        self.share_balance[owner] = checked_add(self.shares_of(owner), shares)
        self.total_shares = checked_add(self.total_shares, shares)

    def burn(self, owner: str, shares: int) -> None:
        if shares <= 0:
            raise ZeroShares(f"Cannot burn {shares} shares")
        held = self.shares_of(owner)
        if held < shares:
            raise InsufficientShares(f"{owner} holds {held} shares, cannot burn {shares}")
        remaining = held - shares
        if remaining:
            self.share_balance[owner] = remaining
        else:
            del self.share_balance[owner]
        self.total_shares = checked_sub(self.total_shares, shares)

    # -- Rollback -----------------------------------------------------------

    def snapshot(self) -> LedgerSnapshot:
        return LedgerSnapshot(
            reserve0=self.reserve0,
            reserve1=self.reserve1,
            total_shares=self.total_shares,
            share_balance=tuple(sorted(self.share_balance.items())),
        )

    def restore(self, snap: LedgerSnapshot) -> None:
        self.reserve0 = snap.reserve0
        self.reserve1 = snap.reserve1
        self.total_shares = snap.total_shares
        self.share_balance = dict(snap.share_balance)

    def to_dict(self) -> dict:
        return {
            "reserve0": self.reserve0,
            "reserve1": self.reserve1,
            "total_shares": self.total_shares,
            "share_balance": dict(sorted(self.share_balance.items())),
        }
