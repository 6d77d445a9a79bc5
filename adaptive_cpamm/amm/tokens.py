"""
Token capability used by a pool to move value in and out.

The engine only depends on `TokenCapability`; a host environment wires in
its own token adapter. `InMemoryToken` is a minimal fungible token for
simulation and tests, with ERC-20 style views:

    - balance_of(holder) -> int
    - transfer_from(src, dst, amount) -> bool
    - transfer(dst, amount) -> bool      (sent by the bound holder)

Non-success is reported by returning False, never by raising.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Protocol, runtime_checkable

logger = logging.getLogger(__name__)


@runtime_checkable
class TokenCapability(Protocol):
    """Capability bound to the pool's holding account for one token."""

    def balance_of(self, holder: str) -> int: ...
    def transfer_from(self, src: str, dst: str, amount: int) -> bool: ...
    def transfer(self, dst: str, amount: int) -> bool: ...


class InMemoryToken:
    """Fungible token keeping integer balances in a dict."""

    def __init__(self, symbol: str):
        if not symbol:
            raise ValueError("Token symbol cannot be empty")
        self.symbol = symbol
        self._balances: Dict[str, int] = {}
        self._total_supply: int = 0
        self._frozen: bool = False

    # -- Views --------------------------------------------------------------

    @property
    def total_supply(self) -> int:
        return self._total_supply

    @property
    def is_frozen(self) -> bool:
        return self._frozen

    def balance_of(self, holder: str) -> int:
        return self._balances.get(holder, 0)

    # -- Administration -----------------------------------------------------

    def mint(self, holder: str, amount: int) -> None:
        if amount <= 0:
            raise ValueError("Mint amount must be positive")
        self._balances[holder] = self.balance_of(holder) + amount
        self._total_supply += amount

    def freeze(self) -> None:
        self._frozen = True

    def unfreeze(self) -> None:
        self._frozen = False

    # -- Transfers ----------------------------------------------------------

    def transfer_between(self, src: str, dst: str, amount: int) -> bool:
        if self._frozen:
            logger.debug("Transfer refused: %s is frozen", self.symbol)
            return False
        if amount < 0:
            return False
        bal = self.balance_of(src)
        if bal < amount:
            logger.debug(
                "Transfer refused: %s balance %d < %d %s", src, bal, amount, self.symbol
            )
            return False
        if amount == 0 or src == dst:
            return True
        self._balances[src] = bal - amount
        self._balances[dst] = self.balance_of(dst) + amount
        return True

    def account(self, holder: str) -> "TokenAccount":
        """Capability bound to `holder` (typically the pool address)."""
        return TokenAccount(token=self, holder=holder)


@dataclass
class TokenAccount:
    """`TokenCapability` whose outbound transfers are sent from `holder`."""
    token: InMemoryToken
    holder: str

    @property
    def symbol(self) -> str:
        return self.token.symbol

    def balance_of(self, holder: str) -> int:
        return self.token.balance_of(holder)

    def transfer_from(self, src: str, dst: str, amount: int) -> bool:
        return self.token.transfer_between(src, dst, amount)

    def transfer(self, dst: str, amount: int) -> bool:
        return self.token.transfer_between(self.holder, dst, amount)
