"""
Adaptive CPAMM Exceptions

Error taxonomy for the market-making engine. Every failure is raised
before shared pool state is mutated, except where noted on the transfer
errors.
"""


class AMMException(Exception):
    """Base exception for the adaptive CPAMM."""
    pass


# -- Input validation --------------------------------------------------------

class InvalidInput(AMMException):
    """Bad token identity, zero amount or bad admin bounds."""
    pass


class InvalidToken(InvalidInput):
    """Token is not one of the two pool tokens."""
    pass


class ZeroAmount(InvalidInput):
    """An amount that must be positive was zero."""
    pass


class InvalidParameter(InvalidInput):
    """Admin parameter rejected by its setter."""
    pass


# -- Liquidity ---------------------------------------------------------------

class InsufficientLiquidity(AMMException):
    """No reserves, or a computed share / output amount rounded to zero."""
    pass


class NoLiquidity(InsufficientLiquidity):
    """Pool reserves are empty."""
    pass


class ZeroShares(InsufficientLiquidity):
    """Computed share amount is zero."""
    pass


class ZeroOutput(InsufficientLiquidity):
    """Computed swap output is zero."""
    pass


class ZeroRedemption(InsufficientLiquidity):
    """Burning the requested shares would redeem nothing."""
    pass


class InsufficientShares(InsufficientLiquidity):
    """Owner holds fewer shares than requested."""
    pass


class RatioMismatch(AMMException):
    """Deposit ratio differs from the current reserve ratio."""
    pass


# -- Volatility guard --------------------------------------------------------

class CircuitBreakerTripped(AMMException):
    """Volatility proxy exceeded the breaker threshold."""

    def __init__(self, vol_proxy: int, threshold: int):
        super().__init__(
            f"Circuit breaker tripped: volatility {vol_proxy} > threshold {threshold}"
        )
        self.vol_proxy = vol_proxy
        self.threshold = threshold


# -- External collaborators --------------------------------------------------

class ExternalTransferFailed(AMMException):
    """Token capability reported failure."""
    pass


class TransferInFailed(ExternalTransferFailed):
    """Pulling tokens from the caller failed. Nothing was mutated."""
    pass


class TransferOutFailed(ExternalTransferFailed):
    """
    Pushing tokens to the caller failed after the input leg succeeded.

    `refunded` tells whether the compensating refund of the input leg
    went through.
    """

    def __init__(self, message: str, refunded: bool = True):
        super().__init__(message)
        self.refunded = refunded


# -- Access control / execution ----------------------------------------------

class Unauthorized(AMMException):
    """Caller is not the pool authority."""
    pass


class ReentrancyError(AMMException):
    """Pool operation invoked while another is in flight on the same thread."""
    pass


# -- Arithmetic --------------------------------------------------------------

class ArithmeticFault(AMMException):
    """Fixed-point arithmetic failure."""
    pass


class DivisionByZero(ArithmeticFault):
    """Division by a zero denominator (e.g. price of an empty reserve)."""
    pass


class MathOverflow(ArithmeticFault):
    """Value left the unsigned 256-bit domain."""
    pass


class ConfigurationError(AMMException):
    """Configuration error."""
    pass
