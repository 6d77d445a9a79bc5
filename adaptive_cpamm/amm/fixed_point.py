"""
Fixed-point arithmetic helpers.

All values are non-negative integers in the unsigned 256-bit domain.
Ratios are scaled by SCALE (1e18), fees by BPS_DENOM (1e4). Every
division floors toward zero.
"""

from __future__ import annotations

from ..constants import BPS_DENOM, SCALE, U256_MAX
from ..exceptions import DivisionByZero, InvalidInput, MathOverflow

__all__ = [
    "SCALE",
    "BPS_DENOM",
    "U256_MAX",
    "abs_diff",
    "checked_add",
    "checked_sub",
    "isqrt",
    "mul_div",
]


def _require_u256(value: int, name: str) -> None:
    if value < 0 or value > U256_MAX:
        raise MathOverflow(f"{name} outside u256 domain: {value}")


def mul_div(a: int, b: int, c: int) -> int:
    """
    floor(a * b / c) without intermediate overflow.

    Python integers are unbounded, so only the operands and the result are
    held to the u256 domain.
    """
    _require_u256(a, "a")
    _require_u256(b, "b")
    if c == 0:
        raise DivisionByZero("mul_div denominator is zero")
    _require_u256(c, "c")
    result = (a * b) // c
    _require_u256(result, "mul_div result")
    return result


def checked_add(a: int, b: int) -> int:
    result = a + b
    _require_u256(result, "sum")
    return result


def checked_sub(a: int, b: int) -> int:
    result = a - b
    if result < 0:
        raise MathOverflow(f"subtraction underflow: {a} - {b}")
    return result


def abs_diff(a: int, b: int) -> int:
    return a - b if a >= b else b - a


def isqrt(n: int) -> int:
    """
    Integer square root by Babylonian iteration.

    isqrt(0) == 0, exact for perfect squares, floor otherwise.
    """
    if n < 0:
        raise InvalidInput(f"isqrt of negative value: {n}")
    if n < 4:
        return 0 if n == 0 else 1
    z = n
    x = n // 2 + 1
    while x < z:
        z = x
        x = (n // x + x) // 2
    return z
