# src/stakepool/ledger/fixed_point.py
from __future__ import annotations

"""Checked integer arithmetic for amounts, shares and points.

Python ints never overflow, so the 256-bit bounds the accounting relies on
are enforced explicitly. Every helper raises ArithmeticOverflowError instead
of silently producing a value the ledger could not hold.
"""

from decimal import Decimal, InvalidOperation
from typing import Any

from stakepool.ledger.constants import BASE_DECIMALS, INT256_MAX, INT256_MIN, UINT256_MAX
from stakepool.runtime.errors import ArithmeticOverflowError


def to_uint256(v: int) -> int:
    x = int(v)
    if x < 0 or x > UINT256_MAX:
        raise ArithmeticOverflowError("overflow", "uint256_out_of_range", {"value": x})
    return x


def to_int256(v: int) -> int:
    x = int(v)
    if x < INT256_MIN or x > INT256_MAX:
        raise ArithmeticOverflowError("overflow", "int256_out_of_range", {"value": x})
    return x


def checked_add(a: int, b: int) -> int:
    return to_uint256(int(a) + int(b))


def checked_sub(a: int, b: int) -> int:
    out = int(a) - int(b)
    if out < 0:
        raise ArithmeticOverflowError("underflow", "uint256_sub_below_zero", {"a": int(a), "b": int(b)})
    return out


def checked_mul(a: int, b: int) -> int:
    return to_uint256(int(a) * int(b))


def signed_add(a: int, b: int) -> int:
    return to_int256(int(a) + int(b))


def mul_div(a: int, b: int, d: int) -> int:
    """floor(a * b / d) with the product bounded to uint256."""
    den = int(d)
    if den <= 0:
        raise ArithmeticOverflowError("division", "non_positive_divisor", {"divisor": den})
    return checked_mul(a, b) // den


def parse_units(v: Any, decimals: int = BASE_DECIMALS) -> int:
    """Convert a human decimal ("0.2", "1", 1.5) into a scaled integer.

    Extra precision beyond `decimals` is rejected rather than rounded.
    """
    if isinstance(v, bool):
        raise ValueError("bool is not a valid decimal amount")
    try:
        d = Decimal(str(v).strip())
    except (InvalidOperation, ValueError) as e:
        raise ValueError(f"invalid decimal amount: {v!r}") from e
    if not d.is_finite() or d < 0:
        raise ValueError(f"decimal amount must be finite and non-negative: {v!r}")
    scaled = d.scaleb(int(decimals))
    if scaled != scaled.to_integral_value():
        raise ValueError(f"too many decimal places for {decimals}: {v!r}")
    return to_uint256(int(scaled))


def format_units(v: int, decimals: int = BASE_DECIMALS) -> str:
    d = Decimal(int(v)).scaleb(-int(decimals))
    s = format(d.normalize(), "f")
    return s
