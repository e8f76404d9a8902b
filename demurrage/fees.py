"""
fees.py - Transfer and withdrawal fee arithmetic
"""

from __future__ import annotations
from decimal import Decimal

from .core import ZERO, ONE, quantize_amount, to_decimal


def fee(amount: Decimal, rate: Decimal) -> Decimal:
    """
    Fee charged on a gross amount: floor(amount * rate) at token precision.

    The result is never negative and never exceeds the amount.

    Raises:
        ValueError: If amount is negative or rate is outside [0, 1]
    """
    amount = to_decimal(amount)
    rate = to_decimal(rate)
    if amount < ZERO:
        raise ValueError(f"Fee amount cannot be negative, got {amount}")
    if rate < ZERO or rate > ONE:
        raise ValueError(f"Fee rate must be within [0, 1], got {rate}")
    return quantize_amount(amount * rate)
