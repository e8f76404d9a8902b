"""
decay.py - Fixed-point demurrage compounding

Pure functions, no ledger access:

    compound_factor(rate, periods)  ->  (1 - rate) ** periods
    apply_factor(amount, factor)    ->  floor(amount * factor)
    decayed_balance(raw, last_updated, now, schedule)

Compounding is repeated multiplication truncated to RATE_DECIMALS after every
step (never floating-point exponentiation), so results are reproducible and
monotonically non-increasing in the number of periods.

Example:
    compound_factor(Decimal("0.01"), 1)   # Decimal("0.990000")
    compound_factor(Decimal("0.01"), 2)   # Decimal("0.980100")
    compound_factor(Decimal("0.01"), 6)   # Decimal("0.941480")
"""

from __future__ import annotations
from datetime import datetime
from decimal import Decimal
from typing import Iterable, Tuple

from .core import ZERO, ONE, quantize_amount, quantize_rate, to_decimal
from .schedule import RateSchedule


def compound_factor(rate: Decimal, periods: int) -> Decimal:
    """
    Multiplicative decay factor for `periods` periods at `rate`.

    Args:
        rate: Per-period decay fraction in [0, 1]
        periods: Number of elapsed periods (>= 0)

    Returns:
        Factor in [0, 1] at RATE_DECIMALS precision

    Raises:
        ValueError: If periods is negative or rate is out of range
    """
    rate = to_decimal(rate)
    if periods < 0:
        raise ValueError(f"periods must be non-negative, got {periods}")
    if rate < ZERO or rate > ONE:
        raise ValueError(f"rate must be within [0, 1], got {rate}")

    step = quantize_rate(ONE - rate)
    factor = quantize_rate(ONE)
    if step == ONE:
        return factor
    for _ in range(periods):
        factor = quantize_rate(factor * step)
        if factor == ZERO:
            break
    return factor


def combined_factor(segments: Iterable[Tuple[Decimal, int]]) -> Decimal:
    """Product of per-segment factors, truncated after each multiplication."""
    factor = quantize_rate(ONE)
    for rate, periods in segments:
        if periods:
            factor = quantize_rate(factor * compound_factor(rate, periods))
    return factor


def apply_factor(amount: Decimal, factor: Decimal) -> Decimal:
    """Scale an amount by a factor, truncating to token precision."""
    return quantize_amount(amount * factor)


def decayed_balance(
    raw_balance: Decimal,
    last_updated: datetime,
    now: datetime,
    schedule: RateSchedule,
) -> Decimal:
    """
    Balance after applying all decay accrued in (last_updated, now].

    This is the one function behind both balance reads and realization: the
    read path discards the result, the write path stores it and moves
    last_updated to now.

    Args:
        raw_balance: Balance as of last_updated
        last_updated: When raw_balance was last realized
        now: Observation time (>= last_updated)
        schedule: Rate schedule to consult

    Returns:
        Decayed balance at token precision
    """
    if raw_balance == ZERO or now == last_updated:
        return raw_balance
    factor = combined_factor(schedule.segments_between(last_updated, now))
    if factor == ONE:
        return raw_balance
    return apply_factor(raw_balance, factor)
