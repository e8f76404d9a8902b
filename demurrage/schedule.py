"""
schedule.py - Append-only demurrage rate schedule

The schedule is a genesis rate effective from the epoch followed by an
ordered log of immutable RateCheckpoints. Rates are never overwritten: a
change is a new checkpoint in the future, so decay for any interval already
elapsed is reproducible from the log alone.

Period counting is epoch-aligned. The number of periods in (a, b] is
period_index(b) - period_index(a), never (b - a) // PERIOD_LENGTH, so
splitting an interval at arbitrary instants neither loses nor double-counts
a period boundary.
"""

from __future__ import annotations
from bisect import bisect_right
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Iterator, List, Optional, Tuple

from .core import (
    EPOCH, PERIOD_LENGTH, ZERO, ONE,
    InvalidRateCheckpoint, RateCheckpoint,
    quantize_rate, to_decimal,
)


# (rate, number of periods) for one rate-homogeneous stretch of time
Segment = Tuple[Decimal, int]


def _checked_rate(rate) -> Decimal:
    try:
        value = to_decimal(rate)
    except ValueError as exc:
        raise InvalidRateCheckpoint(str(exc)) from exc
    if not value.is_finite() or value < ZERO or value > ONE:
        raise InvalidRateCheckpoint(f"Rate must be within [0, 1], got {rate}")
    return quantize_rate(value)


class RateSchedule:
    """
    Time-ordered log of demurrage rate checkpoints.

    Example:
        schedule = RateSchedule(Decimal("0.01"))
        schedule.add_checkpoint(Decimal("0.02"), datetime(2025, 3, 1), now=datetime(2025, 1, 1))
        schedule.rate_at(datetime(2025, 2, 1))   # Decimal("0.010000")
        schedule.rate_at(datetime(2025, 3, 1))   # Decimal("0.020000")
    """

    def __init__(
        self,
        genesis_rate: Decimal,
        period_length: timedelta = PERIOD_LENGTH,
        epoch: datetime = EPOCH,
    ):
        if period_length <= timedelta(0):
            raise ValueError(f"Period length must be positive, got {period_length}")
        self.period_length = period_length
        self.epoch = epoch
        self.genesis = RateCheckpoint(rate=_checked_rate(genesis_rate), effective_at=epoch)
        self._checkpoints: List[RateCheckpoint] = []
        # Parallel list of effective times for bisect
        self._times: List[datetime] = []

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def checkpoints(self) -> Tuple[RateCheckpoint, ...]:
        """Registered checkpoints in effective order (genesis excluded)."""
        return tuple(self._checkpoints)

    def __len__(self) -> int:
        return len(self._checkpoints)

    def __iter__(self) -> Iterator[RateCheckpoint]:
        return iter(self._checkpoints)

    def active_at(self, when: datetime) -> RateCheckpoint:
        """Return the checkpoint with the latest effective_at <= when, or genesis."""
        idx = bisect_right(self._times, when)
        if idx == 0:
            return self.genesis
        return self._checkpoints[idx - 1]

    def rate_at(self, when: datetime) -> Decimal:
        """Return the rate active at a timestamp."""
        return self.active_at(when).rate

    def pending_checkpoint(self, now: datetime) -> Optional[RateCheckpoint]:
        """Return the registered checkpoint that has not yet taken effect, if any."""
        if self._checkpoints and self._checkpoints[-1].effective_at > now:
            return self._checkpoints[-1]
        return None

    def period_index(self, when: datetime) -> int:
        """Index of the period containing `when`, counted from the epoch."""
        return (when - self.epoch) // self.period_length

    def periods_between(self, start: datetime, end: datetime) -> int:
        """Number of period boundaries crossed in (start, end]."""
        return self.period_index(end) - self.period_index(start)

    def segments_between(self, start: datetime, end: datetime) -> List[Segment]:
        """
        Decompose (start, end] into rate-homogeneous segments.

        The first segment runs at the rate active at `start`; every checkpoint
        strictly inside the interval opens a new segment. Each segment (a, b]
        is charged period_index(b) - period_index(a) periods.

        Args:
            start: Exclusive lower bound (typically an account's last_updated)
            end: Inclusive upper bound (typically now)

        Returns:
            Ordered list of (rate, period_count) pairs. Segments that cross no
            period boundary are kept with a count of 0.

        Raises:
            ValueError: If end is before start
        """
        if end < start:
            raise ValueError(f"Segment end {end} is before start {start}")
        if end == start:
            return []

        boundaries = [start]
        rates = [self.rate_at(start)]
        # First checkpoint strictly after start
        idx = bisect_right(self._times, start)
        while idx < len(self._checkpoints) and self._times[idx] < end:
            boundaries.append(self._times[idx])
            rates.append(self._checkpoints[idx].rate)
            idx += 1
        boundaries.append(end)

        return [
            (rates[i], self.periods_between(boundaries[i], boundaries[i + 1]))
            for i in range(len(rates))
        ]

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def add_checkpoint(self, rate, effective_at: datetime, now: datetime) -> RateCheckpoint:
        """
        Register a rate change taking effect in the future.

        Only one checkpoint may be pending at a time: a new registration is
        rejected while the previous one has not yet become effective.

        Args:
            rate: New per-period decay fraction in [0, 1]
            effective_at: First instant at which the rate applies
            now: Current time

        Returns:
            The appended RateCheckpoint

        Raises:
            InvalidRateCheckpoint: If effective_at is not strictly after now,
                not strictly after the last checkpoint, a checkpoint is still
                pending, or the rate is out of range
        """
        checked = _checked_rate(rate)
        if effective_at <= now:
            raise InvalidRateCheckpoint(
                f"effective_at {effective_at} must be after current time {now}"
            )
        if self._checkpoints and effective_at <= self._checkpoints[-1].effective_at:
            raise InvalidRateCheckpoint(
                f"effective_at {effective_at} must be after last checkpoint "
                f"{self._checkpoints[-1].effective_at}"
            )
        pending = self.pending_checkpoint(now)
        if pending is not None:
            raise InvalidRateCheckpoint(f"{pending!r} has not taken effect yet")

        checkpoint = RateCheckpoint(rate=checked, effective_at=effective_at)
        self._checkpoints.append(checkpoint)
        self._times.append(effective_at)
        return checkpoint

    def __repr__(self) -> str:
        return (f"RateSchedule(genesis={self.genesis.rate}, "
                f"{len(self._checkpoints)} checkpoints, period={self.period_length})")
