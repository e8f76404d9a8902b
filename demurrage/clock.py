"""
clock.py - Time sources for the ledger

Classes:
- SystemClock: Wall-clock time (UTC, naive), never moving backwards
- ManualClock: Explicitly advanced clock for tests and simulations

The ledger only ever calls now(). Moving time is a capability of the clock
object held by whoever constructed it, not of the ledger.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

from .core import EPOCH


class SystemClock:
    """
    Wall-clock time source.

    Returns naive UTC datetimes. If the host clock steps backwards, the last
    returned value is repeated instead.
    """

    def __init__(self):
        self._last: Optional[datetime] = None

    def now(self) -> datetime:
        current = datetime.now(timezone.utc).replace(tzinfo=None)
        if self._last is not None and current < self._last:
            return self._last
        self._last = current
        return current

    def __repr__(self):
        return "SystemClock()"


class ManualClock:
    """
    Time source whose value is set explicitly.

    Example:
        clock = ManualClock(datetime(2025, 1, 1))
        clock.advance(PERIOD_LENGTH)
        clock.now()   # datetime(2025, 2, 1)
    """

    def __init__(self, initial_time: Optional[datetime] = None):
        self._current_time: datetime = initial_time or EPOCH

    def now(self) -> datetime:
        return self._current_time

    def advance_to(self, new_time: datetime) -> None:
        """
        Move the clock forward to a new time.

        Raises:
            ValueError: If new_time is before the current time
        """
        if new_time < self._current_time:
            raise ValueError(
                f"Cannot move time backwards: {new_time} < {self._current_time}"
            )
        self._current_time = new_time

    def advance(self, delta: timedelta) -> None:
        """Move the clock forward by a duration."""
        self.advance_to(self._current_time + delta)

    def __repr__(self):
        return f"ManualClock({self._current_time.isoformat()})"
