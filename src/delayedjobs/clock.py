"""Clocks supplying the current time to the lifecycle engines.

All time-window checks are computed on demand against the clock; there
is no timer or polling loop. Times are timezone-aware UTC datetimes.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional, Protocol, runtime_checkable

from delayedjobs.errors import ClockError


@runtime_checkable
class Clock(Protocol):
    """Source of the current time."""

    def now(self) -> datetime:
        ...


class SystemClock:
    """Wall clock in UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class ManualClock:
    """A clock that only moves when told to.

    Usage:
        clock = ManualClock(datetime(2026, 1, 1, tzinfo=timezone.utc))
        clock.advance(3600)
    """

    def __init__(self, start: Optional[datetime] = None) -> None:
        self._now = start or datetime.now(timezone.utc)

    def now(self) -> datetime:
        return self._now

    def advance(self, seconds: int) -> datetime:
        """Move the clock forward by whole seconds."""
        if seconds < 0:
            raise ClockError(f"Cannot advance clock by negative seconds: {seconds}")
        self._now = self._now + timedelta(seconds=seconds)
        return self._now

    def set(self, when: datetime) -> datetime:
        """Jump to an absolute time (never earlier than the current one)."""
        if when < self._now:
            raise ClockError(
                f"Clock cannot move backwards: {when.isoformat()} < {self._now.isoformat()}"
            )
        self._now = when
        return self._now


class MonotonicGuard:
    """Wraps a clock and rejects readings earlier than the last one seen."""

    def __init__(self, clock: Clock) -> None:
        self._clock = clock
        self._last: Optional[datetime] = None

    def now(self) -> datetime:
        current = self._clock.now()
        if self._last is not None and current < self._last:
            raise ClockError(
                f"Clock moved backwards: {current.isoformat()} < {self._last.isoformat()}"
            )
        self._last = current
        return current
