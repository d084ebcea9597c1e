"""Tests for clocks."""

from datetime import datetime, timedelta, timezone

import pytest

from delayedjobs.clock import Clock, ManualClock, MonotonicGuard, SystemClock
from delayedjobs.errors import ClockError


def _now() -> datetime:
    return datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


class TestManualClock:
    def test_advance(self) -> None:
        clock = ManualClock(_now())
        assert clock.advance(3600) == _now() + timedelta(hours=1)

    def test_negative_advance_rejected(self) -> None:
        with pytest.raises(ClockError):
            ManualClock(_now()).advance(-1)

    def test_set_backwards_rejected(self) -> None:
        clock = ManualClock(_now())
        clock.set(_now() + timedelta(seconds=10))
        with pytest.raises(ClockError):
            clock.set(_now())


class _Rewinding:
    def __init__(self) -> None:
        self.readings = [_now(), _now() - timedelta(seconds=1)]

    def now(self) -> datetime:
        return self.readings.pop(0)


class TestMonotonicGuard:
    def test_backwards_reading_rejected(self) -> None:
        guard = MonotonicGuard(_Rewinding())
        guard.now()
        with pytest.raises(ClockError, match="backwards"):
            guard.now()

    def test_system_clock_is_utc(self) -> None:
        clock = SystemClock()
        assert isinstance(clock, Clock)
        assert MonotonicGuard(clock).now().tzinfo is not None
