"""Clock abstraction for trace timing.

Trace frames carry wall-clock start/end stamps and a monotonic duration.
Production code uses SystemClock (the default); tests inject MockClock so
frame timings are exact.
"""

from __future__ import annotations

import time
from datetime import UTC, datetime, timedelta
from typing import Protocol


class Clock(Protocol):
    """Time source for compute passes.

    Implementations:
    - SystemClock: time.monotonic() and datetime.now(UTC) (production)
    - MockClock: Controllable times (testing)
    """

    def monotonic(self) -> float:
        """Return monotonic time in seconds, for elapsed-time measurement."""
        ...

    def now(self) -> datetime:
        """Return the current timezone-aware wall-clock time."""
        ...


class SystemClock:
    """Production clock.

    Durations use the monotonic clock so NTP adjustments during a pass
    never produce negative or inflated timings.
    """

    def monotonic(self) -> float:
        return time.monotonic()

    def now(self) -> datetime:
        return datetime.now(UTC)


class MockClock:
    """Controllable clock for deterministic testing.

    Example:
        clock = MockClock(start=0.0)
        engine = TaxGraphEngine(clock=clock)
        clock.advance(0.25)
        assert clock.now() == MockClock.EPOCH + timedelta(seconds=0.25)
    """

    EPOCH = datetime(2025, 1, 1, tzinfo=UTC)

    def __init__(self, start: float = 0.0, *, tick: float = 0.0) -> None:
        """Initialize mock clock.

        Args:
            start: Initial monotonic time value.
            tick: Seconds added automatically after every monotonic() read,
                so code measuring a duration sees time pass without sleeping.
        """
        if tick < 0:
            raise ValueError(f"tick must be non-negative, got {tick}")
        self._current = start
        self._tick = tick

    def monotonic(self) -> float:
        value = self._current
        self._current += self._tick
        return value

    def now(self) -> datetime:
        return self.EPOCH + timedelta(seconds=self._current)

    def advance(self, seconds: float) -> None:
        """Advance mock time.

        Raises:
            ValueError: If seconds is negative.
        """
        if seconds < 0:
            raise ValueError(f"Cannot advance time by negative amount: {seconds}")
        self._current += seconds


DEFAULT_CLOCK: Clock = SystemClock()
