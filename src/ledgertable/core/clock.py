# src/ledgertable/core/clock.py
"""Clock abstraction for signing and attachment timestamps.

Signed items and storage bundles are stamped with wall-clock milliseconds
since the epoch. Freshness validation compares the two, so tests need to
control both sides.

Production code uses SystemClock (the default).
Tests inject MockClock to control time advancement.
"""

from __future__ import annotations

import time
from typing import Protocol


class Clock(Protocol):
    """Abstract wall clock."""

    def now_ms(self) -> int:
        """Return milliseconds since the Unix epoch."""
        ...


class SystemClock:
    """Production clock using time.time_ns()."""

    def now_ms(self) -> int:
        return time.time_ns() // 1_000_000


class MockClock:
    """Controllable clock for deterministic testing.

    Example:
        clock = MockClock(start=1_700_000_000_000)
        storage = MemoryStorageClient(clock=clock)

        clock.advance(60_000)  # attachment one TTL after signing
    """

    def __init__(self, start: int = 1_700_000_000_000) -> None:
        self._current = start

    def now_ms(self) -> int:
        return self._current

    def advance(self, ms: int) -> None:
        """Advance mock time.

        Raises:
            ValueError: If ms is negative.
        """
        if ms < 0:
            raise ValueError(f"Cannot advance time by negative amount: {ms}")
        self._current += ms

    def set(self, value: int) -> None:
        """Set mock time to an absolute value, including earlier times."""
        self._current = value


# Default clock for production use
DEFAULT_CLOCK: Clock = SystemClock()
