"""
Clock abstraction for phase checks.

All phase comparisons go through one injected clock so that expiration is
deterministic in tests and identical for every caller sharing an Auction.
"""

import threading
import time
from typing import Protocol, runtime_checkable


@runtime_checkable
class Clock(Protocol):
    """Current-time provider, integer unix seconds."""

    def now(self) -> int:
        ...


class SystemClock:
    """Wall clock truncated to whole seconds."""

    def now(self) -> int:
        return int(time.time())

    def __repr__(self) -> str:
        return "SystemClock()"


class ManualClock:
    """
    Clock that only moves when told to.

    Used by tests, the demo and replays of recorded bid streams.
    """

    def __init__(self, start: int = 0):
        if start < 0:
            raise ValueError(f"start must be >= 0, got {start}")
        self._now = start
        self._lock = threading.Lock()

    def now(self) -> int:
        with self._lock:
            return self._now

    def advance(self, seconds: int) -> int:
        """Move forward by `seconds` and return the new time."""
        if seconds < 0:
            raise ValueError("ManualClock cannot go backwards")
        with self._lock:
            self._now += seconds
            return self._now

    def set(self, timestamp: int) -> None:
        with self._lock:
            if timestamp < self._now:
                raise ValueError(f"ManualClock cannot go backwards: {timestamp} < {self._now}")
            self._now = timestamp

    def __repr__(self) -> str:
        return f"ManualClock(now={self._now})"


__all__ = ["Clock", "SystemClock", "ManualClock"]
