"""Time sources for the rate limiter.

Every component reads time through a Clock so tests can drive it
deterministically with ManualClock.
"""

import threading
import time
from abc import ABC, abstractmethod


class Clock(ABC):
    """Abstract time source returning seconds since the epoch."""

    @abstractmethod
    def now(self) -> float:
        """Return the current timestamp in seconds."""
        pass


class SystemClock(Clock):
    """Wall-clock time from time.time()."""

    def now(self) -> float:
        return time.time()


class ManualClock(Clock):
    """Clock that only moves when told to.

    Example:
        >>> clock = ManualClock(100.0)
        >>> clock.advance(5)
        105.0
    """

    def __init__(self, start: float = 0.0) -> None:
        self._now = float(start)
        self._lock = threading.Lock()

    def now(self) -> float:
        with self._lock:
            return self._now

    def advance(self, seconds: float) -> float:
        """Move the clock forward and return the new time."""
        with self._lock:
            self._now += seconds
            return self._now

    def set(self, timestamp: float) -> None:
        with self._lock:
            self._now = float(timestamp)
