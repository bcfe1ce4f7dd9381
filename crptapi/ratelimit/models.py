"""Data models for the fixed-window rate limiters."""

import math
import numbers
from dataclasses import dataclass
from enum import Enum

from crptapi.exceptions import InvalidConfigurationError


class TimeUnit(Enum):
    """Unit for expressing a window as "N requests per one unit"."""
    NANOSECONDS = 1e-9
    MICROSECONDS = 1e-6
    MILLISECONDS = 1e-3
    SECONDS = 1.0
    MINUTES = 60.0
    HOURS = 3600.0
    DAYS = 86400.0

    @property
    def seconds(self) -> float:
        return self.value


class LimiterState(Enum):
    """Logical state of the current window."""
    OPEN = "open"
    EXHAUSTED = "exhausted"
    CLOSED = "closed"


@dataclass(frozen=True)
class RateLimiterStats:
    """Point-in-time snapshot of a limiter."""
    capacity: int
    window_seconds: float
    available: int
    waiting: int
    total_granted: int
    total_released: int
    total_timeouts: int
    windows_elapsed: int
    state: LimiterState

    @property
    def in_flight(self) -> int:
        return self.capacity - self.available

    def to_dict(self) -> dict:
        return {
            "capacity": self.capacity,
            "window_seconds": self.window_seconds,
            "available": self.available,
            "in_flight": self.in_flight,
            "waiting": self.waiting,
            "total_granted": self.total_granted,
            "total_released": self.total_released,
            "total_timeouts": self.total_timeouts,
            "windows_elapsed": self.windows_elapsed,
            "state": self.state.value,
        }


def validate_limits(capacity: int, window_seconds: float) -> float:
    """Check limiter parameters, returning the window as a float.

    Raises:
        InvalidConfigurationError: If capacity is not an integer >= 1 or the
            window is not a positive number.
    """
    if isinstance(capacity, bool) or not isinstance(capacity, numbers.Integral):
        raise InvalidConfigurationError(f"capacity must be an integer, got {capacity!r}")
    if capacity < 1:
        raise InvalidConfigurationError(f"capacity must be at least 1, got {capacity}")
    if isinstance(window_seconds, bool) or not isinstance(window_seconds, numbers.Real):
        raise InvalidConfigurationError(f"window must be a number of seconds, got {window_seconds!r}")
    if not window_seconds > 0 or not math.isfinite(window_seconds):
        raise InvalidConfigurationError(f"window must be a positive finite number, got {window_seconds}")
    return float(window_seconds)
