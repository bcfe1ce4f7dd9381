"""Thread-safe fixed-window rate limiter.

The limiter hands out at most ``capacity`` permits per window. A daemon
thread owned by the limiter performs a hard reset every ``window_seconds``,
on a fixed-rate schedule anchored at the moment the timer starts and
independent of load. The reset forgets permits that are still held, so a
caller holding permits across a boundary can see up to twice the nominal
rate around that boundary. This is intentional fixed-window behaviour,
not a token bucket or sliding log.

Usage:
    limiter = FixedWindowRateLimiter(capacity=10, window_seconds=1.0)

    with limiter.permit():
        # At most 10 of these blocks start per window
        pass

    limiter.close()
"""

import threading
import time
from contextlib import contextmanager
from typing import Iterator, Optional

from crptapi.core.logging import get_logger
from crptapi.exceptions import PermitAcquisitionTimeoutError, RateLimiterClosedError
from crptapi.ratelimit.models import (
    LimiterState,
    RateLimiterStats,
    TimeUnit,
    validate_limits,
)

logger = get_logger(__name__)


class FixedWindowRateLimiter:
    """Counting-semaphore style gate that refills on a fixed schedule.

    All mutations of the permit counter (acquire, release, reset) happen
    under one condition variable, so ``available`` stays within
    ``[0, capacity]`` under any amount of concurrency. Ordering among
    blocked acquirers is whatever the condition variable gives; no FIFO
    guarantee is made.
    """

    def __init__(
        self,
        capacity: int,
        window_seconds: float,
        *,
        autostart: bool = True,
    ):
        """Initialize the limiter.

        Args:
            capacity: Permits granted per window (N), at least 1
            window_seconds: Window duration (T) in seconds, positive
            autostart: Start the reset timer immediately

        Raises:
            InvalidConfigurationError: If capacity or window is invalid
        """
        self.window_seconds = validate_limits(capacity, window_seconds)
        self.capacity = int(capacity)

        self._cond = threading.Condition(threading.Lock())
        self._available = self.capacity
        self._window_anchor = time.monotonic()
        self._closed = False
        self._waiting = 0

        self._total_granted = 0
        self._total_released = 0
        self._total_timeouts = 0
        self._windows_elapsed = 0

        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

        if autostart:
            self.start()

    @classmethod
    def per(cls, time_unit: TimeUnit, request_limit: int, **kwargs) -> "FixedWindowRateLimiter":
        """Build a limiter allowing ``request_limit`` requests per one ``time_unit``."""
        return cls(request_limit, time_unit.seconds, **kwargs)

    # Lifecycle

    def start(self) -> None:
        """Start the background reset timer.

        The schedule is anchored at this call. Calling start() on a running
        limiter is a no-op.

        Raises:
            RateLimiterClosedError: If the limiter has been closed
        """
        with self._cond:
            if self._closed:
                raise RateLimiterClosedError()
            if self._thread is not None:
                return
            self._window_anchor = time.monotonic()
            self._thread = threading.Thread(
                target=self._reset_loop,
                args=(self._window_anchor,),
                name=f"rate-limiter-reset-{id(self):x}",
                daemon=True,
            )
            self._thread.start()
        logger.debug(
            "Rate limiter started",
            extra={"capacity": self.capacity, "window_seconds": self.window_seconds},
        )

    def close(self) -> None:
        """Stop the reset timer and wake every blocked acquirer.

        Blocked and future acquire() calls raise RateLimiterClosedError.
        Safe to call more than once.
        """
        with self._cond:
            if self._closed:
                return
            self._closed = True
            self._cond.notify_all()
        self._stop_event.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=5.0)
        logger.debug("Rate limiter closed")

    @property
    def closed(self) -> bool:
        return self._closed

    def __enter__(self) -> "FixedWindowRateLimiter":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _reset_loop(self, anchor: float) -> None:
        """Reset at anchor + k * window for k = 1, 2, ...

        A late tick does not shift the schedule; missed ticks fire back to
        back, which is harmless since reset() is idempotent within a window.
        """
        next_tick = anchor + self.window_seconds
        while not self._stop_event.wait(max(0.0, next_tick - time.monotonic())):
            self.reset()
            next_tick += self.window_seconds

    # Permits

    def acquire(self, timeout: Optional[float] = None) -> None:
        """Block until a permit is available and take it.

        Args:
            timeout: Maximum seconds to wait; None waits indefinitely

        Raises:
            PermitAcquisitionTimeoutError: If the timeout elapses first
            RateLimiterClosedError: If the limiter is or becomes closed
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        with self._cond:
            self._waiting += 1
            try:
                while True:
                    if self._closed:
                        raise RateLimiterClosedError()
                    if self._available > 0:
                        break
                    if deadline is None:
                        self._cond.wait()
                        continue
                    remaining = deadline - time.monotonic()
                    if remaining <= 0:
                        self._total_timeouts += 1
                        logger.debug(
                            "Permit acquisition timed out",
                            extra={"available_permits": self._available, "capacity": self.capacity},
                        )
                        raise PermitAcquisitionTimeoutError(timeout)
                    self._cond.wait(remaining)
            finally:
                self._waiting -= 1
            self._available -= 1
            self._total_granted += 1

    def try_acquire(self) -> bool:
        """Take a permit if one is available right now.

        Returns:
            True if a permit was taken, False if the window is exhausted

        Raises:
            RateLimiterClosedError: If the limiter is closed
        """
        with self._cond:
            if self._closed:
                raise RateLimiterClosedError()
            if self._available <= 0:
                return False
            self._available -= 1
            self._total_granted += 1
            return True

    def release(self) -> None:
        """Return one permit to the pool, never exceeding capacity.

        Safe to call without a matching acquire(); surplus releases are
        dropped rather than over-crediting the window.
        """
        with self._cond:
            self._total_released += 1
            if self._available < self.capacity:
                self._available += 1
                self._cond.notify()

    @contextmanager
    def permit(self, timeout: Optional[float] = None) -> Iterator[None]:
        """Hold one permit for the duration of the block.

        The permit is released exactly once on every exit path. If acquire()
        fails nothing is released.
        """
        self.acquire(timeout)
        try:
            yield
        finally:
            self.release()

    def reset(self) -> None:
        """Start a new window with the full capacity available.

        Permits still held by callers are forgotten.
        """
        with self._cond:
            if self._closed:
                return
            self._available = self.capacity
            self._window_anchor = time.monotonic()
            self._windows_elapsed += 1
            waiting = self._waiting
            self._cond.notify_all()
        if waiting:
            logger.debug(
                "Rate limit window reset, waking %d waiter(s)",
                waiting,
                extra={"available_permits": self.capacity, "capacity": self.capacity},
            )

    # Introspection

    @property
    def available(self) -> int:
        with self._cond:
            return self._available

    @property
    def window_anchor(self) -> float:
        """time.monotonic() value of the last reset."""
        with self._cond:
            return self._window_anchor

    def stats(self) -> RateLimiterStats:
        """Get a consistent snapshot of the limiter counters."""
        with self._cond:
            if self._closed:
                state = LimiterState.CLOSED
            elif self._available > 0:
                state = LimiterState.OPEN
            else:
                state = LimiterState.EXHAUSTED
            return RateLimiterStats(
                capacity=self.capacity,
                window_seconds=self.window_seconds,
                available=self._available,
                waiting=self._waiting,
                total_granted=self._total_granted,
                total_released=self._total_released,
                total_timeouts=self._total_timeouts,
                windows_elapsed=self._windows_elapsed,
                state=state,
            )

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(capacity={self.capacity}, "
            f"window_seconds={self.window_seconds}, available={self._available})"
        )
