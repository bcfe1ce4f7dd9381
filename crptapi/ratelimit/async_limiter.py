"""asyncio flavour of the fixed-window rate limiter.

Same contract as FixedWindowRateLimiter for code running on an event loop:
acquire() is a suspension point that resumes when a reset refills the
window, and cancelling the awaiting task leaves the permit count untouched.
The reset loop is an asyncio.Task owned by the limiter, started with
start() or ``async with`` and stopped with aclose().

Usage:
    async with AsyncFixedWindowRateLimiter(capacity=10, window_seconds=1.0) as limiter:
        async with limiter.permit():
            ...
"""

import asyncio
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from crptapi.core.logging import get_logger
from crptapi.exceptions import PermitAcquisitionTimeoutError, RateLimiterClosedError
from crptapi.ratelimit.models import (
    LimiterState,
    RateLimiterStats,
    TimeUnit,
    validate_limits,
)

logger = get_logger(__name__)


class AsyncFixedWindowRateLimiter:
    """Fixed-window permit gate for coroutines sharing one event loop."""

    def __init__(self, capacity: int, window_seconds: float):
        """Initialize the limiter.

        The reset task is not running until start() is awaited.

        Args:
            capacity: Permits granted per window (N), at least 1
            window_seconds: Window duration (T) in seconds, positive

        Raises:
            InvalidConfigurationError: If capacity or window is invalid
        """
        self.window_seconds = validate_limits(capacity, window_seconds)
        self.capacity = int(capacity)

        self._cond = asyncio.Condition()
        self._available = self.capacity
        self._window_anchor = time.monotonic()
        self._closed = False
        self._waiting = 0

        self._total_granted = 0
        self._total_released = 0
        self._total_timeouts = 0
        self._windows_elapsed = 0

        self._task: Optional[asyncio.Task] = None

    @classmethod
    def per(cls, time_unit: TimeUnit, request_limit: int) -> "AsyncFixedWindowRateLimiter":
        """Build a limiter allowing ``request_limit`` requests per one ``time_unit``."""
        return cls(request_limit, time_unit.seconds)

    # Lifecycle

    async def start(self) -> None:
        """Start the reset task on the running loop; no-op if already running.

        Raises:
            RateLimiterClosedError: If the limiter has been closed
        """
        if self._closed:
            raise RateLimiterClosedError()
        if self._task is not None:
            return
        self._window_anchor = time.monotonic()
        self._task = asyncio.create_task(self._reset_loop(self._window_anchor))
        logger.debug(
            "Async rate limiter started",
            extra={"capacity": self.capacity, "window_seconds": self.window_seconds},
        )

    async def aclose(self) -> None:
        """Cancel the reset task and wake every waiting acquirer."""
        if self._closed:
            return
        async with self._cond:
            self._closed = True
            self._cond.notify_all()
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.debug("Async rate limiter closed")

    @property
    def closed(self) -> bool:
        return self._closed

    async def __aenter__(self) -> "AsyncFixedWindowRateLimiter":
        await self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def _reset_loop(self, anchor: float) -> None:
        next_tick = anchor + self.window_seconds
        while True:
            await asyncio.sleep(max(0.0, next_tick - time.monotonic()))
            await self.reset()
            next_tick += self.window_seconds

    # Permits

    async def acquire(self, timeout: Optional[float] = None) -> None:
        """Wait until a permit is available and take it.

        Args:
            timeout: Maximum seconds to wait; None waits indefinitely

        Raises:
            PermitAcquisitionTimeoutError: If the timeout elapses first
            RateLimiterClosedError: If the limiter is or becomes closed
            asyncio.CancelledError: If the awaiting task is cancelled
        """
        if timeout is None:
            await self._acquire()
            return
        try:
            await asyncio.wait_for(self._acquire(), timeout=timeout)
        except asyncio.TimeoutError:
            self._total_timeouts += 1
            logger.debug(
                "Permit acquisition timed out",
                extra={"available_permits": self._available, "capacity": self.capacity},
            )
            raise PermitAcquisitionTimeoutError(timeout) from None

    async def _acquire(self) -> None:
        async with self._cond:
            self._waiting += 1
            try:
                while True:
                    if self._closed:
                        raise RateLimiterClosedError()
                    if self._available > 0:
                        break
                    try:
                        await self._cond.wait()
                    except asyncio.CancelledError:
                        # Pass on a wakeup this task can no longer use
                        if self._available > 0:
                            self._cond.notify()
                        raise
            finally:
                self._waiting -= 1
            self._available -= 1
            self._total_granted += 1

    async def try_acquire(self) -> bool:
        """Take a permit if one is available right now."""
        async with self._cond:
            if self._closed:
                raise RateLimiterClosedError()
            if self._available <= 0:
                return False
            self._available -= 1
            self._total_granted += 1
            return True

    async def release(self) -> None:
        """Return one permit to the pool, never exceeding capacity."""
        async with self._cond:
            self._total_released += 1
            if self._available < self.capacity:
                self._available += 1
                self._cond.notify()

    @asynccontextmanager
    async def permit(self, timeout: Optional[float] = None) -> AsyncIterator[None]:
        """Hold one permit for the duration of the block."""
        await self.acquire(timeout)
        try:
            yield
        finally:
            await self.release()

    async def reset(self) -> None:
        """Start a new window with the full capacity available."""
        async with self._cond:
            if self._closed:
                return
            self._available = self.capacity
            self._window_anchor = time.monotonic()
            self._windows_elapsed += 1
            self._cond.notify_all()

    # Introspection

    @property
    def available(self) -> int:
        return self._available

    @property
    def window_anchor(self) -> float:
        return self._window_anchor

    def stats(self) -> RateLimiterStats:
        """Get a snapshot of the limiter counters.

        No lock is needed: nothing else runs between awaits on the loop.
        """
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
