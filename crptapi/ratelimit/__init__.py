"""Fixed-window rate limiting.

This package provides a thread-safe limiter for worker pools and an asyncio
limiter for coroutines. Both grant at most N permits per window and block
callers, rather than failing them, until the next reset.
"""

from crptapi.ratelimit.async_limiter import AsyncFixedWindowRateLimiter
from crptapi.ratelimit.limiter import FixedWindowRateLimiter
from crptapi.ratelimit.models import LimiterState, RateLimiterStats, TimeUnit

__all__ = [
    "FixedWindowRateLimiter",
    "AsyncFixedWindowRateLimiter",
    "LimiterState",
    "RateLimiterStats",
    "TimeUnit",
]
