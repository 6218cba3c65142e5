"""Per-model request rate limiting for provider calls.

Responsibilities:
- Keep one continuously refilling token bucket per model identifier.
- Serve concurrent waiters on the same model in strict FIFO order.
- Keep pacing policy independent from provider adapters.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from time import monotonic
from typing import Awaitable, Callable


DEFAULT_REQUESTS_PER_MINUTE = 100
_REFILL_INTERVAL_SECONDS = 60.0


@dataclass(slots=True)
class TokenBucket:
    """Token bucket holding `capacity` requests, refilled evenly over one minute.

    The bucket starts full. Waiters queue on an `asyncio.Lock`, whose waiters
    are woken in acquisition order, so tokens are granted first-come first-served.
    """

    capacity: int
    refill_interval_seconds: float = _REFILL_INTERVAL_SECONDS
    clock: Callable[[], float] = monotonic
    sleeper: Callable[[float], Awaitable[None]] = asyncio.sleep
    tokens: float = field(init=False)
    _updated_at: float = field(init=False)
    _lock: asyncio.Lock = field(init=False, default_factory=asyncio.Lock)

    def __post_init__(self) -> None:
        """Validate capacity and fill the bucket."""

        if self.capacity <= 0:
            raise ValueError("Rate limiter capacity must be a positive integer.")
        self.tokens = float(self.capacity)
        self._updated_at = self.clock()

    @property
    def refill_rate(self) -> float:
        """Return tokens regained per second."""

        return self.capacity / self.refill_interval_seconds

    def _refill(self) -> None:
        """Add tokens accrued since the last update, capped at capacity."""

        now = self.clock()
        elapsed = max(0.0, now - self._updated_at)
        self.tokens = min(float(self.capacity), self.tokens + elapsed * self.refill_rate)
        self._updated_at = now

    async def acquire(self) -> float:
        """Wait for one token, consume it, and return the seconds spent waiting."""

        async with self._lock:
            waited = 0.0
            self._refill()
            while self.tokens < 1.0:
                wait_seconds = (1.0 - self.tokens) / self.refill_rate
                await self.sleeper(wait_seconds)
                waited += wait_seconds
                self._refill()
            self.tokens -= 1.0
            return waited


@dataclass(slots=True)
class RateLimiterRegistry:
    """Process-wide map of model identifiers to their token buckets."""

    default_requests_per_minute: int = DEFAULT_REQUESTS_PER_MINUTE
    clock: Callable[[], float] = monotonic
    sleeper: Callable[[float], Awaitable[None]] = asyncio.sleep
    _buckets: dict[str, TokenBucket] = field(default_factory=dict)

    def configure(self, model_id: str, requests_per_minute: int | None = None) -> TokenBucket:
        """Create the model bucket on first use; later calls keep the existing bucket."""

        existing = self._buckets.get(model_id)
        if existing is not None:
            return existing
        capacity = requests_per_minute or self.default_requests_per_minute
        bucket = TokenBucket(capacity=capacity, clock=self.clock, sleeper=self.sleeper)
        self._buckets[model_id] = bucket
        return bucket

    def bucket(self, model_id: str) -> TokenBucket | None:
        """Return the bucket for a model, if one exists."""

        return self._buckets.get(model_id)

    async def acquire(self, model_id: str) -> float:
        """Wait for and consume one request token for `model_id`."""

        return await self.configure(model_id).acquire()
