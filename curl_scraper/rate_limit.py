"""Request pacing.

Spaces request starts at least ``min_interval`` seconds apart across every
caller sharing the limiter, including concurrent batch workers.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional

from .config import RateLimitSettings

logger = logging.getLogger(__name__)


@dataclass
class RateLimitStatus:
    """Counters describing how much pacing has been applied."""
    total_requests: int = 0
    delayed_requests: int = 0
    total_delay: float = 0.0
    last_request_time: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_requests": self.total_requests,
            "delayed_requests": self.delayed_requests,
            "total_delay": self.total_delay,
            "avg_delay": self.total_delay / max(1, self.delayed_requests),
            "last_request_time": self.last_request_time,
        }


class RequestRateLimiter:
    """Minimum-interval limiter driven by an injectable clock and sleep."""

    def __init__(self, min_interval: float = 0.0,
                 clock: Callable[[], float] = time.time,
                 sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep):
        if min_interval < 0:
            raise ValueError("min_interval must be non-negative")
        self.min_interval = min_interval
        self._clock = clock
        self._sleep = sleep
        self._last_start: Optional[float] = None
        self._lock: Optional[asyncio.Lock] = None
        self.status = RateLimitStatus()

    @classmethod
    def from_settings(cls, settings: RateLimitSettings, **kwargs: Any) -> "RequestRateLimiter":
        return cls(settings.min_interval, **kwargs)

    @property
    def enabled(self) -> bool:
        return self.min_interval > 0

    async def acquire(self) -> float:
        """Wait until the next request may start; returns the delay applied."""
        self.status.total_requests += 1
        if not self.enabled:
            return 0.0

        # Created lazily so the limiter binds to the loop that first uses it
        if self._lock is None:
            self._lock = asyncio.Lock()

        async with self._lock:
            delay = 0.0
            now = self._clock()
            if self._last_start is not None:
                delay = self._last_start + self.min_interval - now
            if delay > 0:
                logger.debug("Rate limit: waiting %.3fs before next request", delay)
                self.status.delayed_requests += 1
                self.status.total_delay += delay
                await self._sleep(delay)
            else:
                delay = 0.0
            self._last_start = self._clock()
            self.status.last_request_time = self._last_start
            return delay

    def reset(self) -> None:
        self._last_start = None
        self.status = RateLimitStatus()


__all__ = ["RequestRateLimiter", "RateLimitStatus"]
