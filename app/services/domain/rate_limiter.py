"""
Domain service: Per-client write rate limiting.

Counting is delegated to the ``limits`` package (the engine behind slowapi):
a fixed window per client that opens on the client's first request.
"""
import logging
import math
import time
from dataclasses import dataclass
from typing import Callable, Optional

from limits import RateLimitItemPerSecond
from limits.storage import MemoryStorage
from limits.strategies import FixedWindowRateLimiter

from app.config import settings

logger = logging.getLogger(__name__)


@dataclass
class RateLimitDecision:
    """Outcome of a rate limit check."""
    allowed: bool
    retry_after: int = 0
    """Seconds until the client's window ends (only set when rejected)"""


class SlidingWindowRateLimiter:
    """
    Counts requests per client key in fixed-length windows that start at the
    client's first request.

    State is process-local and does not survive restarts. Elapsed windows
    are dropped by the storage.
    """

    def __init__(
        self,
        max_requests: Optional[int] = None,
        window_seconds: Optional[int] = None,
        storage: Optional[MemoryStorage] = None,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize the limiter.

        Args:
            max_requests: Requests allowed per window (defaults to settings)
            window_seconds: Window length (defaults to settings)
            storage: limits storage backend (in-memory by default)
            clock: Wall clock matching the storage's, used for retry hints
        """
        self.max_requests = max_requests or settings.rate_limit_requests
        self.window_seconds = window_seconds or settings.rate_limit_window_seconds
        self.storage = storage or MemoryStorage()
        self._clock = clock
        self._item = RateLimitItemPerSecond(self.max_requests, self.window_seconds, namespace="writes")
        self._strategy = FixedWindowRateLimiter(self.storage)

    def hit(self, key: str) -> RateLimitDecision:
        """
        Record a request for ``key`` and decide whether it may proceed.

        Args:
            key: Client identifier, usually the remote address

        Returns:
            RateLimitDecision; rejected decisions carry a retry-after hint
        """
        if self._strategy.hit(self._item, key):
            return RateLimitDecision(allowed=True)

        stats = self._strategy.get_window_stats(self._item, key)
        remaining = stats.reset_time - self._clock()
        retry_after = min(self.window_seconds, max(1, math.ceil(remaining)))
        logger.warning(f"Rate limit exceeded for {key}, retry after {retry_after}s")
        return RateLimitDecision(allowed=False, retry_after=retry_after)

    def reset(self) -> None:
        """Forget every client."""
        self.storage.reset()
