"""In-memory per-client sliding-window rate limiter for the PDF endpoints."""

import math
import threading
import time
from collections import defaultdict, deque
from collections.abc import Callable

from docrender.utils.config import RateLimitConfig


class SlidingWindowRateLimiter:
    """Allows at most ``max_requests`` per key within ``window_seconds``.

    A ``max_requests`` of zero disables limiting.

    Args:
        max_requests: Requests allowed per key per window.
        window_seconds: Length of the rolling window.
        clock: Monotonic time source, injectable for tests.
    """

    def __init__(
        self,
        max_requests: int,
        window_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.enabled = max_requests > 0
        self._clock = clock
        self._lock = threading.Lock()
        self._hits: dict[str, deque[float]] = defaultdict(deque)
        self._last_sweep = clock()

    @classmethod
    def from_config(cls, config: RateLimitConfig) -> "SlidingWindowRateLimiter":
        return cls(config.max_requests, config.window_seconds)

    def is_allowed(self, key: str) -> bool:
        """Record a request for ``key`` and report whether it is within the limit."""
        if not self.enabled:
            return True

        now = self._clock()
        cutoff = now - self.window_seconds
        with self._lock:
            if now - self._last_sweep >= self.window_seconds:
                self._sweep(cutoff)
                self._last_sweep = now
            hits = self._hits[key]
            while hits and hits[0] <= cutoff:
                hits.popleft()
            if len(hits) >= self.max_requests:
                return False
            hits.append(now)
            return True

    def retry_after(self, key: str) -> int:
        """Seconds until ``key`` may send another request."""
        with self._lock:
            hits = self._hits.get(key)
            if not hits:
                return 0
            remaining = hits[0] + self.window_seconds - self._clock()
        return max(1, math.ceil(remaining))

    def _sweep(self, cutoff: float) -> None:
        stale = [key for key, hits in self._hits.items() if not hits or hits[-1] <= cutoff]
        for key in stale:
            del self._hits[key]

    def __len__(self) -> int:
        return len(self._hits)
