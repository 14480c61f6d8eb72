# ============================================================================
# MODULE CONTEXT - RATE LIMITER
# ============================================================================
# STATUS: Core Infrastructure - Request throttling
# PURPOSE: Per-client sliding-window request limits for HTTP route groups
# EXPORTS: RateLimiter, SlidingWindowRateLimiter, RateLimitDecision
# DEPENDENCIES: threading, collections, time
# SCOPE: Injected into triggers; one limiter instance per route group
# PATTERNS: Sliding window log, injected clock
# ============================================================================

"""
Sliding-window rate limiting.

Each limiter keeps the request timestamps of every client inside the
current window. Limiters are constructed per route group and injected
into the triggers; nothing here is module-global.
"""

import math
import threading
import time
from collections import deque
from dataclasses import dataclass
from typing import Callable, Deque, Dict, Optional, Protocol


@dataclass
class RateLimitDecision:
    allowed: bool
    remaining: int
    retry_after_seconds: int = 0


class RateLimiter(Protocol):
    def check(self, key: str) -> RateLimitDecision:
        ...


class SlidingWindowRateLimiter:
    """
    Allow at most max_requests per key within any window_seconds span.

    Args:
        max_requests: Requests allowed per window
        window_seconds: Window length
        clock: Monotonic time source, replaceable in tests
    """

    def __init__(
        self,
        max_requests: int,
        window_seconds: float,
        clock: Optional[Callable[[], float]] = None
    ):
        if max_requests < 1:
            raise ValueError("max_requests must be at least 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")

        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock or time.monotonic
        self._hits: Dict[str, Deque[float]] = {}
        self._lock = threading.Lock()
        self._last_sweep = self._clock()

    def check(self, key: str) -> RateLimitDecision:
        """Record a request for key and decide whether it is allowed."""
        now = self._clock()
        cutoff = now - self.window_seconds

        with self._lock:
            if now - self._last_sweep >= self.window_seconds:
                self._sweep(cutoff)
                self._last_sweep = now

            hits = self._hits.setdefault(key, deque())
            while hits and hits[0] <= cutoff:
                hits.popleft()

            if len(hits) >= self.max_requests:
                retry_after = math.ceil(hits[0] + self.window_seconds - now)
                return RateLimitDecision(False, 0, max(retry_after, 1))

            hits.append(now)
            return RateLimitDecision(True, self.max_requests - len(hits))

    def _sweep(self, cutoff: float) -> None:
        """Forget keys whose newest request has left the window."""
        idle = [key for key, hits in self._hits.items() if not hits or hits[-1] <= cutoff]
        for key in idle:
            del self._hits[key]

    @property
    def tracked_keys(self) -> int:
        with self._lock:
            return len(self._hits)

    def reset(self, key: Optional[str] = None) -> None:
        with self._lock:
            if key is None:
                self._hits.clear()
            else:
                self._hits.pop(key, None)
