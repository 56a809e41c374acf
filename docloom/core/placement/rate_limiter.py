"""Sliding-window rate limiter for remote calls."""

import logging
import threading
import time
from collections import deque
from typing import Callable, Deque

logger = logging.getLogger(__name__)

DEFAULT_MAX_CALLS = 20
DEFAULT_WINDOW_SECONDS = 60.0


class RateLimiter:
    """Allows at most ``max_calls`` acquisitions per ``window_seconds``.

    Instance-scoped; each remote adapter owns one.
    """

    def __init__(
        self,
        max_calls: int = DEFAULT_MAX_CALLS,
        window_seconds: float = DEFAULT_WINDOW_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_calls = max_calls
        self.window_seconds = window_seconds
        self._clock = clock
        self._calls: Deque[float] = deque()
        self._lock = threading.Lock()

    def try_acquire(self) -> bool:
        """Record a call and return True, or return False when over the limit."""
        with self._lock:
            now = self._clock()
            self._evict(now)
            if len(self._calls) >= self.max_calls:
                logger.debug(f"Rate limit reached ({self.max_calls} per {self.window_seconds:.0f}s)")
                return False
            self._calls.append(now)
            return True

    def remaining(self) -> int:
        with self._lock:
            self._evict(self._clock())
            return max(0, self.max_calls - len(self._calls))

    def reset(self) -> None:
        with self._lock:
            self._calls.clear()

    def _evict(self, now: float) -> None:
        while self._calls and now - self._calls[0] >= self.window_seconds:
            self._calls.popleft()
