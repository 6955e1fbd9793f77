# ==============================================================================
# RATE LIMITER
# ==============================================================================
# Per-actor sliding window limiter for database queries
# ==============================================================================

from __future__ import annotations

import random
import time
from collections import deque
from typing import Callable, Deque, Dict, Optional

from farm_data.core.exceptions import RateLimitExceededError
from farm_data.core.logger import audit_logger
from farm_data.core.settings import settings


def _now_ms() -> float:
    return time.monotonic() * 1000


class SlidingWindowRateLimiter:
    """
    Sliding window rate limiter keyed by actor id.

    Each actor keeps the timestamps of its requests inside the window.
    A request is rejected, without being recorded, when the actor
    already has ``max_requests`` timestamps in the window.

    ``check`` never awaits, so concurrent coroutines observe a
    consistent window. State is per process.

    Attributes:
        max_requests: Maximum requests per window
        window_ms: Window length in milliseconds
        cleanup_probability: Chance per check of evicting idle actors
        _windows: Request timestamps for each actor
    """

    def __init__(
        self,
        max_requests: Optional[int] = None,
        window_ms: Optional[int] = None,
        cleanup_probability: Optional[float] = None,
        clock: Callable[[], float] = _now_ms,
        rand: Callable[[], float] = random.random,
    ) -> None:
        self.max_requests = max_requests or settings.RATE_LIMIT_MAX_QUERIES
        self.window_ms = window_ms or settings.RATE_LIMIT_WINDOW_MS
        self.cleanup_probability = (
            settings.RATE_LIMIT_CLEANUP_PROBABILITY
            if cleanup_probability is None
            else cleanup_probability
        )
        self._clock = clock
        self._rand = rand
        self._windows: Dict[str, Deque[float]] = {}

    def _prune(self, window: Deque[float], now: float) -> None:
        cutoff = now - self.window_ms
        while window and window[0] <= cutoff:
            window.popleft()

    def check(self, actor_id: Optional[str]) -> None:
        """
        Record one request for ``actor_id``.

        Raises:
            RateLimitExceededError: If the actor is over its limit
        """
        if not actor_id:
            return

        now = self._clock()
        window = self._windows.setdefault(actor_id, deque())
        self._prune(window, now)

        if len(window) >= self.max_requests:
            retry_after_ms = int(max(0.0, window[0] + self.window_ms - now))
            audit_logger.security(
                "Rate limit exceeded",
                {
                    "actor_id": actor_id,
                    "request_count": len(window),
                    "limit": self.max_requests,
                    "window_ms": self.window_ms,
                },
            )
            raise RateLimitExceededError(
                actor_id=actor_id,
                request_count=len(window),
                limit=self.max_requests,
                window_ms=self.window_ms,
                retry_after_ms=retry_after_ms,
            )

        window.append(now)

        if self._rand() < self.cleanup_probability:
            self.sweep(now)

    def sweep(self, now: Optional[float] = None) -> int:
        """
        Evict actors with no request inside the window.

        Returns:
            Number of actors removed
        """
        now = self._clock() if now is None else now
        idle = []
        for actor_id, window in self._windows.items():
            self._prune(window, now)
            if not window:
                idle.append(actor_id)
        for actor_id in idle:
            del self._windows[actor_id]
        return len(idle)

    def request_count(self, actor_id: str) -> int:
        window = self._windows.get(actor_id)
        if not window:
            return 0
        self._prune(window, self._clock())
        return len(window)

    @property
    def tracked_actors(self) -> int:
        return len(self._windows)

    def reset(self) -> None:
        self._windows.clear()
