"""Fixed-window request counters keyed by caller identity.

Counts live in process memory, so limits are advisory when several
processes serve the same users.
"""

import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Tuple


@dataclass
class RateLimitResult:
    allowed: bool
    remaining: int
    reset_at: float


class FixedWindowRateLimiter:
    def __init__(
        self,
        max_requests: int,
        window_seconds: float,
        clock: Callable[[], float] = time.monotonic,
        sweep_every: int = 256,
    ) -> None:
        if max_requests < 1:
            raise ValueError("max_requests must be at least 1.")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive.")
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._counters: Dict[str, Tuple[int, float]] = {}
        self._sweep_every = max(1, sweep_every)
        self._checks = 0

    def check(self, key: str) -> RateLimitResult:
        """Count one request for ``key`` and report whether it is allowed."""
        now = self._clock()
        with self._lock:
            self._checks += 1
            if self._checks % self._sweep_every == 0:
                self._sweep(now)
            count, reset_at = self._counters.get(key, (0, 0.0))
            if now >= reset_at:
                count, reset_at = 0, now + self.window_seconds
            count += 1
            self._counters[key] = (count, reset_at)
        return RateLimitResult(
            allowed=count <= self.max_requests,
            remaining=max(0, self.max_requests - count),
            reset_at=reset_at,
        )

    def _sweep(self, now: float) -> None:
        """Drop counters whose window has ended. Caller holds the lock."""
        expired = [key for key, (_, reset_at) in self._counters.items() if now >= reset_at]
        for key in expired:
            del self._counters[key]

    def __len__(self) -> int:
        with self._lock:
            return len(self._counters)

    def reset(self, key: str) -> None:
        with self._lock:
            self._counters.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._counters.clear()


auth_rate_limiter = FixedWindowRateLimiter(max_requests=5, window_seconds=15 * 60)
