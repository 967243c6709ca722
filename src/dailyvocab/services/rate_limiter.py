"""Sliding-window rate limiting for assessment requests."""
import threading
import time
from collections import defaultdict, deque
from dataclasses import dataclass
from typing import Callable, Deque, Dict, Optional

from dailyvocab.config import RateLimitSettings, settings


@dataclass(frozen=True)
class RateLimitResult:
    """Outcome of a rate limit check."""
    allowed: bool
    limit: int
    remaining: int
    reset_after: float  # seconds until the oldest counted request leaves the window

    def headers(self) -> Dict[str, str]:
        return {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(int(self.reset_after + 0.999)),
        }


class SlidingWindowRateLimiter:
    """Counts requests per client within a sliding time window."""

    def __init__(
        self,
        max_requests: int,
        window_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ):
        if max_requests < 1:
            raise ValueError("max_requests must be positive")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.clock = clock
        self._hits: Dict[str, Deque[float]] = defaultdict(deque)
        self._lock = threading.Lock()
        self._last_prune = clock()

    @classmethod
    def from_settings(cls, config: Optional[RateLimitSettings] = None) -> "SlidingWindowRateLimiter":
        config = config or settings.rate_limit
        return cls(config.max_requests, config.window_seconds)

    def _expire(self, hits: Deque[float], now: float) -> None:
        while hits and now - hits[0] >= self.window_seconds:
            hits.popleft()

    def check(self, client_id: str) -> RateLimitResult:
        """Count a request from `client_id` if it fits in the window."""
        with self._lock:
            now = self.clock()
            if now - self._last_prune >= self.window_seconds:
                self._prune(now)
            hits = self._hits[client_id]
            self._expire(hits, now)

            allowed = len(hits) < self.max_requests
            if allowed:
                hits.append(now)
            reset_after = self.window_seconds - (now - hits[0]) if hits else 0.0
            return RateLimitResult(
                allowed=allowed,
                limit=self.max_requests,
                remaining=max(0, self.max_requests - len(hits)),
                reset_after=reset_after,
            )

    def reset(self, client_id: Optional[str] = None) -> None:
        """Forget one client's requests, or everyone's."""
        with self._lock:
            if client_id is None:
                self._hits.clear()
            else:
                self._hits.pop(client_id, None)

    @property
    def tracked_clients(self) -> int:
        """Number of clients currently tracked."""
        with self._lock:
            return len(self._hits)

    def prune(self) -> int:
        """Drop clients with no requests left in the window. Returns how many."""
        with self._lock:
            return self._prune(self.clock())

    def _prune(self, now: float) -> int:
        # Called with the lock held; check() runs it once per window
        self._last_prune = now
        stale = []
        for client_id, hits in self._hits.items():
            self._expire(hits, now)
            if not hits:
                stale.append(client_id)
        for client_id in stale:
            del self._hits[client_id]
        return len(stale)
