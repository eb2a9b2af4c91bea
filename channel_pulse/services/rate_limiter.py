from __future__ import annotations

import math
from collections import deque
from dataclasses import dataclass
from threading import Lock
from time import time


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    limit: int
    remaining: int
    retry_after_seconds: int
    reset_after_seconds: int

    def headers(self) -> dict[str, str]:
        headers = {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(self.reset_after_seconds),
        }
        if not self.allowed:
            headers["Retry-After"] = str(self.retry_after_seconds)
        return headers


class SlidingWindowRateLimiter:
    """Per-client cap on how many channel downloads may start in a window."""

    def __init__(self, *, max_requests: int, window_seconds: int) -> None:
        self._max_requests = max(1, max_requests)
        self._window_seconds = max(1, window_seconds)
        self._lock = Lock()
        self._started_at_by_client: dict[str, deque[float]] = {}
        self._last_sweep_at: float | None = None

    def take(self, client_key: str, *, now: float | None = None) -> RateLimitDecision:
        current = time() if now is None else now
        with self._lock:
            self._evict_idle_clients(current)
            started = self._started_at_by_client.setdefault(client_key, deque())
            self._prune(started, current)

            allowed = len(started) < self._max_requests
            if allowed:
                started.append(current)
            wait_seconds = self._seconds_until_oldest_expires(started, current)
            return RateLimitDecision(
                allowed=allowed,
                limit=self._max_requests,
                remaining=max(self._max_requests - len(started), 0),
                retry_after_seconds=0 if allowed else wait_seconds,
                reset_after_seconds=wait_seconds,
            )

    def _evict_idle_clients(self, current: float) -> None:
        # Idle clients are dropped at most once per window.
        last_sweep_at = self._last_sweep_at
        if last_sweep_at is not None and current - last_sweep_at < self._window_seconds:
            return
        self._last_sweep_at = current
        for client_key in list(self._started_at_by_client):
            started = self._started_at_by_client[client_key]
            self._prune(started, current)
            if not started:
                del self._started_at_by_client[client_key]

    def tracked_clients(self) -> int:
        with self._lock:
            return len(self._started_at_by_client)

    def _prune(self, started: deque[float], current: float) -> None:
        cutoff = current - self._window_seconds
        while started and started[0] <= cutoff:
            started.popleft()

    def _seconds_until_oldest_expires(self, started: deque[float], current: float) -> int:
        if not started:
            return self._window_seconds
        return max(1, math.ceil((started[0] + self._window_seconds) - current))
