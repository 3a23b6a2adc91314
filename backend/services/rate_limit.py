"""
In-memory fixed-window rate limiting for the public location endpoints.

Single-process only; a multi-instance deployment would need a shared store.
"""
from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Mapping, Optional


@dataclass
class RateLimitResult:
    allowed: bool
    remaining: int
    reset_at: float  # clock value at which the window resets

    def retry_after(self, now: float) -> int:
        return max(1, int(round(self.reset_at - now)))


@dataclass
class _Window:
    count: int
    reset_at: float


class FixedWindowRateLimiter:
    def __init__(
        self,
        max_requests: int,
        window_seconds: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
        cleanup_interval: float = 300.0,
    ):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.clock = clock
        self.cleanup_interval = cleanup_interval
        self._windows: Dict[str, _Window] = {}
        self._lock = threading.Lock()
        self._next_cleanup = clock() + cleanup_interval

    def check(self, identifier: str) -> RateLimitResult:
        """Count one request for identifier and say whether it may proceed."""
        now = self.clock()
        with self._lock:
            if now >= self._next_cleanup:
                self._prune(now)
                self._next_cleanup = now + self.cleanup_interval
            window = self._windows.get(identifier)
            if window is None or now > window.reset_at:
                window = _Window(count=0, reset_at=now + self.window_seconds)
                self._windows[identifier] = window
            if window.count >= self.max_requests:
                return RateLimitResult(allowed=False, remaining=0, reset_at=window.reset_at)
            window.count += 1
            return RateLimitResult(
                allowed=True,
                remaining=self.max_requests - window.count,
                reset_at=window.reset_at,
            )

    def reset(self, identifier: str) -> None:
        with self._lock:
            self._windows.pop(identifier, None)

    def cleanup(self) -> int:
        """Drop expired windows; returns how many were removed."""
        now = self.clock()
        with self._lock:
            return self._prune(now)

    def _prune(self, now: float) -> int:
        expired = [key for key, w in self._windows.items() if now > w.reset_at]
        for key in expired:
            del self._windows[key]
        return len(expired)


def client_identifier(headers: Mapping[str, str], peer: Optional[str], trust_proxy: bool = True) -> str:
    """Best-effort client address, preferring proxy headers when trusted."""
    if trust_proxy:
        forwarded_for = headers.get("x-forwarded-for")
        if forwarded_for:
            return forwarded_for.split(",")[0].strip()
        for header in ("x-real-ip", "cf-connecting-ip"):
            value = headers.get(header)
            if value:
                return value.strip()
    return peer or "unknown"
