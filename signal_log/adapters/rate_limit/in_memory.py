"""In-memory fixed-window rate limiter.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
- Thread-safe: uses a lock around shared state.
- Windows are anchored at each key's first request, not at clock boundaries.
"""

from __future__ import annotations

import math
import threading
import time
from dataclasses import dataclass
from typing import Callable

from signal_log.adapters.rate_limit.base import AbstractRateLimiter, RateLimitResult
from signal_log.core.config import RateLimitConfig


@dataclass
class RateLimitEntry:
    count: int
    reset_time: float


class InMemoryFixedWindowRateLimiter(AbstractRateLimiter):
    """Per-key request counter reset once the key's window has elapsed.

    Stale entries (window ended more than one window length ago) are purged
    lazily on every call, so memory is bounded by the number of distinct keys
    seen within roughly two windows.
    """

    def __init__(
        self,
        config: RateLimitConfig | None = None,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the limiter.

        Args:
            config: Limit and window; defaults to 100 requests per 15 minutes.
            clock: Time source returning UNIX time in seconds.
        """
        self._config = config or RateLimitConfig()
        self._clock = clock
        self._lock = threading.RLock()
        self._entries: dict[str, RateLimitEntry] = {}

    @property
    def config(self) -> RateLimitConfig:
        return self._config

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def get_entry(self, key: str) -> RateLimitEntry | None:
        """Return a copy of the tracked entry for ``key``, if any."""
        with self._lock:
            entry = self._entries.get(key)
            return RateLimitEntry(entry.count, entry.reset_time) if entry else None

    def reset(self) -> None:
        with self._lock:
            self._entries.clear()

    def _purge_expired_locked(self, now: float) -> None:
        window_start = now - self._config.window_seconds
        expired = [key for key, entry in self._entries.items() if entry.reset_time < window_start]
        for key in expired:
            del self._entries[key]

    def consume(self, key: str) -> RateLimitResult:
        """Check the key's budget and count this request if it fits.

        Args:
            key: Client identifier (IP address).

        Returns:
            RateLimitResult with the decision. Blocked requests do not change
            the stored count.

        Raises:
            ValueError: If key is empty.
        """
        if not key:
            raise ValueError("key must be a non-empty string")

        limit = self._config.max_requests
        window = self._config.window_seconds
        now = self._clock()

        with self._lock:
            self._purge_expired_locked(now)

            entry = self._entries.get(key)
            if entry is None:
                entry = RateLimitEntry(count=0, reset_time=now + window)
            elif entry.reset_time <= now:
                entry.count = 0
                entry.reset_time = now + window

            if entry.count >= limit:
                retry_after = max(0, int(math.ceil(entry.reset_time - now)))
                return RateLimitResult(
                    allowed=False,
                    limit=limit,
                    remaining=0,
                    reset_at=entry.reset_time,
                    retry_after_seconds=retry_after,
                )

            entry.count += 1
            self._entries[key] = entry
            return RateLimitResult(
                allowed=True,
                limit=limit,
                remaining=limit - entry.count,
                reset_at=entry.reset_time,
            )
