"""Rate limiter interfaces.

The HTTP layer depends on this abstraction (not the concrete implementation)
so the in-process store can later be replaced by a shared keyed, expiring
store for multi-instance deployments.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class RateLimitResult:
    """Result of a rate limit consume operation.

    Attributes:
        allowed: Whether the request is allowed to proceed.
        limit: Max requests per window.
        remaining: Remaining requests in the current window (0 when blocked).
        reset_at: UNIX epoch seconds when the key's current window ends.
        retry_after_seconds: Suggested wait time in seconds when blocked.
    """

    allowed: bool
    limit: int
    remaining: int
    reset_at: float
    retry_after_seconds: int | None = None


class AbstractRateLimiter(ABC):
    """Interface for rate limiter stores."""

    @abstractmethod
    def consume(self, key: str) -> RateLimitResult:
        """Count one request against ``key`` unless its budget is exhausted.

        Args:
            key: Unique identifier (client IP).

        Returns:
            RateLimitResult describing whether it was allowed.
        """
        raise NotImplementedError

    @abstractmethod
    def reset(self) -> None:
        """Forget all tracked keys."""
        raise NotImplementedError
