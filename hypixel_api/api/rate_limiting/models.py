"""
Rate limiting models and dataclasses for the request governor.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from ..exceptions import HypixelApiError

# Hypixel's public quota: 120 requests per rolling minute
DEFAULT_REQUESTS_PER_WINDOW = 120
DEFAULT_WINDOW_SECONDS = 60.0


@dataclass(frozen=True)
class ThrottleConfig:
    """Configuration for admission control and retries."""
    requests_per_window: int = DEFAULT_REQUESTS_PER_WINDOW
    window_seconds: float = DEFAULT_WINDOW_SECONDS

    # Added to the server's reset countdown to absorb clock drift
    reset_margin: float = 2.0

    # Queue management (None = unbounded / never stale)
    max_queue_size: int | None = None
    queue_timeout: float | None = None
    poll_interval: float = 1.0

    # Retry bounds
    max_rate_limit_retries: int = 3
    max_transport_retries: int = 2
    retry_backoff: float = 0.5
    max_retry_backoff: float = 10.0

    def __post_init__(self) -> None:
        if self.requests_per_window < 1:
            raise ValueError("requests_per_window must be at least 1")
        if self.window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        if self.reset_margin < 0:
            raise ValueError("reset_margin must not be negative")
        if self.max_queue_size is not None and self.max_queue_size < 1:
            raise ValueError("max_queue_size must be at least 1 when set")
        if self.queue_timeout is not None and self.queue_timeout <= 0:
            raise ValueError("queue_timeout must be positive when set")
        if self.poll_interval <= 0:
            raise ValueError("poll_interval must be positive")
        if self.max_rate_limit_retries < 0 or self.max_transport_retries < 0:
            raise ValueError("retry counts must not be negative")

    def backoff_delay(self, attempt: int) -> float:
        """Exponential backoff for the given 0-indexed retry attempt."""
        return min(self.retry_backoff * (2 ** attempt), self.max_retry_backoff)


@dataclass
class QuotaWindow:
    """Current view of the quota window. Mutated only by the tracker."""
    limit: int
    remaining: int
    reset_at: float  # absolute instant on the tracker clock

    def copy(self) -> QuotaWindow:
        return QuotaWindow(self.limit, self.remaining, self.reset_at)


@dataclass(frozen=True)
class Admission:
    """Result of an admission check."""
    allowed: bool
    remaining: int
    wait_until: float | None = None

    @classmethod
    def admitted(cls, remaining: int) -> Admission:
        return cls(allowed=True, remaining=remaining)

    @classmethod
    def denied(cls, wait_until: float) -> Admission:
        return cls(allowed=False, remaining=0, wait_until=wait_until)


@dataclass(frozen=True)
class ServerRateLimitState:
    """Rate-limit metadata parsed from one response. Any field may be absent."""
    remaining: int | None = None
    reset_after: float | None = None  # seconds until the server window resets
    limit: int | None = None
    retry_after: float | None = None

    @property
    def is_empty(self) -> bool:
        return (
            self.remaining is None
            and self.reset_after is None
            and self.limit is None
            and self.retry_after is None
        )


@dataclass(frozen=True)
class RequestIntent:
    """One outgoing request: where to go and how to decode the answer."""
    path: str
    decode: Callable[[bytes], Any]
    requires_auth: bool = True
    retryable: bool = True


@dataclass(eq=False)
class QueueEntry:
    """A queued intent plus the one-shot future its caller awaits."""
    intent: RequestIntent
    released: asyncio.Future[None]
    enqueued_at: float
    sequence: int = 0

    @property
    def cancelled(self) -> bool:
        return self.released.cancelled()


T = TypeVar("T")


@dataclass(frozen=True)
class Outcome(Generic[T]):
    """Classified result of one dispatch: a payload or exactly one error."""
    payload: T | None = None
    error: HypixelApiError | None = None
    status_code: int | None = None
    attempts: int = 1

    @classmethod
    def success(cls, payload: T, **kwargs: Any) -> Outcome[T]:
        return cls(payload=payload, **kwargs)

    @classmethod
    def failure(cls, error: HypixelApiError, **kwargs: Any) -> Outcome[T]:
        return cls(error=error, **kwargs)

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> T:
        """Return the payload or raise the classified error."""
        if self.error is not None:
            raise self.error
        return self.payload  # type: ignore[return-value]
