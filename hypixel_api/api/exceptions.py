"""
Error taxonomy for Hypixel API requests.

Every request submitted through the request handler ends in exactly one
of these errors or a decoded payload:
- Transport failures (connection problems, timeouts)
- Non-success HTTP statuses, with the API's error body when present
- Server-side rate limiting despite client admission control
- Bodies that do not decode into the requested shape
- Queue rejections (bounded queue full, stale entry, handler closed)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .replies import ErrorReply


class HypixelApiError(Exception):
    """Base error for every request outcome that is not a payload."""

    def __init__(self, message: str, path: str | None = None):
        super().__init__(message)
        self.path = path


class TransportError(HypixelApiError):
    """Network-level failure: connect error, timeout, broken connection."""

    def __init__(
        self,
        message: str,
        attempts: int = 1,
        **kwargs,
    ):
        super().__init__(message, **kwargs)
        self.attempts = attempts


class HttpStatusError(HypixelApiError):
    """Unexpected response code, with the parsed error body if any."""

    def __init__(
        self,
        message: str,
        status_code: int,
        cause: ErrorReply | None = None,
        body: bytes = b"",
        **kwargs,
    ):
        super().__init__(message, **kwargs)
        self.status_code = status_code
        self.cause = cause
        self.body = body


class RateLimitError(HypixelApiError):
    """The server answered 429 even though the request was admitted locally."""

    def __init__(
        self,
        message: str,
        retry_after: float | None = None,
        **kwargs,
    ):
        super().__init__(message, **kwargs)
        self.retry_after = retry_after


class DecodeError(HypixelApiError):
    """A 200 response body did not match the requested shape."""

    def __init__(self, message: str, body: bytes = b"", **kwargs):
        super().__init__(message, **kwargs)
        self.body = body


class QueueFullError(HypixelApiError):
    """The bounded admission queue rejected a new request."""

    def __init__(self, message: str, max_size: int, **kwargs):
        super().__init__(message, **kwargs)
        self.max_size = max_size


class QueueTimeoutError(HypixelApiError):
    """A queued request waited longer than the configured queue timeout."""

    def __init__(self, message: str, waited: float, **kwargs):
        super().__init__(message, **kwargs)
        self.waited = waited


class HandlerClosedError(HypixelApiError):
    """The request handler was closed while the request was still queued."""
