"""
Rate-limited access to the Hypixel Public API.

This package provides:
- The request handler (admission control, queueing, 429 retries)
- The dispatcher that performs HTTP calls and classifies outcomes
- The error taxonomy for request outcomes
- Ready-to-use reply models and network leveling helpers
"""

from __future__ import annotations

from .dispatcher import Dispatcher, RateLimitHeaders
from .exceptions import (
    DecodeError,
    HandlerClosedError,
    HttpStatusError,
    HypixelApiError,
    QueueFullError,
    QueueTimeoutError,
    RateLimitError,
    TransportError,
)
from .rate_limiting.models import Outcome, ThrottleConfig
from .replies import (
    ErrorReply,
    KeyData,
    KeyReply,
    PlayerData,
    PlayerReply,
    SessionData,
    StatusReply,
)
from .request import RequestHandler

__all__ = [
    "DecodeError",
    # Dispatch
    "Dispatcher",
    # Replies
    "ErrorReply",
    "HandlerClosedError",
    "HttpStatusError",
    # Exceptions
    "HypixelApiError",
    "KeyData",
    "KeyReply",
    "Outcome",
    "PlayerData",
    "PlayerReply",
    "QueueFullError",
    "QueueTimeoutError",
    "RateLimitError",
    "RateLimitHeaders",
    # Handler
    "RequestHandler",
    "SessionData",
    "StatusReply",
    "ThrottleConfig",
    "TransportError",
]
