"""Client-side request governor for the Hypixel Public API."""

from __future__ import annotations

from .api import (
    DecodeError,
    HandlerClosedError,
    HttpStatusError,
    HypixelApiError,
    KeyReply,
    PlayerReply,
    QueueFullError,
    QueueTimeoutError,
    RateLimitError,
    RequestHandler,
    StatusReply,
    ThrottleConfig,
    TransportError,
)

__all__ = [
    "DecodeError",
    "HandlerClosedError",
    "HttpStatusError",
    "HypixelApiError",
    "KeyReply",
    "PlayerReply",
    "QueueFullError",
    "QueueTimeoutError",
    "RateLimitError",
    "RequestHandler",
    "StatusReply",
    "ThrottleConfig",
    "TransportError",
]
