"""
Admission control for the Hypixel API quota.

This package contains:
- Quota window tracking synced from server rate-limit headers
- The FIFO admission queue for requests that must wait
- Shared dataclasses (config, admissions, outcomes)
"""

from __future__ import annotations

from .models import (
    Admission,
    Outcome,
    QueueEntry,
    QuotaWindow,
    RequestIntent,
    ServerRateLimitState,
    ThrottleConfig,
)
from .queue import AdmissionQueue
from .tracker import QuotaTracker

__all__ = [
    "Admission",
    "AdmissionQueue",
    "Outcome",
    "QueueEntry",
    "QuotaTracker",
    "QuotaWindow",
    "RequestIntent",
    "ServerRateLimitState",
    "ThrottleConfig",
]
