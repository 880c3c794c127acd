"""
Quota window tracking with server resynchronization.

The tracker keeps two views of the quota and admits a request only when
both allow it:
- The fixed window reported by the server (remaining count + reset instant),
  which always overrides local bookkeeping when a response carries it
- A sliding log of local admission instants, so no rolling window of
  `window_seconds` ever sees more than `limit` admissions
"""

from __future__ import annotations

import asyncio
import time
from collections import deque
from collections.abc import Callable

import structlog

from .models import Admission, QuotaWindow, ServerRateLimitState, ThrottleConfig

logger = structlog.get_logger(__name__)


class QuotaTracker:
    """
    Owner of the quota window.

    All reads and writes go through one asyncio.Lock, so `try_consume` and
    `observe_server_state` never interleave. No method awaits anything but
    the lock, which keeps the lock out of every network round-trip.
    """

    def __init__(
        self,
        config: ThrottleConfig,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.config = config
        self._clock = clock
        self._lock = asyncio.Lock()

        now = clock()
        self._window = QuotaWindow(
            limit=config.requests_per_window,
            remaining=config.requests_per_window,
            reset_at=now + config.window_seconds,
        )
        self._admissions: deque[float] = deque()
        self._in_flight = 0

        # Statistics
        self.total_admitted = 0
        self.total_denied = 0
        self.window_resets = 0
        self.server_syncs = 0

    @property
    def in_flight(self) -> int:
        return self._in_flight

    def now(self) -> float:
        return self._clock()

    async def try_consume(self) -> Admission:
        """
        Admit one request now or report when to try again.

        Returns:
            Admission.admitted with the remaining count, or Admission.denied
            with the absolute instant at which capacity frees up
        """
        async with self._lock:
            now = self._clock()
            self._roll_window(now)
            self._evict_admissions(now)

            window = self._window
            log_full = len(self._admissions) >= window.limit

            if window.remaining > 0 and not log_full:
                window.remaining -= 1
                self._admissions.append(now)
                self._in_flight += 1
                self.total_admitted += 1
                return Admission.admitted(window.remaining)

            wait_until = now
            if window.remaining <= 0:
                wait_until = max(wait_until, window.reset_at)
            if log_full:
                # The oldest admission must leave the rolling window first
                index = len(self._admissions) - window.limit
                wait_until = max(
                    wait_until, self._admissions[index] + self.config.window_seconds
                )

            self.total_denied += 1
            return Admission.denied(wait_until)

    async def observe_server_state(self, state: ServerRateLimitState) -> None:
        """
        Realign the window with what the server reported for one dispatch.

        Must be called once per admitted request once its network call is
        over, with an empty state when no response arrived.
        """
        async with self._lock:
            now = self._clock()
            self._in_flight = max(0, self._in_flight - 1)

            if state.is_empty:
                return

            window = self._window
            if state.limit is not None and state.limit >= 1:
                window.limit = state.limit
            if state.reset_after is not None:
                window.reset_at = now + max(0.0, state.reset_after) + self.config.reset_margin
            if state.remaining is not None:
                # Requests still on the wire may not be counted by the server yet
                window.remaining = max(0, state.remaining - self._in_flight)
            window.remaining = min(window.remaining, window.limit)

            self.server_syncs += 1
            logger.debug(
                "Quota synchronized with server",
                remaining=window.remaining,
                limit=window.limit,
                reset_in=round(window.reset_at - now, 3),
                in_flight=self._in_flight,
            )

    async def release(self) -> None:
        """Return an admission that was never dispatched."""
        async with self._lock:
            self._in_flight = max(0, self._in_flight - 1)
            if self._admissions:
                self._admissions.pop()
                self._window.remaining = min(self._window.limit, self._window.remaining + 1)

    async def force_exhausted(self, retry_after: float | None = None) -> None:
        """Block admissions until the server's retry-after has passed."""
        async with self._lock:
            now = self._clock()
            wait = retry_after if retry_after is not None else self.config.window_seconds
            self._window.remaining = 0
            self._window.reset_at = now + max(0.0, wait)
            logger.warning(
                "Quota forced to exhausted",
                reset_in=round(self._window.reset_at - now, 3),
            )

    async def snapshot(self) -> QuotaWindow:
        """Consistent copy of the current window."""
        async with self._lock:
            self._roll_window(self._clock())
            return self._window.copy()

    def get_statistics(self) -> dict[str, int | float]:
        """Current quota view and counters."""
        now = self._clock()
        window = self._window
        return {
            "limit": window.limit,
            "remaining": window.remaining if now < window.reset_at else window.limit,
            "reset_in": round(max(0.0, window.reset_at - now), 3),
            "in_flight": self._in_flight,
            "total_admitted": self.total_admitted,
            "total_denied": self.total_denied,
            "window_resets": self.window_resets,
            "server_syncs": self.server_syncs,
        }

    def _roll_window(self, now: float) -> None:
        """Start a fresh window once the reset instant has passed."""
        window = self._window
        if now < window.reset_at:
            return
        # Covers stale server state too: remaining=0 with a past reset never blocks
        window.remaining = window.limit
        window.reset_at = now + self.config.window_seconds
        self.window_resets += 1
        logger.debug("Quota window reset", limit=window.limit)

    def _evict_admissions(self, now: float) -> None:
        cutoff = now - self.config.window_seconds
        while self._admissions and self._admissions[0] <= cutoff:
            self._admissions.popleft()
