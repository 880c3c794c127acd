"""
FIFO admission queue for requests that could not be admitted immediately.
"""

from __future__ import annotations

import asyncio
import itertools
from collections import deque

import structlog

from ..exceptions import HypixelApiError, QueueFullError, QueueTimeoutError
from .models import QueueEntry, RequestIntent
from .tracker import QuotaTracker

logger = structlog.get_logger(__name__)


class AdmissionQueue:
    """
    Waiting line released strictly in arrival order.

    Entries are never reordered; a cancelled entry is simply taken out of
    the line. The queue is unbounded unless `max_size` is given.
    """

    def __init__(
        self,
        max_size: int | None = None,
        queue_timeout: float | None = None,
    ):
        self.max_size = max_size
        self.queue_timeout = queue_timeout
        self._entries: deque[QueueEntry] = deque()
        self._sequence = itertools.count()
        # Instant the last drain pass was told to come back at
        self.retry_at: float | None = None

        self.total_enqueued = 0
        self.total_released = 0
        self.total_cancelled = 0
        self.total_expired = 0

    def __len__(self) -> int:
        return len(self._entries)

    def __bool__(self) -> bool:
        return bool(self._entries)

    def enqueue(self, intent: RequestIntent, now: float) -> QueueEntry:
        """
        Append an intent to the back of the line.

        Raises:
            QueueFullError: If the queue is bounded and already full
        """
        if self.max_size is not None and len(self._entries) >= self.max_size:
            raise QueueFullError(
                f"Admission queue is full ({self.max_size} pending requests)",
                max_size=self.max_size,
                path=intent.path,
            )

        entry = QueueEntry(
            intent=intent,
            released=asyncio.get_running_loop().create_future(),
            enqueued_at=now,
            sequence=next(self._sequence),
        )
        self._entries.append(entry)
        self.total_enqueued += 1
        logger.debug(
            "Request queued",
            path=intent.path,
            sequence=entry.sequence,
            queue_size=len(self._entries),
        )
        return entry

    def cancel(self, entry: QueueEntry) -> bool:
        """
        Take an entry out of the line without dispatching it.

        Returns:
            True if the entry was still queued
        """
        try:
            self._entries.remove(entry)
        except ValueError:
            return False
        if not entry.released.done():
            entry.released.cancel()
        self.total_cancelled += 1
        logger.debug("Queued request cancelled", path=entry.intent.path)
        return True

    async def drain_ready(self, tracker: QuotaTracker) -> list[QueueEntry]:
        """
        Release entries from the front while the tracker admits them.

        Cancelled entries are dropped on the way; stale entries are failed
        with QueueTimeoutError when a queue timeout is configured.

        Returns:
            Released entries in arrival order
        """
        released: list[QueueEntry] = []
        self.retry_at = None
        while self._entries:
            entry = self._entries[0]

            if entry.released.done():
                # Cancelled by its caller since the last pass
                self._entries.popleft()
                self.total_cancelled += 1
                continue

            if self._is_stale(entry, tracker.now()):
                self._entries.popleft()
                self._expire(entry, tracker.now())
                continue

            admission = await tracker.try_consume()
            if not admission.allowed:
                self.retry_at = admission.wait_until
                break

            self._entries.popleft()
            entry.released.set_result(None)
            self.total_released += 1
            released.append(entry)

        if released:
            logger.debug(
                "Released queued requests",
                released=len(released),
                queue_size=len(self._entries),
            )
        return released

    def fail_all(self, error: HypixelApiError) -> int:
        """Fail every waiting entry with `error`. Returns how many were failed."""
        failed = 0
        while self._entries:
            entry = self._entries.popleft()
            if not entry.released.done():
                entry.released.set_exception(error)
                failed += 1
        return failed

    def get_statistics(self) -> dict[str, int]:
        return {
            "queue_size": len(self._entries),
            "total_enqueued": self.total_enqueued,
            "total_released": self.total_released,
            "total_cancelled": self.total_cancelled,
            "total_expired": self.total_expired,
        }

    def _is_stale(self, entry: QueueEntry, now: float) -> bool:
        if self.queue_timeout is None:
            return False
        return now - entry.enqueued_at > self.queue_timeout

    def _expire(self, entry: QueueEntry, now: float) -> None:
        waited = now - entry.enqueued_at
        entry.released.set_exception(
            QueueTimeoutError(
                f"Request waited {waited:.2f}s in queue "
                f"(timeout {self.queue_timeout:.2f}s)",
                waited=waited,
                path=entry.intent.path,
            )
        )
        self.total_expired += 1
        logger.warning(
            "Queued request expired",
            path=entry.intent.path,
            waited=round(waited, 3),
        )
