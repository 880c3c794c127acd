"""
Request handler: the public entry point of the client.

Requests are admitted immediately while quota is left and nobody is
waiting; otherwise they join a FIFO queue that a background pump task
drains as capacity frees up. Every call to `request` yields exactly one
terminal result through the returned task.
"""

from __future__ import annotations

import asyncio
import contextlib
import time
import uuid
from collections.abc import Callable
from typing import TYPE_CHECKING, Any, TypeVar

import httpx
import structlog

from .decoding import Decoder, make_decoder
from .dispatcher import Dispatcher, RateLimitHeaders
from .exceptions import HandlerClosedError, HypixelApiError, RateLimitError
from .rate_limiting.models import Outcome, RequestIntent, ThrottleConfig
from .rate_limiting.queue import AdmissionQueue
from .rate_limiting.tracker import QuotaTracker

if TYPE_CHECKING:
    from ..config import Configuration

logger = structlog.get_logger(__name__)

T = TypeVar("T")

DEFAULT_BASE_URL = "https://api.hypixel.net/"
DEFAULT_TIMEOUT = 10.0

# Never sleep for 0s in the pump; a zero timeout would spin the loop
MIN_PUMP_WAIT = 0.001


class RequestHandler:
    """
    Client-side governor for the Hypixel API quota.

    Features:
    - Admission control against a quota window synced from response headers
    - FIFO queueing of excess demand, never dropped
    - Transparent, bounded retry of server-side 429s
    - Cancellation-safe deferred handles (asyncio tasks)
    """

    def __init__(
        self,
        api_key: str | uuid.UUID,
        *,
        throttle_config: ThrottleConfig | None = None,
        base_url: str = DEFAULT_BASE_URL,
        rate_limit_headers: RateLimitHeaders | None = None,
        timeout: float | httpx.Timeout = DEFAULT_TIMEOUT,
        client: httpx.AsyncClient | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Create a handler for one API key.

        Args:
            api_key: Hypixel API key (a UUID), sent as the `API-Key` header
                on authenticated requests
            throttle_config: Quota, queue and retry settings
            base_url: API root the request paths are relative to
            rate_limit_headers: Names of the rate-limit response headers
            timeout: Per-request network timeout
            client: Pre-configured httpx client; its base_url is used as is
                and it is not closed by the handler
            clock: Monotonic clock used for every quota decision
        """
        self.api_key = normalize_api_key(api_key)
        self.config = throttle_config or ThrottleConfig()

        self._owns_client = client is None
        self.client: httpx.AsyncClient = client or httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout if isinstance(timeout, httpx.Timeout) else httpx.Timeout(timeout),
        )

        self.tracker = QuotaTracker(self.config, clock=clock)
        self.queue = AdmissionQueue(
            max_size=self.config.max_queue_size,
            queue_timeout=self.config.queue_timeout,
        )
        self.dispatcher = Dispatcher(
            self.client,
            self.tracker,
            self.api_key,
            self.config,
            headers=rate_limit_headers,
        )

        self._wakeup = asyncio.Event()
        self._pump_task: asyncio.Task[None] | None = None
        self._dispatch_tasks: set[asyncio.Task[Outcome]] = set()
        self._closed = False

        # Statistics
        self.total_requests = 0
        self.total_rate_limit_retries = 0

    @classmethod
    def from_config(cls, configuration: Configuration, **kwargs: Any) -> RequestHandler:
        """Build a handler from the YAML/.env configuration."""
        api_config = configuration.get_api_config()
        http_config = configuration.get_http_client_config()
        timeout = httpx.Timeout(
            http_config["timeout"],
            connect=http_config["connect_timeout"],
        )
        return cls(
            configuration.api_key,
            throttle_config=configuration.get_throttle_config(),
            base_url=api_config["base_url"],
            rate_limit_headers=RateLimitHeaders(**configuration.get_rate_limit_headers()),
            timeout=timeout,
            **kwargs,
        )

    async def __aenter__(self) -> RequestHandler:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    @property
    def closed(self) -> bool:
        return self._closed

    def request(
        self,
        path: str,
        response_type: type[T] | Any = dict,
        *,
        requires_auth: bool = True,
        decoder: Decoder | None = None,
        retryable: bool = True,
    ) -> asyncio.Task[T]:
        """
        Submit a request and return a handle to its eventual result.

        Must be called from a running event loop.

        Args:
            path: Path relative to the API root, with query if any,
                such as "key" or "status?uuid=..."
            response_type: Shape to decode the body into (anything pydantic
                can validate JSON into)
            requires_auth: Whether to send the API key along
            decoder: Explicit decode function, overrides response_type
            retryable: Whether connect failures may be retried automatically

        Returns:
            Task resolving to the decoded payload, or raising one
            HypixelApiError subclass

        Raises:
            HandlerClosedError: If the handler was already closed
        """
        if self._closed:
            raise HandlerClosedError("Request handler is closed", path=path)

        intent = RequestIntent(
            path=path,
            decode=make_decoder(response_type, decoder),
            requires_auth=requires_auth,
            retryable=retryable,
        )
        self.total_requests += 1
        return asyncio.get_running_loop().create_task(
            self._execute(intent), name=f"hypixel-request:{path}"
        )

    async def _execute(self, intent: RequestIntent) -> Any:
        rate_limit_retries = 0
        while True:
            await self._acquire(intent)
            outcome = await self._dispatch(intent)

            error = outcome.error
            if (
                isinstance(error, RateLimitError)
                and rate_limit_retries < self.config.max_rate_limit_retries
            ):
                rate_limit_retries += 1
                self.total_rate_limit_retries += 1
                await self.tracker.force_exhausted(error.retry_after)
                logger.info(
                    "Re-queueing rate limited request",
                    path=intent.path,
                    retry=rate_limit_retries,
                    retry_after=error.retry_after,
                )
                continue

            return outcome.unwrap()

    async def _acquire(self, intent: RequestIntent) -> None:
        """Return once the intent holds an admission ticket."""
        if self._closed:
            raise HandlerClosedError("Request handler is closed", path=intent.path)

        # Newcomers only skip the line when there is no line
        if not self.queue:
            admission = await self.tracker.try_consume()
            if admission.allowed:
                return

        entry = self.queue.enqueue(intent, self.tracker.now())
        self._ensure_pump()
        self._wakeup.set()
        try:
            await entry.released
        except asyncio.CancelledError:
            if not self.queue.cancel(entry) and _holds_ticket(entry.released):
                # Released by the pump but cancelled before it could dispatch
                await self.tracker.release()
                self._wakeup.set()
            raise

    async def _dispatch(self, intent: RequestIntent) -> Outcome:
        # Shielded: a caller giving up must not abort the call or the quota sync
        task = asyncio.get_running_loop().create_task(self.dispatcher.dispatch(intent))
        self._dispatch_tasks.add(task)
        task.add_done_callback(self._on_dispatch_done)
        return await asyncio.shield(task)

    def _on_dispatch_done(self, task: asyncio.Task[Outcome]) -> None:
        self._dispatch_tasks.discard(task)
        # Server headers may have freed quota for the queue
        self._wakeup.set()

    def _ensure_pump(self) -> None:
        if self._pump_task is None or self._pump_task.done():
            self._pump_task = asyncio.get_running_loop().create_task(
                self._pump(), name="hypixel-queue-pump"
            )

    async def _pump(self) -> None:
        """Drain the queue until it is empty, sleeping while quota is exhausted."""
        while self.queue:
            self._wakeup.clear()
            try:
                await self.queue.drain_ready(self.tracker)
            except Exception as e:
                logger.exception("Queue pump failed", error_type=type(e).__name__)
                error = HypixelApiError(f"Admission queue failed: {type(e).__name__}: {e}")
                error.__cause__ = e
                self.queue.fail_all(error)
                return
            if not self.queue:
                break

            wait = self.config.poll_interval
            if self.queue.retry_at is not None:
                wait = min(wait, self.queue.retry_at - self.tracker.now())
            with contextlib.suppress(TimeoutError):
                await asyncio.wait_for(self._wakeup.wait(), timeout=max(wait, MIN_PUMP_WAIT))

    async def close(self) -> None:
        """
        Stop the handler.

        Queued requests fail with HandlerClosedError, in-flight requests are
        allowed to finish, and the HTTP client is closed if the handler
        created it.
        """
        if self._closed:
            return
        self._closed = True

        if self._pump_task is not None:
            self._pump_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._pump_task
            self._pump_task = None

        failed = self.queue.fail_all(HandlerClosedError("Request handler closed"))
        if failed:
            logger.warning("Failed queued requests on close", count=failed)

        if self._dispatch_tasks:
            await asyncio.gather(*self._dispatch_tasks, return_exceptions=True)

        if self._owns_client:
            await self.client.aclose()

    def get_statistics(self) -> dict[str, Any]:
        """Get current quota, queue and dispatch statistics."""
        stats: dict[str, Any] = {
            "total_requests": self.total_requests,
            "total_rate_limit_retries": self.total_rate_limit_retries,
        }
        stats.update(self.tracker.get_statistics())
        stats.update(self.queue.get_statistics())
        stats.update(self.dispatcher.get_statistics())
        return stats


def _holds_ticket(released: asyncio.Future[None]) -> bool:
    return released.done() and not released.cancelled() and released.exception() is None


def normalize_api_key(api_key: str | uuid.UUID) -> str:
    """
    Return the hyphenated form of an API key.

    Raises:
        ValueError: If the key is not a UUID
    """
    try:
        return str(uuid.UUID(str(api_key).strip()))
    except ValueError as e:
        raise ValueError("Hypixel API key must be a UUID") from e
