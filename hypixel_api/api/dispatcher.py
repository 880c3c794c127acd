"""
Network dispatch for admitted requests.

The dispatcher is the only component that talks to the network and the
only source of classified outcomes. After every attempt it reports the
server's rate-limit headers back to the quota tracker.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import TypeVar

import httpx
import structlog
from pydantic import ValidationError

from ..logging_utils import RequestErrorHandler, log_operation
from .exceptions import (
    DecodeError,
    HttpStatusError,
    RateLimitError,
    TransportError,
)
from .rate_limiting.models import (
    Outcome,
    RequestIntent,
    ServerRateLimitState,
    ThrottleConfig,
)
from .rate_limiting.tracker import QuotaTracker
from .replies import ErrorReply

logger = structlog.get_logger(__name__)

HTTP_OK = 200
HTTP_TOO_MANY_REQUESTS = 429

API_KEY_HEADER = "API-Key"


@dataclass(frozen=True)
class RateLimitHeaders:
    """Names of the response headers carrying rate-limit metadata."""
    remaining: str = "ratelimit-remaining"
    reset: str = "ratelimit-reset"
    limit: str = "ratelimit-limit"
    retry_after: str = "retry-after"

    def parse(self, headers: httpx.Headers) -> ServerRateLimitState:
        """
        Extract rate-limit metadata from response headers.

        Missing or malformed values are left out; a malformed header never
        fails the request.
        """
        remaining = _header_number(headers, self.remaining, int)
        limit = _header_number(headers, self.limit, int)
        if limit is not None and limit < 1:
            logger.warning(
                "Ignoring malformed rate-limit header", header=self.limit, value=limit
            )
            limit = None
        return ServerRateLimitState(
            remaining=None if remaining is None else max(0, remaining),
            reset_after=_header_number(headers, self.reset, float),
            limit=limit,
            retry_after=_header_number(headers, self.retry_after, float),
        )


N = TypeVar("N", int, float)


def _header_number(
    headers: httpx.Headers, name: str, kind: type[N]
) -> N | None:
    raw = headers.get(name)
    if raw is None:
        return None
    try:
        return kind(raw.strip())
    except ValueError:
        logger.warning("Ignoring malformed rate-limit header", header=name, value=raw)
        return None


# Connection never established: the server cannot have counted the request
_PRE_SEND_ERRORS = (httpx.ConnectError, httpx.ConnectTimeout)


class Dispatcher:
    """Performs the HTTP call for one admitted intent and classifies the result."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        tracker: QuotaTracker,
        api_key: str,
        config: ThrottleConfig,
        headers: RateLimitHeaders | None = None,
    ):
        self.client = client
        self.tracker = tracker
        self.config = config
        self.headers = headers or RateLimitHeaders()
        self._api_key = api_key

        self.total_dispatched = 0
        self.total_transport_retries = 0

    @log_operation("dispatch", level="debug")
    async def dispatch(self, intent: RequestIntent) -> Outcome:
        """
        Send one admitted request and classify what came back.

        Connect failures are retried with exponential backoff, at most
        `max_transport_retries` times and only for retryable intents. Each
        attempt is reported to the tracker exactly once.

        Returns:
            Outcome holding the decoded payload or one classified error
        """
        attempt = 0
        while True:
            attempt += 1
            try:
                response = await self._send(intent)
            except httpx.RequestError as e:
                await self.tracker.observe_server_state(ServerRateLimitState())
                if self._should_retry(intent, e, attempt):
                    delay = self.config.backoff_delay(attempt - 1)
                    self.total_transport_retries += 1
                    logger.warning(
                        "Transport failure, retrying",
                        path=intent.path,
                        attempt=attempt,
                        error_type=type(e).__name__,
                        delay=delay,
                    )
                    await asyncio.sleep(delay)
                    # The retry is a new request as far as the quota goes
                    await self._readmit()
                    continue
                error = TransportError(
                    f"Transport failure for '{intent.path}': {type(e).__name__}: {e}",
                    attempts=attempt,
                    path=intent.path,
                )
                RequestErrorHandler.log_failure(e, "dispatch", {"path": intent.path})
                return Outcome.failure(error, attempts=attempt)
            except Exception:
                await self.tracker.observe_server_state(ServerRateLimitState())
                raise

            return await self._classify(intent, response, attempt)

    async def _send(self, intent: RequestIntent) -> httpx.Response:
        headers = {API_KEY_HEADER: self._api_key} if intent.requires_auth else {}
        self.total_dispatched += 1
        return await self.client.get(intent.path.lstrip("/"), headers=headers)

    def _should_retry(
        self, intent: RequestIntent, error: httpx.RequestError, attempt: int
    ) -> bool:
        if not intent.retryable:
            return False
        if attempt > self.config.max_transport_retries:
            return False
        return isinstance(error, _PRE_SEND_ERRORS)

    async def _readmit(self) -> None:
        while True:
            admission = await self.tracker.try_consume()
            if admission.allowed:
                return
            wait = max(0.0, (admission.wait_until or 0.0) - self.tracker.now())
            await asyncio.sleep(min(wait, self.config.poll_interval))

    async def _classify(
        self, intent: RequestIntent, response: httpx.Response, attempt: int
    ) -> Outcome:
        state = self.headers.parse(response.headers)
        await self.tracker.observe_server_state(state)

        status = response.status_code
        body = response.content

        if status == HTTP_OK:
            try:
                payload = intent.decode(body)
            except Exception as e:
                error = DecodeError(
                    f"Could not decode response of '{intent.path}': {type(e).__name__}: {e}",
                    body=body,
                    path=intent.path,
                )
                error.__cause__ = e
                RequestErrorHandler.log_failure(error, "decode", {"path": intent.path})
                return Outcome.failure(error, status_code=status, attempts=attempt)
            return Outcome.success(payload, status_code=status, attempts=attempt)

        if status == HTTP_TOO_MANY_REQUESTS:
            retry_after = state.retry_after
            if retry_after is None:
                retry_after = state.reset_after
            if retry_after is None:
                retry_after = self.config.window_seconds
            error = RateLimitError(
                f"Rate limited by server on '{intent.path}'",
                retry_after=retry_after,
                path=intent.path,
            )
            logger.warning(
                "Server rate limit hit despite admission",
                path=intent.path,
                retry_after=retry_after,
                remaining=state.remaining,
            )
            return Outcome.failure(error, status_code=status, attempts=attempt)

        cause = _parse_error_reply(body)
        error = HttpStatusError(
            f"Unexpected response code {status} for '{intent.path}'"
            + (f": {cause.cause}" if cause and cause.cause else ""),
            status_code=status,
            cause=cause,
            body=body,
            path=intent.path,
        )
        RequestErrorHandler.log_failure(
            error, "dispatch", {"path": intent.path, "status_code": status}
        )
        return Outcome.failure(error, status_code=status, attempts=attempt)

    def get_statistics(self) -> dict[str, int]:
        return {
            "total_dispatched": self.total_dispatched,
            "total_transport_retries": self.total_transport_retries,
        }


def _parse_error_reply(body: bytes) -> ErrorReply | None:
    if not body:
        return None
    try:
        return ErrorReply.model_validate_json(body)
    except ValidationError:
        return None
