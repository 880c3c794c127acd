"""
Centralized logging and error classification utilities for the Hypixel client.

This module provides decorators and helper functions to standardize logging
and error reporting across the request pipeline.

Features:
- Structured logging with contextual information
- Error type detection and classification for request outcomes
- Performance timing for operations
"""

from __future__ import annotations

import functools
import logging
import sys
import time
from collections.abc import Awaitable, Callable
from contextlib import asynccontextmanager
from typing import Any, ParamSpec, TypeVar

import httpx
import structlog
from pydantic import ValidationError

from .api.exceptions import (
    DecodeError,
    HandlerClosedError,
    HttpStatusError,
    QueueFullError,
    QueueTimeoutError,
    RateLimitError,
    TransportError,
)

# Configure structured logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.dev.ConsoleRenderer(colors=True),
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

# Type variables for generic decorators
P = ParamSpec("P")
T = TypeVar("T")
AsyncCallable = Callable[P, Awaitable[T]]

logger = structlog.get_logger(__name__)


def configure_logging(level: str = "INFO") -> None:
    """Route structlog output through stdlib logging at `level`."""
    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        raise ValueError(f"Unknown log level '{level}'")
    logging.basicConfig(level=numeric_level, format="%(message)s", stream=sys.stdout)
    logging.getLogger().setLevel(numeric_level)


class RequestErrorHandler:
    """Classification of request failures for structured logs."""

    @staticmethod
    def classify_error(error: BaseException) -> str:
        """
        Classify an error into a log category.

        Args:
            error: The exception to classify

        Returns:
            Error category name
        """
        if isinstance(error, RateLimitError):
            return "rate_limited"
        if isinstance(error, HttpStatusError):
            return "http_error"
        if isinstance(error, DecodeError | ValidationError):
            return "decode_error"
        if isinstance(error, QueueFullError):
            return "queue_full"
        if isinstance(error, QueueTimeoutError | HandlerClosedError):
            return "queue_error"
        if isinstance(error, TimeoutError | httpx.TimeoutException):
            return "timeout_error"
        if isinstance(error, TransportError | httpx.TransportError | ConnectionError):
            return "transport_error"
        return "unknown_error"

    @staticmethod
    def log_failure(
        error: BaseException,
        operation: str,
        context: dict[str, Any] | None = None,
    ) -> str:
        """Log a classified failure and return its category."""
        error_category = RequestErrorHandler.classify_error(error)
        logger.warning(
            "Request failed",
            operation=operation,
            error_type=type(error).__name__,
            error_category=error_category,
            error_message=str(error),
            **(context or {}),
        )
        return error_category


def log_operation(
    operation: str,
    *,
    level: str = "info",
    log_args: bool = False,
    log_result: bool = False,
    log_timing: bool = True,
    context: dict[str, Any] | None = None,
) -> Callable[[AsyncCallable[P, T]], AsyncCallable[P, T]]:
    """
    Decorator for logging async operations with structured context.

    Args:
        operation: Description of the operation being performed
        level: Log level for start/success events (failures log at error)
        log_args: Whether to log function arguments
        log_result: Whether to log function result
        log_timing: Whether to log execution timing
        context: Additional context to include in logs

    Returns:
        Decorated function with logging
    """
    def decorator(func: AsyncCallable[P, T]) -> AsyncCallable[P, T]:
        @functools.wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            operation_logger = logger.bind(
                operation=operation,
                function=func.__name__,
                **(context or {}),
            )
            emit = getattr(operation_logger, level)

            log_data: dict[str, Any] = {}
            if log_args:
                log_data.update({
                    "args": args[1:] if args else [],  # Skip 'self' if present
                    "kwargs": kwargs,
                })

            emit("Operation started", **log_data)

            start_time = time.perf_counter() if log_timing else None

            try:
                result = await func(*args, **kwargs)

                end_log_data: dict[str, Any] = {}
                if log_timing and start_time is not None:
                    duration = round((time.perf_counter() - start_time) * 1000, 2)
                    end_log_data["duration_ms"] = duration
                if log_result:
                    end_log_data["result"] = result

                emit("Operation completed successfully", **end_log_data)
                return result

            except Exception as e:
                error_log_data: dict[str, Any] = {
                    "error_type": type(e).__name__,
                    "error_category": RequestErrorHandler.classify_error(e),
                    "error_message": str(e),
                }
                if log_timing and start_time is not None:
                    duration = round((time.perf_counter() - start_time) * 1000, 2)
                    error_log_data["duration_ms"] = duration

                operation_logger.error("Operation failed", **error_log_data)
                raise

        return wrapper
    return decorator


@asynccontextmanager
async def operation_context(
    operation: str,
    *,
    context: dict[str, Any] | None = None,
    log_timing: bool = True,
):
    """
    Async context manager for operation logging.

    Args:
        operation: Description of the operation
        context: Additional context for logging
        log_timing: Whether to log operation timing

    Yields:
        Bound logger for the operation
    """
    operation_logger = logger.bind(
        operation=operation,
        **(context or {}),
    )

    operation_logger.info("Operation started")
    start_time = time.perf_counter() if log_timing else None

    try:
        yield operation_logger

        log_data: dict[str, Any] = {}
        if log_timing and start_time is not None:
            duration = round((time.perf_counter() - start_time) * 1000, 2)
            log_data["duration_ms"] = duration

        operation_logger.info("Operation completed successfully", **log_data)

    except Exception as e:
        error_log_data: dict[str, Any] = {
            "error_type": type(e).__name__,
            "error_category": RequestErrorHandler.classify_error(e),
            "error_message": str(e),
        }
        if log_timing and start_time is not None:
            duration = round((time.perf_counter() - start_time) * 1000, 2)
            error_log_data["duration_ms"] = duration

        operation_logger.error("Operation failed", **error_log_data)
        raise
