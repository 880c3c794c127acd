"""
Demo entry point: push a burst of `key` requests through one handler.

The burst is larger than the quota, so part of it waits in the queue for
the next window. Every request still completes.
"""

from __future__ import annotations

import argparse
import asyncio
import logging

from .api import HypixelApiError, KeyReply, RequestHandler
from .config import Configuration
from .logging_utils import configure_logging, operation_context


async def run_burst(handler: RequestHandler, count: int, spacing: float) -> int:
    """Submit `count` requests and print results as they complete.

    Returns:
        Number of failed requests.
    """
    pending: list[asyncio.Task[KeyReply]] = []
    for _ in range(count):
        pending.append(handler.request("key", KeyReply))
        await asyncio.sleep(spacing)

    failures = 0
    for task in asyncio.as_completed(pending):
        try:
            reply = await task
        except HypixelApiError as e:
            failures += 1
            print(f"Request failed: {type(e).__name__}: {e}")
            continue
        print(
            f"Key record: {reply.record.queries_in_past_min} queries in past minute "
            f"(limit {reply.record.limit})"
        )

    return failures


async def main(count: int = 300, spacing: float = 0.003) -> None:
    """Main entry point - burst demo with a configured handler."""
    config = Configuration()
    configure_logging(config.get_logging_config().get("level", "INFO"))

    async with (
        RequestHandler.from_config(config) as handler,
        operation_context("request_burst", context={"count": count}),
    ):
        failures = await run_burst(handler, count, spacing)
        stats = handler.get_statistics()

    logging.info(
        f"Burst complete: {count - failures} succeeded, {failures} failed, "
        f"{stats['total_rate_limit_retries']} rate-limit retries"
    )


def cli() -> None:
    parser = argparse.ArgumentParser(description="Hypixel API rate-limit demo")
    parser.add_argument("--count", type=int, default=300)
    parser.add_argument("--spacing", type=float, default=0.003)
    args = parser.parse_args()
    asyncio.run(main(args.count, args.spacing))


if __name__ == "__main__":
    cli()
