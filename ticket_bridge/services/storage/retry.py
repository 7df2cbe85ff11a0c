"""Exponential backoff for throttled storage writes."""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, TypeVar

import structlog

from ticket_bridge.core.exceptions import StorageRateLimitError

logger = structlog.get_logger(__name__)

T = TypeVar("T")

Sleep = Callable[[float], Awaitable[None]]


async def retry_on_rate_limit(
    operation: Callable[[], Awaitable[T]],
    *,
    name: str,
    max_attempts: int = 3,
    base_delay: float = 1.0,
    sleep: Sleep = asyncio.sleep,
) -> T:
    """Run operation, retrying only StorageRateLimitError.

    Delays double from base_delay (1s, 2s, ...). Any other error propagates
    immediately; the last rate-limit error propagates once attempts run out.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    attempt = 0
    while True:
        try:
            return await operation()
        except StorageRateLimitError as e:
            if attempt >= max_attempts - 1:
                logger.error(
                    "storage_rate_limit_retries_exhausted",
                    operation=name,
                    attempts=max_attempts,
                )
                raise
            delay = base_delay * (2**attempt)
            logger.warning(
                "storage_rate_limited_retrying",
                operation=name,
                attempt=attempt + 1,
                max_attempts=max_attempts,
                delay_seconds=delay,
                error=str(e),
            )
            await sleep(delay)
            attempt += 1
