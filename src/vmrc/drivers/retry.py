"""Bounded retry for fallible driver commands."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_RETRY_COUNT = 2
DEFAULT_RETRY_DELAY = 0.06


async def run_with_retry(
    operation: Callable[[], Awaitable[T]],
    label: str,
    retries: int = DEFAULT_RETRY_COUNT,
    delay: float = DEFAULT_RETRY_DELAY,
) -> T:
    """Await ``operation()`` up to ``retries + 1`` times.

    Each failed attempt is logged as a warning and followed by a fixed
    ``delay`` (seconds). Once attempts are exhausted the last error is
    re-raised unchanged. Cancellation is never retried.

    Args:
        operation: Zero-argument callable returning a fresh awaitable per
                   attempt.
        label: Short description used in log messages.
        retries: Extra attempts after the first one.
        delay: Pause between attempts.
    """
    attempt = 0
    while True:
        try:
            return await operation()
        except Exception as e:
            if attempt >= retries:
                raise
            attempt += 1
            logger.warning("%s failed (attempt %d/%d): %s", label, attempt, retries + 1, e)
            if delay > 0:
                await asyncio.sleep(delay)
