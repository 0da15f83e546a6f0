# src/core/backoff.py — v3
"""In-call retry with capped exponential backoff.

Used for transient network failures inside a single call (e.g. one feed
fetch). Cross-run retries of failed items are handled by the retry package.
"""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryConfig:
    """Backoff policy for one kind of call."""

    max_retries: int = 3
    base_delay_s: float = 2.0
    max_delay_s: float = 10.0
    backoff_factor: float = 2.0
    jitter: bool = False


def compute_delay(config: RetryConfig, attempt: int) -> float:
    """Compute delay before retry number `attempt` (0-based), capped."""
    delay = config.base_delay_s * (config.backoff_factor ** attempt)
    if config.jitter:
        delay *= 0.5 + random.random()  # noqa: S311
    return min(delay, config.max_delay_s)


async def with_backoff(
    fn: Callable[[], Awaitable[T]],
    *,
    should_retry: Callable[[Exception], bool],
    config: RetryConfig,
    label: str = "call",
    give_up: Callable[[], bool] | None = None,
) -> T:
    """Await `fn()` and retry it while `should_retry(exc)` holds.

    The last exception is re-raised once `config.max_retries` retries are
    spent, immediately when `should_retry` rejects it, or when `give_up()`
    turns true before the next attempt.
    """
    attempt = 0
    while True:
        try:
            return await fn()
        except Exception as exc:
            if not should_retry(exc) or attempt >= config.max_retries:
                raise
            if give_up is not None and give_up():
                logger.info("%s failed (%s), not retrying: stopped", label, exc)
                raise
            delay = compute_delay(config, attempt)
            attempt += 1
            logger.warning(
                "%s failed (%s), retry %d/%d in %.1fs",
                label, exc, attempt, config.max_retries, delay,
            )
            await asyncio.sleep(delay)
