# src/pipeline/deadline.py — v1
"""Batch deadline: a wall-clock expiry plus an explicit cancel signal.

One Deadline flows from the batch entry point through every stage. Stages
check ``expired`` before starting a new item; in-flight work is never
interrupted by the deadline itself.
"""

from __future__ import annotations

import asyncio
import time
from typing import Callable


class Deadline:
    """Expiry + cancel event shared by all stages of one batch."""

    def __init__(
        self,
        timeout_s: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._clock = clock
        self._expires_at = None if timeout_s is None else clock() + timeout_s
        self._cancelled = asyncio.Event()

    @classmethod
    def never(cls) -> Deadline:
        """Deadline that only fires on explicit cancel."""
        return cls(None)

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    @property
    def timed_out(self) -> bool:
        return self._expires_at is not None and self._clock() >= self._expires_at

    @property
    def expired(self) -> bool:
        """True once cancelled or past the expiry time."""
        return self.cancelled or self.timed_out

    @property
    def remaining_s(self) -> float | None:
        if self._expires_at is None:
            return None
        return max(self._expires_at - self._clock(), 0.0)

    def cancel(self) -> None:
        self._cancelled.set()

    async def wait(self) -> None:
        """Block until cancelled or expired."""
        remaining = self.remaining_s
        if remaining is None:
            await self._cancelled.wait()
            return
        try:
            await asyncio.wait_for(self._cancelled.wait(), timeout=remaining)
        except asyncio.TimeoutError:
            pass
