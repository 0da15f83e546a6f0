# src/cache/memory_store.py — v1
"""Process-local fingerprint cache (CACHE_BACKEND=memory).

Suitable for single-process deployments and tests. Entries expire lazily on
access; a lock makes reserve() a single indivisible check-and-set even when
callers run on worker threads.
"""

from __future__ import annotations

import threading
import time
from typing import Callable

from newsweaver.cache.base_cache_store import PROCESSED, RESERVED, BaseFingerprintCache


class MemoryFingerprintCache(BaseFingerprintCache):
    """In-memory fingerprint cache with per-entry expiry."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._entries: dict[str, tuple[str, float]] = {}
        self._lock = threading.Lock()

    def _live(self, fingerprint: str, now: float) -> bool:
        """Whether an unexpired entry exists. Caller holds the lock."""
        entry = self._entries.get(fingerprint)
        if entry is None:
            return False
        if entry[1] <= now:
            del self._entries[fingerprint]
            return False
        return True

    async def is_processed(self, fingerprint: str) -> bool:
        with self._lock:
            return self._live(fingerprint, self._clock())

    async def mark_processed(self, fingerprint: str, ttl_s: float) -> None:
        with self._lock:
            self._entries[fingerprint] = (PROCESSED, self._clock() + ttl_s)

    async def reserve(self, fingerprint: str, ttl_s: float) -> bool:
        with self._lock:
            now = self._clock()
            if self._live(fingerprint, now):
                return False
            self._entries[fingerprint] = (RESERVED, now + ttl_s)
            return True

    async def release(self, fingerprint: str) -> None:
        with self._lock:
            self._entries.pop(fingerprint, None)

    async def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            now = self._clock()
            return sum(1 for _, expires in self._entries.values() if expires > now)
