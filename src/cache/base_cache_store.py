# src/cache/base_cache_store.py — v3
"""Abstract fingerprint cache interface.

The cache is the sole source of deduplication truth. Every mutation is a
single atomic backend operation; callers decide whether to enrich with
reserve(), never with is_processed() followed by mark_processed().
"""

from __future__ import annotations

from abc import ABC, abstractmethod

RESERVED = "reserved"
PROCESSED = "processed"


class BaseFingerprintCache(ABC):
    """Unified interface for fingerprint cache backends."""

    @abstractmethod
    async def is_processed(self, fingerprint: str) -> bool:
        """Whether the fingerprint is currently reserved or processed."""

    @abstractmethod
    async def mark_processed(self, fingerprint: str, ttl_s: float) -> None:
        """Mark fingerprint processed until ttl_s elapses (overwrites)."""

    @abstractmethod
    async def reserve(self, fingerprint: str, ttl_s: float) -> bool:
        """Atomic set-if-absent. True if this caller now holds the fingerprint."""

    @abstractmethod
    async def release(self, fingerprint: str) -> None:
        """Drop a fingerprint so a later run may process it again."""

    @abstractmethod
    async def clear(self) -> None:
        """Remove every fingerprint owned by this cache."""

    async def ping(self) -> bool:
        """Whether the backend is reachable. Called once at startup."""
        return True

    async def close(self) -> None:
        """Release backend resources."""
