# src/cache/redis_store.py — v3
"""Redis-based fingerprint cache (CACHE_BACKEND=redis).

Requires 'redis' package: pip install redis.
Suitable for multi-instance deployments sharing one dedup window.
Reservation uses SET NX PX so check-and-reserve is one round trip.
"""

from __future__ import annotations

import logging
from typing import Any

from newsweaver.cache.base_cache_store import PROCESSED, RESERVED, BaseFingerprintCache

logger = logging.getLogger(__name__)

_CLEAR_SCAN_COUNT = 500


class RedisFingerprintCache(BaseFingerprintCache):
    """Redis-backed fingerprint cache."""

    def __init__(
        self,
        redis_url: str,
        key_prefix: str = "newsweaver:processed:",
        client: Any = None,
    ) -> None:
        if client is None:
            try:
                import redis.asyncio as aioredis
            except ImportError as e:
                raise ImportError(
                    "redis package required: pip install redis"
                ) from e
            client = aioredis.Redis.from_url(redis_url, decode_responses=True)

        self._client = client
        self._prefix = key_prefix

    def _key(self, fingerprint: str) -> str:
        return f"{self._prefix}{fingerprint}"

    @staticmethod
    def _ttl_ms(ttl_s: float) -> int:
        return max(int(ttl_s * 1000), 1)

    async def is_processed(self, fingerprint: str) -> bool:
        return await self._client.exists(self._key(fingerprint)) > 0

    async def mark_processed(self, fingerprint: str, ttl_s: float) -> None:
        await self._client.set(
            self._key(fingerprint), PROCESSED, px=self._ttl_ms(ttl_s)
        )

    async def reserve(self, fingerprint: str, ttl_s: float) -> bool:
        acquired = await self._client.set(
            self._key(fingerprint), RESERVED, nx=True, px=self._ttl_ms(ttl_s)
        )
        return bool(acquired)

    async def release(self, fingerprint: str) -> None:
        await self._client.delete(self._key(fingerprint))

    async def clear(self) -> None:
        """Delete every key under the prefix (SCAN, never KEYS)."""
        batch: list[str] = []
        removed = 0
        async for key in self._client.scan_iter(
            match=f"{self._prefix}*", count=_CLEAR_SCAN_COUNT
        ):
            batch.append(key)
            if len(batch) >= _CLEAR_SCAN_COUNT:
                removed += await self._client.delete(*batch)
                batch.clear()
        if batch:
            removed += await self._client.delete(*batch)
        logger.info("Cleared %d fingerprint(s) under %s", removed, self._prefix)

    async def ping(self) -> bool:
        """PING the server; connection errors propagate."""
        return bool(await self._client.ping())

    async def close(self) -> None:
        """Close the Redis connection."""
        await self._client.aclose()
