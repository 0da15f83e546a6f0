# src/cache/cache_factory.py — v3
"""Factory for fingerprint cache instantiation."""

from __future__ import annotations

from newsweaver.cache.base_cache_store import BaseFingerprintCache
from newsweaver.config.settings import Settings


def create_cache_store(settings: Settings | None = None) -> BaseFingerprintCache:
    """Instantiate the configured cache backend.

    Args:
        settings: Application settings. Defaults to the memory backend.

    Returns:
        Configured BaseFingerprintCache implementation.
    """
    backend = "memory" if settings is None else settings.cache_backend

    if backend == "memory":
        from newsweaver.cache.memory_store import MemoryFingerprintCache
        return MemoryFingerprintCache()

    if backend == "redis":
        from newsweaver.cache.redis_store import RedisFingerprintCache
        if settings is None or not settings.cache_redis_url:
            raise ValueError(
                "CACHE_REDIS_URL must be set when CACHE_BACKEND=redis"
            )
        return RedisFingerprintCache(
            redis_url=settings.cache_redis_url,
            key_prefix=settings.cache_key_prefix,
        )

    raise ValueError(f"Unsupported cache backend: {backend!r}")
