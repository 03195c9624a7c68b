"""
Key-Value Cache for Embeddings, Rerank Scores and Context Objects

A thin Redis wrapper. Caching is an optimization only: every read or write
error is logged at debug level and treated as a miss, and when REDIS_URL is
unset (or RAG_CACHE_DISABLE is set) a no-op cache is used instead.
"""

import os
import hashlib
import logging
from typing import Optional

import redis

logger = logging.getLogger(__name__)

# TTLs in seconds
CACHE_TTL = {
    "embedding": 24 * 60 * 60,
    "search": 60 * 60,
    "rerank": 60 * 60,
    "context": 60 * 60,
}


def hash_key(*parts) -> str:
    """Stable sha256 digest of the normalized key parts."""
    content = "|".join("" if p is None else str(p) for p in parts)
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


def is_cache_disabled() -> bool:
    return os.getenv("RAG_CACHE_DISABLE", "").strip().lower() in ("true", "1")


class NullCache:
    """Cache that stores nothing. Used when no backend is configured."""

    enabled = False

    def get(self, key: str) -> Optional[str]:
        return None

    def set(self, key: str, value: str, ttl_seconds: Optional[int] = None) -> None:
        return None


class RedisCache:
    """
    Best-effort Redis cache.

    Usage:
        cache = RedisCache.from_url("redis://localhost:6379/0")
        cache.set("leg:ctx:abc", payload, ttl_seconds=3600)
        cache.get("leg:ctx:abc")
    """

    enabled = True

    def __init__(self, client: "redis.Redis"):
        """
        Args:
            client: A redis.Redis (or compatible) client with decode_responses=True
        """
        self._client = client

    @classmethod
    def from_url(cls, url: str) -> "RedisCache":
        client = redis.from_url(
            url,
            encoding="utf-8",
            decode_responses=True,
            socket_timeout=5,
            socket_connect_timeout=5,
            retry_on_timeout=True,
        )
        return cls(client)

    def get(self, key: str) -> Optional[str]:
        try:
            value = self._client.get(key)
        except Exception as e:
            logger.debug(f"Cache get failed for {key}: {e}")
            return None
        if value is not None:
            logger.debug(f"Cache hit: {key}")
        return value

    def set(self, key: str, value: str, ttl_seconds: Optional[int] = None) -> None:
        try:
            if ttl_seconds and ttl_seconds > 0:
                self._client.setex(key, ttl_seconds, value)
            else:
                self._client.set(key, value)
        except Exception as e:
            logger.debug(f"Cache set failed for {key}: {e}")


_cache = None


def get_cache():
    """
    Return the process-wide cache.

    RedisCache when REDIS_URL is configured, NullCache otherwise or when
    RAG_CACHE_DISABLE is "true"/"1".
    """
    global _cache

    if is_cache_disabled():
        return NullCache()

    if _cache is None:
        url = os.getenv("REDIS_URL")
        if url:
            _cache = RedisCache.from_url(url)
            host = url.split("@")[-1] if "@" in url else url.split("//")[-1]
            logger.info(f"Redis cache enabled at {host}")
        else:
            logger.info("REDIS_URL not configured, caching disabled")
            _cache = NullCache()
    return _cache


def reset_cache() -> None:
    """Forget the process-wide cache (used after configuration changes)."""
    global _cache
    _cache = None
