"""
Distributed Cache Service using Redis

Provides a shared cache layer for all backend pods so the GitHub App
installation tokens and the publish whitelist are fetched once per TTL
instead of once per publish request.

Key features:
- Automatic JSON serialization/deserialization
- TTL-based expiration
- Graceful fallback when Redis is unavailable
- Cache key prefixing for namespace isolation
"""

import asyncio
import json
import logging
from typing import Any, Callable, Dict, Optional

import redis.asyncio as redis
from redis.asyncio.connection import ConnectionPool

from app.core.config import settings
from app.core.constants import GITHUB_INSTALLATION_TOKEN_TTL, WHITELIST_CACHE_TTL

logger = logging.getLogger(__name__)


class CacheService:
    """
    Distributed cache service using Redis.

    Every read and write degrades to a cache miss when Redis is unreachable,
    so the publish path never depends on the cache being up.
    """

    def __init__(self):
        self._pool: Optional[ConnectionPool] = None
        self._client: Optional[redis.Redis] = None
        self._available: bool = True
        self._lock: asyncio.Lock = asyncio.Lock()

    async def get_client(self) -> redis.Redis:
        """Get or create Redis client with connection pooling.

        Uses a lock to prevent race conditions when multiple coroutines
        try to initialize the client simultaneously.
        """
        if self._client is not None and self._pool is not None:
            return self._client

        async with self._lock:
            # Double-check after acquiring lock
            if self._client is not None and self._pool is not None:
                return self._client

            try:
                self._pool = ConnectionPool.from_url(
                    settings.REDIS_URL,
                    encoding="utf-8",
                    decode_responses=True,
                    max_connections=20,
                )
                self._client = redis.Redis(connection_pool=self._pool)
                await self._client.ping()
                self._available = True
                logger.info("Redis cache connection established")
            except Exception as e:
                logger.warning(f"Redis connection failed: {e}. Cache will be disabled.")
                self._available = False
                raise
        return self._client

    async def close(self) -> None:
        """Close Redis connection pool."""
        if self._client:
            await self._client.aclose()
            self._client = None
        if self._pool:
            await self._pool.disconnect()
            self._pool = None

    def _make_key(self, key: str) -> str:
        """Create prefixed cache key."""
        return f"{settings.CACHE_PREFIX}{key}"

    async def get(self, key: str) -> Optional[Any]:
        """
        Get value from cache.

        Args:
            key: Cache key (will be prefixed automatically)

        Returns:
            Cached value or None if not found/expired
        """
        if not self._available:
            return None

        try:
            client = await self.get_client()
            data = await client.get(self._make_key(key))
            if data:
                return json.loads(data)
            return None
        except redis.ConnectionError:
            logger.warning("Redis connection lost, disabling cache temporarily")
            self._available = False
            return None
        except json.JSONDecodeError as e:
            logger.warning(f"Failed to decode cached value for {key}: {e}")
            return None
        except Exception as e:
            logger.warning(f"Cache get error for {key}: {e}")
            return None

    async def set(self, key: str, value: Any, ttl_seconds: Optional[int] = None) -> bool:
        """
        Set value in cache with TTL.

        Args:
            key: Cache key (will be prefixed automatically)
            value: Value to cache (must be JSON serializable)
            ttl_seconds: Time-to-live in seconds (default from settings)

        Returns:
            True if cached successfully, False otherwise
        """
        if not self._available:
            return False

        if ttl_seconds is None:
            ttl_seconds = settings.CACHE_DEFAULT_TTL_HOURS * 3600

        try:
            client = await self.get_client()
            serialized = json.dumps(value, default=str)
            await client.setex(self._make_key(key), ttl_seconds, serialized)
            return True
        except redis.ConnectionError:
            logger.warning("Redis connection lost, disabling cache temporarily")
            self._available = False
            return False
        except (TypeError, ValueError) as e:
            logger.warning(f"Failed to serialize value for {key}: {e}")
            return False
        except Exception as e:
            logger.warning(f"Cache set error for {key}: {e}")
            return False

    async def get_or_fetch(
        self,
        key: str,
        fetch_fn: Callable[[], Any],
        ttl_seconds: Optional[int] = None,
    ) -> Any:
        """
        Get from cache or fetch and cache if missing.

        Args:
            key: Cache key
            fetch_fn: Async function to call if cache miss
            ttl_seconds: TTL for cached value

        Returns:
            Cached or freshly fetched value
        """
        cached = await self.get(key)
        if cached is not None:
            return cached

        try:
            data = await fetch_fn()
            if data is not None:
                await self.set(key, data, ttl_seconds)
            return data
        except Exception as e:
            logger.warning(f"Fetch function failed for {key}: {e}")
            raise

    async def health_check(self) -> Dict[str, Any]:
        """Get cache health status."""
        try:
            client = await self.get_client()
            stats = await client.info(section="stats")
            return {
                "status": "healthy",
                "available": self._available,
                "total_keys": await client.dbsize(),
                "keyspace_hits": stats.get("keyspace_hits", 0),
                "keyspace_misses": stats.get("keyspace_misses", 0),
            }
        except Exception as e:
            return {
                "status": "unhealthy",
                "available": False,
                "error": str(e),
            }


# Global cache service instance
cache_service = CacheService()


class CacheTTL:
    """Standard TTL values for different types of cached data."""

    INSTALLATION_TOKEN = GITHUB_INSTALLATION_TOKEN_TTL
    WHITELIST = WHITELIST_CACHE_TTL


class CacheKeys:
    """Cache key builders for consistent key naming."""

    @staticmethod
    def installation_token(owner: str, repo: str) -> str:
        return f"github:installation-token:{owner}/{repo}"

    @staticmethod
    def whitelist() -> str:
        return "whitelist:entries"
