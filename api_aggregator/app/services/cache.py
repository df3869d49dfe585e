"""
Redis cache service for the Location Data Aggregator.
Thin async key/value store; callers decide how to react to failures.
"""

import asyncio
from typing import Optional
import redis.asyncio as redis
from redis.asyncio.connection import ConnectionPool
from redis.exceptions import RedisError

from ..core.config import settings
from ..core.exceptions import CacheError
from ..core.logging_config import create_logger

logger = create_logger(__name__)


class CacheService:
    """Redis-backed string cache with per-key TTL."""

    def __init__(self, redis_url: Optional[str] = None, client: Optional[redis.Redis] = None):
        self._redis_url = redis_url or settings.get_redis_url()
        self._pool: Optional[ConnectionPool] = None
        self._redis: Optional[redis.Redis] = client
        self._connection_lock = asyncio.Lock()

    @property
    def _redis_location(self) -> str:
        """Connection URL without credentials, for logs."""
        return self._redis_url.rsplit("@", 1)[-1]

    async def connect(self) -> None:
        """
        Open the connection pool and verify Redis answers.

        The client is kept even when the ping fails: the pool opens fresh
        connections per command, so the cache starts working once Redis is back.

        Raises:
            CacheError: If Redis did not answer the ping
        """
        async with self._connection_lock:
            if self._redis is None:
                self._pool = ConnectionPool.from_url(
                    self._redis_url,
                    max_connections=20,
                    retry_on_timeout=True,
                    socket_keepalive=True,
                    health_check_interval=30
                )
                self._redis = redis.Redis(connection_pool=self._pool)

            try:
                await self._redis.ping()
            except (RedisError, OSError) as e:
                logger.error("Failed to connect to Redis", extra={
                    "error": str(e),
                    "redis": self._redis_location
                })
                raise CacheError(f"Failed to connect to Redis: {e}") from e

            logger.info("Successfully connected to Redis", extra={"redis": self._redis_location})

    async def disconnect(self) -> None:
        """Close Redis connection."""
        async with self._connection_lock:
            if self._redis:
                await self._redis.aclose()
                self._redis = None
            if self._pool:
                await self._pool.disconnect()
                self._pool = None
            logger.info("Disconnected from Redis")

    async def health_check(self) -> bool:
        """Check Redis connection health."""
        try:
            if not self._redis:
                return False
            await self._redis.ping()
            return True
        except Exception as e:
            logger.warning("Redis health check failed", extra={"error": str(e)})
            return False

    def _client(self) -> redis.Redis:
        if self._redis is None:
            raise CacheError("Redis is not connected")
        return self._redis

    async def get(self, key: str) -> Optional[str]:
        """
        Get a cached value.

        Returns:
            The stored string, or None on a miss

        Raises:
            CacheError: If Redis cannot be read
        """
        try:
            value = await self._client().get(key)
        except RedisError as e:
            raise CacheError(f"Failed to read cache key {key}: {e}") from e

        if not isinstance(value, bytes):
            return value
        try:
            return value.decode("utf-8")
        except UnicodeDecodeError as e:
            raise CacheError(f"Cache key {key} holds a non UTF-8 value") from e

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        """
        Store a value with an absolute expiration.

        Raises:
            CacheError: If Redis cannot be written
        """
        try:
            await self._client().setex(key, ttl_seconds, value)
        except RedisError as e:
            raise CacheError(f"Failed to write cache key {key}: {e}") from e

        logger.debug("Stored value in cache", extra={"key": key, "ttl": ttl_seconds})
