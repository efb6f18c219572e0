"""
Redis Connection Factory

Builds the shared asyncio Redis client used by the webhook queue and the
active incident cache, and owns its lifecycle.
"""

import asyncio
import logging
from typing import Optional

from redis.asyncio import ConnectionPool, Redis
from redis.exceptions import (
    ConnectionError as RedisConnectionError,
    TimeoutError as RedisTimeoutError,
    RedisError,
)

from ...core.config import Settings, get_settings
from .exceptions import RedisConnectionException

logger = logging.getLogger(__name__)


class RedisConnectionFactory:
    """
    Factory for creating and managing the Redis connection pool.

    A single pool is shared by every consumer; the delivery worker uses it
    sequentially, so there is no contention on the queue client.
    """

    def __init__(self, settings: Optional[Settings] = None):
        self._settings = settings
        self._pool: Optional[ConnectionPool] = None
        self._client: Optional[Redis] = None
        self._lock = asyncio.Lock()

    @property
    def settings(self) -> Settings:
        if self._settings is None:
            self._settings = get_settings()
        return self._settings

    async def initialize(self) -> Redis:
        """Create the pool and verify connectivity with PING."""
        if self._client is not None:
            return self._client

        async with self._lock:
            if self._client is not None:
                return self._client

            settings = self.settings
            pool = ConnectionPool.from_url(
                settings.REDIS_URL,
                encoding="utf-8",
                decode_responses=True,
                socket_connect_timeout=settings.REDIS_CONNECTION_TIMEOUT,
                socket_timeout=settings.REDIS_SOCKET_TIMEOUT,
                max_connections=settings.REDIS_MAX_CONNECTIONS,
            )
            client = Redis(connection_pool=pool)

            try:
                await client.ping()
            except (RedisConnectionError, RedisTimeoutError, OSError) as e:
                await pool.disconnect()
                logger.error(f"Failed to connect to Redis: {e}")
                raise RedisConnectionException(
                    message="Redis connection test failed",
                    url=self._redacted_url(settings.REDIS_URL),
                    original_error=e,
                )

            self._pool = pool
            self._client = client
            logger.info(
                "Redis client connected successfully",
                extra={
                    "url": self._redacted_url(settings.REDIS_URL),
                    "max_connections": settings.REDIS_MAX_CONNECTIONS,
                },
            )
            return client

    def get_client(self) -> Redis:
        """Return the connected client; `initialize` must have run."""
        if self._client is None:
            raise RedisConnectionException(message="Redis client is not initialized")
        return self._client

    async def close(self) -> None:
        """Close the client and release pooled connections."""
        if self._client is None:
            return
        try:
            await self._client.aclose()
        except RedisError as e:
            logger.warning(f"Error while closing Redis client: {e}")
        finally:
            self._client = None
            self._pool = None
            logger.info("Redis connection factory closed")

    @staticmethod
    def _redacted_url(url: str) -> str:
        if "@" not in url:
            return url
        scheme, _, rest = url.partition("://")
        return f"{scheme}://***@{rest.split('@', 1)[1]}"
