"""
Redis Infrastructure Module

Shared Redis connection management for the webhook queue and the
active incident cache.
"""

from .connection_factory import RedisConnectionFactory
from .exceptions import (
    RedisException,
    RedisConnectionException,
    RedisOperationTimeoutException,
    QueueSerializationException,
    IncidentCacheException,
    wrap_redis_error,
)

__all__ = [
    "RedisConnectionFactory",
    "RedisException",
    "RedisConnectionException",
    "RedisOperationTimeoutException",
    "QueueSerializationException",
    "IncidentCacheException",
    "wrap_redis_error",
]
