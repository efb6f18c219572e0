"""
Redis Infrastructure Exceptions

Errors raised by the webhook queue and the active incident cache. Every
redis-py error is translated into this hierarchy with the original error
chained as `__cause__`.
"""

from typing import Any, Dict, Optional

from redis.exceptions import (
    ConnectionError as RedisConnectionError,
    RedisError,
    TimeoutError as RedisTimeoutError,
)


class RedisException(Exception):
    """Base exception for Redis-backed storage.

    `details` carries the failing `operation` and `key` when they are known,
    so callers can log the error without inspecting its type.
    """

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        operation: Optional[str] = None,
        key: Optional[str] = None,
    ):
        self.message = message
        self.error_code = error_code
        self.details = dict(details or {})
        if operation:
            self.details.setdefault("operation", operation)
        if key:
            self.details.setdefault("key", key)
        super().__init__(self.message)

    def log_fields(self) -> Dict[str, Any]:
        return {"error": self.message, "error_code": self.error_code, **self.details}


class RedisConnectionException(RedisException):
    """Redis is unreachable or the connection dropped mid-command."""

    def __init__(
        self,
        message: str = "Redis connection failed",
        url: Optional[str] = None,
        original_error: Optional[Exception] = None,
        operation: Optional[str] = None,
    ):
        details: Dict[str, Any] = {}
        if url:
            details["url"] = url
        if original_error:
            details["original_error_type"] = type(original_error).__name__

        super().__init__(
            message=message,
            error_code="REDIS_CONNECTION_ERROR",
            details=details,
            operation=operation,
        )
        if original_error:
            self.__cause__ = original_error


class RedisOperationTimeoutException(RedisException):
    """A command did not answer within the socket timeout."""

    def __init__(
        self, operation: str, timeout_seconds: float, key: Optional[str] = None
    ):
        super().__init__(
            message=f"Redis {operation} timed out after {timeout_seconds}s",
            error_code="REDIS_TIMEOUT_ERROR",
            details={"timeout_seconds": timeout_seconds},
            operation=operation,
            key=key,
        )


class QueueSerializationException(RedisException):
    """A webhook task could not be encoded for, or decoded from, the queue."""

    def __init__(
        self,
        message: str,
        key: str,
        original_error: Optional[Exception] = None,
    ):
        details: Dict[str, Any] = {}
        if original_error:
            details["original_error"] = str(original_error)

        super().__init__(
            message=message,
            error_code="QUEUE_SERIALIZATION_ERROR",
            details=details,
            key=key,
        )
        if original_error:
            self.__cause__ = original_error


class IncidentCacheException(RedisException):
    """An active incident cache command failed."""

    def __init__(
        self,
        message: str,
        error_code: str,
        key: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ):
        super().__init__(message=message, error_code=error_code, key=key)
        if original_error:
            self.__cause__ = original_error


def wrap_redis_error(
    operation: str,
    error: RedisError,
    key: Optional[str] = None,
    timeout_seconds: Optional[float] = None,
) -> RedisException:
    """Translate a redis-py error raised by `operation` on `key`."""
    if isinstance(error, RedisTimeoutError):
        exc: RedisException = RedisOperationTimeoutException(
            operation=operation,
            timeout_seconds=timeout_seconds if timeout_seconds is not None else 0.0,
            key=key,
        )
    elif isinstance(error, RedisConnectionError):
        exc = RedisConnectionException(
            message=f"Redis connection lost during {operation}",
            original_error=error,
            operation=operation,
        )
    else:
        exc = RedisException(
            message=f"Redis {operation} failed: {error}",
            error_code="REDIS_OPERATION_ERROR",
            operation=operation,
            key=key,
        )
    exc.__cause__ = error
    return exc
