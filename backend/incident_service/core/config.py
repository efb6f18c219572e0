"""
Incident Service Configuration

Configuration management with environment variable support.
Implements secure defaults and validation for all settings.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator, model_validator
from functools import lru_cache
from dotenv import load_dotenv
import logging

from ..constants import (
    DEFAULT_WEBHOOK_MAX_RETRY,
    DEFAULT_WEBHOOK_METHOD,
    DEFAULT_WEBHOOK_URL,
    SUPPORTED_WEBHOOK_METHODS,
)

# Load environment variables from .env file
load_dotenv()

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Application settings with validation and secure defaults."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=True, extra="ignore"
    )

    # Environment settings
    ENVIRONMENT: str = Field(
        default="development", description="Application environment"
    )

    # Database configuration
    DATABASE_URL: str = Field(
        ...,
        description="Database connection URL with asyncpg driver",
    )
    DATABASE_POOL_SIZE: int = Field(
        default=10, ge=1, le=100, description="Database connection pool size"
    )
    DATABASE_MAX_OVERFLOW: int = Field(
        default=20, ge=0, le=100, description="Maximum overflow connections"
    )
    DATABASE_POOL_TIMEOUT: int = Field(
        default=30, ge=1, le=300, description="Connection pool timeout in seconds"
    )
    DATABASE_CONNECT_ATTEMPTS: int = Field(
        default=5, ge=1, le=20, description="Start-up connection attempts"
    )

    # Redis configuration (webhook queue and active incident cache)
    REDIS_URL: str = Field(
        default="redis://localhost:6379/0", description="Redis connection URL"
    )
    REDIS_MAX_CONNECTIONS: int = Field(
        default=10, ge=1, le=50, description="Redis connection pool size"
    )
    REDIS_CONNECTION_TIMEOUT: float = Field(
        default=2.0, gt=0, le=60.0, description="Redis dial timeout in seconds"
    )
    REDIS_SOCKET_TIMEOUT: float = Field(
        default=15.0,
        gt=0,
        le=300.0,
        description="Redis socket read timeout, must exceed the queue pop wait",
    )
    REDIS_CACHE_TTL_SECONDS: int = Field(
        default=300, ge=1, le=86400, description="Active incident cache TTL"
    )

    # API configuration
    API_HOST: str = Field(default="0.0.0.0", description="API server host")
    API_PORT: int = Field(default=8080, ge=1, le=65535, description="API server port")
    API_KEY: str = Field(
        ..., min_length=1, description="Key expected in X-API-Key for admin routes"
    )

    # Webhook delivery configuration
    WEBHOOK_URL: str = Field(
        default=DEFAULT_WEBHOOK_URL, description="Default webhook destination"
    )
    WEBHOOK_METHOD: str = Field(
        default=DEFAULT_WEBHOOK_METHOD, description="Default webhook HTTP method"
    )
    WEBHOOK_MAX_RETRY: int = Field(
        default=DEFAULT_WEBHOOK_MAX_RETRY,
        description="Retryable failures tolerated before a task is dropped",
    )
    WEBHOOK_BACKOFF_ENABLED: bool = Field(
        default=True, description="Sleep before requeueing a retried task"
    )
    WEBHOOK_REQUEST_TIMEOUT: float = Field(
        default=5.0, gt=0, le=120.0, description="Per-attempt HTTP timeout"
    )
    WEBHOOK_QUEUE_POP_TIMEOUT: int = Field(
        default=10, ge=1, le=300, description="Bounded dequeue wait in seconds"
    )
    WEBHOOK_IDLE_PAUSE: float = Field(
        default=0.3, ge=0, le=10.0, description="Pause after an empty dequeue"
    )
    WEBHOOK_ERROR_PAUSE: float = Field(
        default=0.5, ge=0, le=60.0, description="Pause after a failed dequeue"
    )

    # Incident rules
    DEFAULT_RADIUS: int = Field(
        default=5000, ge=1, description="Radius in meters when none is given"
    )
    MAX_RADIUS: int = Field(default=50000, ge=1, description="Maximum radius in meters")
    MAX_ROWS_IN_PAGE: int = Field(
        default=10, ge=1, le=1000, description="Incidents per pagination page"
    )
    STATS_TIME_WINDOW: int = Field(
        default=3600, ge=1, description="Statistics window in seconds"
    )

    # Logging
    LOG_LEVEL: str = Field(default="INFO", description="Root log level")
    LOG_JSON: bool = Field(default=False, description="Render logs as JSON")
    LOG_USER_ERRORS: bool = Field(
        default=True, description="Log client errors classified as 4xx"
    )

    @field_validator("WEBHOOK_URL")
    @classmethod
    def validate_webhook_url(cls, v: str) -> str:
        """Fall back to the default destination when empty."""
        v = v.strip()
        if not v:
            logger.warning(
                "empty WEBHOOK_URL, change to default: %s", DEFAULT_WEBHOOK_URL
            )
            return DEFAULT_WEBHOOK_URL
        return v

    @field_validator("WEBHOOK_METHOD")
    @classmethod
    def validate_webhook_method(cls, v: str) -> str:
        """Only GET and POST are deliverable; anything else becomes POST."""
        method = v.strip().upper()
        if method not in SUPPORTED_WEBHOOK_METHODS:
            logger.warning(
                "invalid WEBHOOK_METHOD <%s>, change to default: %s",
                v,
                DEFAULT_WEBHOOK_METHOD,
            )
            return DEFAULT_WEBHOOK_METHOD
        return method

    @field_validator("WEBHOOK_MAX_RETRY")
    @classmethod
    def validate_webhook_max_retry(cls, v: int) -> int:
        if v <= 0:
            logger.warning(
                "invalid WEBHOOK_MAX_RETRY %d, change to default: %d",
                v,
                DEFAULT_WEBHOOK_MAX_RETRY,
            )
            return DEFAULT_WEBHOOK_MAX_RETRY
        return v

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.strip().upper()
        if level not in logging.getLevelNamesMapping():
            raise ValueError(f"unknown log level: {v}")
        return level

    @model_validator(mode="after")
    def validate_timeouts(self) -> "Settings":
        """A blocking pop must return before the socket read times out."""
        if self.REDIS_SOCKET_TIMEOUT <= self.WEBHOOK_QUEUE_POP_TIMEOUT:
            raise ValueError(
                "REDIS_SOCKET_TIMEOUT must be greater than WEBHOOK_QUEUE_POP_TIMEOUT"
            )
        if self.DEFAULT_RADIUS > self.MAX_RADIUS:
            raise ValueError("DEFAULT_RADIUS cannot be greater than MAX_RADIUS")
        return self

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"


@lru_cache()
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()
