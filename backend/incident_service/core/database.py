"""
Incident Service Database Configuration

Async SQLAlchemy engine and session management for PostgreSQL/PostGIS:
- Connection pool sized from settings
- Start-up connection retry with exponential backoff
- Transactional session scope (commit on success, rollback on error)
"""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

import structlog
from sqlalchemy import text
from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from .config import Settings, get_settings

logger = structlog.get_logger()


class DatabaseManager:
    """
    Database connection manager.

    `initialize()` creates the engine and verifies connectivity, retrying
    transient connection failures. Sessions are handed out through the
    `session()` context manager.
    """

    name = "PostgreSQL"

    def __init__(self, settings: Optional[Settings] = None):
        self._settings = settings
        self.engine: Optional[AsyncEngine] = None
        self.session_factory: Optional[async_sessionmaker] = None

    @property
    def settings(self) -> Settings:
        if self._settings is None:
            self._settings = get_settings()
        return self._settings

    def _create_engine(self) -> AsyncEngine:
        return create_async_engine(
            self.settings.DATABASE_URL,
            pool_size=self.settings.DATABASE_POOL_SIZE,
            max_overflow=self.settings.DATABASE_MAX_OVERFLOW,
            pool_timeout=self.settings.DATABASE_POOL_TIMEOUT,
            pool_pre_ping=True,
            pool_recycle=3600,
            connect_args={
                "command_timeout": 60,
                "server_settings": {"application_name": "incident_service"},
            },
        )

    async def _verify_connection(self, engine: AsyncEngine) -> None:
        async with engine.connect() as conn:
            result = await conn.execute(text("SELECT 1"))
            if result.scalar() != 1:
                raise RuntimeError("Database connectivity check returned no row")

    async def initialize(self) -> None:
        """Create the engine and session factory, retrying failed connects."""
        if self.engine is not None:
            return

        engine = self._create_engine()
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self.settings.DATABASE_CONNECT_ATTEMPTS),
                wait=wait_exponential(multiplier=1, min=1, max=10),
                retry=retry_if_exception_type(
                    (OperationalError, DBAPIError, OSError, asyncio.TimeoutError)
                ),
                before_sleep=lambda retry_state: logger.warning(
                    "Database connection retry",
                    attempt=retry_state.attempt_number,
                    wait_time=retry_state.next_action.sleep,
                ),
                reraise=True,
            ):
                with attempt:
                    await self._verify_connection(engine)
        except Exception as e:
            await engine.dispose()
            logger.critical("Database initialization failed", error=str(e))
            raise

        self.engine = engine
        self.session_factory = async_sessionmaker(
            bind=engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )
        logger.info(
            "Database connected successfully",
            pool_size=self.settings.DATABASE_POOL_SIZE,
            max_overflow=self.settings.DATABASE_MAX_OVERFLOW,
        )

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """Transactional session: commits on success, rolls back on error."""
        if not self.session_factory:
            raise RuntimeError("Database not initialized. Call initialize() first.")

        async with self.session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception as e:
                await session.rollback()
                logger.debug("Database transaction rolled back", error=str(e))
                raise

    async def ping(self) -> None:
        if self.engine is None:
            raise RuntimeError("database not initialized")
        async with self.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))

    async def close(self) -> None:
        """Close database connections and cleanup resources."""
        if self.engine:
            await self.engine.dispose()
            self.engine = None
            self.session_factory = None

            logger.info("Database connections closed")
