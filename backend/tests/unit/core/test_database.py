"""
Unit tests for the database manager.
"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from incident_service.core.database import DatabaseManager


class FakeSession:
    def __init__(self):
        self.commit = AsyncMock()
        self.rollback = AsyncMock()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        return False


@pytest.fixture
def manager(settings):
    return DatabaseManager(settings)


class TestSessionScope:
    @pytest.mark.asyncio
    async def test_requires_initialize(self, manager):
        with pytest.raises(RuntimeError):
            async with manager.session():
                pass

    @pytest.mark.asyncio
    async def test_commits_on_success(self, manager):
        session = FakeSession()
        manager.session_factory = MagicMock(return_value=session)

        async with manager.session() as active:
            assert active is session

        session.commit.assert_awaited_once()
        session.rollback.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_rolls_back_and_reraises(self, manager):
        session = FakeSession()
        manager.session_factory = MagicMock(return_value=session)

        with pytest.raises(ValueError):
            async with manager.session():
                raise ValueError("constraint")

        session.rollback.assert_awaited_once()
        session.commit.assert_not_awaited()


class TestInitialize:
    @pytest.mark.asyncio
    async def test_failed_connect_disposes_engine(self, manager, settings):
        settings.DATABASE_CONNECT_ATTEMPTS = 1
        engine = MagicMock()
        engine.dispose = AsyncMock()

        with patch.object(manager, "_create_engine", return_value=engine), patch.object(
            manager, "_verify_connection", AsyncMock(side_effect=OSError("refused"))
        ):
            with pytest.raises(OSError):
                await manager.initialize()

        engine.dispose.assert_awaited_once()
        assert manager.engine is None

    @pytest.mark.asyncio
    async def test_successful_connect_creates_session_factory(self, manager):
        engine = MagicMock()
        engine.dispose = AsyncMock()

        with patch.object(manager, "_create_engine", return_value=engine), patch.object(
            manager, "_verify_connection", AsyncMock()
        ):
            await manager.initialize()

        assert manager.engine is engine
        assert manager.session_factory is not None

        await manager.close()
        engine.dispose.assert_awaited_once()
        assert manager.engine is None

    @pytest.mark.asyncio
    async def test_ping_requires_engine(self, manager):
        with pytest.raises(RuntimeError):
            await manager.ping()
