"""
Unit tests for the incident repository.

The session is an AsyncMock; statements are compiled for PostgreSQL and
inspected instead of being executed.
"""

from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import pytest
from sqlalchemy.dialects import postgresql

from incident_service.domain.incidents.entities import PaginationFilters
from incident_service.repositories.incidents import (
    DETECTED_INCIDENTS_SQL,
    INCIDENT_STATISTICS_SQL,
    UNIQUE_USERS_SQL,
    IncidentRepository,
)


def compiled(statement) -> str:
    return str(statement.compile(dialect=postgresql.dialect()))


@pytest.fixture
def session():
    return AsyncMock()


@pytest.fixture
def repository(session):
    return IncidentRepository(session)


def incident_row(**overrides) -> dict:
    row = {
        "id": uuid4(),
        "name": "Flood",
        "type": "water",
        "description": None,
        "latitude": "59.93",
        "longitude": "30.33",
        "radius": 1000,
        "is_active": True,
        "status": "active",
        "created_date": datetime(2026, 2, 1, tzinfo=timezone.utc),
        "updated_date": None,
        "resolved_date": None,
    }
    row.update(overrides)
    return row


class TestLocationQueries:
    @pytest.mark.asyncio
    async def test_detected_incidents_maps_rows(self, repository, session):
        row = incident_row(distance=125.5)
        result = MagicMock()
        result.mappings.return_value = [row]
        session.execute.return_value = result

        detected = await repository.detected_incidents(59.93, 30.33)

        session.execute.assert_awaited_once_with(
            DETECTED_INCIDENTS_SQL, {"lat": 59.93, "lon": 30.33}
        )
        assert len(detected) == 1
        assert detected[0].incident.id == row["id"]
        assert detected[0].distance_meters == 125.5

    def test_detection_only_considers_active_incidents_in_radius(self):
        sql = str(DETECTED_INCIDENTS_SQL)

        assert "is_active = true" in sql
        assert "ST_DWithin" in sql
        assert "ORDER BY distance" in sql


class TestStatisticsQueries:
    @pytest.mark.asyncio
    async def test_count_unique_users(self, repository, session):
        result = MagicMock()
        result.scalar_one.return_value = 7
        session.execute.return_value = result

        assert await repository.count_unique_users(3600) == 7
        session.execute.assert_awaited_once_with(UNIQUE_USERS_SQL, {"window": 3600.0})

    @pytest.mark.asyncio
    async def test_count_unique_users_without_checks(self, repository, session):
        result = MagicMock()
        result.scalar_one.return_value = None
        session.execute.return_value = result

        assert await repository.count_unique_users(60) == 0

    @pytest.mark.asyncio
    async def test_statistics_rows(self, repository, session):
        incident_id = uuid4()
        result = MagicMock()
        result.mappings.return_value = [
            {"id": incident_id, "name": "Flood", "type": "water", "user_count": 3}
        ]
        session.execute.return_value = result

        rows = await repository.statistics(3600)

        assert session.execute.await_args.args[0] is INCIDENT_STATISTICS_SQL
        assert rows[0].id == incident_id
        assert rows[0].user_count == 3


class TestIncidentQueries:
    @pytest.mark.asyncio
    async def test_paginate_applies_filters_and_page(self, repository, session):
        result = MagicMock()
        result.scalars.return_value.all.return_value = []
        session.execute.return_value = result

        await repository.paginate(
            PaginationFilters(status="active", radius=500), limit=10, offset=20
        )

        sql = compiled(session.execute.await_args.args[0])
        assert "incidents.status = " in sql
        assert "incidents.radius = " in sql
        assert "incidents.name" not in sql.split("WHERE", 1)[1]
        assert "ORDER BY incidents.created_date, incidents.id" in sql
        assert "LIMIT" in sql
        assert "OFFSET" in sql

    @pytest.mark.asyncio
    async def test_paginate_without_limit(self, repository, session):
        result = MagicMock()
        row = SimpleNamespace(**incident_row())
        result.scalars.return_value.all.return_value = [row]
        session.execute.return_value = result

        records = await repository.paginate(PaginationFilters())

        sql = compiled(session.execute.await_args.args[0])
        assert "WHERE" not in sql
        assert "LIMIT" not in sql
        assert len(records) == 1

    @pytest.mark.asyncio
    async def test_delete_returns_rowcount(self, repository, session):
        session.execute.return_value = MagicMock(rowcount=0)

        assert await repository.delete(uuid4()) == 0
