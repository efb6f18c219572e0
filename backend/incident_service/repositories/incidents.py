"""
Incident Repository

Data access for incidents and location checks. CRUD goes through ORM
statements; distance lookups and statistics are textual PostGIS SQL over
the generated `coordinates` geography column.
"""

from typing import List, Sequence
from uuid import UUID

import structlog
from sqlalchemy import delete, func, insert, select, text, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..domain.incidents.entities import (
    DetectedIncident,
    IncidentChanges,
    IncidentRecord,
    IncidentStatRecord,
    NewIncident,
    PaginationFilters,
)
from ..models import Check, Incident

logger = structlog.get_logger()

DETECTED_INCIDENTS_SQL = text(
    """
    SELECT
        id, name, type, description, latitude, longitude, radius, is_active,
        status, created_date, updated_date, resolved_date,
        ST_Distance(coordinates, ST_MakePoint(:lon, :lat)::geography) AS distance
    FROM incidents
    WHERE is_active = true
      AND ST_DWithin(coordinates, ST_MakePoint(:lon, :lat)::geography, radius)
    ORDER BY distance
    """
)

UNIQUE_USERS_SQL = text(
    """
    SELECT COUNT(DISTINCT user_id)
    FROM checks
    WHERE created_date >= NOW() - make_interval(secs => :window)
    """
)

INCIDENT_STATISTICS_SQL = text(
    """
    SELECT i.id, i.name, i.type, COUNT(DISTINCT c.user_id) AS user_count
    FROM checks AS c
    CROSS JOIN LATERAL unnest(c.detected_incident_ids) AS d(incident_id)
    JOIN incidents AS i ON i.id = d.incident_id
    WHERE c.created_date >= NOW() - make_interval(secs => :window)
    GROUP BY i.id, i.name, i.type
    ORDER BY user_count DESC, i.name
    """
)


class IncidentRepository:
    """Incident and check persistence bound to one session."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, incident: NewIncident) -> IncidentRecord:
        stmt = insert(Incident).values(**incident.model_dump()).returning(Incident)
        row = (await self.session.execute(stmt)).scalar_one()
        logger.debug("Repository: incident inserted", incident_id=str(row.id))
        return IncidentRecord.model_validate(row)

    async def get(self, incident_id: UUID) -> IncidentRecord:
        """Load one incident. Raises NoResultFound when it does not exist."""
        stmt = select(Incident).where(Incident.id == incident_id)
        row = (await self.session.execute(stmt)).scalar_one()
        return IncidentRecord.model_validate(row)

    async def update(
        self, incident_id: UUID, changes: IncidentChanges
    ) -> IncidentRecord:
        """Apply `changes` and return the stored row."""
        values = changes.model_dump(
            exclude_none=True, exclude={"is_active", "resolved_date"}
        )
        values["is_active"] = changes.is_active
        values["resolved_date"] = changes.resolved_date
        values["updated_date"] = func.now()

        stmt = (
            update(Incident)
            .where(Incident.id == incident_id)
            .values(**values)
            .returning(Incident)
            .execution_options(synchronize_session=False)
        )
        row = (await self.session.execute(stmt)).scalar_one()
        return IncidentRecord.model_validate(row)

    async def delete(self, incident_id: UUID) -> int:
        result = await self.session.execute(
            delete(Incident).where(Incident.id == incident_id)
        )
        return result.rowcount

    async def count(self) -> int:
        result = await self.session.execute(select(func.count()).select_from(Incident))
        return int(result.scalar_one())

    async def paginate(
        self, filters: PaginationFilters, limit: int = 0, offset: int = 0
    ) -> List[IncidentRecord]:
        """List incidents matching every given filter; limit 0 means no limit."""
        stmt = select(Incident)
        if filters.id is not None:
            stmt = stmt.where(Incident.id == filters.id)
        if filters.status:
            stmt = stmt.where(Incident.status == filters.status)
        if filters.type:
            stmt = stmt.where(Incident.type == filters.type)
        if filters.name:
            stmt = stmt.where(Incident.name == filters.name)
        if filters.radius is not None:
            stmt = stmt.where(Incident.radius == filters.radius)

        stmt = stmt.order_by(Incident.created_date, Incident.id)
        if limit:
            stmt = stmt.limit(limit)
        if offset:
            stmt = stmt.offset(offset)

        rows = (await self.session.execute(stmt)).scalars().all()
        return [IncidentRecord.model_validate(row) for row in rows]

    async def register_check(self, user_id: str, latitude: str, longitude: str) -> UUID:
        stmt = (
            insert(Check)
            .values(user_id=user_id, latitude=latitude, longitude=longitude)
            .returning(Check.id)
        )
        return (await self.session.execute(stmt)).scalar_one()

    async def detected_incidents(
        self, latitude: float, longitude: float
    ) -> List[DetectedIncident]:
        """Active incidents whose radius contains the point, nearest first."""
        result = await self.session.execute(
            DETECTED_INCIDENTS_SQL, {"lat": latitude, "lon": longitude}
        )
        detected = []
        for row in result.mappings():
            data = dict(row)
            distance = float(data.pop("distance"))
            detected.append(
                DetectedIncident(
                    incident=IncidentRecord.model_validate(data),
                    distance_meters=distance,
                )
            )
        return detected

    async def update_check(
        self, check_id: UUID, incident_ids: Sequence[UUID], is_danger: bool
    ) -> None:
        await self.session.execute(
            update(Check)
            .where(Check.id == check_id)
            .values(is_danger=is_danger, detected_incident_ids=list(incident_ids))
            .execution_options(synchronize_session=False)
        )

    async def count_unique_users(self, window_seconds: int) -> int:
        result = await self.session.execute(
            UNIQUE_USERS_SQL, {"window": float(window_seconds)}
        )
        return int(result.scalar_one() or 0)

    async def statistics(self, window_seconds: int) -> List[IncidentStatRecord]:
        """Distinct users per incident over checks made in the last window."""
        result = await self.session.execute(
            INCIDENT_STATISTICS_SQL, {"window": float(window_seconds)}
        )
        return [
            IncidentStatRecord.model_validate(dict(row)) for row in result.mappings()
        ]
