"""
Incident Service

Business rules for incident administration and location checks.
Orchestrates the incident repository, the active incident cache and the
webhook producer.
"""

import math
from datetime import timedelta
from typing import Any, Callable, List, Optional, Protocol
from uuid import UUID

import structlog
from opentelemetry import trace

from ..constants import (
    INCIDENT_STATUSES,
    MAX_NAME_LENGTH,
    MAX_STATUS_LENGTH,
    MAX_TYPE_LENGTH,
    STATUS_ACTIVE,
    STATUS_ARCHIVED,
    STATUS_RESOLVED,
    get_current_timestamp,
)
from ..core.config import Settings, get_settings
from ..core.errors import (
    IncidentConflictError,
    IncidentNotFoundError,
    InvalidRequestError,
)
from ..domain.incidents.entities import (
    IncidentAdminView,
    IncidentChanges,
    IncidentRecord,
    IncidentRegistrationRequest,
    IncidentStat,
    IncidentsStatResponse,
    IncidentUpdateRequest,
    IncidentUserView,
    LocationCheckRequest,
    LocationCheckResult,
    NewIncident,
    PaginationFilters,
    PaginationResponse,
    is_active_status,
)
from ..repositories.incidents import IncidentRepository

logger = structlog.get_logger(__name__).bind(component="incident_service")
tracer = trace.get_tracer(__name__)


class WebhookSender(Protocol):
    async def enqueue(self, result: LocationCheckResult) -> Any:
        ...


def normalize_coordinate(value: str) -> str:
    return value.replace(",", ".", 1)


def count_pages(total_rows: int, page_size: int) -> int:
    return math.ceil(total_rows / page_size) if total_rows else 0


class IncidentService:
    """
    Incident administration and the location check producer.

    `cache` and `webhook_sender` are optional; without them reads always hit
    the database and dangerous checks are not announced.
    """

    def __init__(
        self,
        database,
        cache=None,
        webhook_sender: Optional[WebhookSender] = None,
        settings: Optional[Settings] = None,
        repository_factory: Callable[[Any], IncidentRepository] = IncidentRepository,
    ):
        self.database = database
        self.cache = cache
        self.webhook_sender = webhook_sender
        self.settings = settings or get_settings()
        self._repository = repository_factory

    # Validation helpers

    def _resolve_status(self, status: Optional[str]) -> str:
        if status is None:
            return STATUS_ACTIVE
        if len(status) > MAX_STATUS_LENGTH:
            raise InvalidRequestError("very long status")
        if status not in INCIDENT_STATUSES:
            raise InvalidRequestError("invalid status")
        return status

    def _resolve_radius(self, radius: Optional[int]) -> int:
        if radius is None:
            return self.settings.DEFAULT_RADIUS
        if radius > self.settings.MAX_RADIUS:
            raise InvalidRequestError(f"radius cannot be > {self.settings.MAX_RADIUS}")
        if radius <= 0:
            raise InvalidRequestError("radius cannot be <= 0")
        return radius

    @staticmethod
    def _resolved_date_for(status: str):
        if status in (STATUS_RESOLVED, STATUS_ARCHIVED):
            return get_current_timestamp()
        return None

    def _validate_update(
        self, current: IncidentRecord, request: IncidentUpdateRequest
    ) -> None:
        """Reject forbidden and no-op updates."""
        if current.status == STATUS_ARCHIVED and any(
            value is not None
            for value in (request.name, request.type, request.radius, request.status)
        ):
            raise InvalidRequestError("unable to update archived incident")

        if request.name is not None and len(request.name) > MAX_NAME_LENGTH:
            raise InvalidRequestError("very long name")
        if request.type is not None and len(request.type) > MAX_TYPE_LENGTH:
            raise InvalidRequestError("very long type")

        has_changes = (
            request.description is not None
            and request.description != current.description
        )
        if request.radius is not None:
            self._resolve_radius(request.radius)
            if request.radius != current.radius:
                has_changes = True
                logger.info(
                    "Incident radius changed",
                    incident_id=str(current.id),
                    old_radius=current.radius,
                    new_radius=request.radius,
                )
        if request.name is not None and request.name != current.name:
            has_changes = True
        if request.type is not None and request.type != current.type:
            has_changes = True
        if request.status is not None:
            self._resolve_status(request.status)
            if request.status != current.status:
                has_changes = True

        if not has_changes:
            raise InvalidRequestError("no data for update")

    def _changes_for(
        self, current: IncidentRecord, request: IncidentUpdateRequest
    ) -> IncidentChanges:
        is_active = current.is_active
        resolved_date = current.resolved_date
        if request.status is not None and request.status != current.status:
            is_active = is_active_status(request.status)
            resolved_date = self._resolved_date_for(request.status)

        return IncidentChanges(
            name=request.name,
            type=request.type,
            description=request.description,
            radius=request.radius,
            status=request.status,
            is_active=is_active,
            resolved_date=resolved_date,
        )

    # Cache helpers (best effort)

    async def _cache_get(self, incident_id: UUID) -> Optional[IncidentRecord]:
        if self.cache is None:
            return None
        try:
            return await self.cache.get_active(incident_id)
        except Exception as e:
            logger.error(
                "Cache read failed", incident_id=str(incident_id), error=str(e)
            )
            return None

    async def _cache_store(self, record: IncidentRecord) -> None:
        if self.cache is None:
            return
        try:
            if record.is_active:
                await self.cache.set_active(record)
            else:
                await self.cache.delete_active(record.id)
        except Exception as e:
            logger.error("Cache write failed", incident_id=str(record.id), error=str(e))

    async def _cache_evict(self, incident_id: UUID) -> None:
        if self.cache is None:
            return
        try:
            await self.cache.delete_active(incident_id)
        except Exception as e:
            logger.error(
                "Cache eviction failed", incident_id=str(incident_id), error=str(e)
            )

    # Administration

    async def register_incident(
        self, request: IncidentRegistrationRequest
    ) -> IncidentAdminView:
        if len(request.name) > MAX_NAME_LENGTH:
            raise InvalidRequestError("very long name")
        if len(request.type) > MAX_TYPE_LENGTH:
            raise InvalidRequestError("very long type")

        status = self._resolve_status(request.status)
        incident = NewIncident(
            name=request.name,
            type=request.type,
            description=request.description,
            latitude=normalize_coordinate(request.latitude),
            longitude=normalize_coordinate(request.longitude),
            radius=self._resolve_radius(request.radius),
            is_active=is_active_status(status),
            status=status,
            resolved_date=self._resolved_date_for(status),
        )

        async with self.database.session() as session:
            record = await self._repository(session).create(incident)

        if record.is_active:
            await self._cache_store(record)
        logger.info("Incident registered", incident_id=str(record.id), status=status)
        return IncidentAdminView.from_record(record)

    async def get_incident(self, incident_id: UUID) -> IncidentAdminView:
        record = await self._cache_get(incident_id)
        if record is None:
            async with self.database.session() as session:
                record = await self._repository(session).get(incident_id)
            if record.is_active:
                await self._cache_store(record)
        return IncidentAdminView.from_record(record)

    async def update_incident(
        self, incident_id: UUID, request: IncidentUpdateRequest
    ) -> IncidentAdminView:
        async with self.database.session() as session:
            repository = self._repository(session)
            current = await repository.get(incident_id)
            self._validate_update(current, request)
            updated = await repository.update(
                incident_id, self._changes_for(current, request)
            )

        await self._cache_store(updated)
        logger.info("Incident updated", incident_id=str(incident_id))
        return IncidentAdminView.from_record(updated)

    async def deactivate_incident(self, incident_id: UUID) -> IncidentAdminView:
        """Archive an incident; archiving twice is a conflict."""
        request = IncidentUpdateRequest(status=STATUS_ARCHIVED)
        async with self.database.session() as session:
            repository = self._repository(session)
            current = await repository.get(incident_id)
            if current.status == STATUS_ARCHIVED:
                raise IncidentConflictError("incident already archived")
            self._validate_update(current, request)
            updated = await repository.update(
                incident_id, self._changes_for(current, request)
            )

        await self._cache_evict(incident_id)
        logger.info("Incident deactivated", incident_id=str(incident_id))
        return IncidentAdminView.from_record(updated)

    async def delete_incident(self, incident_id: UUID) -> None:
        async with self.database.session() as session:
            deleted = await self._repository(session).delete(incident_id)
        if not deleted:
            raise IncidentNotFoundError("not found id")

        await self._cache_evict(incident_id)
        logger.critical("Incident force deleted", incident_id=str(incident_id))

    async def list_incidents(
        self, filters: PaginationFilters, page_num: Optional[int] = None
    ) -> PaginationResponse:
        if filters.radius is not None:
            self._resolve_radius(filters.radius)
        if filters.status:
            self._resolve_status(filters.status)

        page_size = self.settings.MAX_ROWS_IN_PAGE
        async with self.database.session() as session:
            repository = self._repository(session)
            total = await repository.count()
            pages = count_pages(total, page_size)

            limit = offset = 0
            if page_num is not None:
                if page_num > pages:
                    raise InvalidRequestError(f"invalid page: max {pages}")
                offset = page_size * (page_num - 1)
                limit = page_size
            records = await repository.paginate(filters, limit=limit, offset=offset)

        incidents = [IncidentAdminView.from_record(record) for record in records]
        return PaginationResponse(
            incidents=incidents,
            incidents_count=len(incidents),
            total_pages=pages,
            page_num=page_num,
            total_incidents=total,
        )

    async def statistics(self) -> IncidentsStatResponse:
        window = self.settings.STATS_TIME_WINDOW
        now = get_current_timestamp()
        async with self.database.session() as session:
            repository = self._repository(session)
            unique_users = await repository.count_unique_users(window)
            rows = await repository.statistics(window)

        return IncidentsStatResponse(
            total_unique_user=unique_users,
            time_stat_window=window,
            from_date=now - timedelta(seconds=window),
            to_date=now,
            total_incidents=len(rows),
            incidents_stat=[
                IncidentStat(
                    id=row.id, name=row.name, type=row.type, user_count=row.user_count
                )
                for row in rows
            ],
        )

    # Location checks

    async def check_location(
        self, request: LocationCheckRequest
    ) -> LocationCheckResult:
        """
        Record a location check and report the active incidents around it.

        The check is committed before a webhook is enqueued, so a queue
        failure never undoes it; such failures are logged and swallowed.
        """
        latitude = float(normalize_coordinate(request.latitude))
        longitude = float(normalize_coordinate(request.longitude))

        with tracer.start_as_current_span("incident.check_location") as span:
            async with self.database.session() as session:
                repository = self._repository(session)
                check_id = await repository.register_check(
                    request.user_id,
                    normalize_coordinate(request.latitude),
                    normalize_coordinate(request.longitude),
                )
                detected = await repository.detected_incidents(latitude, longitude)
                is_danger = bool(detected)
                await repository.update_check(
                    check_id, [item.incident.id for item in detected], is_danger
                )

            span.set_attribute("check.id", str(check_id))
            span.set_attribute("check.is_danger", is_danger)

        views: List[IncidentUserView] = [
            IncidentUserView.from_record(item.incident, item.distance_meters)
            for item in detected
        ]
        result = LocationCheckResult(
            check_id=check_id,
            user_id=request.user_id,
            latitude=request.latitude,
            longitude=request.longitude,
            is_danger=is_danger,
            detected_incidents=views,
        )
        logger.info(
            "Location checked",
            check_id=str(check_id),
            is_danger=is_danger,
            detected=len(views),
        )

        if is_danger and self.webhook_sender is not None:
            try:
                await self.webhook_sender.enqueue(result)
            except Exception as e:
                logger.error(
                    "Failed to enqueue webhook",
                    check_id=str(check_id),
                    error=str(e),
                    error_type=type(e).__name__,
                )
        return result
