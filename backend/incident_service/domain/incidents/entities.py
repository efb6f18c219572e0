"""
Incident Domain Entities

Pydantic models for incidents, location checks, pagination and statistics.
JSON field names match the public wire format, including the location check
result that is embedded in every outgoing webhook.
"""

import math
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_serializer, model_validator

from ...constants import (
    HEALTH_STATUS_OK,
    INCIDENT_STATUSES,
    STATUS_ACTIVE,
)

MAX_LATITUDE = 90.0
MIN_LATITUDE = -90.0
MAX_LONGITUDE = 180.0
MIN_LONGITUDE = -180.0

MAX_LATITUDE_DECIMALS = 8
MAX_LATITUDE_LENGTH = 12
MAX_LONGITUDE_DECIMALS = 8
MAX_LONGITUDE_LENGTH = 13


def _parse_coordinate(value: str, field: str) -> float:
    try:
        number = float(value)
    except ValueError:
        raise ValueError(f"{field} incorrect parse")
    if math.isnan(number) or math.isinf(number):
        raise ValueError(f"{field} incorrect parse")
    return number


def validate_coordinates(latitude: str, longitude: str) -> None:
    """
    Validate a latitude/longitude pair given as strings.

    A comma is accepted as decimal separator. Raises ValueError with a
    client-facing message on the first violated rule.
    """
    if len(latitude) > MAX_LATITUDE_LENGTH:
        raise ValueError("latitude incorrect")
    if len(longitude) > MAX_LONGITUDE_LENGTH:
        raise ValueError("longitude incorrect")

    lat_str = latitude.replace(",", ".", 1)
    lon_str = longitude.replace(",", ".", 1)

    lat = _parse_coordinate(lat_str, "latitude")
    lon = _parse_coordinate(lon_str, "longitude")

    if not MIN_LATITUDE <= lat <= MAX_LATITUDE:
        raise ValueError("latitude incorrect compare")
    if not MIN_LONGITUDE <= lon <= MAX_LONGITUDE:
        raise ValueError("longitude incorrect compare")

    lat_parts = lat_str.split(".")
    if len(lat_parts) == 2 and len(lat_parts[1]) > MAX_LATITUDE_DECIMALS:
        raise ValueError("latitude: incorrect format")
    lon_parts = lon_str.split(".")
    if len(lon_parts) == 2 and len(lon_parts[1]) > MAX_LONGITUDE_DECIMALS:
        raise ValueError("longitude: incorrect format")


def is_active_status(status: str) -> bool:
    """Only active incidents take part in location checks."""
    if status not in INCIDENT_STATUSES:
        raise ValueError("unexpected status")
    return status == STATUS_ACTIVE


class IncidentRecord(BaseModel):
    """Stored incident row, also the value kept in the active incident cache."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    type: str
    description: Optional[str] = None
    latitude: str
    longitude: str
    radius: int
    is_active: bool
    status: str
    created_date: datetime
    updated_date: Optional[datetime] = None
    resolved_date: Optional[datetime] = None


class DetectedIncident(BaseModel):
    """Active incident whose radius contains a checked location."""

    incident: IncidentRecord
    distance_meters: float


class IncidentStatRecord(BaseModel):
    """Number of distinct users that hit one incident inside the window."""

    id: UUID
    name: str
    type: str
    user_count: int


class IncidentUserView(BaseModel):
    """Incident as shown to end users and inside webhook payloads."""

    id: UUID
    name: str
    type: str
    latitude: str
    longitude: str
    radius: int
    is_active: bool
    distance_meters: Optional[float] = None

    @model_serializer(mode="wrap")
    def _omit_missing_distance(self, handler):
        data = handler(self)
        if data.get("distance_meters") is None:
            data.pop("distance_meters", None)
        return data

    @classmethod
    def from_record(
        cls, record: IncidentRecord, distance_meters: Optional[float] = None
    ) -> "IncidentUserView":
        return cls(
            id=record.id,
            name=record.name,
            type=record.type,
            latitude=record.latitude,
            longitude=record.longitude,
            radius=record.radius,
            is_active=record.is_active,
            distance_meters=distance_meters,
        )


class IncidentAdminView(IncidentUserView):
    """Incident with administrative fields."""

    description: Optional[str] = None
    updated_date: Optional[datetime] = None
    resolved_date: Optional[datetime] = None
    created_date: datetime
    status: str

    @classmethod
    def from_record(
        cls, record: IncidentRecord, distance_meters: Optional[float] = None
    ) -> "IncidentAdminView":
        return cls(
            id=record.id,
            name=record.name,
            type=record.type,
            latitude=record.latitude,
            longitude=record.longitude,
            radius=record.radius,
            is_active=record.is_active,
            distance_meters=distance_meters,
            description=record.description,
            updated_date=record.updated_date,
            resolved_date=record.resolved_date,
            created_date=record.created_date,
            status=record.status,
        )


class LocationCheckRequest(BaseModel):
    """User location submitted for a danger check."""

    user_id: str = ""
    latitude: str = ""
    longitude: str = ""

    @model_validator(mode="after")
    def validate_request(self) -> "LocationCheckRequest":
        if not self.user_id:
            raise ValueError("user_id cannot be empty")
        validate_coordinates(self.latitude, self.longitude)
        return self


class LocationCheckResult(BaseModel):
    """
    Outcome of a location check.

    Immutable: the same value travels through every retry of a webhook task.
    """

    model_config = ConfigDict(frozen=True)

    check_id: UUID
    user_id: str
    latitude: str
    longitude: str
    is_danger: bool
    detected_incidents: List[IncidentUserView] = Field(default_factory=list)


class IncidentRegistrationRequest(BaseModel):
    """Payload for registering a new incident."""

    name: str = ""
    type: str = ""
    latitude: str = ""
    longitude: str = ""
    description: Optional[str] = None
    radius: Optional[int] = None
    status: Optional[str] = None

    @model_validator(mode="after")
    def validate_request(self) -> "IncidentRegistrationRequest":
        if not self.name:
            raise ValueError("name cannot be empty")
        if not self.type:
            raise ValueError("type cannot be empty")
        if not self.latitude:
            raise ValueError("latitude cannot be empty")
        if not self.longitude:
            raise ValueError("longitude cannot be empty")
        if self.description is not None and not self.description:
            raise ValueError("description cannot be empty")
        if self.radius is not None and self.radius <= 0:
            raise ValueError("radius cannot be <= 0")
        if self.status is not None and not self.status:
            raise ValueError("status cannot be empty")
        validate_coordinates(self.latitude, self.longitude)
        return self


class IncidentUpdateRequest(BaseModel):
    """Partial update of an incident; at least one field is required."""

    name: Optional[str] = None
    type: Optional[str] = None
    description: Optional[str] = None
    radius: Optional[int] = None
    status: Optional[str] = None

    @model_validator(mode="after")
    def validate_request(self) -> "IncidentUpdateRequest":
        if all(
            value is None
            for value in (
                self.name,
                self.type,
                self.description,
                self.radius,
                self.status,
            )
        ):
            raise ValueError("no data for update")
        if self.name is not None and not self.name:
            raise ValueError("name cannot be empty")
        if self.type is not None and not self.type:
            raise ValueError("type cannot be empty")
        if self.description is not None and not self.description:
            raise ValueError("description cannot be empty")
        if self.radius is not None and self.radius <= 0:
            raise ValueError("radius cannot be <= 0")
        if self.status is not None and not self.status:
            raise ValueError("status cannot be empty")
        return self


class IncidentChanges(BaseModel):
    """Column values written by an update."""

    name: Optional[str] = None
    type: Optional[str] = None
    description: Optional[str] = None
    radius: Optional[int] = None
    status: Optional[str] = None
    is_active: bool
    resolved_date: Optional[datetime] = None


class NewIncident(BaseModel):
    """Column values written when an incident is registered."""

    name: str
    type: str
    description: Optional[str] = None
    latitude: str
    longitude: str
    radius: int
    is_active: bool
    status: str
    resolved_date: Optional[datetime] = None


class PaginationFilters(BaseModel):
    """Filters accepted by the incident listing."""

    id: Optional[UUID] = None
    name: Optional[str] = None
    type: Optional[str] = None
    status: Optional[str] = None
    radius: Optional[int] = None


class PaginationResponse(BaseModel):
    incidents: List[IncidentAdminView]
    incidents_count: int
    total_pages: int
    page_num: Optional[int] = None
    total_incidents: int

    @model_serializer(mode="wrap")
    def _omit_missing_page(self, handler):
        data = handler(self)
        if data.get("page_num") is None:
            data.pop("page_num", None)
        return data


class IncidentStat(BaseModel):
    id: UUID
    name: str
    type: str
    user_count: int


class IncidentsStatResponse(BaseModel):
    total_unique_user: int
    time_stat_window: int
    from_date: datetime
    to_date: datetime
    total_incidents: int
    incidents_stat: List[IncidentStat] = Field(default_factory=list)


class HealthCheckResponse(BaseModel):
    server_status: str = HEALTH_STATUS_OK
    errors: List[str] = Field(default_factory=list)

    @model_serializer(mode="wrap")
    def _omit_empty_errors(self, handler):
        data = handler(self)
        if not data.get("errors"):
            data.pop("errors", None)
        return data
