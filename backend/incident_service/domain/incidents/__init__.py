"""
Incident Domain

Entities and validation rules for geofenced incidents and location checks.
"""

from .entities import (
    DetectedIncident,
    HealthCheckResponse,
    IncidentAdminView,
    IncidentChanges,
    IncidentRecord,
    IncidentRegistrationRequest,
    IncidentStat,
    IncidentStatRecord,
    IncidentsStatResponse,
    IncidentUpdateRequest,
    IncidentUserView,
    LocationCheckRequest,
    LocationCheckResult,
    NewIncident,
    PaginationFilters,
    PaginationResponse,
    is_active_status,
    validate_coordinates,
)

__all__ = [
    "DetectedIncident",
    "HealthCheckResponse",
    "IncidentAdminView",
    "IncidentChanges",
    "IncidentRecord",
    "IncidentRegistrationRequest",
    "IncidentStat",
    "IncidentStatRecord",
    "IncidentsStatResponse",
    "IncidentUpdateRequest",
    "IncidentUserView",
    "LocationCheckRequest",
    "LocationCheckResult",
    "NewIncident",
    "PaginationFilters",
    "PaginationResponse",
    "is_active_status",
    "validate_coordinates",
]
