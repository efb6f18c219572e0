"""
Incident administration endpoints.

All routes require the X-API-Key header:
- GET    /incidents/stats
- POST   /incidents
- GET    /incidents
- GET    /incidents/{incident_id}
- PUT    /incidents/{incident_id}
- DELETE /incidents/{incident_id}
  (archive, or hard delete with X-Deactivate-Mode: force)
"""

from typing import Optional

from fastapi import APIRouter, Depends, Header, Query, Response, status

from ...constants import DEACTIVATE_MODE_FORCE, HEADER_DEACTIVATE_MODE
from ...domain.incidents.entities import (
    IncidentAdminView,
    IncidentRegistrationRequest,
    IncidentsStatResponse,
    IncidentUpdateRequest,
    PaginationFilters,
    PaginationResponse,
)
from ...services.incidents import IncidentService
from ..dependencies import (
    get_incident_service,
    parse_incident_id,
    require_json_content_type,
    verify_api_key,
)

router = APIRouter(
    prefix="/incidents",
    tags=["incidents"],
    dependencies=[Depends(verify_api_key)],
)


@router.get("/stats", response_model=IncidentsStatResponse)
async def incident_statistics(
    service: IncidentService = Depends(get_incident_service),
) -> IncidentsStatResponse:
    return await service.statistics()


@router.post(
    "",
    response_model=IncidentAdminView,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_json_content_type)],
)
async def register_incident(
    request: IncidentRegistrationRequest,
    service: IncidentService = Depends(get_incident_service),
) -> IncidentAdminView:
    return await service.register_incident(request)


@router.get("", response_model=PaginationResponse)
async def list_incidents(
    page_num: Optional[int] = Query(default=None, ge=1),
    incident_id: Optional[str] = Query(default=None, alias="id"),
    name: str = Query(default=""),
    incident_type: str = Query(default="", alias="type"),
    incident_status: str = Query(default="", alias="status"),
    radius: Optional[int] = Query(default=None),
    service: IncidentService = Depends(get_incident_service),
) -> PaginationResponse:
    filters = PaginationFilters(
        id=parse_incident_id(incident_id) if incident_id else None,
        name=name or None,
        type=incident_type or None,
        status=incident_status or None,
        radius=radius,
    )
    return await service.list_incidents(filters, page_num=page_num)


@router.get("/{incident_id}", response_model=IncidentAdminView)
async def get_incident(
    incident_id: str,
    service: IncidentService = Depends(get_incident_service),
) -> IncidentAdminView:
    return await service.get_incident(parse_incident_id(incident_id))


@router.put(
    "/{incident_id}",
    response_model=IncidentAdminView,
    dependencies=[Depends(require_json_content_type)],
)
async def update_incident(
    incident_id: str,
    request: IncidentUpdateRequest,
    service: IncidentService = Depends(get_incident_service),
) -> IncidentAdminView:
    return await service.update_incident(parse_incident_id(incident_id), request)


@router.delete("/{incident_id}", response_model=IncidentAdminView)
async def deactivate_incident(
    incident_id: str,
    deactivate_mode: Optional[str] = Header(
        default=None, alias=HEADER_DEACTIVATE_MODE
    ),
    service: IncidentService = Depends(get_incident_service),
):
    parsed_id = parse_incident_id(incident_id)
    if deactivate_mode == DEACTIVATE_MODE_FORCE:
        await service.delete_incident(parsed_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    return await service.deactivate_incident(parsed_id)
