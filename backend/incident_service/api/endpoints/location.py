"""
Location check endpoint.

Public entry point of the system: a user location is checked against the
active incidents and, when it is dangerous, a webhook is queued.
"""

from fastapi import APIRouter, Depends

from ...domain.incidents.entities import LocationCheckRequest, LocationCheckResult
from ...services.incidents import IncidentService
from ..dependencies import get_incident_service, require_json_content_type

router = APIRouter(prefix="/location", tags=["location"])


@router.post(
    "/check",
    response_model=LocationCheckResult,
    dependencies=[Depends(require_json_content_type)],
)
async def check_location(
    request: LocationCheckRequest,
    service: IncidentService = Depends(get_incident_service),
) -> LocationCheckResult:
    return await service.check_location(request)
