"""
API Dependencies

FastAPI dependencies shared by the routers: access to the services built
in the application lifespan, admin authentication and request checks.
"""

import secrets
from typing import Optional
from uuid import UUID

from fastapi import Depends, Header, Request

from ..constants import HEADER_API_KEY, HEADER_CONTENT_TYPE, MEDIA_TYPE_JSON
from ..core.config import Settings, get_settings
from ..core.errors import AccessDeniedError, InvalidRequestError
from ..monitoring.health_checker import HealthChecker
from ..services.incidents import IncidentService


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings or get_settings()


def get_incident_service(request: Request) -> IncidentService:
    return request.app.state.incident_service


def get_health_checker(request: Request) -> HealthChecker:
    return request.app.state.health_checker


async def verify_api_key(
    api_key: Optional[str] = Header(default=None, alias=HEADER_API_KEY),
    settings: Settings = Depends(get_app_settings),
) -> None:
    """Admin routes require the configured key in X-API-Key."""
    if api_key is None or not secrets.compare_digest(
        api_key.encode("utf-8"), settings.API_KEY.encode("utf-8")
    ):
        raise AccessDeniedError("invalid api-key")


async def require_json_content_type(
    content_type: Optional[str] = Header(default=None, alias=HEADER_CONTENT_TYPE),
) -> None:
    if content_type is None or content_type.split(";")[0].strip() != MEDIA_TYPE_JSON:
        raise InvalidRequestError("invalid header content-type")


def parse_incident_id(incident_id: str) -> UUID:
    """Path parameter parser with a client-facing message."""
    if not incident_id:
        raise InvalidRequestError("invalid type incident_id: empty")
    try:
        return UUID(incident_id)
    except ValueError:
        raise InvalidRequestError("invalid type incident_id: not uuid")
