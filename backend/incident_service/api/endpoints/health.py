"""
Health check endpoint.

Reports `ok` with 200 when every backing store answers its ping, and
`Service Unavailable` with 503 and the collected errors otherwise.
"""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from ...monitoring.health_checker import HealthChecker
from ..dependencies import get_health_checker

router = APIRouter(prefix="/system", tags=["health"])


@router.get("/health")
async def health_check(
    checker: HealthChecker = Depends(get_health_checker),
) -> JSONResponse:
    report, status_code = await checker.check()
    return JSONResponse(
        status_code=status_code, content=report.model_dump(mode="json")
    )
