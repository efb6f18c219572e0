"""
Request correlation for the incident API.

Every request is served with a `correlation_id` bound into the structlog
context, so the location check that enqueues a webhook and the log lines it
produces can be matched up. A client-supplied `X-Correlation-ID` is reused
when it is well formed; otherwise a fresh UUID is issued.
"""

import re
import time
import uuid
from typing import Awaitable, Callable, Optional

import structlog
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response as StarletteResponse
from starlette.types import ASGIApp

from ..constants import HEADER_CORRELATION_ID

logger = structlog.get_logger(__name__)

CORRELATION_ID_PATTERN = re.compile(r"^[A-Za-z0-9._-]{8,255}$")


def resolve_correlation_id(received: Optional[str]) -> str:
    """Return `received` if it is an acceptable ID, else a new uuid4 string."""
    candidate = (received or "").strip()
    if CORRELATION_ID_PATTERN.fullmatch(candidate):
        return candidate
    if candidate:
        logger.warning("Rejected correlation ID header", received=candidate[:64])
    return str(uuid.uuid4())


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    def __init__(self, app: ASGIApp, header_name: str = HEADER_CORRELATION_ID):
        super().__init__(app)
        self.header_name = header_name

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[StarletteResponse]],
    ) -> StarletteResponse:
        correlation_id = resolve_correlation_id(request.headers.get(self.header_name))
        started = time.perf_counter()

        with structlog.contextvars.bound_contextvars(correlation_id=correlation_id):
            response = await call_next(request)
            logger.debug(
                "Request served",
                method=request.method,
                path=request.url.path,
                status_code=response.status_code,
                duration_ms=round((time.perf_counter() - started) * 1000, 2),
            )

        response.headers[self.header_name] = correlation_id
        return response
