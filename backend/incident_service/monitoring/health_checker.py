"""
Service Health Checker

Pings every backing store with a short per-check timeout and aggregates
the results into a single server status.
"""

import asyncio
from typing import List, Protocol, Sequence, Tuple

import structlog

from ..constants import (
    HEALTH_PING_TIMEOUT_SECONDS,
    HEALTH_STATUS_OK,
    HEALTH_STATUS_UNAVAILABLE,
)
from ..domain.incidents.entities import HealthCheckResponse

logger = structlog.get_logger(__name__)


class HealthCheck(Protocol):
    name: str

    async def ping(self) -> None:
        ...


class HealthChecker:
    """Aggregates `ping()` results of named dependencies."""

    def __init__(
        self,
        checks: Sequence[HealthCheck],
        timeout_seconds: float = HEALTH_PING_TIMEOUT_SECONDS,
    ):
        self.checks = list(checks)
        self.timeout_seconds = timeout_seconds

    async def _run_check(self, check: HealthCheck) -> List[str]:
        try:
            await asyncio.wait_for(check.ping(), timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            return [f"{check.name}: ping timeout"]
        except Exception as e:
            message = getattr(e, "message", None) or str(e) or type(e).__name__
            return [f"{check.name}: {message}"]
        return []

    async def check(self) -> Tuple[HealthCheckResponse, int]:
        """Return the health report and the HTTP status to answer with."""
        results = await asyncio.gather(*(self._run_check(c) for c in self.checks))
        errors = [error for result in results for error in result]

        if errors:
            logger.warning("Health check failed", errors=errors)
            report = HealthCheckResponse(
                server_status=HEALTH_STATUS_UNAVAILABLE, errors=errors
            )
            return report, 503
        return HealthCheckResponse(server_status=HEALTH_STATUS_OK), 200
