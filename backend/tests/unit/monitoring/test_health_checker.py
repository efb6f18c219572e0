"""
Unit tests for the health checker.
"""

import asyncio

import pytest

from incident_service.infrastructure.redis.exceptions import (
    RedisConnectionException,
)
from incident_service.monitoring.health_checker import HealthChecker


class StubCheck:
    def __init__(self, name, error=None, delay=0.0):
        self.name = name
        self.error = error
        self.delay = delay

    async def ping(self) -> None:
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error


class TestHealthChecker:
    @pytest.mark.asyncio
    async def test_all_healthy(self):
        checker = HealthChecker([StubCheck("PostgreSQL"), StubCheck("RedisQueue")])

        report, status_code = await checker.check()

        assert status_code == 200
        assert report.server_status == "ok"
        assert report.errors == []

    @pytest.mark.asyncio
    async def test_failures_are_collected(self):
        checker = HealthChecker(
            [
                StubCheck("PostgreSQL", RuntimeError("connection refused")),
                StubCheck("RedisQueue"),
                StubCheck("RedisCache", RedisConnectionException("redis down")),
            ]
        )

        report, status_code = await checker.check()

        assert status_code == 503
        assert report.server_status == "Service Unavailable"
        assert report.errors == [
            "PostgreSQL: connection refused",
            "RedisCache: redis down",
        ]

    @pytest.mark.asyncio
    async def test_slow_ping_times_out(self):
        checker = HealthChecker(
            [StubCheck("PostgreSQL", delay=1.0)], timeout_seconds=0.01
        )

        report, status_code = await checker.check()

        assert status_code == 503
        assert report.errors == ["PostgreSQL: ping timeout"]
