"""
Unit tests for the HTTP API.

The application is built without running its lifespan; services are
replaced on `app.state` with mocks.
"""

from datetime import datetime, timezone
from unittest.mock import AsyncMock
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.exc import NoResultFound

from incident_service.core.errors import IncidentConflictError
from incident_service.domain.incidents.entities import (
    IncidentAdminView,
    IncidentsStatResponse,
    PaginationFilters,
    PaginationResponse,
)
from incident_service.main import create_app
from incident_service.monitoring.health_checker import HealthChecker
from incident_service.services.webhooks.tasks import DeliveryEnvelope

API_HEADERS = {"X-API-Key": "test-api-key"}


class StubCheck:
    def __init__(self, name, error=None):
        self.name = name
        self.error = error

    async def ping(self) -> None:
        if self.error is not None:
            raise self.error


@pytest.fixture
def incident_service():
    return AsyncMock()


@pytest.fixture
def app(settings, incident_service):
    app = create_app(settings)
    app.state.incident_service = incident_service
    app.state.health_checker = HealthChecker([StubCheck("PostgreSQL")])
    return app


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def admin_view(make_record):
    return IncidentAdminView.from_record(make_record())


class TestLocationCheck:
    def test_returns_check_result(self, client, incident_service, danger_result):
        incident_service.check_location.return_value = danger_result

        response = client.post(
            "/api/v1/location/check",
            json={"user_id": "user-42", "latitude": "55.756", "longitude": "37.617"},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["check_id"] == str(danger_result.check_id)
        assert body["is_danger"] is True
        assert body["detected_incidents"][0]["distance_meters"] == 31.5
        request = incident_service.check_location.await_args.args[0]
        assert request.user_id == "user-42"

    def test_requires_json_content_type(self, client, incident_service):
        response = client.post(
            "/api/v1/location/check",
            content=b'{"user_id": "u", "latitude": "1", "longitude": "1"}',
            headers={"Content-Type": "text/plain"},
        )

        assert response.status_code == 400
        assert response.json()["error_text"] == "invalid header content-type"
        incident_service.check_location.assert_not_awaited()

    def test_empty_body(self, client):
        response = client.post(
            "/api/v1/location/check",
            content=b"",
            headers={"Content-Type": "application/json"},
        )

        assert response.status_code == 400
        assert response.json()["error_text"] == "body empty"

    def test_malformed_json(self, client):
        response = client.post(
            "/api/v1/location/check",
            content=b"{not json",
            headers={"Content-Type": "application/json"},
        )

        assert response.status_code == 400
        assert response.json()["error_text"] == "body empty"

    def test_validation_message_is_public(self, client):
        response = client.post(
            "/api/v1/location/check",
            json={"user_id": "", "latitude": "1", "longitude": "1"},
        )

        assert response.status_code == 400
        body = response.json()
        assert body["status"] == "error"
        assert body["error_text"] == "user_id cannot be empty"
        assert body["date"]


class TestAdminAuthentication:
    def test_missing_key(self, client, incident_service):
        response = client.get("/api/v1/incidents/stats")

        assert response.status_code == 403
        assert response.json()["error_text"] == "invalid api-key"
        incident_service.statistics.assert_not_awaited()

    def test_wrong_key(self, client):
        response = client.get(
            "/api/v1/incidents/stats", headers={"X-API-Key": "nope"}
        )

        assert response.status_code == 403


class TestIncidentRoutes:
    def test_register(self, client, incident_service, admin_view):
        incident_service.register_incident.return_value = admin_view

        response = client.post(
            "/api/v1/incidents",
            json={
                "name": "Gas leak",
                "type": "chemical",
                "latitude": "55.7558",
                "longitude": "37.6173",
                "radius": 500,
            },
            headers=API_HEADERS,
        )

        assert response.status_code == 201
        assert response.json()["id"] == str(admin_view.id)
        assert response.json()["status"] == "active"

    def test_register_validation(self, client, incident_service):
        response = client.post(
            "/api/v1/incidents",
            json={"type": "chemical", "latitude": "1", "longitude": "1"},
            headers=API_HEADERS,
        )

        assert response.status_code == 400
        assert response.json()["error_text"] == "name cannot be empty"

    def test_list_passes_filters(self, client, incident_service, admin_view):
        incident_service.list_incidents.return_value = PaginationResponse(
            incidents=[admin_view],
            incidents_count=1,
            total_pages=1,
            page_num=1,
            total_incidents=1,
        )

        response = client.get(
            "/api/v1/incidents",
            params={"page_num": 1, "status": "active", "type": "chemical"},
            headers=API_HEADERS,
        )

        assert response.status_code == 200
        assert response.json()["incidents_count"] == 1
        filters = incident_service.list_incidents.await_args.args[0]
        assert filters == PaginationFilters(status="active", type="chemical")
        assert incident_service.list_incidents.await_args.kwargs == {"page_num": 1}

    def test_list_rejects_bad_page(self, client):
        response = client.get(
            "/api/v1/incidents", params={"page_num": 0}, headers=API_HEADERS
        )

        assert response.status_code == 400

    def test_get(self, client, incident_service, admin_view):
        incident_service.get_incident.return_value = admin_view

        response = client.get(f"/api/v1/incidents/{admin_view.id}", headers=API_HEADERS)

        assert response.status_code == 200
        incident_service.get_incident.assert_awaited_once_with(admin_view.id)

    def test_get_invalid_id(self, client):
        response = client.get("/api/v1/incidents/not-a-uuid", headers=API_HEADERS)

        assert response.status_code == 400
        assert response.json()["error_text"] == "invalid type incident_id: not uuid"

    def test_get_missing(self, client, incident_service):
        incident_service.get_incident.side_effect = NoResultFound()

        response = client.get(f"/api/v1/incidents/{uuid4()}", headers=API_HEADERS)

        assert response.status_code == 404
        assert response.json()["error_text"] == "not found id"

    def test_update(self, client, incident_service, admin_view):
        incident_service.update_incident.return_value = admin_view

        response = client.put(
            f"/api/v1/incidents/{admin_view.id}",
            json={"radius": 700},
            headers=API_HEADERS,
        )

        assert response.status_code == 200
        incident_id, request = incident_service.update_incident.await_args.args
        assert incident_id == admin_view.id
        assert request.radius == 700

    def test_update_without_fields(self, client, incident_service):
        response = client.put(
            f"/api/v1/incidents/{uuid4()}", json={}, headers=API_HEADERS
        )

        assert response.status_code == 400
        assert response.json()["error_text"] == "no data for update"

    def test_delete_archives_by_default(self, client, incident_service, admin_view):
        incident_service.deactivate_incident.return_value = admin_view

        response = client.delete(
            f"/api/v1/incidents/{admin_view.id}", headers=API_HEADERS
        )

        assert response.status_code == 200
        incident_service.deactivate_incident.assert_awaited_once_with(admin_view.id)
        incident_service.delete_incident.assert_not_awaited()

    def test_delete_force(self, client, incident_service):
        incident_id = uuid4()

        response = client.delete(
            f"/api/v1/incidents/{incident_id}",
            headers={**API_HEADERS, "X-Deactivate-Mode": "force"},
        )

        assert response.status_code == 204
        incident_service.delete_incident.assert_awaited_once_with(incident_id)

    def test_archive_twice_conflicts(self, client, incident_service):
        incident_service.deactivate_incident.side_effect = IncidentConflictError(
            "incident already archived"
        )

        response = client.delete(f"/api/v1/incidents/{uuid4()}", headers=API_HEADERS)

        assert response.status_code == 409

    def test_stats(self, client, incident_service):
        now = datetime(2026, 5, 1, 12, 0, tzinfo=timezone.utc)
        incident_service.statistics.return_value = IncidentsStatResponse(
            total_unique_user=2,
            time_stat_window=3600,
            from_date=now,
            to_date=now,
            total_incidents=0,
        )

        response = client.get("/api/v1/incidents/stats", headers=API_HEADERS)

        assert response.status_code == 200
        assert response.json()["total_unique_user"] == 2


class TestSystemRoutes:
    def test_health_ok(self, client):
        response = client.get("/api/v1/system/health")

        assert response.status_code == 200
        assert response.json() == {"server_status": "ok"}

    def test_health_unavailable(self, app, client):
        app.state.health_checker = HealthChecker(
            [StubCheck("RedisQueue", RuntimeError("connection refused"))]
        )

        response = client.get("/api/v1/system/health")

        assert response.status_code == 503
        assert response.json() == {
            "server_status": "Service Unavailable",
            "errors": ["RedisQueue: connection refused"],
        }

    def test_metrics(self, client):
        response = client.get("/metrics")

        assert response.status_code == 200
        assert "incident_webhook_deliveries_total" in response.text

    def test_unknown_route(self, client):
        response = client.get("/api/v1/nowhere")

        assert response.status_code == 404
        assert response.json()["status"] == "error"

    def test_unexpected_error_is_masked(self, app, incident_service):
        incident_service.statistics.side_effect = RuntimeError("db password leaked")
        client = TestClient(app, raise_server_exceptions=False)

        response = client.get("/api/v1/incidents/stats", headers=API_HEADERS)

        assert response.status_code == 500
        assert response.json()["error_text"] == "internal server error"


class TestCorrelationId:
    def test_generated_when_missing(self, client):
        response = client.get("/api/v1/system/health")

        assert len(response.headers["X-Correlation-ID"]) == 36

    def test_valid_id_is_echoed(self, client):
        response = client.get(
            "/api/v1/system/health", headers={"X-Correlation-ID": "req-12345678"}
        )

        assert response.headers["X-Correlation-ID"] == "req-12345678"

    def test_invalid_id_is_replaced(self, client):
        response = client.get(
            "/api/v1/system/health", headers={"X-Correlation-ID": "bad id!"}
        )

        assert response.headers["X-Correlation-ID"] != "bad id!"


class TestWebhookEcho:
    def test_recognizes_delivery(self, client, make_task):
        body = DeliveryEnvelope.for_task(make_task()).to_json()

        response = client.post(
            "/api/v1/webhooks/echo",
            content=body,
            headers={"Content-Type": "application/json"},
        )

        assert response.json() == {"status": "ok", "recognized": True}

    def test_get_without_body(self, client):
        assert client.get("/api/v1/webhooks/echo").json() == {"status": "ok"}

    def test_unexpected_body(self, client):
        response = client.post("/api/v1/webhooks/echo", content=b"hello")

        assert response.json() == {"status": "ok", "recognized": False}
