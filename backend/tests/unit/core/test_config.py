"""
Unit tests for application settings.
"""

import os

import pytest
from pydantic import ValidationError

from incident_service.core.config import Settings


def build_settings(**overrides) -> Settings:
    values = {
        "DATABASE_URL": os.environ["DATABASE_URL"],
        "API_KEY": "test-api-key",
    }
    values.update(overrides)
    return Settings(**values)


class TestWebhookSettings:
    def test_defaults(self):
        settings = build_settings()

        assert settings.WEBHOOK_METHOD == "POST"
        assert settings.WEBHOOK_MAX_RETRY == 3
        assert settings.WEBHOOK_BACKOFF_ENABLED is True
        assert settings.WEBHOOK_QUEUE_POP_TIMEOUT == 10

    def test_method_is_upper_cased(self):
        assert build_settings(WEBHOOK_METHOD="get").WEBHOOK_METHOD == "GET"

    def test_unsupported_method_falls_back_to_post(self):
        assert build_settings(WEBHOOK_METHOD="PUT").WEBHOOK_METHOD == "POST"

    def test_empty_url_falls_back_to_default(self):
        assert build_settings(WEBHOOK_URL="  ").WEBHOOK_URL == "http://localhost:9090"

    @pytest.mark.parametrize("value", [0, -1])
    def test_non_positive_max_retry_falls_back_to_default(self, value):
        assert build_settings(WEBHOOK_MAX_RETRY=value).WEBHOOK_MAX_RETRY == 3

    def test_socket_timeout_must_exceed_pop_timeout(self):
        with pytest.raises(ValidationError) as exc_info:
            build_settings(REDIS_SOCKET_TIMEOUT=5.0, WEBHOOK_QUEUE_POP_TIMEOUT=10)

        assert "REDIS_SOCKET_TIMEOUT" in str(exc_info.value)


class TestIncidentSettings:
    def test_default_radius_cannot_exceed_max(self):
        with pytest.raises(ValidationError):
            build_settings(DEFAULT_RADIUS=1000, MAX_RADIUS=500)

    def test_api_key_is_required(self):
        with pytest.raises(ValidationError):
            Settings(DATABASE_URL=os.environ["DATABASE_URL"], API_KEY="")

    def test_unknown_log_level(self):
        with pytest.raises(ValidationError):
            build_settings(LOG_LEVEL="chatty")

    def test_log_level_is_normalized(self):
        assert build_settings(LOG_LEVEL="debug").LOG_LEVEL == "DEBUG"
