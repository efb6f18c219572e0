"""
Incident Service Global Constants

Centralized location for all system-wide constants used across the application.
"""

from datetime import datetime, timezone


# Timestamp Functions
def get_current_timestamp() -> datetime:
    """Get current timestamp with UTC timezone.

    Returns:
        datetime: Current UTC timestamp

    Note: Use this function instead of a constant to get real-time timestamps.
    """
    return datetime.now(timezone.utc)


# Application Constants
APP_NAME = "Incident Service"
APP_VERSION = "1.0.0"
API_PREFIX = "/api/v1"

# HTTP headers
HEADER_API_KEY = "X-API-Key"
HEADER_CONTENT_TYPE = "Content-Type"
HEADER_CORRELATION_ID = "X-Correlation-ID"
HEADER_DEACTIVATE_MODE = "X-Deactivate-Mode"
DEACTIVATE_MODE_FORCE = "force"
MEDIA_TYPE_JSON = "application/json"

# Incident statuses
STATUS_ACTIVE = "active"
STATUS_RESOLVED = "resolved"
STATUS_ARCHIVED = "archived"
INCIDENT_STATUSES = (STATUS_ACTIVE, STATUS_RESOLVED, STATUS_ARCHIVED)

# Field limits
MAX_NAME_LENGTH = 100
MAX_TYPE_LENGTH = 100
MAX_STATUS_LENGTH = 20

# Webhook delivery
DEFAULT_WEBHOOK_URL = "http://localhost:9090"
DEFAULT_WEBHOOK_METHOD = "POST"
DEFAULT_WEBHOOK_MAX_RETRY = 3
SUPPORTED_WEBHOOK_METHODS = ("GET", "POST")
WEBHOOK_QUEUE_KEY = "webhook:queue"

# Cache
ACTIVE_INCIDENT_PREFIX = "incident:active:"

# Health
HEALTH_STATUS_OK = "ok"
HEALTH_STATUS_UNAVAILABLE = "Service Unavailable"
HEALTH_PING_TIMEOUT_SECONDS = 0.5
