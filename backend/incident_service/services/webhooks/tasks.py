"""
Webhook Task Models

The queued unit of work, the outgoing delivery envelope and the request
body variant chosen once per delivery attempt.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from ...constants import (
    DEFAULT_WEBHOOK_METHOD,
    SUPPORTED_WEBHOOK_METHODS,
    get_current_timestamp,
)
from ...domain.incidents.entities import LocationCheckResult


def normalize_method(
    method: Optional[str], default: str = DEFAULT_WEBHOOK_METHOD
) -> str:
    """Return an upper-cased supported method, or `default` when empty/unknown."""
    if not method:
        return default
    method = method.strip().upper()
    if method not in SUPPORTED_WEBHOOK_METHODS:
        return default
    return method


class WebhookTask(BaseModel):
    """
    Queued webhook notification.

    Wire format: {"dto": ..., "count_retry": int, "method": "POST"|"GET", "url": str}.
    The payload never changes between attempts; only `retry_count` grows.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    payload: LocationCheckResult = Field(..., alias="dto")
    retry_count: int = Field(default=0, ge=0, alias="count_retry")
    method: str = DEFAULT_WEBHOOK_METHOD
    url: str

    @property
    def check_id(self) -> str:
        return str(self.payload.check_id)

    def with_retry_count(self, retry_count: int) -> "WebhookTask":
        """Copy of this task carrying a new retry counter."""
        if retry_count < self.retry_count:
            raise ValueError("retry_count cannot decrease")
        return self.model_copy(update={"retry_count": retry_count})

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)

    @classmethod
    def from_json(cls, raw: Union[str, bytes]) -> "WebhookTask":
        return cls.model_validate_json(raw)


class DeliveryEnvelope(BaseModel):
    """Body of a POST delivery: {"dto": ..., "date_request": <RFC3339 UTC>}."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    payload: LocationCheckResult = Field(..., alias="dto")
    sent_at: datetime = Field(..., alias="date_request")

    @classmethod
    def for_task(
        cls, task: WebhookTask, sent_at: Optional[datetime] = None
    ) -> "DeliveryEnvelope":
        """Wrap the task payload; the timestamp is taken at send time."""
        return cls(payload=task.payload, sent_at=sent_at or get_current_timestamp())

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)


@dataclass(frozen=True)
class NoBody:
    """GET delivery: no request body."""


@dataclass(frozen=True)
class JsonBody:
    """POST delivery: JSON-encoded envelope."""

    envelope: DeliveryEnvelope

    def encode(self) -> bytes:
        return self.envelope.to_json().encode("utf-8")


DeliveryBody = Union[NoBody, JsonBody]


def build_delivery_body(
    task: WebhookTask, sent_at: Optional[datetime] = None
) -> DeliveryBody:
    """Select the body variant for one attempt of `task`."""
    if task.method == "GET":
        return NoBody()
    return JsonBody(envelope=DeliveryEnvelope.for_task(task, sent_at))
