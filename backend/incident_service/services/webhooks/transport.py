"""
Webhook Delivery Transport

Builds and executes one HTTP request per delivery attempt over a shared
httpx client with a fixed per-call timeout.
"""

from dataclasses import dataclass
from typing import Optional

import httpx
import structlog
from opentelemetry import trace

from ...constants import HEADER_CONTENT_TYPE, MEDIA_TYPE_JSON
from .tasks import JsonBody, WebhookTask, build_delivery_body

logger = structlog.get_logger()
tracer = trace.get_tracer(__name__)

DEFAULT_REQUEST_TIMEOUT = 5.0


@dataclass(frozen=True)
class DeliveryOutcome:
    """
    Result of one delivery attempt.

    Exactly one of `status_code`, `transport_error` or `request_error` is set:
    a response was received, the network call failed, or no request could
    be built at all.
    """

    status_code: Optional[int] = None
    transport_error: Optional[str] = None
    request_error: Optional[str] = None

    @classmethod
    def response(cls, status_code: int) -> "DeliveryOutcome":
        return cls(status_code=status_code)

    @classmethod
    def failed_transport(cls, error: str) -> "DeliveryOutcome":
        return cls(transport_error=error)

    @classmethod
    def invalid_request(cls, error: str) -> "DeliveryOutcome":
        return cls(request_error=error)

    def describe(self) -> str:
        if self.status_code is not None:
            return f"status {self.status_code}"
        if self.transport_error is not None:
            return f"transport error: {self.transport_error}"
        return f"invalid request: {self.request_error}"


class HttpxDeliveryTransport:
    """Delivery transport backed by `httpx.AsyncClient`."""

    def __init__(
        self,
        timeout_seconds: float = DEFAULT_REQUEST_TIMEOUT,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.timeout_seconds = timeout_seconds
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(timeout_seconds)
        )

    def build_request(self, task: WebhookTask) -> httpx.Request:
        """Build the request for one attempt; POST bodies are stamped now."""
        body = build_delivery_body(task)
        if isinstance(body, JsonBody):
            return self._client.build_request(
                task.method,
                task.url,
                content=body.encode(),
                headers={HEADER_CONTENT_TYPE: MEDIA_TYPE_JSON},
            )
        return self._client.build_request(task.method, task.url)

    async def send(self, task: WebhookTask) -> DeliveryOutcome:
        """
        Send one attempt. Never raises for delivery failures.

        The response is streamed and its raw body discarded, so a peer sending
        a malformed encoded body still yields its status code.
        """
        with tracer.start_as_current_span("webhook.send") as span:
            span.set_attribute("webhook.method", task.method)
            span.set_attribute("webhook.url", task.url)
            span.set_attribute("webhook.check_id", task.check_id)

            try:
                request = self.build_request(task)
            except (httpx.InvalidURL, ValueError) as e:
                return DeliveryOutcome.invalid_request(str(e) or type(e).__name__)

            try:
                response = await self._client.send(request, stream=True)
            except httpx.UnsupportedProtocol as e:
                return DeliveryOutcome.invalid_request(str(e) or type(e).__name__)
            except httpx.HTTPError as e:
                span.set_attribute("webhook.transport_error", type(e).__name__)
                return DeliveryOutcome.failed_transport(str(e) or type(e).__name__)

            span.set_attribute("http.status_code", response.status_code)
            await self._drain(response, task)
            return DeliveryOutcome.response(response.status_code)

    async def _drain(self, response: httpx.Response, task: WebhookTask) -> None:
        # raw bytes only; the status is already known and Content-Encoding is ignored
        try:
            async for _ in response.aiter_raw():
                pass
        except httpx.HTTPError as e:
            logger.debug(
                "Webhook response body not fully read",
                check_id=task.check_id,
                status_code=response.status_code,
                error=str(e) or type(e).__name__,
            )
        finally:
            await response.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()
