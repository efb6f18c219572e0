"""
Webhook Manager

Producer side of the delivery pipeline and owner of the delivery worker.
Location checks that found danger are turned into `WebhookTask`s and
appended to the queue; the worker started here drains it.
"""

import asyncio
from typing import Optional

import structlog
from opentelemetry import trace

from ...core.config import Settings
from ...core.errors import InvalidWebhookTaskError
from ...domain.incidents.entities import LocationCheckResult
from .ports import DeliveryTransport, WebhookQueue
from .retry import RetryPolicy
from .tasks import WebhookTask, normalize_method
from .transport import HttpxDeliveryTransport
from .worker import DeliveryWorker, SleepFunc

logger = structlog.get_logger(__name__).bind(component="webhook_manager")
tracer = trace.get_tracer(__name__)


class WebhookManager:
    """
    Enqueues webhook notifications and runs the delivery worker.

    `default_url` and `default_method` are used whenever a caller does not
    supply its own; an unsupported method falls back to the default one.
    """

    def __init__(
        self,
        queue: WebhookQueue,
        transport: DeliveryTransport,
        default_url: str,
        default_method: str = "POST",
        policy: Optional[RetryPolicy] = None,
        pop_timeout_seconds: float = 10.0,
        idle_pause_seconds: float = 0.3,
        error_pause_seconds: float = 0.5,
        sleep: SleepFunc = asyncio.sleep,
    ):
        self.queue = queue
        self.transport = transport
        self.default_url = default_url
        self.default_method = normalize_method(default_method)
        self.policy = policy or RetryPolicy()
        self.worker = DeliveryWorker(
            queue=queue,
            transport=transport,
            policy=self.policy,
            pop_timeout_seconds=pop_timeout_seconds,
            idle_pause_seconds=idle_pause_seconds,
            error_pause_seconds=error_pause_seconds,
            sleep=sleep,
        )

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        queue: WebhookQueue,
        transport: Optional[DeliveryTransport] = None,
    ) -> "WebhookManager":
        """Build a manager from application settings."""
        return cls(
            queue=queue,
            transport=transport
            or HttpxDeliveryTransport(timeout_seconds=settings.WEBHOOK_REQUEST_TIMEOUT),
            default_url=settings.WEBHOOK_URL,
            default_method=settings.WEBHOOK_METHOD,
            policy=RetryPolicy(
                max_retries=settings.WEBHOOK_MAX_RETRY,
                backoff_enabled=settings.WEBHOOK_BACKOFF_ENABLED,
            ),
            pop_timeout_seconds=settings.WEBHOOK_QUEUE_POP_TIMEOUT,
            idle_pause_seconds=settings.WEBHOOK_IDLE_PAUSE,
            error_pause_seconds=settings.WEBHOOK_ERROR_PAUSE,
        )

    async def enqueue(
        self,
        result: LocationCheckResult,
        url: Optional[str] = None,
        method: Optional[str] = None,
    ) -> WebhookTask:
        """
        Append a notification for a dangerous location check.

        Raises InvalidWebhookTaskError when `result.is_danger` is false, and
        propagates queue errors to the caller.
        """
        if not result.is_danger:
            raise InvalidWebhookTaskError("invalid input: is_danger cannot be false")

        task = WebhookTask(
            payload=result,
            retry_count=0,
            method=normalize_method(method, self.default_method),
            url=url or self.default_url,
        )

        with tracer.start_as_current_span("webhook.enqueue") as span:
            span.set_attribute("webhook.check_id", task.check_id)
            await self.queue.enqueue(task)

        logger.info(
            "Webhook task enqueued",
            check_id=task.check_id,
            url=task.url,
            method=task.method,
            queue=self.queue.name,
        )
        return task

    async def start(self) -> None:
        await self.worker.start()

    async def stop(self) -> None:
        await self.worker.stop()

    async def aclose(self) -> None:
        """Stop the worker and release the HTTP client."""
        await self.stop()
        await self.transport.aclose()
