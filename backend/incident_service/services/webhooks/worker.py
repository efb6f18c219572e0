"""
Webhook Delivery Worker

Single background consumer of the webhook queue. Each iteration waits a
bounded time for a task, attempts exactly one HTTP delivery and then
either finishes the task, drops it or puts it back at the tail of the
queue with an incremented retry counter.

The queue and transport are injected; so is `sleep`, so backoff can be
observed in tests without waiting.
"""

import asyncio
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional

import structlog
from opentelemetry import trace
from prometheus_client import Counter

from ...infrastructure.redis.exceptions import RedisException
from .classifier import DeliveryClassification, classify_outcome
from .ports import DeliveryTransport, WebhookQueue
from .retry import (
    DeliveryAction,
    DeliveryDecision,
    DropReason,
    RetryPolicy,
    decide,
)
from .tasks import WebhookTask

logger = structlog.get_logger(__name__)
tracer = trace.get_tracer(__name__)

SleepFunc = Callable[[float], Awaitable[None]]

DEFAULT_POP_TIMEOUT_SECONDS = 10.0
DEFAULT_IDLE_PAUSE_SECONDS = 0.3
DEFAULT_ERROR_PAUSE_SECONDS = 0.5

WEBHOOK_DELIVERIES_TOTAL = Counter(
    "incident_webhook_deliveries_total",
    "Webhook delivery attempts by result",
    ["outcome"],
)
WEBHOOK_QUEUE_ERRORS_TOTAL = Counter(
    "incident_webhook_queue_errors_total",
    "Failed queue operations in the delivery worker",
    ["operation"],
)


class WorkerState(str, Enum):
    WAITING = "waiting"
    DELIVERING = "delivering"
    BACKOFF = "backoff"
    DELIVERED = "delivered"
    DROPPED = "dropped"
    STOPPED = "stopped"


def error_fields(error: Exception) -> Dict[str, Any]:
    if isinstance(error, RedisException):
        return error.log_fields()
    return {"error": str(error), "error_type": type(error).__name__}


class DeliveryWorker:
    """
    Delivery loop over a `WebhookQueue` and a `DeliveryTransport`.

    At most one delivery is in flight at a time. `stop()` interrupts any
    wait (queue pop, idle pause, backoff sleep); a task held in memory at
    that moment is not returned to the queue.
    """

    def __init__(
        self,
        queue: WebhookQueue,
        transport: DeliveryTransport,
        policy: Optional[RetryPolicy] = None,
        pop_timeout_seconds: float = DEFAULT_POP_TIMEOUT_SECONDS,
        idle_pause_seconds: float = DEFAULT_IDLE_PAUSE_SECONDS,
        error_pause_seconds: float = DEFAULT_ERROR_PAUSE_SECONDS,
        sleep: SleepFunc = asyncio.sleep,
        worker_id: str = "webhook-worker",
    ):
        self.queue = queue
        self.transport = transport
        self.policy = policy or RetryPolicy()
        self.pop_timeout_seconds = pop_timeout_seconds
        self.idle_pause_seconds = idle_pause_seconds
        self.error_pause_seconds = error_pause_seconds
        self.worker_id = worker_id

        self._sleep = sleep
        self._stop_event = asyncio.Event()
        self._task: Optional[asyncio.Task] = None
        self.state = WorkerState.STOPPED

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        """Spawn the delivery loop. Calling start on a running worker is a no-op."""
        if self.running:
            return

        self._stop_event.clear()
        self._task = asyncio.create_task(self._run(), name=self.worker_id)
        logger.info(
            "Webhook worker started",
            worker_id=self.worker_id,
            queue=self.queue.name,
            max_retries=self.policy.max_retries,
            backoff_enabled=self.policy.backoff_enabled,
        )

    async def stop(self) -> None:
        """Signal the loop to stop and wait until it has exited."""
        if self._task is None:
            return

        self._stop_event.set()
        self._task.cancel()
        await asyncio.gather(self._task, return_exceptions=True)
        self._task = None
        self.state = WorkerState.STOPPED
        logger.info("Webhook worker stopped", worker_id=self.worker_id)

    async def _run(self) -> None:
        while not self._stop_event.is_set():
            self.state = WorkerState.WAITING
            try:
                task = await self.queue.dequeue(self.pop_timeout_seconds)
            except Exception as e:
                WEBHOOK_QUEUE_ERRORS_TOTAL.labels(operation="dequeue").inc()
                logger.error(
                    "Failed to pop webhook task",
                    worker_id=self.worker_id,
                    **error_fields(e),
                )
                await self._sleep(self.error_pause_seconds)
                continue

            if task is None:
                await self._sleep(self.idle_pause_seconds)
                continue

            try:
                await self.process_task(task)
            except Exception as e:
                WEBHOOK_DELIVERIES_TOTAL.labels(outcome="failed").inc()
                logger.error(
                    "Webhook task processing failed, task lost",
                    worker_id=self.worker_id,
                    check_id=task.check_id,
                    retry_count=task.retry_count,
                    **error_fields(e),
                )

        self.state = WorkerState.STOPPED

    async def process_task(self, task: WebhookTask) -> DeliveryDecision:
        """Attempt one delivery of `task` and apply the resulting decision."""
        log = logger.bind(
            worker_id=self.worker_id,
            check_id=task.check_id,
            url=task.url,
            method=task.method,
            retry_count=task.retry_count,
        )

        with tracer.start_as_current_span("webhook.process_task") as span:
            span.set_attribute("webhook.check_id", task.check_id)
            span.set_attribute("webhook.retry_count", task.retry_count)

            self.state = WorkerState.DELIVERING
            outcome = await self.transport.send(task)
            classification = classify_outcome(outcome)
            decision = decide(classification, task.retry_count, self.policy)

            span.set_attribute("webhook.classification", classification.value)
            span.set_attribute("webhook.action", decision.action.value)

            if decision.action is DeliveryAction.CONTINUE:
                self.state = WorkerState.DELIVERED
                WEBHOOK_DELIVERIES_TOTAL.labels(outcome="delivered").inc()
                log.info("Webhook delivered", result=outcome.describe())
                return decision

            if decision.action is DeliveryAction.DROP:
                self.state = WorkerState.DROPPED
                self._log_drop(log, decision, outcome.describe())
                return decision

            WEBHOOK_DELIVERIES_TOTAL.labels(outcome="retried").inc()
            log.info(
                "Webhook delivery failed, requeueing",
                result=outcome.describe(),
                next_retry_count=decision.retry_count,
                delay_seconds=decision.delay_seconds,
            )
            await self._requeue(task, decision, log)
            return decision

    def _log_drop(self, log, decision: DeliveryDecision, result: str) -> None:
        if decision.reason is DropReason.MAX_RETRIES_EXCEEDED:
            WEBHOOK_DELIVERIES_TOTAL.labels(outcome="exhausted").inc()
            log.critical(
                "Webhook dropped after exhausting retries",
                result=result,
                max_retries=self.policy.max_retries,
                final_retry_count=decision.retry_count,
            )
            return

        WEBHOOK_DELIVERIES_TOTAL.labels(outcome="rejected").inc()
        log.warning(
            "Webhook dropped on non-retryable failure",
            result=result,
            classification=DeliveryClassification.TERMINAL.value,
        )

    async def _requeue(
        self, task: WebhookTask, decision: DeliveryDecision, log
    ) -> None:
        if decision.delay_seconds > 0:
            self.state = WorkerState.BACKOFF
            await self._sleep(decision.delay_seconds)

        retried = task.with_retry_count(decision.retry_count)
        try:
            await self.queue.requeue(retried)
        except Exception as e:
            WEBHOOK_QUEUE_ERRORS_TOTAL.labels(operation="requeue").inc()
            log.error(
                "Failed to requeue webhook task, task lost",
                **error_fields(e),
                next_retry_count=decision.retry_count,
            )
