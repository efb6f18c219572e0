"""
Webhook Pipeline Ports

Narrow interfaces between the delivery worker and its I/O: the durable
queue and the HTTP transport. Tests drive the worker with in-memory fakes.
"""

from typing import Optional, Protocol, runtime_checkable

from .tasks import WebhookTask
from .transport import DeliveryOutcome


@runtime_checkable
class WebhookQueue(Protocol):
    """FIFO list store for webhook tasks."""

    name: str

    async def enqueue(self, task: WebhookTask) -> None:
        """Append `task` to the tail. Raises on serialization or store errors."""
        ...

    async def dequeue(self, timeout_seconds: float) -> Optional[WebhookTask]:
        """
        Pop the head, waiting up to `timeout_seconds`.

        Returns None when the wait elapses with the queue empty. Raises only on
        store or deserialization failure.
        """
        ...

    async def requeue(self, task: WebhookTask) -> None:
        """Append a retried task to the tail, behind newer arrivals."""
        ...

    async def ping(self) -> None:
        ...


@runtime_checkable
class DeliveryTransport(Protocol):
    """Executes exactly one HTTP request per delivery attempt."""

    async def send(self, task: WebhookTask) -> DeliveryOutcome:
        ...

    async def aclose(self) -> None:
        ...
