"""
Webhook Delivery Services

Redis-queued, at-least-once webhook notifications for dangerous location
checks: task model, delivery transport, classification, retry policy,
delivery worker and producer.
"""

from .classifier import DeliveryClassification, classify_outcome, classify_status
from .manager import WebhookManager
from .retry import (
    DeliveryAction,
    DeliveryDecision,
    DropReason,
    RetryPolicy,
    backoff_delay,
    decide,
)
from .tasks import DeliveryEnvelope, JsonBody, NoBody, WebhookTask
from .transport import DeliveryOutcome, HttpxDeliveryTransport
from .worker import DeliveryWorker, WorkerState

__all__ = [
    "DeliveryClassification",
    "classify_outcome",
    "classify_status",
    "WebhookManager",
    "DeliveryAction",
    "DeliveryDecision",
    "DropReason",
    "RetryPolicy",
    "backoff_delay",
    "decide",
    "DeliveryEnvelope",
    "JsonBody",
    "NoBody",
    "WebhookTask",
    "DeliveryOutcome",
    "HttpxDeliveryTransport",
    "DeliveryWorker",
    "WorkerState",
]
