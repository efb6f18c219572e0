"""
Webhook Retry Policy

Pure retry/backoff decisions for the delivery worker. No I/O and no
sleeping happens here, so the policy is testable on its own.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from ...constants import DEFAULT_WEBHOOK_MAX_RETRY
from .classifier import DeliveryClassification

BACKOFF_STEP_SECONDS = 2.0
BACKOFF_CAP_SECONDS = 30.0


class RetryPolicy(BaseModel):
    """Retry budget and backoff switch."""

    max_retries: int = Field(
        default=DEFAULT_WEBHOOK_MAX_RETRY,
        description="Retryable failures tolerated before a task is dropped",
    )
    backoff_enabled: bool = Field(
        default=True, description="Sleep before requeueing a retried task"
    )

    @field_validator("max_retries")
    @classmethod
    def validate_max_retries(cls, v: int) -> int:
        if v <= 0:
            return DEFAULT_WEBHOOK_MAX_RETRY
        return v


def backoff_delay(retry_count: int) -> float:
    """Delay before requeue: min(2s * retry_count, 30s)."""
    return min(BACKOFF_STEP_SECONDS * max(retry_count, 0), BACKOFF_CAP_SECONDS)


class DeliveryAction(str, Enum):
    """What the worker does with a task after an attempt."""

    CONTINUE = "continue"
    DROP = "drop"
    REQUEUE = "requeue"


class DropReason(str, Enum):
    TERMINAL_FAILURE = "terminal_failure"
    MAX_RETRIES_EXCEEDED = "max_retries_exceeded"


@dataclass(frozen=True)
class DeliveryDecision:
    """
    Outcome of `decide`.

    `retry_count` is the counter the task carries after this attempt;
    `delay_seconds` only applies to REQUEUE.
    """

    action: DeliveryAction
    retry_count: int
    delay_seconds: float = 0.0
    reason: Optional[DropReason] = None


def decide(
    classification: DeliveryClassification, retry_count: int, policy: RetryPolicy
) -> DeliveryDecision:
    """
    Decide between CONTINUE (delivered), DROP and REQUEUE.

    A retryable failure increments the counter; once it exceeds
    `policy.max_retries` the task is dropped. Terminal failures are dropped
    with the counter unchanged, regardless of the remaining budget.
    """
    if classification is DeliveryClassification.SUCCESS:
        return DeliveryDecision(DeliveryAction.CONTINUE, retry_count)

    if classification is DeliveryClassification.TERMINAL:
        return DeliveryDecision(
            DeliveryAction.DROP, retry_count, reason=DropReason.TERMINAL_FAILURE
        )

    next_count = retry_count + 1
    if next_count > policy.max_retries:
        return DeliveryDecision(
            DeliveryAction.DROP, next_count, reason=DropReason.MAX_RETRIES_EXCEEDED
        )

    delay = backoff_delay(next_count) if policy.backoff_enabled else 0.0
    return DeliveryDecision(DeliveryAction.REQUEUE, next_count, delay_seconds=delay)
