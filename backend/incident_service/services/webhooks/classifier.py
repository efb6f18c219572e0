"""
Webhook Delivery Classifier

Maps a delivery outcome to Success, Retryable or Terminal.
"""

from enum import Enum

from .transport import DeliveryOutcome

STATUS_TOO_MANY_REQUESTS = 429


class DeliveryClassification(str, Enum):
    """Verdict on one delivery attempt."""

    SUCCESS = "success"
    RETRYABLE = "retryable"
    TERMINAL = "terminal"


def classify_status(status_code: int) -> DeliveryClassification:
    """
    Classify an HTTP status code.

    < 300 is success; >= 500 and 429 are retryable; everything else
    (3xx, 4xx except 429) is terminal.
    """
    if status_code < 300:
        return DeliveryClassification.SUCCESS
    if status_code >= 500 or status_code == STATUS_TOO_MANY_REQUESTS:
        return DeliveryClassification.RETRYABLE
    return DeliveryClassification.TERMINAL


def classify_outcome(outcome: DeliveryOutcome) -> DeliveryClassification:
    """Classify a transport outcome."""
    if outcome.status_code is not None:
        return classify_status(outcome.status_code)
    if outcome.transport_error is not None:
        return DeliveryClassification.RETRYABLE
    return DeliveryClassification.TERMINAL
