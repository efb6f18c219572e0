"""
Unit tests for webhook delivery classification and retry decisions.
"""

import pytest

from incident_service.services.webhooks.classifier import (
    DeliveryClassification,
    classify_outcome,
    classify_status,
)
from incident_service.services.webhooks.retry import (
    BACKOFF_CAP_SECONDS,
    DeliveryAction,
    DropReason,
    RetryPolicy,
    backoff_delay,
    decide,
)
from incident_service.services.webhooks.transport import DeliveryOutcome


class TestClassifyStatus:
    """HTTP status code classification."""

    @pytest.mark.parametrize("status_code", [200, 201, 204, 299])
    def test_below_300_is_success(self, status_code):
        assert classify_status(status_code) is DeliveryClassification.SUCCESS

    @pytest.mark.parametrize("status_code", [500, 502, 503, 504, 599])
    def test_server_errors_are_retryable(self, status_code):
        assert classify_status(status_code) is DeliveryClassification.RETRYABLE

    def test_too_many_requests_is_retryable(self):
        assert classify_status(429) is DeliveryClassification.RETRYABLE

    @pytest.mark.parametrize("status_code", [301, 302, 400, 401, 403, 404, 422])
    def test_redirects_and_client_errors_are_terminal(self, status_code):
        assert classify_status(status_code) is DeliveryClassification.TERMINAL


class TestClassifyOutcome:
    def test_response_uses_status(self):
        outcome = DeliveryOutcome.response(503)
        assert classify_outcome(outcome) is DeliveryClassification.RETRYABLE

    def test_transport_error_is_retryable(self):
        outcome = DeliveryOutcome.failed_transport("connection refused")
        assert classify_outcome(outcome) is DeliveryClassification.RETRYABLE

    def test_invalid_request_is_terminal(self):
        outcome = DeliveryOutcome.invalid_request("bad url")
        assert classify_outcome(outcome) is DeliveryClassification.TERMINAL

    def test_describe(self):
        assert DeliveryOutcome.response(404).describe() == "status 404"
        assert "timeout" in DeliveryOutcome.failed_transport("timeout").describe()


class TestBackoff:
    def test_grows_linearly(self):
        assert backoff_delay(1) == 2.0
        assert backoff_delay(2) == 4.0
        assert backoff_delay(3) == 6.0

    def test_is_capped(self):
        assert backoff_delay(15) == BACKOFF_CAP_SECONDS
        assert backoff_delay(100) == BACKOFF_CAP_SECONDS

    def test_non_positive_count_has_no_delay(self):
        assert backoff_delay(0) == 0.0
        assert backoff_delay(-1) == 0.0


class TestRetryPolicy:
    def test_defaults(self):
        policy = RetryPolicy()
        assert policy.max_retries == 3
        assert policy.backoff_enabled is True

    @pytest.mark.parametrize("value", [0, -5])
    def test_non_positive_max_retries_falls_back_to_default(self, value):
        assert RetryPolicy(max_retries=value).max_retries == 3


class TestDecide:
    """Decisions after a single delivery attempt."""

    @pytest.fixture
    def policy(self):
        return RetryPolicy(max_retries=3, backoff_enabled=True)

    def test_success_continues_without_touching_counter(self, policy):
        decision = decide(DeliveryClassification.SUCCESS, 2, policy)
        assert decision.action is DeliveryAction.CONTINUE
        assert decision.retry_count == 2
        assert decision.delay_seconds == 0.0

    def test_terminal_drops_even_with_budget_left(self, policy):
        decision = decide(DeliveryClassification.TERMINAL, 0, policy)
        assert decision.action is DeliveryAction.DROP
        assert decision.reason is DropReason.TERMINAL_FAILURE
        assert decision.retry_count == 0

    def test_retryable_requeues_with_incremented_counter(self, policy):
        decision = decide(DeliveryClassification.RETRYABLE, 0, policy)
        assert decision.action is DeliveryAction.REQUEUE
        assert decision.retry_count == 1
        assert decision.delay_seconds == 2.0

    def test_last_retry_is_still_requeued(self, policy):
        decision = decide(DeliveryClassification.RETRYABLE, 2, policy)
        assert decision.action is DeliveryAction.REQUEUE
        assert decision.retry_count == 3
        assert decision.delay_seconds == 6.0

    def test_exhausted_budget_drops(self, policy):
        decision = decide(DeliveryClassification.RETRYABLE, 3, policy)
        assert decision.action is DeliveryAction.DROP
        assert decision.reason is DropReason.MAX_RETRIES_EXCEEDED
        assert decision.retry_count == 4

    def test_backoff_disabled_requeues_immediately(self):
        policy = RetryPolicy(max_retries=3, backoff_enabled=False)
        decision = decide(DeliveryClassification.RETRYABLE, 1, policy)
        assert decision.action is DeliveryAction.REQUEUE
        assert decision.delay_seconds == 0.0
