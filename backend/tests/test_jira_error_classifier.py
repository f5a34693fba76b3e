from __future__ import annotations

from jirasync.core.exceptions import JiraClientError
from jirasync.integrations.jira.errors import (
    JiraErrorClassification,
    JiraErrorCode,
    JiraErrorSeverity,
    classify_jira_error,
)


def test_suspended_payment_is_not_retryable() -> None:
    result = classify_jira_error(403, {"errorCode": "SUSPENDED_PAYMENT", "errorMessage": "Billing issue"}, "Forbidden")
    assert result.code == JiraErrorCode.SUSPENDED_PAYMENT
    assert result.retryable is False
    assert "Billing issue" in result.message


def test_suspended_payment_without_message_uses_default() -> None:
    result = classify_jira_error(403, {"errorCode": "SUSPENDED_PAYMENT"}, "Forbidden")
    assert result.code == JiraErrorCode.SUSPENDED_PAYMENT
    assert result.retryable is False
    assert result.message == "Jira subscription suspended"


def test_missing_status_is_retryable_network_error() -> None:
    result = classify_jira_error(None, {}, "Fetch failed")
    assert result.code == JiraErrorCode.NETWORK
    assert result.retryable is True
    assert result.status is None


def test_network_error_keeps_payload_message() -> None:
    result = classify_jira_error(None, {"errorMessage": "Network unreachable"}, "Fetch failed")
    assert result.code == JiraErrorCode.NETWORK
    assert "Network unreachable" in result.message


def test_rate_limit_is_retryable_warning() -> None:
    result = classify_jira_error(429, {"errorCode": "RATE_LIMIT"}, "Too many")
    assert result.code == JiraErrorCode.RATE_LIMIT
    assert result.retryable is True
    assert result.severity == JiraErrorSeverity.WARN


def test_plain_429_is_rate_limit() -> None:
    result = classify_jira_error(429, None, "Too many requests")
    assert result.code == JiraErrorCode.RATE_LIMIT
    assert result.severity == JiraErrorSeverity.WARN


def test_server_errors_are_retryable() -> None:
    for status in (500, 502, 503):
        result = classify_jira_error(status, None, "Internal error")
        assert result.code == JiraErrorCode.SERVER_ERROR
        assert result.retryable is True


def test_bad_request_is_not_retryable() -> None:
    result = classify_jira_error(400, None, "Bad request")
    assert result.code == JiraErrorCode.BAD_REQUEST
    assert result.retryable is False
    assert result.message == "Bad request"


def test_auth_failures_are_unauthorized() -> None:
    assert classify_jira_error(401, None, "Unauthorized").code == JiraErrorCode.UNAUTHORIZED
    assert classify_jira_error(403, None, "Forbidden").code == JiraErrorCode.UNAUTHORIZED
    denied = classify_jira_error(200, {"errorCode": "AUTHENTICATION_DENIED"}, "Denied")
    assert denied.code == JiraErrorCode.UNAUTHORIZED
    assert denied.retryable is False


def test_not_found_and_unknown_statuses() -> None:
    not_found = classify_jira_error(404, None, "Not Found")
    assert not_found.code == JiraErrorCode.NOT_FOUND
    assert not_found.retryable is False

    teapot = classify_jira_error(418, None, "I'm a teapot")
    assert teapot.code == JiraErrorCode.UNKNOWN
    assert teapot.retryable is True


def test_classification_survives_dict_conversion() -> None:
    original = classify_jira_error(429, {"errorCode": "RATE_LIMIT"}, "Too many")
    data = original.to_dict()
    assert data["code"] == "RATE_LIMIT"
    assert data["severity"] == "WARN"
    assert JiraErrorClassification.from_dict(data) == original


def test_client_error_exposes_classification() -> None:
    classification = classify_jira_error(403, {"errorCode": "SUSPENDED_PAYMENT"}, "Forbidden")
    error = JiraClientError(classification)
    assert error.retryable is False
    assert error.error_code == "JIRA_SUSPENDED_PAYMENT"
    assert error.details["code"] == "SUSPENDED_PAYMENT"
