"""Classification of failed Jira calls into a small, stable taxonomy."""

from __future__ import annotations

import enum
from dataclasses import asdict, dataclass, replace
from typing import Any


class JiraErrorCode(str, enum.Enum):
    SUSPENDED_PAYMENT = "SUSPENDED_PAYMENT"
    UNAUTHORIZED = "UNAUTHORIZED"
    RATE_LIMIT = "RATE_LIMIT"
    NETWORK = "NETWORK"
    NOT_FOUND = "NOT_FOUND"
    SERVER_ERROR = "SERVER_ERROR"
    BAD_REQUEST = "BAD_REQUEST"
    UNKNOWN = "UNKNOWN"


class JiraErrorSeverity(str, enum.Enum):
    INFO = "INFO"
    WARN = "WARN"
    ERROR = "ERROR"


@dataclass(frozen=True)
class JiraErrorClassification:
    code: JiraErrorCode
    status: int | None
    message: str
    retryable: bool
    severity: JiraErrorSeverity = JiraErrorSeverity.ERROR

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["code"] = self.code.value
        data["severity"] = self.severity.value
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> JiraErrorClassification:
        return cls(
            code=JiraErrorCode(str(data.get("code") or JiraErrorCode.UNKNOWN.value)),
            status=data.get("status"),
            message=str(data.get("message") or ""),
            retryable=bool(data.get("retryable", True)),
            severity=JiraErrorSeverity(str(data.get("severity") or JiraErrorSeverity.ERROR.value)),
        )


# Atlassian error codes that override the HTTP status mapping.
ATLASSIAN_CODE_MAP = {
    "SUSPENDED_PAYMENT": JiraErrorCode.SUSPENDED_PAYMENT,
    "AUTHENTICATION_DENIED": JiraErrorCode.UNAUTHORIZED,
    "AUTHENTICATING_PROXY_DENIED": JiraErrorCode.UNAUTHORIZED,
    "RATE_LIMIT_EXCEEDED": JiraErrorCode.RATE_LIMIT,
    "RATE_LIMIT": JiraErrorCode.RATE_LIMIT,
}


def unknown_classification(message: str) -> JiraErrorClassification:
    return JiraErrorClassification(
        code=JiraErrorCode.UNKNOWN,
        status=None,
        message=message,
        retryable=True,
    )


def classify_jira_error(
    status: int | None,
    payload: dict[str, Any] | None,
    fallback_message: str,
) -> JiraErrorClassification:
    payload = payload if isinstance(payload, dict) else {}
    error_message = payload.get("errorMessage")
    default = JiraErrorClassification(
        code=JiraErrorCode.UNKNOWN,
        status=status,
        message=error_message or fallback_message,
        retryable=True,
    )

    if status is None:
        return replace(
            default,
            code=JiraErrorCode.NETWORK,
            message=error_message or "Network error while contacting Jira",
        )

    mapped = ATLASSIAN_CODE_MAP.get(str(payload.get("errorCode") or ""))
    if mapped is JiraErrorCode.SUSPENDED_PAYMENT:
        return replace(
            default,
            code=mapped,
            message=error_message or "Jira subscription suspended",
            retryable=False,
        )
    if mapped is JiraErrorCode.RATE_LIMIT:
        return replace(
            default,
            code=mapped,
            message=error_message or "Rate limit reached",
            severity=JiraErrorSeverity.WARN,
        )
    if mapped is JiraErrorCode.UNAUTHORIZED:
        return replace(
            default,
            code=mapped,
            message=error_message or "Unauthorized Jira credentials",
            retryable=False,
        )

    if status == 400:
        return replace(default, code=JiraErrorCode.BAD_REQUEST, retryable=False)
    if status in {401, 403}:
        return replace(
            default,
            code=JiraErrorCode.UNAUTHORIZED,
            message=error_message or "Unauthorized Jira credentials",
            retryable=False,
        )
    if status == 404:
        return replace(
            default,
            code=JiraErrorCode.NOT_FOUND,
            message=error_message or "Requested Jira resource not found",
            retryable=False,
        )
    if status == 429:
        return replace(
            default,
            code=JiraErrorCode.RATE_LIMIT,
            message=error_message or "Rate limit reached",
            severity=JiraErrorSeverity.WARN,
        )
    if status >= 500:
        return replace(default, code=JiraErrorCode.SERVER_ERROR)
    return default
