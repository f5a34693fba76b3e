"""Jira REST v3 client wrapper with retries and classified failures."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any

import httpx

from jirasync.core.config import settings
from jirasync.core.exceptions import JiraClientError
from jirasync.integrations.jira.errors import classify_jira_error

logger = logging.getLogger(__name__)

SEARCH_JQL_PATH = "/rest/api/3/search/jql"
ISSUE_PATH = "/rest/api/3/issue/{issue_key}"
SEARCH_FIELDS = "summary,status,priority,assignee,updated"
DETAIL_FIELDS = "summary,status,priority,assignee,reporter,created,updated,comment,worklog,sprint,closedSprints"
TRANSIENT_STATUSES = {429, 500, 502, 503, 504}


@dataclass
class SearchPage:
    issues: list[dict[str, Any]] = field(default_factory=list)
    next_page_token: str | None = None
    is_last: bool = True
    total: int | None = None


def _error_payload(response: httpx.Response) -> dict[str, Any]:
    try:
        data = response.json()
    except ValueError:
        return {}
    if not isinstance(data, dict):
        return {}
    if not data.get("errorMessage"):
        messages = data.get("errorMessages")
        if isinstance(messages, list) and messages:
            data["errorMessage"] = "; ".join(str(item) for item in messages)
    return data


class JiraClient:
    def __init__(
        self,
        *,
        base_url: str,
        email: str,
        api_token: str,
        timeout: float | None = None,
        max_retries: int | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.email = email
        self.api_token = api_token
        self.timeout = timeout or settings.JIRA_HTTP_TIMEOUT_SECONDS
        self.max_retries = max(1, max_retries or settings.JIRA_HTTP_MAX_RETRIES)
        self.transport = transport

    def _request(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        url = f"{self.base_url}{path}"
        backoff = 0.5
        with httpx.Client(
            timeout=self.timeout,
            auth=(self.email, self.api_token),
            headers={"Accept": "application/json"},
            transport=self.transport,
        ) as client:
            for attempt in range(1, self.max_retries + 1):
                try:
                    response = client.request(method, url, **kwargs)
                except httpx.HTTPError as exc:
                    if attempt < self.max_retries:
                        time.sleep(backoff)
                        backoff *= 2
                        continue
                    classification = classify_jira_error(None, None, str(exc) or "Fetch failed")
                    logger.warning("Jira %s %s failed without response: %s", method, path, exc)
                    raise JiraClientError(classification) from exc

                if response.status_code in TRANSIENT_STATUSES and attempt < self.max_retries:
                    time.sleep(backoff)
                    backoff *= 2
                    continue

                if response.is_success:
                    data = response.json()
                    return data if isinstance(data, dict) else {}

                classification = classify_jira_error(
                    response.status_code,
                    _error_payload(response),
                    response.reason_phrase or f"HTTP {response.status_code}",
                )
                logger.warning(
                    "Jira %s %s failed (status=%s code=%s retryable=%s)",
                    method,
                    path,
                    response.status_code,
                    classification.code.value,
                    classification.retryable,
                )
                raise JiraClientError(classification)
        return {}

    def search_issues(
        self,
        *,
        jql: str,
        next_page_token: str | None = None,
        max_results: int | None = None,
        fields: str = SEARCH_FIELDS,
    ) -> SearchPage:
        params: dict[str, Any] = {
            "jql": jql,
            "maxResults": max_results or settings.JIRA_SYNC_PAGE_SIZE,
            "fields": fields,
        }
        if next_page_token:
            params["nextPageToken"] = next_page_token
        data = self._request("GET", SEARCH_JQL_PATH, params=params)
        issues = [item for item in list(data.get("issues") or []) if isinstance(item, dict)]
        token = data.get("nextPageToken")
        total = data.get("total")
        return SearchPage(
            issues=issues,
            next_page_token=str(token) if token else None,
            is_last=bool(data.get("isLast", not token)),
            total=int(total) if isinstance(total, int) else None,
        )

    def get_issue(self, issue_key: str, *, fields: str = DETAIL_FIELDS) -> dict[str, Any]:
        key = (issue_key or "").strip()
        if not key:
            return {}
        return self._request("GET", ISSUE_PATH.format(issue_key=key), params={"fields": fields})
