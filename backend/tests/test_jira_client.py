from __future__ import annotations

import httpx
import pytest

from jirasync.core.exceptions import JiraClientError
from jirasync.integrations.jira import client as client_module
from jirasync.integrations.jira.client import JiraClient
from jirasync.integrations.jira.errors import JiraErrorCode


@pytest.fixture(autouse=True)
def _no_sleep(monkeypatch) -> None:
    monkeypatch.setattr(client_module.time, "sleep", lambda _seconds: None)


def _client(handler, *, max_retries: int = 3) -> JiraClient:
    return JiraClient(
        base_url="https://acme.atlassian.net/",
        email="ops@acme.test",
        api_token="token",
        max_retries=max_retries,
        transport=httpx.MockTransport(handler),
    )


def test_search_issues_passes_page_token_and_parses_page() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(
            200,
            json={
                "issues": [{"id": "1", "key": "ACME-1"}, "not-a-dict"],
                "nextPageToken": "B",
                "isLast": False,
            },
        )

    page = _client(handler).search_issues(jql='project = "ACME"', next_page_token="A", max_results=50)

    assert [issue["key"] for issue in page.issues] == ["ACME-1"]
    assert page.next_page_token == "B"
    assert page.is_last is False
    request = seen[0]
    assert request.url.path == "/rest/api/3/search/jql"
    assert request.url.params["nextPageToken"] == "A"
    assert request.url.params["maxResults"] == "50"
    assert request.headers["authorization"].startswith("Basic ")


def test_last_page_without_token() -> None:
    page = _client(lambda request: httpx.Response(200, json={"issues": []})).search_issues(jql="x")
    assert page.next_page_token is None
    assert page.is_last is True


def test_transient_status_is_retried_then_succeeds() -> None:
    statuses = [503, 200]

    def handler(request: httpx.Request) -> httpx.Response:
        status = statuses.pop(0)
        if status != 200:
            return httpx.Response(status, json={})
        return httpx.Response(200, json={"id": "1", "key": "ACME-1"})

    assert _client(handler).get_issue("ACME-1")["key"] == "ACME-1"
    assert statuses == []


def test_suspended_site_raises_classified_error_without_retry() -> None:
    calls: list[int] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(1)
        return httpx.Response(403, json={"errorCode": "SUSPENDED_PAYMENT", "errorMessages": ["Billing issue"]})

    with pytest.raises(JiraClientError) as excinfo:
        _client(handler).search_issues(jql="x")

    assert len(calls) == 1
    assert excinfo.value.classification.code == JiraErrorCode.SUSPENDED_PAYMENT
    assert excinfo.value.retryable is False
    assert "Billing issue" in excinfo.value.message


def test_exhausted_rate_limit_is_classified() -> None:
    calls: list[int] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(1)
        return httpx.Response(429, json={})

    with pytest.raises(JiraClientError) as excinfo:
        _client(handler, max_retries=2).search_issues(jql="x")

    assert len(calls) == 2
    assert excinfo.value.classification.code == JiraErrorCode.RATE_LIMIT
    assert excinfo.value.retryable is True


def test_transport_failure_is_network_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(JiraClientError) as excinfo:
        _client(handler, max_retries=2).get_issue("ACME-1")

    assert excinfo.value.classification.code == JiraErrorCode.NETWORK
    assert excinfo.value.retryable is True


def test_get_issue_with_blank_key_skips_request() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no request expected")

    assert _client(handler).get_issue("  ") == {}
