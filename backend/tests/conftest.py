from __future__ import annotations

import sys
from pathlib import Path


BASE_DIR = Path(__file__).resolve().parents[1]
if str(BASE_DIR) not in sys.path:
    sys.path.insert(0, str(BASE_DIR))

import pytest  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402

import jirasync.models  # noqa: E402,F401
from jirasync.bootstrap import SyncContainer, build_container  # noqa: E402
from jirasync.core.config import Settings  # noqa: E402
from jirasync.db.base import Base  # noqa: E402
from jirasync.engine.models import EngineBase  # noqa: E402
from jirasync.engine.runtime import InlineDispatcher  # noqa: E402
from jirasync.integrations.jira.client import SearchPage  # noqa: E402
from jirasync.models.project import JiraProject, JiraSite, ProjectTrackedUser  # noqa: E402


class FakeNotifier:
    def __init__(self) -> None:
        self.sent: list = []

    def send(self, payload, *, channel=None) -> bool:  # noqa: ANN001
        self.sent.append((channel, payload))
        return True


class FakeJiraClient:
    """Serves search pages keyed by page token and issue details keyed by issue key."""

    def __init__(self, pages: dict, details: dict | None = None, errors: list | None = None) -> None:
        self.pages = pages
        self.details = details or {}
        self.errors = list(errors or [])
        self.search_calls: list[str | None] = []
        self.jql: list[str] = []
        self.detail_calls: list[str] = []

    def search_issues(self, *, jql: str, next_page_token: str | None = None, max_results: int | None = None) -> SearchPage:
        self.search_calls.append(next_page_token)
        self.jql.append(jql)
        if self.errors:
            raise self.errors.pop(0)
        return self.pages[next_page_token]

    def get_issue(self, issue_key: str) -> dict:
        self.detail_calls.append(issue_key)
        return self.details[issue_key]


@pytest.fixture
def session_factory(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'sync.db'}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(engine)
    EngineBase.metadata.create_all(engine)
    factory = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    yield factory
    engine.dispose()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def project(db) -> JiraProject:
    site = JiraSite(
        tenant_id="tenant-1",
        alias="acme",
        base_url="https://acme.atlassian.net",
        admin_email="ops@acme.test",
        api_token="secret-token",
    )
    db.add(site)
    db.flush()
    record = JiraProject(tenant_id="tenant-1", site_id=site.id, jira_id="10000", key="ACME", name="Acme")
    db.add(record)
    db.flush()
    db.add(ProjectTrackedUser(project_id=record.id, jira_account_id="acc-1", display_name="Ada", is_tracked=True))
    db.add(ProjectTrackedUser(project_id=record.id, jira_account_id="acc-2", display_name="Bob", is_tracked=False))
    db.commit()
    return record


@pytest.fixture
def notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        DATABASE_URL="sqlite://",
        SYNC_ACTIVITY_MAX_ATTEMPTS=2,
        SYNC_ACTIVITY_RETRY_INITIAL_SECONDS=0,
        JIRA_SYNC_PAGE_SIZE=2,
        OPS_ALERT_EMAILS="ops@acme.test",
    )


@pytest.fixture
def fake_jira() -> FakeJiraClient:
    return FakeJiraClient(pages={None: SearchPage(issues=[], next_page_token=None, is_last=True)})


@pytest.fixture
def container(session_factory, test_settings, notifier, fake_jira) -> SyncContainer:
    return build_container(
        test_settings,
        session_factory=session_factory,
        dispatcher=InlineDispatcher(sleep=lambda _seconds: None),
        engine_session_factory=session_factory,
        notifier=notifier,
        client_factory=lambda **_kwargs: fake_jira,
    )
