from __future__ import annotations

import datetime as dt

import pytest

from jirasync.core.exceptions import ProjectNotFoundError
from jirasync.integrations.jira.client import SearchPage
from jirasync.models.jira_data import Comment, Issue, JiraUser, Worklog
from jirasync.models.sync import SyncState
from jirasync.sync import persistence
from jirasync.sync.activities import build_issue_jql
from jirasync.sync.schemas import (
    FailSyncInput,
    FinalizeSyncInput,
    PrepareSyncInput,
    SyncBatchInput,
    SyncCursor,
)


def _detail(key: str, updated: str | None) -> dict:
    number = key.split("-")[1]
    return {
        "id": f"100{number}",
        "key": key,
        "fields": {
            "summary": f"Issue {key}",
            "status": {"name": "To Do"},
            "assignee": {"accountId": "acc-1", "displayName": "Ada"},
            "created": "2026-01-01T00:00:00.000+0000",
            "updated": updated,
            "comment": {"comments": [{"id": f"c-{number}", "author": {"accountId": "acc-2"}, "body": "hello"}]},
            "worklog": {
                "worklogs": [
                    {"id": f"w-{number}", "author": {"accountId": "acc-1"}, "timeSpentSeconds": 60, "started": updated}
                ]
            },
        },
    }


def _load_pages(fake_jira) -> None:
    fake_jira.pages = {
        None: SearchPage(issues=[{"key": "ACME-1"}, {"key": "ACME-2"}], next_page_token="A", is_last=False),
        "A": SearchPage(issues=[{"key": "ACME-3"}], next_page_token=None, is_last=True),
    }
    fake_jira.details = {
        "ACME-1": _detail("ACME-1", "2026-01-05T10:00:00.000+0000"),
        "ACME-2": _detail("ACME-2", "2026-01-04T10:00:00.000+0000"),
        "ACME-3": _detail("ACME-3", "2026-01-06T10:00:00.000+0000"),
    }


def test_build_issue_jql() -> None:
    jql = build_issue_jql("ACME", ["acc-1", 'we"ird'], "2026-01-02T03:04:59+00:00")
    assert jql == (
        'project = "ACME" AND (assignee in ("acc-1", "we\\"ird") OR assignee was in ("acc-1", "we\\"ird"))'
        ' AND updated >= "2026/01/02 03:04" ORDER BY updated ASC'
    )
    assert build_issue_jql("ACME", ["acc-1"], None).endswith('was in ("acc-1")) ORDER BY updated ASC')


def test_prepare_uses_tracked_users_and_oldest_checkpoint(container, db, project) -> None:
    activities = container.activities
    config = activities.prepare_project_sync(PrepareSyncInput(project_id=project.id))
    assert config.tracked_account_ids == ["acc-1"]
    assert config.since is None
    assert config.project_key == "ACME"

    newer = dt.datetime(2026, 1, 10, tzinfo=dt.timezone.utc)
    older = dt.datetime(2026, 1, 3, tzinfo=dt.timezone.utc)
    states = persistence.list_sync_states(db, project.id)
    for state, moment in zip(states, (newer, older, newer)):
        state.last_sync_time = moment
    db.commit()

    config = activities.prepare_project_sync(PrepareSyncInput(project_id=project.id, account_ids=["acc-3", "acc-3"]))
    assert config.tracked_account_ids == ["acc-3"]
    assert config.since == "2026-01-03T00:00:00+00:00"

    full = activities.prepare_project_sync(PrepareSyncInput(project_id=project.id, full_resync=True))
    assert full.since is None

    db.expire_all()
    assert {state.status for state in persistence.list_sync_states(db, project.id)} == {"RUNNING"}


def test_prepare_unknown_project(container) -> None:
    with pytest.raises(ProjectNotFoundError):
        container.activities.prepare_project_sync(PrepareSyncInput(project_id="missing"))


def test_batches_follow_page_tokens(container, db, project, fake_jira) -> None:
    _load_pages(fake_jira)
    activities = container.activities
    config = activities.prepare_project_sync(PrepareSyncInput(project_id=project.id))

    first = activities.sync_issues_batch(SyncBatchInput(config=config, cursor=SyncCursor()))
    assert first.has_more is True
    assert first.next_page_token == "A"
    assert first.processed == 2
    assert first.last_updated_at == "2026-01-05T10:00:00+00:00"

    second = activities.sync_issues_batch(
        SyncBatchInput(config=config, cursor=SyncCursor(next_page_token="A", last_updated_at=first.last_updated_at))
    )
    assert second.has_more is False
    assert second.last_updated_at == "2026-01-06T10:00:00+00:00"
    assert fake_jira.search_calls == [None, "A"]
    assert db.query(Issue).count() == 3


def test_replaying_a_page_is_idempotent(container, db, project, fake_jira) -> None:
    _load_pages(fake_jira)
    activities = container.activities
    config = activities.prepare_project_sync(PrepareSyncInput(project_id=project.id))
    batch = SyncBatchInput(config=config, cursor=SyncCursor())

    activities.sync_issues_batch(batch)
    counts = (db.query(Issue).count(), db.query(Comment).count(), db.query(Worklog).count(), db.query(JiraUser).count())
    activities.sync_issues_batch(batch)

    assert counts == (2, 2, 2, 2)
    assert (db.query(Issue).count(), db.query(Comment).count(), db.query(Worklog).count(), db.query(JiraUser).count()) == counts


def test_issue_without_updated_time_keeps_checkpoint(container, db, project, fake_jira) -> None:
    detail = _detail("ACME-7", None)
    detail["fields"]["sprint"] = {"id": "abc", "name": "Broken sprint"}
    fake_jira.pages = {"B": SearchPage(issues=[{"key": "ACME-7"}], next_page_token=None, is_last=True)}
    fake_jira.details = {"ACME-7": detail}
    config = container.activities.prepare_project_sync(PrepareSyncInput(project_id=project.id))

    result = container.activities.sync_issues_batch(
        SyncBatchInput(
            config=config,
            cursor=SyncCursor(next_page_token="B", last_updated_at="2026-01-02T00:00:00+00:00"),
        )
    )

    assert result.processed == 1
    assert result.last_updated_at == "2026-01-02T00:00:00+00:00"
    issue = db.query(Issue).filter(Issue.key == "ACME-7").one()
    assert issue.jira_updated_at is None
    assert issue.sprint_id is None


def test_batch_without_tracked_accounts_skips_remote(container, project, fake_jira) -> None:
    config = container.activities.prepare_project_sync(PrepareSyncInput(project_id=project.id, account_ids=[]))
    result = container.activities.sync_issues_batch(SyncBatchInput(config=config, cursor=SyncCursor()))
    assert result.has_more is False
    assert fake_jira.search_calls == []


def test_finalize_records_checkpoint(container, db, project) -> None:
    activities = container.activities
    activities.prepare_project_sync(PrepareSyncInput(project_id=project.id))

    activities.finalize_project_sync(
        FinalizeSyncInput(
            project_id=project.id,
            status="SUCCESS",
            last_updated_at="2026-01-06T10:00:00+00:00",
            message="Sync completed successfully",
        )
    )

    db.expire_all()
    states = db.query(SyncState).filter(SyncState.project_id == project.id).all()
    assert {state.status for state in states} == {"SUCCESS"}
    assert {state.last_sync_time.replace(tzinfo=None) for state in states} == {dt.datetime(2026, 1, 6, 10)}
    assert persistence.get_sync_job(db, project.id).status == "ACTIVE"


def test_finalize_keeps_paused_job_paused(container, db, project) -> None:
    container.schedule_manager.initialize(db, project.id)
    container.schedule_manager.pause(db, project.id)

    container.activities.finalize_project_sync(FinalizeSyncInput(project_id=project.id, status="SUCCESS"))

    db.expire_all()
    assert persistence.get_sync_job(db, project.id).status == "PAUSED"


def test_fail_marks_states_and_backs_off(container, db, project, notifier) -> None:
    container.schedule_manager.initialize(db, project.id)
    classification = {"code": "SERVER_ERROR", "status": 503, "message": "Unavailable", "retryable": True, "severity": "ERROR"}

    container.activities.fail_project_sync(
        FailSyncInput(project_id=project.id, error="Unavailable", classification=classification)
    )

    db.expire_all()
    job = persistence.get_sync_job(db, project.id)
    assert job.status == "ERROR"
    assert job.backoff_level == 1
    assert {state.status for state in persistence.list_sync_states(db, project.id)} == {"FAILED"}
    assert "SERVER_ERROR" in notifier.sent[0][1].text
    messages = [log.message for log in persistence.list_sync_logs(db, project.id)]
    assert "Sync failed" in messages
    assert "Sync failed: Unavailable" in messages


def test_fail_without_classification_is_unknown(container, db, project, notifier) -> None:
    container.schedule_manager.initialize(db, project.id)
    container.activities.fail_project_sync(FailSyncInput(project_id=project.id, error="boom"))
    assert "UNKNOWN" in notifier.sent[0][1].text
