"""Row-level writes shared by the schedule manager, the activities and telemetry."""

from __future__ import annotations

import datetime as dt
import logging
from typing import Any

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from jirasync.integrations.jira.mapper import MappedIssue, MappedSprint, MappedUser
from jirasync.models.enums import TRACKED_ENTITIES, SyncJobStatus, SyncLogLevel, SyncStateStatus
from jirasync.models.jira_data import Comment, Issue, JiraUser, Sprint, Worklog
from jirasync.models.sync import SyncJob, SyncLog, SyncState

logger = logging.getLogger(__name__)

def utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


def workflow_id_for(project_id: str) -> str:
    return f"jira-sync-{project_id}"


def schedule_id_for(project_id: str) -> str:
    return f"jira-sync-schedule-{project_id}"


def get_sync_job(db: Session, project_id: str) -> SyncJob | None:
    return db.query(SyncJob).filter(SyncJob.project_id == project_id).first()


def settle_job_status(job: SyncJob, status: SyncJobStatus) -> None:
    # A paused job stays paused until resumed explicitly.
    if job.status != SyncJobStatus.paused.value:
        job.status = status.value


def _insert_once(db: Session, record: Any) -> bool:
    """Insert ``record`` inside a savepoint; False when a concurrent writer got there first."""
    try:
        with db.begin_nested():
            db.add(record)
    except IntegrityError:
        logger.info("Concurrent insert detected for %s", type(record).__name__)
        return False
    return True


def ensure_sync_job(db: Session, project_id: str, *, default_cron: str) -> tuple[SyncJob, bool]:
    job = get_sync_job(db, project_id)
    if job is not None:
        return job, False
    job = SyncJob(
        project_id=project_id,
        workflow_id=workflow_id_for(project_id),
        schedule_id=schedule_id_for(project_id),
        cron_schedule=default_cron,
        status=SyncJobStatus.active.value,
        backoff_level=0,
    )
    if _insert_once(db, job):
        return job, True
    existing = get_sync_job(db, project_id)
    if existing is None:
        raise RuntimeError(f"Sync job for project {project_id} vanished after a conflicting insert")
    return existing, False


def _get_sync_state(db: Session, project_id: str, entity: str) -> SyncState | None:
    return db.query(SyncState).filter(SyncState.project_id == project_id, SyncState.entity == entity).first()


def ensure_sync_states(db: Session, project_id: str) -> list[SyncState]:
    existing = {state.entity: state for state in list_sync_states(db, project_id)}
    states: list[SyncState] = []
    for entity in TRACKED_ENTITIES:
        state = existing.get(entity.value)
        if state is None:
            state = SyncState(project_id=project_id, entity=entity.value, status=SyncStateStatus.idle.value)
            if not _insert_once(db, state):
                state = _get_sync_state(db, project_id, entity.value)
                if state is None:
                    raise RuntimeError(f"Sync state {entity.value} for project {project_id} vanished after a conflicting insert")
        states.append(state)
    return states


def list_sync_states(db: Session, project_id: str) -> list[SyncState]:
    return db.query(SyncState).filter(SyncState.project_id == project_id).order_by(SyncState.entity.asc()).all()


def mark_sync_states(
    db: Session,
    project_id: str,
    status: SyncStateStatus,
    *,
    last_sync_time: dt.datetime | None = None,
) -> None:
    now = utcnow()
    for state in db.query(SyncState).filter(SyncState.project_id == project_id).all():
        state.status = status.value
        if last_sync_time is not None:
            state.last_sync_time = last_sync_time
        state.updated_at = now


def append_sync_log(
    db: Session,
    project_id: str,
    level: SyncLogLevel,
    message: str,
    details: dict[str, Any] | None = None,
) -> SyncLog:
    record = SyncLog(project_id=project_id, level=level.value, message=message, details=details)
    db.add(record)
    return record


def list_sync_logs(db: Session, project_id: str, *, limit: int = 50) -> list[SyncLog]:
    return (
        db.query(SyncLog)
        .filter(SyncLog.project_id == project_id)
        .order_by(SyncLog.created_at.desc())
        .limit(limit)
        .all()
    )


def upsert_jira_user(db: Session, user: MappedUser) -> JiraUser:
    record = db.query(JiraUser).filter(JiraUser.account_id == user.account_id).first()
    if record is None:
        record = JiraUser(account_id=user.account_id, display_name=user.display_name)
        db.add(record)
    record.display_name = user.display_name
    record.email = user.email
    record.avatar_url = user.avatar_url
    db.flush()
    return record


def upsert_sprint(db: Session, sprint: MappedSprint | None) -> Sprint | None:
    if sprint is None:
        return None
    record = db.query(Sprint).filter(Sprint.jira_id == sprint.jira_id).first()
    if record is None:
        record = Sprint(jira_id=sprint.jira_id, name=sprint.name, state=sprint.state)
        db.add(record)
    record.name = sprint.name
    record.state = sprint.state
    record.start_date = sprint.start_date
    record.end_date = sprint.end_date
    db.flush()
    return record


def upsert_issue(db: Session, project_id: str, mapped: MappedIssue) -> Issue:
    """Write an issue with its comments and worklogs, keyed by Jira ids."""
    assignee = upsert_jira_user(db, mapped.assignee) if mapped.assignee else None
    sprint = upsert_sprint(db, mapped.sprint)

    issue = db.query(Issue).filter(Issue.jira_id == mapped.jira_id).first()
    if issue is None:
        issue = Issue(
            jira_id=mapped.jira_id,
            project_id=project_id,
            jira_created_at=mapped.jira_created_at,
        )
        db.add(issue)
    issue.key = mapped.key
    issue.summary = mapped.summary
    issue.status = mapped.status
    issue.priority = mapped.priority
    issue.assignee_id = assignee.id if assignee else None
    issue.sprint_id = sprint.id if sprint else None
    issue.jira_updated_at = mapped.jira_updated_at
    issue.remote_data = mapped.raw_payload
    db.flush()

    for mapped_comment in mapped.comments:
        author = upsert_jira_user(db, mapped_comment.author)
        comment = db.query(Comment).filter(Comment.jira_id == mapped_comment.jira_id).first()
        if comment is None:
            comment = Comment(jira_id=mapped_comment.jira_id, jira_created_at=mapped_comment.jira_created_at)
            db.add(comment)
        comment.issue_id = issue.id
        comment.author_id = author.id
        comment.body = mapped_comment.body
        comment.jira_updated_at = mapped_comment.jira_updated_at
        db.flush()

    for mapped_worklog in mapped.worklogs:
        author = upsert_jira_user(db, mapped_worklog.author)
        worklog = db.query(Worklog).filter(Worklog.jira_id == mapped_worklog.jira_id).first()
        if worklog is None:
            worklog = Worklog(jira_id=mapped_worklog.jira_id)
            db.add(worklog)
        worklog.issue_id = issue.id
        worklog.author_id = author.id
        worklog.description = mapped_worklog.description
        worklog.time_spent_seconds = mapped_worklog.time_spent_seconds
        worklog.jira_started_at = mapped_worklog.jira_started_at
        worklog.jira_updated_at = mapped_worklog.jira_updated_at
        db.flush()

    return issue
