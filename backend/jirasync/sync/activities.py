"""Retryable units of work driven by the sync workflow.

Activities do the side effects: database writes and Jira calls. They raise
on failure and leave retrying to the engine. ``sync_issues_batch`` may be
delivered more than once for the same cursor, so everything it writes is an
upsert keyed by Jira ids.
"""

from __future__ import annotations

import datetime as dt
import logging
from typing import Callable

from sqlalchemy.orm import Session, sessionmaker

from jirasync.core.config import Settings
from jirasync.core.exceptions import JiraSiteNotFoundError, ProjectNotFoundError
from jirasync.engine.definitions import ActivityDefinition
from jirasync.integrations.jira.client import JiraClient
from jirasync.integrations.jira.errors import JiraErrorClassification, unknown_classification
from jirasync.integrations.jira.mapper import map_issue, parse_datetime, to_iso
from jirasync.models.enums import SyncJobStatus, SyncLogLevel, SyncStateStatus
from jirasync.models.project import JiraProject, JiraSite
from jirasync.services.sync_telemetry import SyncFailureEvent, SyncTelemetryService
from jirasync.sync import persistence
from jirasync.sync.schemas import (
    FailSyncInput,
    FinalizeSyncInput,
    PageResult,
    PrepareSyncInput,
    SyncBatchInput,
    SyncConfig,
)
from jirasync.sync.workflow import FAIL_ACTIVITY, FINALIZE_ACTIVITY, PREPARE_ACTIVITY, SYNC_BATCH_ACTIVITY

logger = logging.getLogger(__name__)

JiraClientFactory = Callable[..., JiraClient]


def utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


def _quote_jql(value: str) -> str:
    return '"' + value.replace("\\", "\\\\").replace('"', '\\"') + '"'


def build_issue_jql(project_key: str, account_ids: list[str], since: str | None) -> str:
    accounts = ", ".join(_quote_jql(account_id) for account_id in account_ids)
    jql = f"project = {_quote_jql(project_key)} AND (assignee in ({accounts}) OR assignee was in ({accounts}))"
    since_dt = parse_datetime(since)
    if since_dt is not None:
        jql += f' AND updated >= "{since_dt.strftime("%Y/%m/%d %H:%M")}"'
    return jql + " ORDER BY updated ASC"


def _later(current: str | None, candidate: str | None) -> str | None:
    candidate_dt = parse_datetime(candidate)
    if candidate_dt is None:
        return current
    current_dt = parse_datetime(current)
    if current_dt is None or candidate_dt > current_dt:
        return to_iso(candidate_dt)
    return current


class SyncActivities:
    def __init__(
        self,
        session_factory: sessionmaker[Session],
        telemetry: SyncTelemetryService,
        *,
        settings: Settings,
        client_factory: JiraClientFactory = JiraClient,
    ) -> None:
        self._session_factory = session_factory
        self._telemetry = telemetry
        self._settings = settings
        self._client_factory = client_factory

    def definitions(self) -> list[ActivityDefinition]:
        return [
            ActivityDefinition(PREPARE_ACTIVITY, self.prepare_project_sync, PrepareSyncInput),
            ActivityDefinition(SYNC_BATCH_ACTIVITY, self.sync_issues_batch, SyncBatchInput),
            ActivityDefinition(FINALIZE_ACTIVITY, self.finalize_project_sync, FinalizeSyncInput),
            ActivityDefinition(FAIL_ACTIVITY, self.fail_project_sync, FailSyncInput),
        ]

    def prepare_project_sync(self, payload: PrepareSyncInput) -> SyncConfig:
        with self._session_factory() as db:
            project = db.get(JiraProject, payload.project_id)
            if project is None:
                raise ProjectNotFoundError(payload.project_id)
            site = db.get(JiraSite, project.site_id)
            if site is None:
                raise JiraSiteNotFoundError(project.site_id)

            if payload.account_ids is not None:
                tracked = list(dict.fromkeys(account_id for account_id in payload.account_ids if account_id))
            else:
                tracked = [user.jira_account_id for user in project.tracked_users if user.is_tracked]

            job, _ = persistence.ensure_sync_job(db, project.id, default_cron=self._settings.SYNC_DEFAULT_CRON)
            states = persistence.ensure_sync_states(db, project.id)

            since: str | None = None
            last_sync_times = [state.last_sync_time for state in states if state.last_sync_time is not None]
            if not payload.full_resync and last_sync_times:
                since = to_iso(min(last_sync_times))

            persistence.mark_sync_states(db, project.id, SyncStateStatus.running)
            persistence.settle_job_status(job, SyncJobStatus.active)
            job.last_run_at = utcnow()
            persistence.append_sync_log(
                db,
                project.id,
                SyncLogLevel.info,
                f"Sync starting{' (full)' if payload.full_resync else ''} for project {project.key}",
                {"trackedUsers": tracked, "since": since},
            )
            db.commit()

            logger.info(
                "Prepared sync for %s: tracked=%s since=%s full=%s",
                project.key,
                len(tracked),
                since,
                payload.full_resync,
            )
            return SyncConfig(
                project_id=project.id,
                project_key=project.key,
                site_id=site.id,
                base_url=site.base_url,
                admin_email=site.admin_email,
                api_token=site.api_token,
                tracked_account_ids=tracked,
                since=since,
            )

    def sync_issues_batch(self, payload: SyncBatchInput) -> PageResult:
        config, cursor = payload.config, payload.cursor
        if not config.tracked_account_ids:
            return PageResult(has_more=False, last_updated_at=config.since)

        client = self._client_factory(
            base_url=config.base_url,
            email=config.admin_email,
            api_token=config.api_token,
        )
        page = client.search_issues(
            jql=build_issue_jql(config.project_key, config.tracked_account_ids, cursor.since),
            next_page_token=cursor.next_page_token,
            max_results=self._settings.JIRA_SYNC_PAGE_SIZE,
        )
        if not page.issues:
            return PageResult(
                has_more=False,
                next_page_token=page.next_page_token,
                last_updated_at=cursor.last_updated_at or config.since,
            )

        last_updated_at = cursor.last_updated_at or config.since
        processed = 0
        with self._session_factory() as db:
            for summary in page.issues:
                issue_key = str(summary.get("key") or summary.get("id") or "")
                detail = client.get_issue(issue_key)
                try:
                    mapped = map_issue(detail)
                except ValueError:
                    logger.warning("Skipping Jira issue without identity: %s", issue_key)
                    continue
                persistence.upsert_issue(db, config.project_id, mapped)
                processed += 1
                last_updated_at = _later(last_updated_at, to_iso(mapped.jira_updated_at))

            persistence.append_sync_log(
                db,
                config.project_id,
                SyncLogLevel.info,
                f"Synced {processed} issues (page={cursor.next_page_token or 'first'})",
                {"pageToken": cursor.next_page_token, "nextPageToken": page.next_page_token, "total": page.total},
            )
            db.commit()

        has_more = not page.is_last and bool(page.next_page_token)
        logger.info("Synced %s issues for %s (has_more=%s)", processed, config.project_key, has_more)
        return PageResult(
            has_more=has_more,
            next_page_token=page.next_page_token,
            last_updated_at=last_updated_at,
            processed=processed,
        )

    def finalize_project_sync(self, payload: FinalizeSyncInput) -> None:
        succeeded = payload.status == SyncStateStatus.success
        with self._session_factory() as db:
            persistence.mark_sync_states(
                db,
                payload.project_id,
                SyncStateStatus.success if succeeded else SyncStateStatus.failed,
                last_sync_time=parse_datetime(payload.last_updated_at),
            )
            job = persistence.get_sync_job(db, payload.project_id)
            if job is not None:
                persistence.settle_job_status(job, SyncJobStatus.active if succeeded else SyncJobStatus.error)
                job.last_run_at = utcnow()
            persistence.append_sync_log(
                db,
                payload.project_id,
                SyncLogLevel.info if succeeded else SyncLogLevel.error,
                payload.message or f"Sync {payload.status.value.lower()}",
                payload.details,
            )
            db.commit()

            if succeeded:
                self._telemetry.record_success(db, payload.project_id)

    def fail_project_sync(self, payload: FailSyncInput) -> None:
        with self._session_factory() as db:
            persistence.mark_sync_states(db, payload.project_id, SyncStateStatus.failed)
            job = persistence.get_sync_job(db, payload.project_id)
            if job is not None:
                persistence.settle_job_status(job, SyncJobStatus.error)
            persistence.append_sync_log(
                db,
                payload.project_id,
                SyncLogLevel.error,
                "Sync failed",
                {"error": payload.error},
            )
            db.commit()

            classification: JiraErrorClassification = (
                JiraErrorClassification.from_dict(payload.classification)
                if payload.classification
                else unknown_classification(payload.error)
            )
            self._telemetry.record_failure(
                db,
                SyncFailureEvent(
                    project_id=payload.project_id,
                    classification=classification,
                    message=f"Sync failed: {payload.error}",
                    details={"error": payload.error},
                ),
            )
