"""Adaptive sync cadence: slow a failing project's schedule down and restore it after a clean run."""

from __future__ import annotations

import datetime as dt
import logging
from dataclasses import dataclass, field
from html import escape
from typing import Any

from sqlalchemy.orm import Session

from jirasync.integrations.jira.errors import JiraErrorClassification
from jirasync.models.enums import SyncJobStatus, SyncLogLevel
from jirasync.models.project import JiraProject
from jirasync.services.communication import CommunicationChannelName, CommunicationPayload, CommunicationService
from jirasync.services.sync_schedule import SyncScheduleManager
from jirasync.sync import persistence

logger = logging.getLogger(__name__)

BACKOFF_CRON_STEPS = ("*/30 * * * *", "0 * * * *", "0 */3 * * *", "0 */6 * * *", "0 */12 * * *")


def utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


def build_backoff_cron_sequence(original_cron: str) -> list[str]:
    """Original cron first, then the sparser steps, duplicates collapsed in order."""
    sequence = [original_cron]
    for candidate in BACKOFF_CRON_STEPS:
        if candidate not in sequence:
            sequence.append(candidate)
    return sequence


@dataclass(frozen=True)
class SyncFailureEvent:
    project_id: str
    classification: JiraErrorClassification
    message: str
    details: dict[str, Any] = field(default_factory=dict)


def _alert_payload(
    *,
    project_key: str,
    site_alias: str,
    classification: JiraErrorClassification,
    level: int,
    cron: str,
) -> CommunicationPayload:
    text = "\n".join(
        [
            f"Jira sync for {project_key} ({site_alias}) is failing repeatedly.",
            f"Error code: {classification.code.value}",
            f"Message: {classification.message}",
            f"Backoff level: {level}",
            f"New schedule: {cron}",
            "Cadence will restore automatically after the next successful sync.",
        ]
    )
    html = (
        f"<p>Jira sync for <strong>{escape(project_key)}</strong> on site "
        f"<strong>{escape(site_alias)}</strong> is failing repeatedly.</p>"
        "<ul>"
        f"<li><strong>Error Code:</strong> {escape(classification.code.value)}</li>"
        f"<li><strong>Message:</strong> {escape(classification.message)}</li>"
        f"<li><strong>Backoff Level:</strong> {level}</li>"
        f"<li><strong>New Schedule:</strong> {escape(cron)}</li>"
        "</ul>"
        "<p>The sync cadence has been slowed automatically. Once the Jira issue is resolved, "
        "the original schedule is restored after the next successful run.</p>"
    )
    return CommunicationPayload(
        subject=f"[Jira Sync] Sync degraded for {project_key}",
        text=text,
        html=html,
        metadata={"projectKey": project_key, "backoffLevel": level},
    )


class SyncTelemetryService:
    def __init__(self, schedule_manager: SyncScheduleManager, notifier: CommunicationService) -> None:
        self._schedule_manager = schedule_manager
        self._notifier = notifier

    def record_failure(self, db: Session, event: SyncFailureEvent) -> None:
        job = persistence.get_sync_job(db, event.project_id)
        if job is None:
            logger.error("Sync failure reported for project without sync job: %s", event.project_id)
            return

        original_cron = job.backoff_original_cron or job.cron_schedule
        sequence = build_backoff_cron_sequence(original_cron)
        previous_level = job.backoff_level or 0
        next_level = min(previous_level + 1, len(sequence) - 1)
        next_cron = sequence[next_level]
        level_increased = next_level > previous_level

        if next_cron != job.cron_schedule:
            self._schedule_manager.reschedule(db, event.project_id, next_cron)
            db.refresh(job)

        job.backoff_level = next_level
        job.backoff_original_cron = original_cron
        if level_increased:
            job.backoff_last_notified_at = utcnow()
        persistence.settle_job_status(job, SyncJobStatus.error)
        persistence.append_sync_log(
            db,
            event.project_id,
            SyncLogLevel.error,
            event.message,
            {
                "errorCode": event.classification.code.value,
                "retryable": event.classification.retryable,
                "cronSchedule": next_cron,
                "backoffLevel": next_level,
                **event.details,
            },
        )
        db.commit()
        logger.warning(
            "Sync backoff for project %s: level=%s cron=%s code=%s",
            event.project_id,
            next_level,
            next_cron,
            event.classification.code.value,
        )

        if level_increased:
            project = db.get(JiraProject, event.project_id)
            project_key = project.key if project is not None else event.project_id
            site_alias = project.site.alias if project is not None and project.site is not None else "unknown site"
            self._notifier.send(
                _alert_payload(
                    project_key=project_key,
                    site_alias=site_alias,
                    classification=event.classification,
                    level=next_level,
                    cron=next_cron,
                ),
                channel=CommunicationChannelName.email,
            )

    def record_success(self, db: Session, project_id: str) -> None:
        job = persistence.get_sync_job(db, project_id)
        if job is None or not job.backoff_level:
            return

        restore_cron = job.backoff_original_cron or job.cron_schedule
        if restore_cron != job.cron_schedule:
            self._schedule_manager.reschedule(db, project_id, restore_cron)
            db.refresh(job)

        job.backoff_level = 0
        job.backoff_original_cron = None
        job.backoff_last_notified_at = None
        persistence.settle_job_status(job, SyncJobStatus.active)
        persistence.append_sync_log(
            db,
            project_id,
            SyncLogLevel.info,
            "Sync cadence restored after successful run",
            {"restoredCron": restore_cron},
        )
        db.commit()
        logger.info("Sync cadence restored for project %s (%s)", project_id, restore_cron)
