"""Lifecycle of a project's recurring Jira sync schedule.

The manager owns the ``SyncJob`` row for a project and keeps the engine's
schedule in step with it. Workflow and schedule ids are derived from the
project id, so creating them again is always safe, and the engine's
one-running-execution-per-id rule keeps scheduled runs from overlapping.
"""

from __future__ import annotations

import datetime as dt
import logging
import time
from dataclasses import replace

from sqlalchemy.orm import Session

from jirasync.core.config import Settings
from jirasync.core.exceptions import ProjectNotFoundError, ScheduleAlreadyExistsError, SyncJobNotFoundError
from jirasync.engine.client import EngineClient, WorkflowHandle
from jirasync.engine.schedules import ensure_aware, validate_cron
from jirasync.models.enums import SyncJobStatus, SyncLogLevel
from jirasync.models.project import JiraProject
from jirasync.models.sync import SyncJob
from jirasync.sync import persistence
from jirasync.sync.workflow import SYNC_WORKFLOW_NAME

logger = logging.getLogger(__name__)

PAUSE_NOTE = "Paused by admin"
RESUME_NOTE = "Resumed by admin"


def utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


class SyncScheduleManager:
    def __init__(self, engine: EngineClient, settings: Settings) -> None:
        self._engine = engine
        self._settings = settings

    def initialize(self, db: Session, project_id: str) -> SyncJob:
        project = db.get(JiraProject, project_id)
        if project is None:
            raise ProjectNotFoundError(project_id)

        job, created = persistence.ensure_sync_job(db, project_id, default_cron=self._settings.SYNC_DEFAULT_CRON)
        persistence.ensure_sync_states(db, project_id)
        db.commit()
        if created:
            logger.info("Created sync job for project %s (%s)", project.key, job.cron_schedule)

        try:
            self._engine.schedules.create(
                job.schedule_id,
                cron_expressions=[job.cron_schedule],
                workflow_type=SYNC_WORKFLOW_NAME,
                workflow_id=job.workflow_id,
                task_queue=self._settings.SYNC_TASK_QUEUE,
                args={"project_id": project_id},
            )
        except ScheduleAlreadyExistsError:
            logger.debug("Schedule %s already exists", job.schedule_id)

        return self.refresh_next_run_time(db, project_id)

    def _require_job(self, db: Session, project_id: str) -> SyncJob:
        job = persistence.get_sync_job(db, project_id)
        if job is None:
            raise SyncJobNotFoundError(project_id)
        return job

    def _ensure_job(self, db: Session, project_id: str) -> SyncJob:
        job = persistence.get_sync_job(db, project_id)
        if job is None:
            self.initialize(db, project_id)
            job = self._require_job(db, project_id)
        return job

    def pause(self, db: Session, project_id: str) -> SyncJob:
        job = self._require_job(db, project_id)
        self._engine.schedules.get_handle(job.schedule_id).pause(PAUSE_NOTE)
        job.status = SyncJobStatus.paused.value
        db.commit()
        db.refresh(job)
        logger.info("Paused sync for project %s", project_id)
        return job

    def resume(self, db: Session, project_id: str) -> SyncJob:
        job = self._ensure_job(db, project_id)
        self._engine.schedules.get_handle(job.schedule_id).unpause(RESUME_NOTE)
        job.status = SyncJobStatus.active.value
        db.commit()
        logger.info("Resumed sync for project %s", project_id)
        return self.refresh_next_run_time(db, project_id)

    def reschedule(self, db: Session, project_id: str, cron: str) -> SyncJob:
        cron = validate_cron(cron)
        job = self._ensure_job(db, project_id)
        self._engine.schedules.get_handle(job.schedule_id).update(
            lambda description: replace(description, cron_expressions=[cron])
        )
        job.cron_schedule = cron
        db.commit()
        logger.info("Rescheduled sync for project %s to %s", project_id, cron)
        return self.refresh_next_run_time(db, project_id)

    def trigger_manual(
        self,
        db: Session,
        project_id: str,
        *,
        full: bool = False,
        account_ids: list[str] | None = None,
    ) -> WorkflowHandle:
        job = self._ensure_job(db, project_id)
        # Unique id so a manual run never collides with the schedule's own executions.
        workflow_id = f"{job.workflow_id}-{int(time.time() * 1000)}"
        handle = self._engine.workflows.start(
            SYNC_WORKFLOW_NAME,
            workflow_id=workflow_id,
            args={"project_id": project_id, "full_resync": full, "account_ids": account_ids},
            task_queue=self._settings.SYNC_TASK_QUEUE,
        )
        persistence.append_sync_log(
            db,
            project_id,
            SyncLogLevel.info,
            "Manual sync triggered",
            {"full": full, "accountIds": account_ids, "workflowId": workflow_id, "runId": handle.run_id},
        )
        db.commit()
        logger.info("Manual sync triggered for project %s (full=%s run=%s)", project_id, full, handle.run_id)
        return handle

    def start(self, db: Session, project_id: str, *, full: bool = False) -> WorkflowHandle:
        self.resume(db, project_id)
        return self.trigger_manual(db, project_id, full=full)

    def refresh_next_run_time(self, db: Session, project_id: str) -> SyncJob:
        job = self._ensure_job(db, project_id)
        description = self._engine.schedules.get_handle(job.schedule_id).describe()
        now = utcnow()
        upcoming = sorted(
            moment
            for moment in (ensure_aware(value) for value in description.next_action_times)
            if moment is not None and moment > now
        )
        job.next_run_at = upcoming[0] if upcoming else None
        job.updated_at = now
        db.commit()
        db.refresh(job)
        return job
