"""Celery transport for the workflow engine.

Workflow steps, activity attempts and the schedule tick are all Celery tasks
on the sync task queue. Tasks are acknowledged late and rejected on worker
loss so a crashed worker hands its step back to the broker.
"""

from __future__ import annotations

import logging

from celery import Celery

from jirasync.core.config import Settings
from jirasync.engine.client import EngineClient

logger = logging.getLogger(__name__)

ADVANCE_TASK = "jirasync.engine.advance_workflow"
ACTIVITY_TASK = "jirasync.engine.run_activity"
TICK_TASK = "jirasync.engine.tick_schedules"

# Hard limit sits just above the soft limit so the activity sees SoftTimeLimitExceeded first.
HARD_TIME_LIMIT_GRACE_SECONDS = 30


def create_celery_app(settings: Settings) -> Celery:
    app = Celery("jirasync", broker=settings.CELERY_BROKER_URL, backend=settings.CELERY_RESULT_BACKEND)
    app.conf.update(
        task_serializer="json",
        result_serializer="json",
        accept_content=["json"],
        timezone="UTC",
        enable_utc=True,
        task_acks_late=True,
        task_reject_on_worker_lost=True,
        task_ignore_result=True,
        task_default_queue=settings.SYNC_TASK_QUEUE,
        worker_prefetch_multiplier=1,
        beat_schedule={
            "tick-sync-schedules": {
                "task": TICK_TASK,
                "schedule": float(max(1, settings.SYNC_SCHEDULE_TICK_SECONDS)),
                "options": {"queue": settings.SYNC_TASK_QUEUE},
            },
        },
    )
    return app


class CeleryDispatcher:
    def __init__(self, celery_app: Celery) -> None:
        self.celery_app = celery_app

    def dispatch_advance(self, run_id: str, *, task_queue: str) -> None:
        self.celery_app.send_task(ADVANCE_TASK, args=[run_id], queue=task_queue)

    def dispatch_activity(
        self,
        run_id: str,
        seq: int,
        attempt: int,
        *,
        task_queue: str,
        countdown: float = 0.0,
        timeout: float = 600.0,
    ) -> None:
        self.celery_app.send_task(
            ACTIVITY_TASK,
            args=[run_id, seq, attempt],
            queue=task_queue,
            countdown=countdown or None,
            soft_time_limit=timeout,
            time_limit=timeout + HARD_TIME_LIMIT_GRACE_SECONDS,
        )


def register_engine_tasks(celery_app: Celery, engine_client: EngineClient, *, lease_seconds: int) -> None:
    @celery_app.task(name=ADVANCE_TASK)
    def advance_workflow(run_id: str) -> None:
        engine_client.runtime.advance(run_id)

    @celery_app.task(name=ACTIVITY_TASK)
    def run_activity(run_id: str, seq: int, attempt: int) -> None:
        engine_client.runtime.run_activity(run_id, seq, attempt)

    @celery_app.task(name=TICK_TASK)
    def tick_schedules() -> None:
        started = engine_client.tick()
        if started:
            logger.info("Schedule tick started %s workflow run(s)", len(started))
        engine_client.runtime.recover_stalled(lease_seconds=lease_seconds)
