"""Entry point for controlling schedules and workflow executions."""

from __future__ import annotations

import datetime as dt
import logging
from dataclasses import dataclass
from typing import Any

from sqlalchemy.orm import Session, sessionmaker

from jirasync.core.config import Settings
from jirasync.core.exceptions import WorkflowAlreadyStartedError
from jirasync.db.session import build_session_factory
from jirasync.engine.definitions import Registry
from jirasync.engine.runtime import Dispatcher, ExecutionDescription, WorkflowRuntime
from jirasync.engine.schedules import ScheduleClient

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WorkflowHandle:
    workflow_id: str
    run_id: str


class WorkflowClient:
    def __init__(self, runtime: WorkflowRuntime) -> None:
        self._runtime = runtime

    def start(
        self,
        workflow_type: str,
        *,
        workflow_id: str,
        args: dict[str, Any],
        task_queue: str,
    ) -> WorkflowHandle:
        run_id = self._runtime.start(workflow_type, workflow_id=workflow_id, args=args, task_queue=task_queue)
        return WorkflowHandle(workflow_id=workflow_id, run_id=run_id)

    def describe(self, run_id: str) -> ExecutionDescription | None:
        return self._runtime.describe(run_id)

    def list_runs(self, workflow_id_prefix: str, *, limit: int = 20) -> list[ExecutionDescription]:
        return self._runtime.list_executions(workflow_id_prefix, limit=limit)


class EngineClient:
    def __init__(self, session_factory: sessionmaker[Session], runtime: WorkflowRuntime) -> None:
        self.runtime = runtime
        self.schedules = ScheduleClient(session_factory)
        self.workflows = WorkflowClient(runtime)

    @property
    def registry(self) -> Registry:
        return self.runtime.registry

    def tick(self, *, now: dt.datetime | None = None) -> list[WorkflowHandle]:
        """Start one execution for every schedule whose next fire time has passed.

        A schedule is marked fired once its run starts or is skipped because the
        previous run is still going. A failed start leaves it due for the next tick.
        """
        now = now or dt.datetime.now(dt.timezone.utc)
        started: list[WorkflowHandle] = []
        for schedule in self.schedules.due_schedules(now):
            try:
                run_id = self.runtime.start(
                    schedule.workflow_type,
                    workflow_id=schedule.workflow_id,
                    args=schedule.args,
                    task_queue=schedule.task_queue,
                    schedule_id=schedule.schedule_id,
                )
            except WorkflowAlreadyStartedError:
                logger.info(
                    "Skipping scheduled run for %s: previous execution still running",
                    schedule.schedule_id,
                )
                self.schedules.mark_fired(schedule.schedule_id, now)
                continue
            except Exception:
                logger.exception("Failed to start scheduled run for %s", schedule.schedule_id)
                continue
            self.schedules.mark_fired(schedule.schedule_id, now)
            started.append(WorkflowHandle(workflow_id=schedule.workflow_id, run_id=run_id))
        return started


def build_engine_session_factory(settings: Settings) -> sessionmaker[Session]:
    return build_session_factory(settings.engine_database_url)


def build_engine_client(
    settings: Settings,
    *,
    registry: Registry,
    dispatcher: Dispatcher,
    session_factory: sessionmaker[Session] | None = None,
) -> EngineClient:
    session_factory = session_factory or build_engine_session_factory(settings)
    runtime = WorkflowRuntime(session_factory, registry, dispatcher)
    bind = getattr(dispatcher, "bind", None)
    if callable(bind):
        bind(runtime)
    return EngineClient(session_factory, runtime)
