"""Replay-based execution of workflow generators with per-activity retry.

Each step of a workflow execution is a separate message handled by the
dispatcher (Celery in production). ``advance`` replays the recorded history
into a fresh generator and schedules whatever activity comes next;
``run_activity`` executes that activity, retries it on failure with the
activity's own backoff, and appends the outcome to the history before asking
for the next ``advance``. The history is committed before every dispatch, so
a crashed worker only ever repeats the step it was on.
"""

from __future__ import annotations

import datetime as dt
import logging
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Callable, Protocol
from uuid import uuid4

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from jirasync.core.exceptions import (
    ActivityError,
    JiraSyncException,
    NonDeterministicWorkflowError,
    UnknownWorkflowTypeError,
    WorkflowAlreadyStartedError,
)
from jirasync.engine.definitions import ActivityCall, ActivityOptions, Registry, WorkflowDefinition, to_json
from jirasync.engine.models import WorkflowExecution
from jirasync.engine.schedules import ensure_aware

logger = logging.getLogger(__name__)

RUNNING = "RUNNING"
COMPLETED = "COMPLETED"
FAILED = "FAILED"


def utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


class Dispatcher(Protocol):
    def dispatch_advance(self, run_id: str, *, task_queue: str) -> None: ...

    def dispatch_activity(
        self,
        run_id: str,
        seq: int,
        attempt: int,
        *,
        task_queue: str,
        countdown: float = 0.0,
        timeout: float = 600.0,
    ) -> None: ...


@dataclass(frozen=True)
class ExecutionDescription:
    run_id: str
    workflow_id: str
    workflow_type: str
    status: str
    steps: int
    pending_activity: str | None
    attempt: int
    result: Any = None
    error: dict[str, Any] | None = None
    started_at: dt.datetime | None = None
    closed_at: dt.datetime | None = None
    history: list[dict[str, Any]] = field(default_factory=list)


@dataclass(frozen=True)
class _Completed:
    result: Any


@dataclass(frozen=True)
class _Failed:
    error: BaseException


def describe_error(exc: BaseException) -> dict[str, Any]:
    if isinstance(exc, ActivityError):
        data = exc.to_history()
        data["type"] = "ActivityError"
        return data
    if isinstance(exc, JiraSyncException):
        return {"type": type(exc).__name__, "message": exc.message, "details": exc.details}
    return {"type": type(exc).__name__, "message": str(exc) or type(exc).__name__, "details": {}}


def is_retryable(exc: BaseException, options: ActivityOptions) -> bool:
    if type(exc).__name__ in options.non_retryable_error_types:
        return False
    return getattr(exc, "retryable", True) is not False


class WorkflowRuntime:
    def __init__(self, session_factory: sessionmaker[Session], registry: Registry, dispatcher: Dispatcher) -> None:
        self._session_factory = session_factory
        self.registry = registry
        self.dispatcher = dispatcher

    def start(
        self,
        workflow_type: str,
        *,
        workflow_id: str,
        args: dict[str, Any],
        task_queue: str,
        schedule_id: str | None = None,
    ) -> str:
        self.registry.workflow(workflow_type)
        run_id = str(uuid4())
        with self._session_factory() as db:
            running = (
                db.query(WorkflowExecution)
                .filter(WorkflowExecution.running_workflow_id == workflow_id)
                .first()
            )
            if running is not None:
                raise WorkflowAlreadyStartedError(workflow_id)
            db.add(
                WorkflowExecution(
                    run_id=run_id,
                    workflow_id=workflow_id,
                    running_workflow_id=workflow_id,
                    workflow_type=workflow_type,
                    task_queue=task_queue,
                    schedule_id=schedule_id,
                    args=to_json(args),
                    status=RUNNING,
                    history=[],
                )
            )
            try:
                db.commit()
            except IntegrityError as exc:
                db.rollback()
                raise WorkflowAlreadyStartedError(workflow_id) from exc
        logger.info("Workflow %s started: workflow_id=%s run_id=%s", workflow_type, workflow_id, run_id)
        self.dispatcher.dispatch_advance(run_id, task_queue=task_queue)
        return run_id

    def advance(self, run_id: str) -> None:
        next_step: tuple[int, str, float] | None = None
        with self._session_factory() as db:
            execution = db.get(WorkflowExecution, run_id)
            if execution is None or execution.status != RUNNING:
                logger.debug("Ignoring advance for closed or unknown run %s", run_id)
                return
            history = list(execution.history or [])
            pending = execution.pending_activity
            if pending and pending.get("seq") == len(history):
                logger.debug("Run %s already waiting on %s", run_id, pending.get("activity"))
                return

            try:
                definition = self.registry.workflow(execution.workflow_type)
            except UnknownWorkflowTypeError as exc:
                self._close(execution, FAILED, error=describe_error(exc))
                db.commit()
                return
            step = self._replay(run_id, definition, dict(execution.args or {}), history)

            if isinstance(step, ActivityCall):
                seq = len(history)
                execution.pending_activity = {
                    "seq": seq,
                    "activity": step.name,
                    "payload": step.payload,
                    "options": step.options.to_dict(),
                }
                execution.attempt = 1
                execution.updated_at = utcnow()
                next_step = (seq, execution.task_queue, step.options.start_to_close_timeout)
                logger.debug("Run %s step %s -> %s", run_id, seq, step.name)
            elif isinstance(step, _Completed):
                self._close(execution, COMPLETED, result=step.result)
                logger.info("Workflow run %s (%s) completed", run_id, execution.workflow_id)
            else:
                self._close(execution, FAILED, error=describe_error(step.error))
                logger.error("Workflow run %s (%s) failed: %s", run_id, execution.workflow_id, step.error)
            db.commit()

        if next_step is not None:
            seq, task_queue, timeout = next_step
            self.dispatcher.dispatch_activity(run_id, seq, 1, task_queue=task_queue, timeout=timeout)

    def _replay(
        self,
        run_id: str,
        definition: WorkflowDefinition,
        args: dict[str, Any],
        history: list[dict[str, Any]],
    ) -> ActivityCall | _Completed | _Failed:
        generator = None
        try:
            generator = definition.start(args)
            call = next(generator)
            for entry in history:
                if call.name != entry.get("activity"):
                    raise NonDeterministicWorkflowError(run_id, str(entry.get("activity")), call.name)
                if "error" in entry:
                    call = generator.throw(ActivityError.from_history(entry["error"]))
                else:
                    call = generator.send(entry.get("result"))
        except StopIteration as stop:
            return _Completed(to_json(stop.value))
        except Exception as exc:  # noqa: BLE001
            if generator is not None:
                generator.close()
            return _Failed(exc)
        generator.close()
        return call

    def run_activity(self, run_id: str, seq: int, attempt: int) -> None:
        with self._session_factory() as db:
            execution = db.get(WorkflowExecution, run_id)
            if execution is None or execution.status != RUNNING:
                return
            pending = execution.pending_activity
            if (
                not pending
                or pending.get("seq") != seq
                or len(execution.history or []) != seq
                or attempt < execution.attempt
            ):
                logger.debug("Dropping stale activity delivery run=%s seq=%s attempt=%s", run_id, seq, attempt)
                return
            execution.attempt = attempt
            execution.updated_at = utcnow()
            db.commit()
            pending = dict(pending)
            task_queue = execution.task_queue

        name = str(pending["activity"])
        options = ActivityOptions.from_dict(pending.get("options") or {})
        try:
            definition = self.registry.activity(name)
            result = definition.invoke(pending.get("payload") or {})
        except Exception as exc:  # noqa: BLE001
            retryable = is_retryable(exc, options) and not isinstance(exc, UnknownWorkflowTypeError)
            if retryable and attempt < options.maximum_attempts:
                delay = options.retry_delay(attempt)
                logger.warning(
                    "Activity %s failed (run=%s attempt=%s/%s), retrying in %.1fs: %s",
                    name,
                    run_id,
                    attempt,
                    options.maximum_attempts,
                    delay,
                    exc,
                )
                self.dispatcher.dispatch_activity(
                    run_id,
                    seq,
                    attempt + 1,
                    task_queue=task_queue,
                    countdown=delay,
                    timeout=options.start_to_close_timeout,
                )
                return
            logger.error(
                "Activity %s failed permanently (run=%s attempt=%s retryable=%s): %s",
                name,
                run_id,
                attempt,
                retryable,
                exc,
            )
            error = describe_error(exc)
            entry = {
                "seq": seq,
                "activity": name,
                "error": ActivityError(
                    str(error.get("message") or "Activity failed"),
                    activity=name,
                    cause_type=type(exc).__name__,
                    attempts=attempt,
                    details=dict(error.get("details") or {}),
                ).to_history(),
            }
        else:
            entry = {"seq": seq, "activity": name, "result": result}

        if self._record(run_id, seq, entry):
            self.dispatcher.dispatch_advance(run_id, task_queue=task_queue)

    def _record(self, run_id: str, seq: int, entry: dict[str, Any]) -> bool:
        with self._session_factory() as db:
            execution = db.get(WorkflowExecution, run_id)
            if execution is None or execution.status != RUNNING:
                return False
            history = list(execution.history or [])
            if len(history) != seq:
                logger.debug("Run %s already recorded step %s", run_id, seq)
                return False
            execution.history = [*history, entry]
            execution.pending_activity = None
            execution.updated_at = utcnow()
            db.commit()
            return True

    @staticmethod
    def _close(
        execution: WorkflowExecution,
        status: str,
        *,
        result: Any = None,
        error: dict[str, Any] | None = None,
    ) -> None:
        execution.status = status
        execution.running_workflow_id = None
        execution.pending_activity = None
        execution.result = result
        execution.error = error
        execution.closed_at = utcnow()

    def recover_stalled(self, *, lease_seconds: int, now: dt.datetime | None = None) -> list[str]:
        """Re-drive running executions that have not made progress within the lease."""
        now = ensure_aware(now) or utcnow()
        cutoff = now - dt.timedelta(seconds=max(1, lease_seconds))
        recovered: list[tuple[str, str]] = []
        with self._session_factory() as db:
            executions = db.query(WorkflowExecution).filter(WorkflowExecution.status == RUNNING).all()
            for execution in executions:
                updated_at = ensure_aware(execution.updated_at) or ensure_aware(execution.started_at)
                if updated_at is not None and updated_at >= cutoff:
                    continue
                execution.pending_activity = None
                execution.updated_at = now
                recovered.append((execution.run_id, execution.task_queue))
            db.commit()
        for run_id, task_queue in recovered:
            logger.warning("Recovering stalled workflow run %s", run_id)
            self.dispatcher.dispatch_advance(run_id, task_queue=task_queue)
        return [run_id for run_id, _ in recovered]

    def describe(self, run_id: str) -> ExecutionDescription | None:
        with self._session_factory() as db:
            execution = db.get(WorkflowExecution, run_id)
            if execution is None:
                return None
            return _execution_description(execution)

    def list_executions(self, workflow_id_prefix: str, *, limit: int = 20) -> list[ExecutionDescription]:
        with self._session_factory() as db:
            rows = (
                db.query(WorkflowExecution)
                .filter(WorkflowExecution.workflow_id.startswith(workflow_id_prefix))
                .order_by(WorkflowExecution.started_at.desc())
                .limit(limit)
                .all()
            )
            return [_execution_description(row) for row in rows]


def _execution_description(execution: WorkflowExecution) -> ExecutionDescription:
    history = list(execution.history or [])
    pending = execution.pending_activity or {}
    return ExecutionDescription(
        run_id=execution.run_id,
        workflow_id=execution.workflow_id,
        workflow_type=execution.workflow_type,
        status=execution.status,
        steps=len(history),
        pending_activity=pending.get("activity"),
        attempt=execution.attempt,
        result=execution.result,
        error=execution.error,
        started_at=ensure_aware(execution.started_at),
        closed_at=ensure_aware(execution.closed_at),
        history=history,
    )


class InlineDispatcher:
    """Runs engine steps in-process, in FIFO order, without a broker.

    Used by the admin CLI for one-off local runs. Start-to-close timeouts are
    not enforced here.
    """

    def __init__(self, *, sleep: Callable[[float], None] = time.sleep) -> None:
        self._queue: deque[tuple[float, str, tuple[Any, ...]]] = deque()
        self._runtime: WorkflowRuntime | None = None
        self._draining = False
        self._sleep = sleep

    def bind(self, runtime: WorkflowRuntime) -> None:
        self._runtime = runtime

    def dispatch_advance(self, run_id: str, *, task_queue: str) -> None:
        self._queue.append((0.0, "advance", (run_id,)))
        self._drain()

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
        self._queue.append((countdown, "activity", (run_id, seq, attempt)))
        self._drain()

    def _drain(self) -> None:
        if self._draining or self._runtime is None:
            return
        self._draining = True
        try:
            while self._queue:
                countdown, kind, args = self._queue.popleft()
                if countdown > 0:
                    self._sleep(countdown)
                if kind == "advance":
                    self._runtime.advance(*args)
                else:
                    self._runtime.run_activity(*args)
        finally:
            self._draining = False
