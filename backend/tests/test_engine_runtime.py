from __future__ import annotations

import datetime as dt

import pytest
from pydantic import BaseModel

from jirasync.core.exceptions import JiraClientError, UnknownWorkflowTypeError, WorkflowAlreadyStartedError
from jirasync.engine.definitions import (
    ActivityDefinition,
    ActivityOptions,
    Registry,
    WorkflowDefinition,
    execute_activity,
)
from jirasync.engine.runtime import COMPLETED, FAILED, RUNNING, InlineDispatcher, WorkflowRuntime
from jirasync.integrations.jira.errors import classify_jira_error

QUEUE = "test-queue"


class EchoInput(BaseModel):
    value: str


class ConfigMissing(Exception):
    pass


class RecordingDispatcher:
    def __init__(self) -> None:
        self.advances: list[str] = []
        self.activities: list[tuple[str, int, int, float]] = []

    def dispatch_advance(self, run_id: str, *, task_queue: str) -> None:
        self.advances.append(run_id)

    def dispatch_activity(self, run_id, seq, attempt, *, task_queue, countdown=0.0, timeout=600.0) -> None:  # noqa: ANN001
        self.activities.append((run_id, seq, attempt, countdown))


def _build(session_factory, dispatcher, activity, *, options: ActivityOptions) -> WorkflowRuntime:
    def two_step(payload: EchoInput):
        first = yield execute_activity("echo", payload, options)
        second = yield execute_activity("echo", EchoInput(value=f"{first}!"), options)
        return {"first": first, "second": second}

    registry = Registry()
    registry.register_workflow(WorkflowDefinition(name="two_step", fn=two_step, input_model=EchoInput))
    registry.register_activity(ActivityDefinition(name="echo", fn=activity, input_model=EchoInput))
    runtime = WorkflowRuntime(session_factory, registry, dispatcher)
    if isinstance(dispatcher, InlineDispatcher):
        dispatcher.bind(runtime)
    return runtime


def _inline(sleeps: list[float]) -> InlineDispatcher:
    return InlineDispatcher(sleep=sleeps.append)


def test_workflow_runs_to_completion_and_frees_its_id(session_factory) -> None:
    sleeps: list[float] = []
    runtime = _build(session_factory, _inline(sleeps), lambda payload: payload.value.upper(), options=ActivityOptions())

    run_id = runtime.start("two_step", workflow_id="wf-1", args={"value": "hi"}, task_queue=QUEUE)

    described = runtime.describe(run_id)
    assert described is not None
    assert described.status == COMPLETED
    assert described.result == {"first": "HI", "second": "HI!"}
    assert described.steps == 2
    assert sleeps == []

    second_run = runtime.start("two_step", workflow_id="wf-1", args={"value": "again"}, task_queue=QUEUE)
    assert second_run != run_id
    assert [item.run_id for item in runtime.list_executions("wf-1")].count(run_id) == 1


def test_activity_is_retried_with_exponential_backoff(session_factory) -> None:
    calls: list[str] = []

    def flaky(payload: EchoInput) -> str:
        calls.append(payload.value)
        if len(calls) < 3:
            raise RuntimeError("temporary outage")
        return payload.value

    sleeps: list[float] = []
    options = ActivityOptions(maximum_attempts=5, initial_interval=1.0, backoff_coefficient=2.0)
    runtime = _build(session_factory, _inline(sleeps), flaky, options=options)

    run_id = runtime.start("two_step", workflow_id="wf-retry", args={"value": "x"}, task_queue=QUEUE)

    described = runtime.describe(run_id)
    assert described.status == COMPLETED
    assert sleeps == [1.0, 2.0]
    assert calls == ["x", "x", "x", "x!"]


def test_retry_ceiling_fails_the_workflow(session_factory) -> None:
    def broken(payload: EchoInput) -> str:
        raise RuntimeError("still down")

    sleeps: list[float] = []
    options = ActivityOptions(maximum_attempts=3, initial_interval=1.0, maximum_interval=1.5)
    runtime = _build(session_factory, _inline(sleeps), broken, options=options)

    run_id = runtime.start("two_step", workflow_id="wf-broken", args={"value": "x"}, task_queue=QUEUE)

    described = runtime.describe(run_id)
    assert described.status == FAILED
    assert sleeps == [1.0, 1.5]
    assert described.error["type"] == "ActivityError"
    assert described.error["cause_type"] == "RuntimeError"
    assert described.error["attempts"] == 3
    assert described.history[0]["error"]["message"] == "still down"


def test_non_retryable_error_type_fails_on_first_attempt(session_factory) -> None:
    def missing(payload: EchoInput) -> str:
        raise ConfigMissing("project gone")

    sleeps: list[float] = []
    options = ActivityOptions(maximum_attempts=5, non_retryable_error_types=("ConfigMissing",))
    runtime = _build(session_factory, _inline(sleeps), missing, options=options)

    run_id = runtime.start("two_step", workflow_id="wf-missing", args={"value": "x"}, task_queue=QUEUE)

    described = runtime.describe(run_id)
    assert described.status == FAILED
    assert described.error["attempts"] == 1
    assert sleeps == []


def test_error_marked_not_retryable_skips_retries(session_factory) -> None:
    classification = classify_jira_error(403, {"errorCode": "SUSPENDED_PAYMENT"}, "Forbidden")

    def suspended(payload: EchoInput) -> str:
        raise JiraClientError(classification)

    sleeps: list[float] = []
    runtime = _build(session_factory, _inline(sleeps), suspended, options=ActivityOptions(maximum_attempts=5))

    run_id = runtime.start("two_step", workflow_id="wf-suspended", args={"value": "x"}, task_queue=QUEUE)

    error = runtime.describe(run_id).error
    assert error["attempts"] == 1
    assert error["cause_type"] == "JiraClientError"
    assert error["details"]["code"] == "SUSPENDED_PAYMENT"


def test_only_one_running_execution_per_workflow_id(session_factory) -> None:
    dispatcher = RecordingDispatcher()
    runtime = _build(session_factory, dispatcher, lambda payload: payload.value, options=ActivityOptions())

    runtime.start("two_step", workflow_id="wf-1", args={"value": "x"}, task_queue=QUEUE)
    with pytest.raises(WorkflowAlreadyStartedError):
        runtime.start("two_step", workflow_id="wf-1", args={"value": "y"}, task_queue=QUEUE)

    runtime.start("two_step", workflow_id="wf-2", args={"value": "z"}, task_queue=QUEUE)
    assert len(dispatcher.advances) == 2


def test_unknown_workflow_type_is_rejected(session_factory) -> None:
    runtime = _build(session_factory, RecordingDispatcher(), lambda payload: payload.value, options=ActivityOptions())
    with pytest.raises(UnknownWorkflowTypeError):
        runtime.start("missing", workflow_id="wf-1", args={}, task_queue=QUEUE)


def test_duplicate_deliveries_are_ignored(session_factory) -> None:
    calls: list[str] = []

    def counting(payload: EchoInput) -> str:
        calls.append(payload.value)
        return payload.value

    dispatcher = RecordingDispatcher()
    runtime = _build(session_factory, dispatcher, counting, options=ActivityOptions())
    run_id = runtime.start("two_step", workflow_id="wf-dup", args={"value": "x"}, task_queue=QUEUE)

    runtime.advance(run_id)
    runtime.advance(run_id)
    assert dispatcher.activities == [(run_id, 0, 1, 0.0)]

    runtime.run_activity(run_id, 0, 1)
    runtime.run_activity(run_id, 0, 1)
    assert calls == ["x"]
    assert runtime.describe(run_id).steps == 1

    runtime.advance(run_id)
    runtime.run_activity(run_id, 1, 1)
    runtime.advance(run_id)
    assert runtime.describe(run_id).status == COMPLETED
    assert calls == ["x", "x!"]


def test_stalled_execution_is_redriven_after_lease(session_factory) -> None:
    dispatcher = RecordingDispatcher()
    runtime = _build(session_factory, dispatcher, lambda payload: payload.value, options=ActivityOptions())
    run_id = runtime.start("two_step", workflow_id="wf-stalled", args={"value": "x"}, task_queue=QUEUE)
    runtime.advance(run_id)

    now = dt.datetime.now(dt.timezone.utc)
    assert runtime.recover_stalled(lease_seconds=600, now=now) == []

    recovered = runtime.recover_stalled(lease_seconds=600, now=now + dt.timedelta(hours=1))
    assert recovered == [run_id]
    assert dispatcher.advances[-1] == run_id

    runtime.advance(run_id)
    assert dispatcher.activities[-1] == (run_id, 0, 1, 0.0)
    assert runtime.describe(run_id).status == RUNNING
