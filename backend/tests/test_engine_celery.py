from __future__ import annotations

from types import SimpleNamespace

from jirasync.core.config import Settings
from jirasync.engine.celery_app import (
    ACTIVITY_TASK,
    ADVANCE_TASK,
    TICK_TASK,
    CeleryDispatcher,
    create_celery_app,
    register_engine_tasks,
)


def _settings() -> Settings:
    return Settings(CELERY_BROKER_URL="memory://", CELERY_RESULT_BACKEND="cache+memory://", SYNC_SCHEDULE_TICK_SECONDS=15)


def test_celery_app_config() -> None:
    app = create_celery_app(_settings())
    assert app.conf.task_default_queue == "jira-sync"
    assert app.conf.task_acks_late is True
    assert app.conf.beat_schedule["tick-sync-schedules"]["task"] == TICK_TASK
    assert app.conf.beat_schedule["tick-sync-schedules"]["schedule"] == 15.0


def test_dispatcher_sends_time_limited_activity_tasks(monkeypatch) -> None:
    app = create_celery_app(_settings())
    sent: list[tuple[str, dict]] = []
    monkeypatch.setattr(app, "send_task", lambda name, **kwargs: sent.append((name, kwargs)))
    dispatcher = CeleryDispatcher(app)

    dispatcher.dispatch_advance("run-1", task_queue="jira-sync")
    dispatcher.dispatch_activity("run-1", 2, 3, task_queue="jira-sync", countdown=4.0, timeout=60.0)

    assert sent[0] == (ADVANCE_TASK, {"args": ["run-1"], "queue": "jira-sync"})
    name, options = sent[1]
    assert name == ACTIVITY_TASK
    assert options["args"] == ["run-1", 2, 3]
    assert options["countdown"] == 4.0
    assert options["soft_time_limit"] == 60.0
    assert options["time_limit"] > options["soft_time_limit"]


def test_registered_tasks_drive_the_runtime() -> None:
    calls: list[tuple] = []
    runtime = SimpleNamespace(
        advance=lambda run_id: calls.append(("advance", run_id)),
        run_activity=lambda run_id, seq, attempt: calls.append(("activity", run_id, seq, attempt)),
        recover_stalled=lambda *, lease_seconds: calls.append(("recover", lease_seconds)) or [],
    )
    engine_client = SimpleNamespace(runtime=runtime, tick=lambda: calls.append(("tick",)) or [])
    app = create_celery_app(_settings())

    register_engine_tasks(app, engine_client, lease_seconds=120)
    app.tasks[ADVANCE_TASK]("run-1")
    app.tasks[ACTIVITY_TASK]("run-1", 0, 1)
    app.tasks[TICK_TASK]()

    assert calls == [("advance", "run-1"), ("activity", "run-1", 0, 1), ("tick",), ("recover", 120)]
