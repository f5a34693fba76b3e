"""Administer per-project Jira sync schedules from the shell.

Usage examples:

    python scripts/sync_admin.py initialize <project-id>
    python scripts/sync_admin.py reschedule <project-id> --cron "0 * * * *"
    python scripts/sync_admin.py trigger <project-id> --full
    python scripts/sync_admin.py trigger <project-id> --inline --account 5b10a2844c20165700ede21g
    python scripts/sync_admin.py describe <project-id>
"""

from __future__ import annotations

import argparse
import json

from jirasync.bootstrap import SyncContainer, build_container
from jirasync.core.config import settings
from jirasync.core.exceptions import JiraSyncException
from jirasync.core.logging import setup_logging
from jirasync.db.session import SessionLocal
from jirasync.engine.runtime import InlineDispatcher
from jirasync.sync import persistence


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Manage Jira sync schedules")
    sub = parser.add_subparsers(dest="command", required=True)

    for name in ("initialize", "pause", "resume", "describe"):
        command = sub.add_parser(name)
        command.add_argument("project_id")

    reschedule = sub.add_parser("reschedule")
    reschedule.add_argument("project_id")
    reschedule.add_argument("--cron", required=True, help='Cron expression, e.g. "*/15 * * * *"')

    trigger = sub.add_parser("trigger")
    trigger.add_argument("project_id")
    trigger.add_argument("--full", action="store_true", help="Ignore the last sync time and fetch everything")
    trigger.add_argument(
        "--account",
        dest="accounts",
        action="append",
        default=None,
        help="Restrict the run to this Jira account id (repeatable)",
    )
    trigger.add_argument(
        "--inline",
        action="store_true",
        help="Run the workflow in this process instead of handing it to the Celery worker",
    )
    return parser.parse_args()


def _print_job(container: SyncContainer, project_id: str) -> None:
    db = SessionLocal()
    try:
        job = persistence.get_sync_job(db, project_id)
        if job is None:
            print(f"[missing] no sync job for {project_id}")
            return
        print(f"[job] status={job.status} cron={job.cron_schedule!r} backoff_level={job.backoff_level}")
        print(f"[job] last_run_at={job.last_run_at} next_run_at={job.next_run_at}")
        for state in persistence.list_sync_states(db, project_id):
            print(f"[state] {state.entity}: {state.status} last_sync_time={state.last_sync_time}")
        for run in container.engine.workflows.list_runs(job.workflow_id, limit=5):
            print(f"[run] {run.workflow_id} {run.status} steps={run.steps} started={run.started_at}")
    finally:
        db.close()


def main() -> int:
    args = parse_args()
    setup_logging(settings.LOG_LEVEL)

    inline = getattr(args, "inline", False)
    container = build_container(
        settings,
        session_factory=SessionLocal,
        dispatcher=InlineDispatcher() if inline else None,
    )
    manager = container.schedule_manager

    db = SessionLocal()
    try:
        if args.command == "initialize":
            manager.initialize(db, args.project_id)
        elif args.command == "pause":
            manager.pause(db, args.project_id)
        elif args.command == "resume":
            manager.resume(db, args.project_id)
        elif args.command == "reschedule":
            manager.reschedule(db, args.project_id, args.cron)
        elif args.command == "trigger":
            handle = manager.trigger_manual(db, args.project_id, full=args.full, account_ids=args.accounts)
            print(f"[started] workflow_id={handle.workflow_id} run_id={handle.run_id}")
            if inline:
                run = container.engine.workflows.describe(handle.run_id)
                if run is not None:
                    print(f"[finished] status={run.status} result={json.dumps(run.result)} error={json.dumps(run.error)}")
    except JiraSyncException as exc:
        print(f"[error] {exc.message} {json.dumps(exc.details)}")
        return 1
    finally:
        db.close()

    _print_job(container, args.project_id)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
