"""Cron schedules stored by the engine and the handles used to control them."""

from __future__ import annotations

import datetime as dt
import logging
from dataclasses import dataclass, field
from typing import Any, Callable

from croniter import croniter
from sqlalchemy.orm import Session, sessionmaker

from jirasync.core.exceptions import BadRequestError, ScheduleAlreadyExistsError, ScheduleNotFoundError
from jirasync.engine.models import EngineSchedule

logger = logging.getLogger(__name__)

NEXT_ACTION_COUNT = 10


def utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


def ensure_aware(value: dt.datetime | None) -> dt.datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=dt.timezone.utc)
    return value.astimezone(dt.timezone.utc)


def validate_cron(expression: str) -> str:
    normalized = " ".join((expression or "").split())
    if not normalized or not croniter.is_valid(normalized):
        raise BadRequestError("invalid_cron_expression", details={"cron": expression})
    return normalized


def upcoming_times(cron_expressions: list[str], *, after: dt.datetime, count: int = NEXT_ACTION_COUNT) -> list[dt.datetime]:
    """Merge the next ``count`` fire times of every expression, earliest first."""
    start = ensure_aware(after)
    times: set[dt.datetime] = set()
    for expression in cron_expressions:
        iterator = croniter(expression, start)
        for _ in range(count):
            times.add(ensure_aware(iterator.get_next(dt.datetime)))
    return sorted(times)[:count]


@dataclass(frozen=True)
class ScheduleDescription:
    schedule_id: str
    cron_expressions: list[str]
    workflow_type: str
    workflow_id: str
    task_queue: str
    args: dict[str, Any] = field(default_factory=dict)
    paused: bool = False
    note: str | None = None
    last_action_at: dt.datetime | None = None
    next_action_times: list[dt.datetime] = field(default_factory=list)


def _describe(row: EngineSchedule, now: dt.datetime) -> ScheduleDescription:
    next_times = [] if row.paused else upcoming_times(list(row.cron_expressions or []), after=now)
    return ScheduleDescription(
        schedule_id=row.schedule_id,
        cron_expressions=list(row.cron_expressions or []),
        workflow_type=row.workflow_type,
        workflow_id=row.workflow_id,
        task_queue=row.task_queue,
        args=dict(row.args or {}),
        paused=bool(row.paused),
        note=row.note,
        last_action_at=ensure_aware(row.last_action_at),
        next_action_times=next_times,
    )


class ScheduleHandle:
    def __init__(self, session_factory: sessionmaker[Session], schedule_id: str) -> None:
        self._session_factory = session_factory
        self.schedule_id = schedule_id

    def _load(self, db: Session) -> EngineSchedule:
        row = db.get(EngineSchedule, self.schedule_id)
        if row is None:
            raise ScheduleNotFoundError(self.schedule_id)
        return row

    def describe(self) -> ScheduleDescription:
        with self._session_factory() as db:
            return _describe(self._load(db), utcnow())

    def pause(self, note: str | None = None) -> None:
        self._set_paused(True, note)

    def unpause(self, note: str | None = None) -> None:
        self._set_paused(False, note)

    def _set_paused(self, paused: bool, note: str | None) -> None:
        with self._session_factory() as db:
            row = self._load(db)
            row.paused = paused
            row.note = note
            if not paused:
                # Resuming does not replay the ticks missed while paused.
                row.last_action_at = utcnow()
            db.commit()
        logger.info("Schedule %s %s (%s)", self.schedule_id, "paused" if paused else "unpaused", note or "-")

    def update(self, updater: Callable[[ScheduleDescription], ScheduleDescription]) -> ScheduleDescription:
        """Read-modify-write: ``updater`` receives the current description and returns the new one."""
        with self._session_factory() as db:
            row = self._load(db)
            current = _describe(row, utcnow())
            updated = updater(current)
            cron_expressions = [validate_cron(expression) for expression in updated.cron_expressions]
            if not cron_expressions:
                raise BadRequestError("schedule_requires_cron", details={"schedule_id": self.schedule_id})
            row.cron_expressions = cron_expressions
            row.workflow_type = updated.workflow_type
            row.task_queue = updated.task_queue
            row.args = dict(updated.args)
            row.paused = updated.paused
            row.note = updated.note
            db.commit()
            db.refresh(row)
            logger.info("Schedule %s updated: cron=%s", self.schedule_id, cron_expressions)
            return _describe(row, utcnow())


class ScheduleClient:
    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory

    def create(
        self,
        schedule_id: str,
        *,
        cron_expressions: list[str],
        workflow_type: str,
        workflow_id: str,
        task_queue: str,
        args: dict[str, Any] | None = None,
        paused: bool = False,
    ) -> ScheduleHandle:
        validated = [validate_cron(expression) for expression in cron_expressions]
        with self._session_factory() as db:
            if db.get(EngineSchedule, schedule_id) is not None:
                raise ScheduleAlreadyExistsError(schedule_id)
            db.add(
                EngineSchedule(
                    schedule_id=schedule_id,
                    workflow_type=workflow_type,
                    workflow_id=workflow_id,
                    task_queue=task_queue,
                    args=dict(args or {}),
                    cron_expressions=validated,
                    paused=paused,
                    last_action_at=utcnow(),
                )
            )
            db.commit()
        logger.info("Schedule %s created: cron=%s workflow=%s", schedule_id, validated, workflow_type)
        return self.get_handle(schedule_id)

    def get_handle(self, schedule_id: str) -> ScheduleHandle:
        return ScheduleHandle(self._session_factory, schedule_id)

    def list_schedules(self) -> list[ScheduleDescription]:
        now = utcnow()
        with self._session_factory() as db:
            rows = db.query(EngineSchedule).order_by(EngineSchedule.schedule_id.asc()).all()
            return [_describe(row, now) for row in rows]

    def due_schedules(self, now: dt.datetime | None = None) -> list[ScheduleDescription]:
        """Unpaused schedules with a fire time in ``(last_action_at, now]``."""
        now = ensure_aware(now) or utcnow()
        due: list[ScheduleDescription] = []
        with self._session_factory() as db:
            rows = (
                db.query(EngineSchedule)
                .filter(EngineSchedule.paused.is_(False))
                .order_by(EngineSchedule.schedule_id.asc())
                .all()
            )
            for row in rows:
                last = ensure_aware(row.last_action_at) or ensure_aware(row.created_at) or now
                upcoming = upcoming_times(list(row.cron_expressions or []), after=last, count=1)
                if upcoming and upcoming[0] <= now:
                    due.append(_describe(row, now))
        return due

    def mark_fired(self, schedule_id: str, at: dt.datetime) -> None:
        with self._session_factory() as db:
            row = db.get(EngineSchedule, schedule_id)
            if row is None:
                return
            row.last_action_at = at
            db.commit()
