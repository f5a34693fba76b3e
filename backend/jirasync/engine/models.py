"""Tables owned by the workflow engine: schedules and workflow executions.

These live on their own declarative base so the engine can point at a
separate database from the application rows it drives.
"""

from __future__ import annotations

import datetime as dt
from typing import Any

from sqlalchemy import Boolean, DateTime, Index, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from jirasync.db.base import JSONType


def utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


class EngineBase(DeclarativeBase):
    pass


class EngineSchedule(EngineBase):
    __tablename__ = "engine_schedules"

    schedule_id: Mapped[str] = mapped_column(String(255), primary_key=True)
    workflow_type: Mapped[str] = mapped_column(String(128), nullable=False)
    workflow_id: Mapped[str] = mapped_column(String(255), nullable=False)
    task_queue: Mapped[str] = mapped_column(String(128), nullable=False)
    args: Mapped[dict[str, Any]] = mapped_column(JSONType, default=dict, nullable=False)
    cron_expressions: Mapped[list[str]] = mapped_column(JSONType, default=list, nullable=False)
    paused: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    note: Mapped[str | None] = mapped_column(Text, nullable=True)
    last_action_at: Mapped[dt.datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)


class WorkflowExecution(EngineBase):
    __tablename__ = "workflow_executions"
    __table_args__ = (Index("ix_workflow_executions_status_updated_at", "status", "updated_at"),)

    run_id: Mapped[str] = mapped_column(String(36), primary_key=True)
    workflow_id: Mapped[str] = mapped_column(String(255), index=True, nullable=False)
    # Mirrors workflow_id while RUNNING, NULL once closed: at most one running execution per id.
    running_workflow_id: Mapped[str | None] = mapped_column(String(255), unique=True, nullable=True)
    workflow_type: Mapped[str] = mapped_column(String(128), nullable=False)
    task_queue: Mapped[str] = mapped_column(String(128), nullable=False)
    schedule_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    args: Mapped[dict[str, Any]] = mapped_column(JSONType, default=dict, nullable=False)
    status: Mapped[str] = mapped_column(String(16), default="RUNNING", nullable=False)
    history: Mapped[list[dict[str, Any]]] = mapped_column(JSONType, default=list, nullable=False)
    pending_activity: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)
    attempt: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    result: Mapped[Any | None] = mapped_column(JSONType, nullable=True)
    error: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)
    started_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    closed_at: Mapped[dt.datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    updated_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)
