"""Shared enum values used by the database models and schemas."""

from __future__ import annotations

import enum


class SyncJobStatus(str, enum.Enum):
    active = "ACTIVE"
    paused = "PAUSED"
    error = "ERROR"


class SyncStateStatus(str, enum.Enum):
    idle = "IDLE"
    running = "RUNNING"
    success = "SUCCESS"
    failed = "FAILED"


class SyncLogLevel(str, enum.Enum):
    debug = "DEBUG"
    info = "INFO"
    warn = "WARN"
    error = "ERROR"


class SyncEntity(str, enum.Enum):
    issue = "issue"
    comment = "comment"
    worklog = "worklog"


TRACKED_ENTITIES = (SyncEntity.issue, SyncEntity.comment, SyncEntity.worklog)
