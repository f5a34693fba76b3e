"""DTOs for the sync administration endpoints."""

from __future__ import annotations

import datetime as dt
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class SyncJobOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    project_id: str
    workflow_id: str
    schedule_id: str
    cron_schedule: str
    status: str
    last_run_at: dt.datetime | None = None
    next_run_at: dt.datetime | None = None
    backoff_level: int = 0
    backoff_original_cron: str | None = None
    backoff_last_notified_at: dt.datetime | None = None


class SyncStateOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    entity: str
    status: str
    last_sync_time: dt.datetime | None = None
    updated_at: dt.datetime | None = None


class SyncLogOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    level: str
    message: str
    details: dict[str, Any] | None = None
    created_at: dt.datetime


class RescheduleRequest(BaseModel):
    cron: str = Field(min_length=9, max_length=64)


class TriggerSyncRequest(BaseModel):
    full: bool = False
    account_ids: list[str] | None = Field(default=None, max_length=500)


class StartSyncRequest(BaseModel):
    full: bool = False


class WorkflowRunOut(BaseModel):
    status: str = "started"
    workflow_id: str
    run_id: str
