"""Payloads exchanged between the sync workflow and its activities."""

from __future__ import annotations

from pydantic import BaseModel, Field

from jirasync.models.enums import SyncStateStatus


class SyncProjectInput(BaseModel):
    project_id: str
    full_resync: bool = False
    account_ids: list[str] | None = None


class PrepareSyncInput(BaseModel):
    project_id: str
    full_resync: bool = False
    account_ids: list[str] | None = None


class SyncConfig(BaseModel):
    project_id: str
    project_key: str
    site_id: str
    base_url: str
    admin_email: str
    api_token: str = Field(repr=False)
    tracked_account_ids: list[str] = Field(default_factory=list)
    since: str | None = None


class SyncCursor(BaseModel):
    next_page_token: str | None = None
    since: str | None = None
    last_updated_at: str | None = None


class SyncBatchInput(BaseModel):
    config: SyncConfig
    cursor: SyncCursor


class PageResult(BaseModel):
    has_more: bool
    next_page_token: str | None = None
    last_updated_at: str | None = None
    processed: int = 0


class FinalizeSyncInput(BaseModel):
    project_id: str
    status: SyncStateStatus
    last_updated_at: str | None = None
    message: str | None = None
    details: dict | None = None


class FailSyncInput(BaseModel):
    project_id: str
    error: str
    classification: dict | None = None
