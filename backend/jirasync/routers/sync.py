"""Sync schedule administration endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Body, Depends, Query, Request
from sqlalchemy.orm import Session

from jirasync.core.exceptions import SyncJobNotFoundError
from jirasync.db.session import get_db
from jirasync.schemas.sync import (
    RescheduleRequest,
    StartSyncRequest,
    SyncJobOut,
    SyncLogOut,
    SyncStateOut,
    TriggerSyncRequest,
    WorkflowRunOut,
)
from jirasync.services.sync_schedule import SyncScheduleManager
from jirasync.sync import persistence

router = APIRouter()


def get_schedule_manager(request: Request) -> SyncScheduleManager:
    return request.app.state.sync.schedule_manager


@router.get("/projects/{project_id}", response_model=SyncJobOut)
def get_sync_job(project_id: str, db: Session = Depends(get_db)) -> SyncJobOut:
    job = persistence.get_sync_job(db, project_id)
    if job is None:
        raise SyncJobNotFoundError(project_id)
    return SyncJobOut.model_validate(job)


@router.get("/projects/{project_id}/states", response_model=list[SyncStateOut])
def get_sync_states(project_id: str, db: Session = Depends(get_db)) -> list[SyncStateOut]:
    return [SyncStateOut.model_validate(state) for state in persistence.list_sync_states(db, project_id)]


@router.get("/projects/{project_id}/logs", response_model=list[SyncLogOut])
def get_sync_logs(
    project_id: str,
    limit: int = Query(default=50, ge=1, le=500),
    db: Session = Depends(get_db),
) -> list[SyncLogOut]:
    return [SyncLogOut.model_validate(log) for log in persistence.list_sync_logs(db, project_id, limit=limit)]


@router.post("/projects/{project_id}/initialize", response_model=SyncJobOut)
def initialize_sync(
    project_id: str,
    db: Session = Depends(get_db),
    manager: SyncScheduleManager = Depends(get_schedule_manager),
) -> SyncJobOut:
    return SyncJobOut.model_validate(manager.initialize(db, project_id))


@router.post("/projects/{project_id}/pause", response_model=SyncJobOut)
def pause_sync(
    project_id: str,
    db: Session = Depends(get_db),
    manager: SyncScheduleManager = Depends(get_schedule_manager),
) -> SyncJobOut:
    return SyncJobOut.model_validate(manager.pause(db, project_id))


@router.post("/projects/{project_id}/resume", response_model=SyncJobOut)
def resume_sync(
    project_id: str,
    db: Session = Depends(get_db),
    manager: SyncScheduleManager = Depends(get_schedule_manager),
) -> SyncJobOut:
    return SyncJobOut.model_validate(manager.resume(db, project_id))


@router.post("/projects/{project_id}/reschedule", response_model=SyncJobOut)
def reschedule_sync(
    project_id: str,
    payload: RescheduleRequest,
    db: Session = Depends(get_db),
    manager: SyncScheduleManager = Depends(get_schedule_manager),
) -> SyncJobOut:
    return SyncJobOut.model_validate(manager.reschedule(db, project_id, payload.cron))


@router.post("/projects/{project_id}/trigger", response_model=WorkflowRunOut)
def trigger_sync(
    project_id: str,
    payload: TriggerSyncRequest = Body(default=TriggerSyncRequest()),
    db: Session = Depends(get_db),
    manager: SyncScheduleManager = Depends(get_schedule_manager),
) -> WorkflowRunOut:
    handle = manager.trigger_manual(db, project_id, full=payload.full, account_ids=payload.account_ids)
    return WorkflowRunOut(workflow_id=handle.workflow_id, run_id=handle.run_id)


@router.post("/projects/{project_id}/start", response_model=WorkflowRunOut)
def start_sync(
    project_id: str,
    payload: StartSyncRequest = Body(default=StartSyncRequest()),
    db: Session = Depends(get_db),
    manager: SyncScheduleManager = Depends(get_schedule_manager),
) -> WorkflowRunOut:
    handle = manager.start(db, project_id, full=payload.full)
    return WorkflowRunOut(workflow_id=handle.workflow_id, run_id=handle.run_id)
