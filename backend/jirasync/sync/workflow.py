"""Durable sync workflow for one Jira project.

The workflow moves through PREPARING, PAGINATING and one of the two
finalizing states. It is replayed from recorded activity results, so it
only yields activity calls and never touches the clock, the database or the
network directly.
"""

from __future__ import annotations

from jirasync.core.config import Settings
from jirasync.core.exceptions import ActivityError
from jirasync.engine.definitions import ActivityOptions, WorkflowDefinition, WorkflowGenerator, execute_activity
from jirasync.models.enums import SyncStateStatus
from jirasync.sync.schemas import (
    FailSyncInput,
    FinalizeSyncInput,
    PageResult,
    PrepareSyncInput,
    SyncBatchInput,
    SyncConfig,
    SyncCursor,
    SyncProjectInput,
)

SYNC_WORKFLOW_NAME = "sync_project_workflow"

PREPARE_ACTIVITY = "prepare_project_sync"
SYNC_BATCH_ACTIVITY = "sync_issues_batch"
FINALIZE_ACTIVITY = "finalize_project_sync"
FAIL_ACTIVITY = "fail_project_sync"

NO_TRACKED_USERS_MESSAGE = "No tracked Jira users. Skipping sync."
SUCCESS_MESSAGE = "Sync completed successfully"

# Missing-configuration errors are never retried.
NON_RETRYABLE_ERRORS = ("ProjectNotFoundError", "JiraSiteNotFoundError")


def activity_options(settings: Settings) -> ActivityOptions:
    return ActivityOptions(
        start_to_close_timeout=float(settings.SYNC_ACTIVITY_TIMEOUT_SECONDS),
        maximum_attempts=max(1, settings.SYNC_ACTIVITY_MAX_ATTEMPTS),
        initial_interval=float(settings.SYNC_ACTIVITY_RETRY_INITIAL_SECONDS),
        maximum_interval=float(settings.SYNC_ACTIVITY_RETRY_MAX_SECONDS),
        non_retryable_error_types=NON_RETRYABLE_ERRORS,
    )


def next_cursor(cursor: SyncCursor, result: PageResult, config: SyncConfig) -> SyncCursor:
    return SyncCursor(
        next_page_token=result.next_page_token,
        since=config.since,
        last_updated_at=result.last_updated_at or cursor.last_updated_at or config.since,
    )


def sync_project_workflow(payload: SyncProjectInput, *, options: ActivityOptions) -> WorkflowGenerator:
    pages = 0
    try:
        config = SyncConfig.model_validate(
            (
                yield execute_activity(
                    PREPARE_ACTIVITY,
                    PrepareSyncInput(
                        project_id=payload.project_id,
                        full_resync=payload.full_resync,
                        account_ids=payload.account_ids,
                    ),
                    options,
                )
            )
        )

        if not config.tracked_account_ids:
            yield execute_activity(
                FINALIZE_ACTIVITY,
                FinalizeSyncInput(
                    project_id=payload.project_id,
                    status=SyncStateStatus.success,
                    last_updated_at=config.since,
                    message=NO_TRACKED_USERS_MESSAGE,
                ),
                options,
            )
            return {"status": SyncStateStatus.success.value, "pages": 0, "skipped": True}

        cursor = SyncCursor(next_page_token=None, since=config.since, last_updated_at=config.since)
        has_more = True
        while has_more:
            result = PageResult.model_validate(
                (
                    yield execute_activity(
                        SYNC_BATCH_ACTIVITY,
                        SyncBatchInput(config=config, cursor=cursor),
                        options,
                    )
                )
            )
            pages += 1
            has_more = result.has_more
            cursor = next_cursor(cursor, result, config)

        yield execute_activity(
            FINALIZE_ACTIVITY,
            FinalizeSyncInput(
                project_id=payload.project_id,
                status=SyncStateStatus.success,
                last_updated_at=cursor.last_updated_at or config.since,
                message=SUCCESS_MESSAGE,
                details={"pages": pages},
            ),
            options,
        )
    except ActivityError as exc:
        yield execute_activity(
            FAIL_ACTIVITY,
            FailSyncInput(
                project_id=payload.project_id,
                error=exc.message,
                classification=dict(exc.details) if exc.cause_type == "JiraClientError" else None,
            ),
            options,
        )
        raise
    return {"status": SyncStateStatus.success.value, "pages": pages, "skipped": False}


def sync_workflow_definition(settings: Settings) -> WorkflowDefinition:
    options = activity_options(settings)

    def run(payload: SyncProjectInput) -> WorkflowGenerator:
        return sync_project_workflow(payload, options=options)

    return WorkflowDefinition(name=SYNC_WORKFLOW_NAME, fn=run, input_model=SyncProjectInput)
