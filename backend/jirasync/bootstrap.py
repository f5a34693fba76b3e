"""Process-start wiring: builds the engine client and the sync services exactly once."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from celery import Celery
from sqlalchemy.orm import Session, sessionmaker

from jirasync.core.config import Settings
from jirasync.engine.celery_app import CeleryDispatcher, create_celery_app, register_engine_tasks
from jirasync.engine.client import EngineClient, build_engine_client
from jirasync.engine.definitions import Registry
from jirasync.engine.runtime import Dispatcher
from jirasync.integrations.jira.client import JiraClient
from jirasync.services.communication import CommunicationService
from jirasync.services.sync_schedule import SyncScheduleManager
from jirasync.services.sync_telemetry import SyncTelemetryService
from jirasync.sync.activities import JiraClientFactory, SyncActivities
from jirasync.sync.workflow import sync_workflow_definition

logger = logging.getLogger(__name__)


@dataclass
class SyncContainer:
    engine: EngineClient
    schedule_manager: SyncScheduleManager
    telemetry: SyncTelemetryService
    activities: SyncActivities
    notifier: CommunicationService
    celery_app: Celery | None = None


def build_container(
    settings: Settings,
    *,
    session_factory: sessionmaker[Session],
    dispatcher: Dispatcher | None = None,
    engine_session_factory: sessionmaker[Session] | None = None,
    notifier: CommunicationService | None = None,
    client_factory: JiraClientFactory = JiraClient,
) -> SyncContainer:
    """Wire every sync component; without an explicit dispatcher the engine runs on Celery."""
    celery_app: Celery | None = None
    if dispatcher is None:
        celery_app = create_celery_app(settings)
        dispatcher = CeleryDispatcher(celery_app)

    registry = Registry()
    engine = build_engine_client(
        settings,
        registry=registry,
        dispatcher=dispatcher,
        session_factory=engine_session_factory,
    )
    notifier = notifier or CommunicationService(settings)
    schedule_manager = SyncScheduleManager(engine, settings)
    telemetry = SyncTelemetryService(schedule_manager, notifier)
    activities = SyncActivities(session_factory, telemetry, settings=settings, client_factory=client_factory)

    registry.register_workflow(sync_workflow_definition(settings))
    for definition in activities.definitions():
        registry.register_activity(definition)

    if celery_app is not None:
        register_engine_tasks(celery_app, engine, lease_seconds=settings.SYNC_EXECUTION_LEASE_SECONDS)

    logger.debug("Sync container ready: workflows=%s activities=%s", registry.workflow_names, registry.activity_names)
    return SyncContainer(
        engine=engine,
        schedule_manager=schedule_manager,
        telemetry=telemetry,
        activities=activities,
        notifier=notifier,
        celery_app=celery_app,
    )
