"""Celery worker entry point.

Run with ``celery -A jirasync.worker worker -B -Q jira-sync``.
"""

from __future__ import annotations

from jirasync.bootstrap import build_container
from jirasync.core.config import settings
from jirasync.core.logging import setup_logging
from jirasync.db.session import SessionLocal

setup_logging(settings.LOG_LEVEL)

container = build_container(settings, session_factory=SessionLocal)
celery_app = container.celery_app
