"""Logging setup shared by the API process, the sync worker and the admin CLI."""

from __future__ import annotations

import logging
import os

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

# Per-request logs from the Jira HTTP client.
QUIET_LOGGERS = ("httpx", "httpcore", "celery.worker.strategy")


def setup_logging(level: str | None = None, *, quiet_loggers: tuple[str, ...] = QUIET_LOGGERS) -> None:
    level_name = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(level=level_name, format=LOG_FORMAT)

    # DEBUG keeps request traces.
    if level_name != "DEBUG":
        for name in quiet_loggers:
            logging.getLogger(name).setLevel(logging.WARNING)
