"""Pipeline tracker logging configuration.

Logs are structured events rendered by `structlog` and written to stderr, so
stdout stays available for host output (`key=value` lines on local runs).
Set `PIPELINE_TRACKER_LOG_FORMAT=json` for machine-readable output.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import Optional

import structlog

from pipeline_tracker.constants import LOG_FORMAT_ENV, LOG_LEVEL_ENV


def setup_logging(level: Optional[str] = None) -> None:
    """Configure pipeline tracker logging.

    Args:
        level: Optional override for `PIPELINE_TRACKER_LOG_LEVEL`.
    """
    level_name = (level or os.getenv(LOG_LEVEL_ENV) or "INFO").upper()
    numeric_level = logging.getLevelName(level_name)
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO

    renderer: structlog.typing.Processor
    if os.getenv(LOG_FORMAT_ENV, "").lower() == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=False)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )


def get_logger(name: str) -> structlog.typing.FilteringBoundLogger:
    """Return a structured logger bound to the module name.

    The proxy resolves lazily, so modules can call this at import time before
    `setup_logging()` runs.
    """
    return structlog.get_logger(name)
