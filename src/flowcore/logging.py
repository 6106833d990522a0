"""structlog configuration helpers."""

from __future__ import annotations

import logging

import structlog

from flowcore.config import get_settings


def configure_logging(level: str | None = None, *, json: bool = False) -> None:
    """Configure structlog for flowcore.

    Args:
        level: Minimum log level name, defaults to ``WorkflowSettings.log_level``
        json: Render log lines as JSON instead of the console format
    """
    level_name = (level or get_settings().log_level).upper()
    renderer: structlog.typing.Processor = (
        structlog.processors.JSONRenderer()
        if json
        else structlog.dev.ConsoleRenderer()
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelName(level_name)
        ),
        cache_logger_on_first_use=False,
    )
