"""
Centralized logging configuration for the terraform mirror.

Configures structlog for JSON output in production and console in
development. Uvicorn's own loggers are routed through the same handler so
server and application events share one format.
"""

import logging
import sys
from datetime import UTC, datetime
from typing import Any

import structlog
from structlog.types import EventDict, Processor

from tfmirror.version import __version__

APP_NAME = "terraform-mirror"

# Third-party loggers that only log at WARNING and above
QUIET_LOGGERS = ("httpx", "httpcore", "asyncio", "uvicorn.access")

# Uvicorn installs its own handlers unless told otherwise; ours replace them
UVICORN_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access")


def add_app_context(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Add application name and version to log events."""
    event_dict["app"] = APP_NAME
    event_dict["version"] = __version__
    return event_dict


def drop_color_message(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Uvicorn duplicates each message as ``color_message``; keep one."""
    event_dict.pop("color_message", None)
    return event_dict


def reorder_keys(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Reorder keys so level and timestamp come first."""
    level = event_dict.pop("level", None)
    timestamp = event_dict.pop("timestamp", None)

    new_dict: EventDict = {}
    if level is not None:
        new_dict["level"] = level
    if timestamp is not None:
        new_dict["timestamp"] = timestamp

    new_dict.update(event_dict)
    return new_dict


def utc_timestamper(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Add ISO8601 UTC timestamp to log events."""
    now = datetime.now(UTC)
    event_dict["timestamp"] = now.strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z"
    return event_dict


def _renderer_chain(json_logs: bool) -> list[Processor]:
    if json_logs:
        return [
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            reorder_keys,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    return [
        structlog.stdlib.ProcessorFormatter.remove_processors_meta,
        structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty()),
    ]


def configure_logging(json_logs: bool = True, log_level: str = "INFO") -> None:
    """Configure structlog and stdlib logging for the whole process.

    Safe to call more than once; the entrypoint and the app lifespan both do.
    """
    level = getattr(logging, log_level.upper(), logging.INFO)

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        utc_timestamper,
        structlog.processors.StackInfoRenderer(),
        drop_color_message,
        add_app_context,
    ]

    structlog.configure(
        processors=shared_processors + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=_renderer_chain(json_logs),
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)
    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(level)

    for name in UVICORN_LOGGERS:
        uvicorn_logger = logging.getLogger(name)
        uvicorn_logger.handlers.clear()
        uvicorn_logger.propagate = True

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)
