"""structlog setup shared by the API process and the CLI."""

from __future__ import annotations

import logging
import sys
from typing import Any, TextIO

import structlog
from structlog.types import EventDict, Processor

from .settings import settings
from .utils import request_id_ctx

SERVICE_NAME = "yaka-concierge"
SERVICE_VERSION = "0.2.0"


def add_request_id(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Attach the X-Request-ID of the request being served, if any."""
    request_id = request_id_ctx.get("")
    if request_id:
        event_dict["request_id"] = request_id
    return event_dict


def add_app_context(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    event_dict["service"] = SERVICE_NAME
    event_dict["environment"] = settings.SENTRY_ENVIRONMENT
    event_dict["version"] = SERVICE_VERSION
    return event_dict


def drop_color_message_key(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    # uvicorn adds a colourised duplicate of the message
    event_dict.pop("color_message", None)
    return event_dict


def configure_structlog(
    json_logs: bool = False, level: int = logging.INFO, stream: TextIO | None = None
) -> None:
    """
    Configure structlog and route stdlib logging to a stream.

    Args:
        json_logs: Emit one JSON object per line. The console renderer is only
                   used when this is False and DEBUG is on.
        level: Root log level.
        stream: Handler stream, stdout by default.
    """
    shared: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        add_request_id,
        add_app_context,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
    ]
    if json_logs or not settings.DEBUG:
        processors = shared + [
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            drop_color_message_key,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = shared + [
            structlog.processors.TimeStamper(fmt="%Y-%m-%d %H:%M:%S"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer(),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(format="%(message)s", stream=stream or sys.stdout, level=level)

    # provider clients log every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """
    Usage:
        logger = get_logger(__name__)
        logger.info("sheets_reloaded", apartments=12)
    """
    return structlog.get_logger(name)


__all__ = ["SERVICE_NAME", "SERVICE_VERSION", "configure_structlog", "get_logger"]
