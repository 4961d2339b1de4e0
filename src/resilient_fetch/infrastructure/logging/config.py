"""
Structured logging configuration.

Sets up structlog on top of the standard library logging module so that
library log records and structlog events share one handler, one level and
one renderer, with request secrets redacted before rendering.
"""

import logging
import sys
from typing import Optional, Union

import structlog

from resilient_fetch.config import FetchSettings
from resilient_fetch.infrastructure.logging.sanitization import StructlogSanitizer


def configure_logging(
    level: Union[int, str] = logging.INFO,
    json_logs: bool = True,
    settings: Optional[FetchSettings] = None,
) -> None:
    """
    Configure structlog and stdlib logging for the process.

    Args:
        level: Logging level name or number
        json_logs: Render JSON lines when True, a console format otherwise
        settings: When given, its ``log_level`` and ``log_json`` replace the
            two arguments above
    """
    if settings is not None:
        level, json_logs = settings.log_level, settings.log_json

    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        StructlogSanitizer(),
    ]

    renderer = (
        structlog.processors.JSONRenderer()
        if json_logs
        else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=shared_processors + [
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.format_exc_info,
            renderer,
        ],
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers = [handler]
    root_logger.setLevel(level)

    # httpx logs every request at INFO, including the raw URL
    logging.getLogger("httpx").setLevel(max(level, logging.WARNING))
