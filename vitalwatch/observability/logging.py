"""
Structured logging configuration using structlog.

JSON lines in production, colored console output in development.
Request handlers bind ``request_id`` and the caller's ``user_id`` so that
every log line emitted while serving a reading carries them, including
lines from library modules that use plain ``logging.getLogger``.
"""

import logging
import sys

import structlog
from structlog.types import Processor

from vitalwatch.config.settings import get_settings

# Libraries whose INFO chatter drowns out pipeline logs
_QUIET_LOGGERS = ("httpx", "httpcore", "asyncio", "asyncpg", "websockets", "uvicorn.access")


def setup_logging(level: str | None = None, json_logs: bool | None = None) -> None:
    """
    Configure structlog and the stdlib root logger.

    Args:
        level: Log level name; defaults to ``LOG_LEVEL`` from settings.
        json_logs: Force JSON rendering; defaults to ``is_production``.

    Usage:
        setup_logging()
        logger = structlog.get_logger()
        logger.info("Reading ingested", reading_id="123", metric_type="heartRate")
    """
    settings = get_settings()
    level = level or settings.log_level
    if json_logs is None:
        json_logs = settings.is_production

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if json_logs:
        processors = shared_processors + [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = shared_processors + [
            structlog.dev.ConsoleRenderer(colors=True),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level),
        force=True,
    )

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def bind_request(request_id: str, user_id: str | None = None) -> None:
    """
    Bind per-request identifiers to all subsequent log lines.

    Args:
        request_id: Correlation id from ``X-Request-ID`` or generated.
        user_id: Authenticated caller, when known.
    """
    context = {"request_id": request_id}
    if user_id is not None:
        context["user_id"] = user_id
    structlog.contextvars.bind_contextvars(**context)


def clear_context() -> None:
    """Clear all bound context variables."""
    structlog.contextvars.clear_contextvars()
