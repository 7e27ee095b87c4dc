"""
Structured logging for PayLedger.

All modules log through structlog with snake_case event names and keyword
fields, e.g. ``logger.info("payment_applied", event_id=..., status=...)``.

A correlation id is carried in structlog's context variables. The webhook
endpoint binds a fresh one per request; the queue handler binds the event id
so every line written while applying a payment can be traced back to it.
Context variables are copied into ``asyncio`` tasks and ``to_thread`` workers,
so the id follows the event across the queue and the thread pool.
"""

import logging
import sys
import time
import uuid
from collections.abc import Generator
from contextlib import contextmanager
from typing import Any, cast

import structlog
from sqlalchemy.engine import make_url
from sqlalchemy.exc import ArgumentError
from structlog.types import EventDict, Processor

CORRELATION_ID_KEY = "correlation_id"

REDACTED = "***REDACTED***"

# Values dropped entirely
SECRET_KEYS = frozenset({"password", "secret", "token", "api_key", "authorization"})

# Database URLs keep host and database name, lose the password
URL_KEYS = frozenset({"database_url", "url"})


def set_correlation_id(correlation_id: str | None = None) -> str:
    """Bind a correlation id for the current context, generating one if needed."""
    correlation_id = correlation_id or str(uuid.uuid4())
    structlog.contextvars.bind_contextvars(**{CORRELATION_ID_KEY: correlation_id})
    return correlation_id


def get_correlation_id() -> str | None:
    return structlog.contextvars.get_contextvars().get(CORRELATION_ID_KEY)


def clear_correlation_id() -> None:
    structlog.contextvars.unbind_contextvars(CORRELATION_ID_KEY)


def _mask_url(value: Any) -> str:
    try:
        return make_url(str(value)).render_as_string(hide_password=True)
    except ArgumentError:
        return REDACTED


def redact_secrets(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Drop secret values and hide passwords embedded in database URLs."""
    for key in SECRET_KEYS & event_dict.keys():
        event_dict[key] = REDACTED
    for key in URL_KEYS & event_dict.keys():
        event_dict[key] = _mask_url(event_dict[key])
    return event_dict


def add_app_context(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    from payledger import __version__

    event_dict.setdefault("app", "payledger")
    event_dict.setdefault("version", __version__)
    return event_dict


def _renderer(json_logs: bool, dev_mode: bool) -> list[Processor]:
    if dev_mode:
        return [structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())]
    if json_logs:
        return [structlog.processors.dict_tracebacks, structlog.processors.JSONRenderer()]
    return [
        structlog.processors.format_exc_info,
        structlog.processors.KeyValueRenderer(
            key_order=["timestamp", "level", "event", CORRELATION_ID_KEY]
        ),
    ]


def configure_logging(
    log_level: str = "INFO",
    json_logs: bool = False,
    dev_mode: bool = True,
) -> None:
    """
    Configure structlog and the stdlib root logger.

    Safe to call more than once; the CLI calls it again once settings are
    loaded.

    Args:
        log_level: DEBUG, INFO, WARNING, ERROR or CRITICAL
        json_logs: Render one JSON object per line (production)
        dev_mode: Render colored, human-readable lines; wins over json_logs
    """
    level = logging.getLevelName(log_level.upper())

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        add_app_context,
        redact_secrets,
        *_renderer(json_logs, dev_mode),
    ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level, force=True)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return cast(structlog.stdlib.BoundLogger, structlog.get_logger(name))


@contextmanager
def log_duration(
    operation: str, logger: structlog.stdlib.BoundLogger, **fields: Any
) -> Generator[None, None, None]:
    """Log ``<operation>_completed`` or ``<operation>_failed`` with its duration.

    Exceptions are logged and re-raised.

    Usage:
        with log_duration("db_schema_init", logger, backend="sqlite"):
            Base.metadata.create_all(bind=engine)
    """
    start = time.perf_counter()
    try:
        yield
    except Exception as e:
        logger.error(
            f"{operation}_failed",
            duration_ms=round((time.perf_counter() - start) * 1000, 2),
            error=str(e),
            error_type=type(e).__name__,
            **fields,
        )
        raise
    logger.info(
        f"{operation}_completed",
        duration_ms=round((time.perf_counter() - start) * 1000, 2),
        **fields,
    )


configure_logging()
