"""
Structured logging with structlog.

Every module logs through ``get_logger(__name__)`` with key/value fields.
Domain values (UUIDs, Decimals, dates, enums) are rendered as plain
strings so the JSON output used in production stays machine-readable.

Usage:
    setup_logging()
    logger = get_logger(__name__)
    logger.info("Rollup status updated", transaction_id=txn_id, status=TxnStatus.OPEN)

    with transaction_context(txn_id, batch="bulk_rollup"):
        ...  # every log line inside carries transaction_id and batch
"""

import logging
import sys
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any

import structlog
from structlog.typing import EventDict, WrappedLogger

from brokerage_ai.core.config import settings

SERVICE_NAME = "brokerage_ai"

NOISY_LOGGERS = {
    "sqlalchemy.engine": logging.WARNING,
    "asyncpg": logging.WARNING,
    "uvicorn.access": logging.WARNING,
    "celery": logging.INFO,
}


def _render_domain_values(_logger: WrappedLogger, _method: str, event_dict: EventDict) -> EventDict:
    for key, value in event_dict.items():
        if isinstance(value, Enum):
            event_dict[key] = value.value
        elif isinstance(value, uuid.UUID | Decimal):
            event_dict[key] = str(value)
        elif isinstance(value, date):
            event_dict[key] = value.isoformat()
    return event_dict


def _add_service(_logger: WrappedLogger, _method: str, event_dict: EventDict) -> EventDict:
    event_dict.setdefault("service", SERVICE_NAME)
    event_dict.setdefault("environment", settings.environment)
    return event_dict


def setup_logging(level: str | None = None, log_format: str | None = None) -> None:
    """
    Configure structlog and the stdlib root logger.

    ``level`` and ``log_format`` override the LOG_LEVEL / LOG_FORMAT settings,
    e.g. for a one-off script run.
    """
    log_format = log_format or settings.log_format
    if log_format == "json":
        renderer: Any = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())

    shared_processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        _render_domain_values,
    ]
    if log_format == "json":
        shared_processors.append(_add_service)
        shared_processors.append(structlog.processors.format_exc_info)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=shared_processors,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                renderer,
            ],
        )
    )

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(level or settings.log_level)

    for name, noisy_level in NOISY_LOGGERS.items():
        logging.getLogger(name).setLevel(noisy_level)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Structured logger for a module, typically ``get_logger(__name__)``."""
    return structlog.get_logger(name)


def bind_context(**kwargs: Any) -> None:
    """Bind context variables included in all subsequent log calls of this task."""
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    """Clear all bound context variables."""
    structlog.contextvars.clear_contextvars()


@contextmanager
def transaction_context(transaction_id: uuid.UUID, **extra: Any) -> Iterator[None]:
    """Bind ``transaction_id`` (and ``extra``) for the duration of the block."""
    with structlog.contextvars.bound_contextvars(transaction_id=str(transaction_id), **extra):
        yield
