"""structlog setup for the accounting core.

Console rendering is used in development and JSON lines in production. Both
pipelines share the same processors, so an event such as
``advance_allocated`` carries identical keys in either format; amounts, ids
and enum members are rendered as plain strings before output.
"""

import logging
import sys
from datetime import date
from decimal import Decimal
from enum import Enum
from pathlib import Path
from typing import Any
from uuid import UUID

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

from sef_accounting.config import Settings, get_settings

QUIET_LOGGERS = ("httpcore", "httpx", "uvicorn.access", "asyncio")


def _stringify_domain_values(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Render Decimal, UUID, date and enum values the way the API does."""
    for key, value in event_dict.items():
        if isinstance(value, Enum):
            event_dict[key] = value.value
        elif isinstance(value, Decimal | UUID | date):
            event_dict[key] = str(value)
    return event_dict


def _add_service_metadata(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    settings = get_settings()
    event_dict.setdefault("app", settings.app_name)
    event_dict.setdefault("environment", settings.environment.value)
    return event_dict


def _shared_processors() -> list[Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        _stringify_domain_values,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]


def build_processors(log_format: str) -> list[Processor]:
    """Processor chain for ``"console"`` or ``"json"`` output."""
    processors = _shared_processors()
    if log_format == "json":
        processors += [
            _add_service_metadata,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(sort_keys=True),
        ]
    else:
        processors.append(
            structlog.dev.ConsoleRenderer(
                colors=sys.stdout.isatty(),
                exception_formatter=structlog.dev.plain_traceback,
            )
        )
    return processors


def configure_logging(settings: Settings | None = None) -> None:
    """Configure structlog and the stdlib root logger once at startup."""
    settings = settings or get_settings()
    level = logging.getLevelName(settings.log_level.value)

    structlog.configure(
        processors=build_processors(settings.log_format or "console"),
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)

    if settings.log_file:
        _attach_file_handler(settings.log_file, level)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.INFO))


def _attach_file_handler(log_file: Path, level: int) -> None:
    log_file.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(log_file, encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(
        logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s")
    )
    logging.getLogger().addHandler(handler)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Module logger; call as ``get_logger(__name__)``.

    Example:
        logger = get_logger(__name__)
        logger.info("journal_entry_posted", entry_id=entry.id)
    """
    return structlog.stdlib.get_logger(name)


def bind_context(**kwargs: Any) -> None:
    """Attach keys (request_id, company_id, ...) to every later event."""
    structlog.contextvars.bind_contextvars(**kwargs)


def unbind_context(*keys: str) -> None:
    structlog.contextvars.unbind_contextvars(*keys)


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()


class LogContext:
    """Bind keys for the duration of a ``with`` block.

    Keys that were already bound get their previous values back on exit.

    Example:
        with LogContext(advance_id=str(advance.id)):
            logger.info("allocation_started")
    """

    def __init__(self, **kwargs: Any) -> None:
        self.kwargs = kwargs
        self._previous: dict[str, Any] = {}

    def __enter__(self) -> "LogContext":
        current = structlog.contextvars.get_contextvars()
        self._previous = {k: current[k] for k in self.kwargs if k in current}
        bind_context(**self.kwargs)
        return self

    def __exit__(self, *args: Any) -> None:
        unbind_context(*self.kwargs.keys())
        if self._previous:
            bind_context(**self._previous)
