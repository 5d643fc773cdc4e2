"""structlog setup: console output in dev, JSON lines in prod."""

from __future__ import annotations

import logging
import sys
from collections.abc import Iterator, MutableMapping
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

import structlog

if TYPE_CHECKING:
    from chatloop.config import Settings

_SECRET_FIELDS = frozenset({"authorization", "api_key", "chat_api_key", "key"})
_QUIET_LOGGERS = ("httpx", "httpcore")


def redact_secrets(
    _logger: Any, _method: str, event_dict: MutableMapping[str, Any]
) -> MutableMapping[str, Any]:
    """Mask credential-looking fields before rendering."""
    for field in list(event_dict):
        if field.lower() in _SECRET_FIELDS and event_dict[field]:
            event_dict[field] = "***"
    return event_dict


def configure_logging(
    level: str | None = None,
    json_output: bool | None = None,
    *,
    settings: Settings | None = None,
) -> None:
    """Route stdlib and structlog loggers through one renderer.

    ``level`` and ``json_output`` default to ``LOG_LEVEL`` and
    ``APP_ENV == "prod"`` from settings.
    """
    if settings is None and (level is None or json_output is None):
        from chatloop.config import get_settings

        settings = get_settings()
    if level is None:
        level = settings.log_level if settings is not None else "INFO"
    if json_output is None:
        json_output = settings is not None and settings.app_env == "prod"
    log_level = getattr(logging, level.upper(), logging.INFO)

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        redact_secrets,
    ]

    renderer: structlog.types.Processor
    if json_output:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.processors.StackInfoRenderer(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=[*shared_processors, structlog.stdlib.ExtraAdder()],
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                renderer,
            ],
        )
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(log_level)
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(log_level, logging.WARNING))


@contextmanager
def bound_context(**values: object) -> Iterator[None]:
    """Attach ``values`` to every log line emitted inside the block."""
    tokens = structlog.contextvars.bind_contextvars(**values)
    try:
        yield
    finally:
        structlog.contextvars.reset_contextvars(**tokens)


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()
