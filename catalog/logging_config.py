"""Logging setup driven by ``LOG_*`` settings.

Modules keep logging through ``logging.getLogger(__name__)``; structlog's
``ProcessorFormatter`` renders those records as JSON lines (default) or, with
``LOG_FORMAT=text``, as a readable console format for local work.
"""
from __future__ import annotations

import logging
import sys

import structlog

from .config import settings

# Run on every stdlib record before the renderer
SHARED_PROCESSORS = [
    structlog.contextvars.merge_contextvars,
    structlog.processors.TimeStamper(fmt="iso", utc=True),
    structlog.stdlib.add_log_level,
    structlog.stdlib.add_logger_name,
    structlog.stdlib.ExtraAdder(),
    structlog.processors.StackInfoRenderer(),
    structlog.processors.format_exc_info,
]


def build_formatter(fmt: str) -> structlog.stdlib.ProcessorFormatter:
    """Formatter for ``json`` or ``text`` output."""
    if fmt == "json":
        renderer = structlog.processors.JSONRenderer(ensure_ascii=False)
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=False)

    return structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=SHARED_PROCESSORS,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )


def setup_logging(level: str | None = None) -> None:
    """Configure the root logger once per process."""
    log_level = getattr(logging, (level or settings.logging.level).upper(), logging.INFO)
    formatter = build_formatter(settings.logging.format)

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if settings.logging.file:
        handlers.append(logging.FileHandler(settings.logging.file, encoding="utf-8"))

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(log_level)
    for handler in handlers:
        handler.setFormatter(formatter)
        root.addHandler(handler)

    # SQL echo is controlled by DB_ECHO, keep the engine logger quiet otherwise
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
