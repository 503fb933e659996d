"""Structured logging configuration using structlog.

Log events go to stderr (and optionally a rotating file) so that JSON
reports printed on stdout stay machine readable.
"""

import logging
import sys
from datetime import datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

import structlog
from structlog.types import Processor

from testimpact.lib.config import Settings, get_settings

LOG_FILE_MAX_BYTES = 10 * 1024 * 1024
LOG_FILE_BACKUPS = 5

_configured = False


def _build_handlers(settings: Settings, level: int) -> list[logging.Handler]:
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]

    if settings.log_dir:
        log_dir = Path(settings.log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)
        handlers.append(
            RotatingFileHandler(
                log_dir / f"testimpact_{datetime.now():%Y%m%d}.log",
                maxBytes=LOG_FILE_MAX_BYTES,
                backupCount=LOG_FILE_BACKUPS,
                encoding="utf-8",
            )
        )

    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(logging.Formatter("%(message)s"))
    return handlers


def _processors(interactive: bool) -> list[Processor]:
    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]
    if interactive:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))
    else:
        processors.extend([structlog.processors.format_exc_info, structlog.processors.JSONRenderer()])
    return processors


def configure_logging(settings: Settings | None = None) -> None:
    """
    Configure stdlib logging and structlog.

    Only the first call has an effect. Console output is colored when
    stderr is a terminal and JSON otherwise.
    """
    global _configured
    if _configured:
        return

    settings = settings or get_settings()
    level = getattr(logging, settings.log_level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    for handler in _build_handlers(settings, level):
        root_logger.addHandler(handler)

    structlog.configure(
        processors=_processors(sys.stderr.isatty()),
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    _configured = True


def get_logger(name: str | None = None, **initial_context: Any) -> structlog.stdlib.BoundLogger:
    """
    Get a structured logger, configuring logging on first use.

    Example:
        >>> logger = get_logger(__name__)
        >>> logger.info("file_analyzed", file_path="app/service.py")
    """
    configure_logging()

    logger: structlog.stdlib.BoundLogger = structlog.get_logger(name)
    if initial_context:
        logger = logger.bind(**initial_context)
    return logger


def bind_context(**context: Any) -> None:
    """Tag every following log event of this run (e.g. ``run_id``, ``project_path``)."""
    structlog.contextvars.bind_contextvars(**context)


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()


__all__ = ["get_logger", "bind_context", "clear_context", "configure_logging"]
