"""Structured logging for tomcat-pilot.

Internal diagnostics go through structlog. The Tomcat output shown to users
travels separately as LogEvents on the event bus.
"""

import logging
import sys
from pathlib import Path
from typing import Any

import structlog

from tomcat_pilot.config import Settings, get_settings

# Libraries that log every manager request or access-log poll at INFO
NOISY_LOGGERS = ("httpx", "httpcore", "uvicorn.access", "sse_starlette")


def log_file_path(settings: Settings) -> Path:
    """Resolve the diagnostics log file, relative paths under the project."""
    log_dir = Path(settings.log_directory).expanduser()
    if not log_dir.is_absolute():
        log_dir = settings.project_path / log_dir
    return log_dir / settings.log_file_name


def _handlers(settings: Settings) -> list[logging.Handler]:
    log_file = log_file_path(settings)
    log_file.parent.mkdir(parents=True, exist_ok=True)
    return [
        logging.StreamHandler(sys.stdout),
        logging.FileHandler(log_file, encoding="utf-8"),
    ]


def configure_logging(settings: Settings | None = None) -> None:
    """Configure stdlib logging and structlog from ``settings``."""
    settings = settings or get_settings()
    level = getattr(logging, settings.log_level)

    logging.basicConfig(
        format="%(message)s",
        level=level,
        handlers=_handlers(settings),
        force=True,
    )
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if settings.log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty()))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)
