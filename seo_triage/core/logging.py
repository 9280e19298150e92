"""
Structured logging for the triage engines.

The library never configures logging on import. The host application (audit
worker, report builder, CLI) calls configure_logging() once at startup,
the same way the audit platform does in its app lifespan hook. Engines only
ever call structlog.get_logger().

JSON lines in production, colored console output in development.
"""

import logging
import sys
from typing import Any, TextIO

import structlog
from structlog.types import EventDict, Processor

from seo_triage.core.config import Settings, get_settings

SEVERITY_BY_METHOD = {
    "debug": "DEBUG",
    "info": "INFO",
    "warning": "WARNING",
    "error": "ERROR",
    "critical": "CRITICAL",
}


def add_severity(logger: Any, method: str, event_dict: EventDict) -> EventDict:
    """Add a GCP/Datadog style severity field."""
    event_dict["severity"] = SEVERITY_BY_METHOD.get(method, "INFO")
    return event_dict


def build_processors(log_format: str) -> list[Processor]:
    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        add_severity,
    ]
    if log_format == "json":
        processors += [
            structlog.processors.dict_tracebacks,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors += [
            structlog.processors.StackInfoRenderer(),
            structlog.dev.ConsoleRenderer(colors=True),
        ]
    return processors


def configure_logging(settings: Settings | None = None, stream: TextIO | None = None) -> None:
    """Route engine logs to `stream` (stdout by default) at settings.LOG_LEVEL."""
    settings = settings or get_settings()
    stream = stream or sys.stdout
    log_level = logging.getLevelName(settings.LOG_LEVEL.upper())
    if not isinstance(log_level, int):
        log_level = logging.INFO

    structlog.configure(
        processors=build_processors(settings.LOG_FORMAT),
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=stream),
        cache_logger_on_first_use=False,
    )
