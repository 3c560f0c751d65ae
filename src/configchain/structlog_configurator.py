"""Structlog-based logging configuration for the configchain command line.

Migrated documents are written to stdout, so every log line goes to stderr.
Output is human-readable on a terminal and JSON otherwise, unless the
configuration or the environment says differently.
"""

import logging
import os
import sys
from collections.abc import Callable
from typing import Any

import structlog

from configchain.settings import LoggingConfig


def is_development_environment() -> bool:
    """Check if CONFIGCHAIN_ENV marks a development setup."""
    return os.environ.get("CONFIGCHAIN_ENV", "production") == "development"


def _add_static_context(extra_fields: dict[str, str]) -> Callable:
    """Processor to add static context fields to all log entries."""

    def processor(
        logger: structlog.BoundLogger, method_name: str, event_dict: dict[str, Any]
    ) -> dict[str, Any]:
        event_dict.update(extra_fields)
        return event_dict

    return processor


def _use_json_output(config: LoggingConfig) -> bool:
    """Decide between JSON and console rendering."""
    if os.environ.get("CONFIGCHAIN_JSON_LOGS", "false").lower() == "true":
        return True

    if config.json_logs is not None:
        return config.json_logs

    # Auto-detect: console for development and interactive use, JSON otherwise
    return not (is_development_environment() or sys.stderr.isatty())


def _configure_processors(config: LoggingConfig) -> list:
    """Configure structlog processors."""
    extra_fields = {
        "service": "configchain",
        **config.extra_fields,  # Allow config to override/add fields
    }

    processors = [
        structlog.contextvars.merge_contextvars,
        _add_static_context(extra_fields),
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="ISO"),
    ]

    if config.include_caller:
        processors.append(structlog.processors.CallsiteParameterAdder())

    if _use_json_output(config):
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()))

    return processors


def _configure_handlers(config: LoggingConfig) -> None:
    """Route the standard library loggers to stderr at the configured level."""
    root_logger = logging.getLogger()
    log_level = getattr(logging, config.level.upper(), logging.WARNING)

    # Clear existing handlers
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    root_logger.setLevel(log_level)

    stderr_handler = logging.StreamHandler(sys.stderr)
    stderr_handler.setLevel(log_level)
    stderr_handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))
    root_logger.addHandler(stderr_handler)


def configure_structlog(config: LoggingConfig) -> None:
    """Configure structlog-based logging.

    Args:
        config: The LoggingConfig instance containing logging settings.
    """
    processors = _configure_processors(config)

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, config.level.upper(), logging.WARNING)
        ),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )

    _configure_handlers(config)

    logger = structlog.get_logger(__name__)
    logger.debug(
        "Structured logging configured",
        log_level=config.level,
        json_output=_use_json_output(config),
    )


def get_logger(name: str) -> structlog.BoundLogger:
    """Get a structlog logger instance.

    Args:
        name: Logger name (usually __name__)

    Returns:
        Configured structlog BoundLogger instance
    """
    return structlog.get_logger(name)
