"""Structured logging configuration using structlog.

JSON output for production, readable console output for development.
Engine modules log through get_logger() with an event name plus key/value
context, e.g. ``log.info("fixed_class_added", city_id=..., weekday=...)``.
"""

import logging
import sys
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from src.dojo.config import DojoConfig


def _add_service(_logger, _method_name, event_dict):
    event_dict.setdefault("service", "dojo")
    return event_dict


def setup_logging(json_output: bool = False, log_level: str = "INFO") -> None:
    """Configure structlog processors and the output renderer.

    Args:
        json_output: If True, output JSON (production). If False, console format (dev).
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
    """
    numeric_level = getattr(logging, log_level.upper(), logging.INFO)

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        _add_service,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]

    if json_output:
        processors.append(structlog.processors.format_exc_info)
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        context_class=dict,
        # stderr keeps stdout clean for the CLI's JSON output
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )

    # Bridge stdlib logging (requests, urllib3) to the same stream
    root = logging.getLogger()
    root.handlers = []
    root.addHandler(logging.StreamHandler(sys.stderr))
    root.setLevel(numeric_level)
    logging.getLogger("urllib3").setLevel(max(numeric_level, logging.WARNING))


def setup_logging_from_config(config: "DojoConfig") -> None:
    """Apply the log settings held in the engine configuration."""
    setup_logging(json_output=config.log_json, log_level=config.log_level)


def get_logger(name: str) -> structlog.BoundLogger:
    """Get a logger instance bound with the module name.

    Args:
        name: Logger name (typically __name__ from calling module).
    """
    return structlog.get_logger(name)
