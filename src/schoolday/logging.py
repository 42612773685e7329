"""Structured logging for the engine, built on structlog.

Events are snake_case names with keyword context, e.g.
``log.info("live_status_started", block="Ax", class_name="Geometry")``.
JSON output is for deployed services; the console renderer is for development
and the CLI scripts.

Per-student context (the user id) is bound once with bind_student() and then
appears on every event logged from that task, including timer callbacks it spawns.
"""

import logging
import sys
from enum import Enum
from typing import TextIO

import structlog

from schoolday.config import SchooldayConfig


def _enum_values(_logger, _method, event_dict: dict) -> dict:
    """Log enum members (Parity.A, GameStatus.LIVE) by their plain value."""
    for key, value in event_dict.items():
        if isinstance(value, Enum):
            event_dict[key] = value.value
    return event_dict


def setup_logging(
    json_output: bool = False,
    log_level: str = "INFO",
    *,
    stream: TextIO | None = None,
) -> None:
    """Configure structlog processors and the output format.

    Args:
        json_output: If True, output JSON (production). If False, console format (dev).
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        stream: Where events are written; stdout by default. The CLI scripts
            keep stdout for their own output and pass stderr.
    """
    numeric_level = getattr(logging, log_level.upper(), logging.INFO)
    out = stream or sys.stdout

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        _enum_values,
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
        logger_factory=structlog.PrintLoggerFactory(file=out),
        cache_logger_on_first_use=True,
    )

    # Route third-party stdlib logging to the same stream.
    root = logging.getLogger()
    root.handlers = [logging.StreamHandler(out)]
    root.setLevel(numeric_level)


def configure_from(config: SchooldayConfig, *, stream: TextIO | None = None) -> None:
    setup_logging(json_output=config.log_json, log_level=config.log_level, stream=stream)


def bind_student(user_id: str) -> None:
    structlog.contextvars.bind_contextvars(user_id=user_id)


def get_logger(name: str) -> structlog.BoundLogger:
    """Get a logger that tags every event with the calling module.

    Args:
        name: Logger name (typically __name__ from calling module).
    """
    return structlog.get_logger(name, module=name)
