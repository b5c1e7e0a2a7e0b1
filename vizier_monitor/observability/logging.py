"""Structured logging configuration using structlog."""

from __future__ import annotations

import logging
import sys
from typing import cast

import structlog
from structlog.typing import FilteringBoundLogger, Processor

_FORMATS: frozenset[str] = frozenset({"json", "console"})


def setup_logging(level: str = "info", fmt: str = "json") -> None:
    """Configure structlog for stderr output.

    ``fmt="json"`` emits one JSON object per line for log shippers;
    ``fmt="console"`` renders human-readable, colourised lines.
    """
    log_level = getattr(logging, level.upper(), logging.INFO)
    if fmt not in _FORMATS:
        raise ValueError(f"Invalid log format: {fmt!r}")

    renderer: Processor
    if fmt == "console":
        renderer = structlog.dev.ConsoleRenderer()
    else:
        renderer = structlog.processors.JSONRenderer()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso", utc=True, key="ts"),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


def get_logger(component: str) -> FilteringBoundLogger:
    """Get a logger bound with a component name."""
    return cast(FilteringBoundLogger, structlog.get_logger(component=component))
