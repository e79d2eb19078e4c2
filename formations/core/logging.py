"""
Structured logging for the formations CLI.

Log lines go to stderr, rendered by rich for a terminal or as JSON lines
for collectors. A correlation id bound here is merged into every event.
"""

import logging
import sys
import uuid
from typing import Optional

import structlog


def set_correlation_id(correlation_id: Optional[str] = None) -> str:
    """Bind a correlation id to the current context and return it."""
    correlation_id = correlation_id or uuid.uuid4().hex[:8]
    structlog.contextvars.bind_contextvars(correlation_id=correlation_id)
    return correlation_id


def setup_logging(debug: bool = False, rich_output: bool = True) -> None:
    """
    Configure structlog for the process.

    Args:
        debug: Emit debug events too
        rich_output: Rich console rendering; JSON lines otherwise
    """
    level = logging.DEBUG if debug else logging.INFO

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="ISO"),
        structlog.dev.set_exc_info,
    ]

    if rich_output:
        processors.append(
            structlog.dev.ConsoleRenderer(
                colors=True, exception_formatter=structlog.dev.rich_traceback
            )
        )
    else:
        processors.append(structlog.processors.format_exc_info)
        processors.append(structlog.processors.JSONRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.WriteLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )
