"""
Structured logging configuration.

All modules log through structlog: ISO timestamps, log level, JSON lines on stderr.
"""

from __future__ import annotations

import logging
import sys
from typing import Any

import structlog

_configured = False


def _stderr_logger(*args: Any) -> structlog.PrintLogger:
    # Resolved per call so redirected stderr is honoured
    return structlog.PrintLogger(sys.stderr)


def configure_logging(level: str = 'INFO') -> None:
    """Set up structlog, dropping events below level"""
    global _configured
    structlog.configure(
        processors=[
            structlog.processors.TimeStamper(fmt='iso'),
            structlog.processors.add_log_level,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(logging.getLevelName(level.upper())),
        logger_factory=_stderr_logger,
        cache_logger_on_first_use=False,
    )
    _configured = True


def get_logger(name: str) -> Any:
    """Return a module logger instance.

    Args:
        name: Logger name, usually __name__.
    """
    if not _configured:
        configure_logging()
    return structlog.get_logger(name)
