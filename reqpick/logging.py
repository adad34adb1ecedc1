"""Structured logging for reqpick.

The terminal UI owns the screen, so log events only go to a file, and
only when one is configured.
"""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

import structlog

MAX_LOG_BYTES = 5 * 1024 * 1024
BACKUP_LOG_FILES = 3
_LOGGER_NAME = "reqpick"


def configure_logging(log_file: str | Path | None = None, level: str = "INFO", verbose: bool = False) -> None:
    """Route reqpick's structlog events to log_file as JSON lines.

    Without a log file events are dropped. Safe to call more than once;
    previous handlers are replaced.
    """
    logger = logging.getLogger(_LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    if log_file:
        log_path = Path(log_file).expanduser()
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handler: logging.Handler = RotatingFileHandler(
            log_path,
            maxBytes=MAX_LOG_BYTES,
            backupCount=BACKUP_LOG_FILES,
            encoding="utf-8",
        )
        handler.setFormatter(logging.Formatter("%(message)s"))
    else:
        handler = logging.NullHandler()
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG if verbose else getattr(logging, level.upper(), logging.INFO))
    logger.propagate = False

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.add_log_level,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
