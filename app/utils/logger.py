"""Logging configuration for the application.

Services and routers log through ``logging.getLogger(__name__)``; everything
under the ``app`` package inherits the handlers configured here.
"""

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

from app.utils.environment import is_debug

ROOT_LOGGER_NAME = "app"

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Third-party loggers that drown out onboarding events at DEBUG
QUIET_LOGGERS = ("uvicorn.access", "stripe", "sqlalchemy.engine", "urllib3", "sse_starlette")

MAX_LOG_BYTES = 10 * 1024 * 1024
LOG_BACKUPS = 5


def _file_handler(log_file: str, formatter: logging.Formatter) -> logging.Handler | None:
    try:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handler = RotatingFileHandler(
            log_file,
            maxBytes=MAX_LOG_BYTES,
            backupCount=LOG_BACKUPS,
            encoding="utf-8",
        )
    except OSError as e:
        sys.stderr.write(f"Logging to {log_file} disabled: {e}\n")
        return None
    handler.setFormatter(formatter)
    return handler


def setup_logger(
    log_file: str | None = None,
    log_level: str | None = None,
) -> logging.Logger:
    """Configure the ``app`` package logger once and return it.

    Args:
        log_file: Rotating log file path (default: LOG_FILE env or logs/app.log,
            empty string disables file logging)
        log_level: Level name (default: LOG_LEVEL env, DEBUG locally, INFO when deployed)
    """
    log = logging.getLogger(ROOT_LOGGER_NAME)
    if log.handlers:
        return log

    level_name = log_level or os.getenv("LOG_LEVEL", "DEBUG" if is_debug() else "INFO")
    log.setLevel(getattr(logging, level_name.upper(), logging.INFO))
    log.propagate = False

    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(formatter)
    log.addHandler(console)

    if log_file is None:
        log_file = os.getenv("LOG_FILE", "logs/app.log")
    if log_file:
        handler = _file_handler(log_file, formatter)
        if handler is not None:
            log.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return log


# Global logger instance
logger = setup_logger()
