"""Logging setup for the trivia question service."""

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from .config import settings

LOG_FORMAT = (
    "%(asctime)s - %(name)s - %(levelname)s - "
    "%(module)s:%(funcName)s:%(lineno)d - %(message)s"
)

# Rotate log files at 10 MB, keep 5 backups
MAX_LOG_BYTES = 10 * 1024 * 1024
LOG_BACKUP_COUNT = 5


def setup_logging(
    level: Optional[str] = None,
    log_file: Optional[str] = None,
) -> logging.Logger:
    """Configure root logging for the service.

    Args:
        level: Log level name (defaults to settings.log_level)
        log_file: Optional path for a rotating file handler
            (defaults to settings.log_file)

    Returns:
        The configured package logger
    """
    level_name = (level or settings.log_level).upper()
    log_level = getattr(logging, level_name, logging.INFO)
    log_file = log_file if log_file is not None else settings.log_file

    formatter = logging.Formatter(LOG_FORMAT)
    handlers: list[logging.Handler] = []

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    handlers.append(console_handler)

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_file, maxBytes=MAX_LOG_BYTES, backupCount=LOG_BACKUP_COUNT
        )
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    logging.basicConfig(level=log_level, handlers=handlers, force=True)

    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)

    package_logger = logging.getLogger("trivia_service")
    package_logger.setLevel(log_level)
    return package_logger
