"""
Logging setup for applications serving spec routers.

Library modules only create loggers under the ``spec_router`` namespace;
handlers are installed by the application through configure_app_logging.
"""

import logging
import logging.handlers
import sys
from pathlib import Path
from typing import Optional

from .settings import RouterSettings

LOGGER_NAME = "spec_router"


def configure_app_logging(
    log_level: str = "INFO",
    log_file: Optional[str] = None,
    max_bytes: int = 10485760,  # 10MB
    backup_count: int = 5,
    logger_name: Optional[str] = None,
) -> logging.Logger:
    """
    Configure logging for an application.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional file path for log output
        max_bytes: Max size of log file before rotation
        backup_count: Number of backup files to keep
        logger_name: Logger to configure; the root logger when omitted

    Returns:
        Configured logger
    """
    log_format = (
        "%(asctime)s - %(name)s - %(levelname)s - "
        "%(filename)s:%(lineno)d - %(message)s"
    )

    formatter = logging.Formatter(log_format)

    logger = logging.getLogger(logger_name)
    logger.setLevel(getattr(logging, log_level.upper()))
    logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=max_bytes,
            backupCount=backup_count,
        )
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger


def configure_from_settings(settings: RouterSettings) -> logging.Logger:
    """Configure the ``spec_router`` logger from router settings."""
    return configure_app_logging(
        log_level="DEBUG" if settings.debug else settings.log_level,
        log_file=settings.log_file,
        logger_name=LOGGER_NAME,
    )
