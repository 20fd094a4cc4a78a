"""Logging configuration for the application."""
import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from .config import settings

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def setup_logging(name: Optional[str] = None) -> logging.Logger:
    """Set up logging configuration.

    Args:
        name: Name of the logger. If None, configures the root logger.

    Returns:
        Configured logger instance.
    """
    formatter = logging.Formatter(LOG_FORMAT)

    logger = logging.getLogger(name)
    logger.setLevel(settings.LOG_LEVEL)

    # Add handlers if they haven't been added before
    if not logger.handlers:
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

        if settings.LOG_TO_FILE:
            log_dir = Path(settings.LOG_DIR)
            log_dir.mkdir(parents=True, exist_ok=True)
            file_handler = RotatingFileHandler(
                log_dir / "app.log", maxBytes=5*1024*1024, backupCount=5, encoding='utf-8'
            )
            file_handler.setFormatter(formatter)
            logger.addHandler(file_handler)

    # Named loggers keep their output to themselves
    if name is not None:
        logger.propagate = False

    return logger
