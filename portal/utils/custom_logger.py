### Description ###
# Alcada Portal - Multi-Country ERP Approval Portal
# - Custom Logger Setup -
# Author: Bailey Dixon
# Date: 10/19/2026
# Python: 3.11
####################

# Standard Imports
import logging
import os
from datetime import datetime
from pathlib import Path

LOG_DIR_ENV = "PORTAL_LOG_DIR"


class CustomFormatter(logging.Formatter):
    """Portal log formatter: HH:MM:SS AM/PM - name - LEVEL: message"""

    def format(self, record):
        """
        Format log record with the portal time format.

        Args:
            record: LogRecord instance

        Returns:
            Formatted log string
        """
        timestamp = datetime.fromtimestamp(record.created).strftime("%I:%M:%S %p")

        formatted_msg = f"{timestamp} - {record.name} - {record.levelname}: {record.getMessage()}"

        if record.exc_info:
            formatted_msg += "\n" + self.formatException(record.exc_info)

        return formatted_msg


def _resolve_level(level: int | str) -> int:
    """Accept either a logging constant or a level name from config.yaml"""
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(str(level).upper())
    return resolved if isinstance(resolved, int) else logging.INFO


def setup_logger(
    name: str,
    level: int | str = logging.INFO,
    log_to_file: bool = True,
    log_to_console: bool = True,
) -> logging.Logger:
    """
    Set up a portal logger

    Args:
        name: Logger name (typically __name__)
        level: Logging level or level name (default: INFO)
        log_to_file: Whether to log to the dated file under logs/
        log_to_console: Whether to log to console

    Returns:
        Configured logger instance

    Example:
        logger = setup_logger(__name__)
        logger.info("Tenant BR connected")
    """
    logger = logging.getLogger(name)
    numeric_level = _resolve_level(level)
    logger.setLevel(numeric_level)

    # Prevent duplicate handlers if logger already exists
    if logger.handlers:
        return logger

    formatter = CustomFormatter()

    if log_to_file:
        logs_dir = Path(os.environ.get(LOG_DIR_ENV, "logs"))
        logs_dir.mkdir(parents=True, exist_ok=True)

        log_filename = f"alcada_portal_{datetime.now().strftime('%Y-%m-%d')}.log"
        file_handler = logging.FileHandler(logs_dir / log_filename, encoding="utf-8")
        file_handler.setLevel(numeric_level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    if log_to_console:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(numeric_level)
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    return logger


def get_logger(name: str) -> logging.Logger:
    """
    Get an existing logger or create a new one with default settings

    Args:
        name: Logger name (typically __name__)

    Returns:
        Logger instance
    """
    return setup_logger(name)
