"""Centralized logging configuration for the translation service."""

import logging
import sys
from pathlib import Path
from typing import Optional, Tuple

from common.config import settings
from common.utils import DateTimeUtils


def setup_logging(
    service_name: str, log_file: Optional[str] = None, log_level: Optional[str] = None
) -> logging.Logger:
    """
    Configure logging for a service with consistent formatting.

    Args:
        service_name: Name of the service (e.g., 'addon', 'translator')
        log_file: Optional log file path. If None, logs only to console
        log_level: Optional log level override. If None, uses settings.log_level

    Returns:
        Configured logger instance
    """
    level = log_level or settings.log_level
    log_level_value = getattr(logging, level.upper(), logging.INFO)

    logger = logging.getLogger(service_name)
    logger.setLevel(log_level_value)

    # Remove existing handlers to avoid duplicates
    logger.handlers.clear()

    detailed_formatter = logging.Formatter(
        fmt="%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    simple_formatter = logging.Formatter(
        fmt="%(asctime)s - %(levelname)s - %(message)s", datefmt="%Y-%m-%d %H:%M:%S"
    )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level_value)
    console_handler.setFormatter(simple_formatter)
    logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_file, mode="a")
        file_handler.setLevel(log_level_value)
        file_handler.setFormatter(detailed_formatter)
        logger.addHandler(file_handler)

    logger.propagate = False

    return logger


def get_log_file_path(service_name: str) -> str:
    """
    Generate a dated log file path for a service.

    Args:
        service_name: Name of the service

    Returns:
        Path to log file
    """
    date_string = DateTimeUtils.get_date_string_for_log_file()
    return f"./logs/{service_name}_{date_string}.log"


# Packages whose module loggers share the service's handlers
PIPELINE_PACKAGES = ("common", "translator", "downloader")


class ServiceLogger:
    """
    Service logger plus the pipeline package loggers routed to its handlers.

    Modules log through ``logging.getLogger(__name__)``; routing the package
    loggers here means one configuration covers the whole pipeline.
    """

    def __init__(
        self,
        service_name: str,
        enable_file_logging: bool = True,
        packages: Tuple[str, ...] = PIPELINE_PACKAGES,
    ):
        """
        Initialize service logger.

        Args:
            service_name: Name of the service
            enable_file_logging: Whether to enable file logging
            packages: Top-level packages whose loggers use the same handlers
        """
        self.service_name = service_name
        log_file = get_log_file_path(service_name) if enable_file_logging else None
        self.logger = setup_logging(service_name, log_file)
        self.packages = packages

        for package_name in packages:
            package_logger = logging.getLogger(package_name)
            package_logger.setLevel(self.logger.level)
            package_logger.handlers = list(self.logger.handlers)
            package_logger.propagate = False


def configure_third_party_loggers(level: str = "WARNING") -> None:
    """
    Quiet down chatty third-party libraries.

    Args:
        level: Log level for third-party libraries
    """
    third_party_loggers = [
        "openai",
        "httpx",
        "httpcore",
        "redis",
        "asyncio",
        "uvicorn.access",
    ]

    log_level = getattr(logging, level.upper(), logging.WARNING)

    for logger_name in third_party_loggers:
        logging.getLogger(logger_name).setLevel(log_level)


def setup_service_logging(
    service_name: str, enable_file_logging: Optional[bool] = None
) -> ServiceLogger:
    """
    Set up logging for a service.

    Args:
        service_name: Name of the service
        enable_file_logging: Whether to enable file logging (defaults to settings.log_to_file)

    Returns:
        ServiceLogger instance
    """
    configure_third_party_loggers()

    if enable_file_logging is None:
        enable_file_logging = settings.log_to_file

    return ServiceLogger(service_name, enable_file_logging)
