"""
Logging Configuration
Structured logging with loguru for the eligibility services
Source: https://github.com/Delgan/loguru
Verified: 2025-12-18

X12 codec modules log through stdlib `logging`; those records are routed
into loguru so one set of sinks covers both.
"""

import logging
import sys
from pathlib import Path
from typing import Optional

from loguru import logger

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{extra[name]}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {extra[name]}:{function}:{line} - {message}"


class InterceptHandler(logging.Handler):
    """
    Forward stdlib log records to loguru.

    Source: https://loguru.readthedocs.io/en/stable/overview.html#entirely-compatible-with-standard-logging
    """

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level: str | int = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        logger.bind(name=record.name).opt(exception=record.exc_info).log(level, record.getMessage())


def setup_logging(
    level: str = "INFO",
    log_file: Optional[str] = None,
    json_logs: bool = False,
) -> None:
    """
    Configure application logging.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional log file path
        json_logs: Whether to output JSON format (useful for production)
    """
    logger.remove()
    logger.configure(extra={"name": "root"})

    if json_logs:
        logger.add(sys.stderr, format="{message}", level=level, serialize=True)
    else:
        logger.add(sys.stderr, format=CONSOLE_FORMAT, level=level, colorize=True)

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_file,
            rotation="100 MB",
            retention="30 days",
            compression="zip",
            format=FILE_FORMAT,
            level=level,
            serialize=json_logs,
        )

    # Route the X12 codec loggers (src.services.edi.*) through the same sinks
    logging.basicConfig(handlers=[InterceptHandler()], level=level.upper(), force=True)

    logger.bind(name=__name__).info(f"Logging configured: level={level}, json_logs={json_logs}")


def mask_secret(value: Optional[str], visible: int = 3) -> str:
    """Show only the first characters of a credential."""
    if not value:
        return "NOT SET"
    return f"{value[:visible]}***"


def get_logger(name: str = __name__):  # type: ignore[no-untyped-def]
    """
    Get a logger instance bound to a module name.

    Example:
        >>> from src.utils.logging import get_logger
        >>> logger = get_logger(__name__)
        >>> logger.info("Eligibility check started")
    """
    return logger.bind(name=name)
