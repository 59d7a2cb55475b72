"""
============================================================================
AREWEUP - LOGGING UTILITY
============================================================================
loguru configuration for the probe agent: a console sink, an optional
rotating file sink and a separate error file, all driven by the
``LOG_*`` settings group.

Probe outcomes carry their own severity; ``log_outcome`` writes each
one at that level so warning-class results (an empty UDP reply, a
rejected port) stand out from hard errors.

Author: Professional Development Team
Version: 1.0.0
License: MIT
============================================================================
"""

import sys
from typing import Optional

from loguru import logger

from config.settings import LoggingSettings, get_settings


_CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{extra[name]}</cyan> - <level>{message}</level>"
)
_FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {extra[name]}:{function}:{line} - {message}"

# Records logged through the bare ``logger`` still render with the formats above
logger.configure(extra={"name": "areweup"})


# ============================================================================
# LOGGER CONFIGURATION
# ============================================================================

def setup_logging(log_settings: Optional[LoggingSettings] = None) -> None:
    """
    Configure loguru sinks.

    Args:
        log_settings: Logging settings group; the cached application
            settings are used when omitted
    """
    log_settings = log_settings or get_settings().logging

    # Remove default loguru handler
    logger.remove()

    if log_settings.console_enabled:
        logger.add(
            sys.stdout,
            format=_CONSOLE_FORMAT,
            level=log_settings.level,
            colorize=log_settings.colorize,
            backtrace=True,
            diagnose=False,
        )

    if log_settings.file_enabled:
        log_file_path = log_settings.file_path
        log_file_path.parent.mkdir(parents=True, exist_ok=True)

        logger.add(
            log_file_path,
            format=_FILE_FORMAT,
            level=log_settings.level,
            rotation=log_settings.rotation,
            retention=log_settings.retention,
            compression="zip",
            serialize=log_settings.serialize,
            backtrace=True,
            diagnose=False,
        )

        # Error log file (separate file for errors)
        logger.add(
            log_file_path.parent / "errors.log",
            format=_FILE_FORMAT,
            level="ERROR",
            rotation="1 day",
            retention=log_settings.retention,
            compression="zip",
            backtrace=True,
            diagnose=False,
        )

    logger.info("Logging system initialized")
    logger.info(f"Log level: {log_settings.level}")
    logger.info(f"Console logging: {log_settings.console_enabled}")
    logger.info(f"File logging: {log_settings.file_enabled}")


def get_logger(name: Optional[str] = None):
    """
    Get logger instance with optional name.

    Args:
        name: Logger name (usually the component name)

    Returns:
        Logger instance
    """
    if name:
        return logger.bind(name=name)
    return logger


def log_outcome(bound_logger, level: str, message: str) -> None:
    """
    Write a probe outcome message at its own severity.

    Args:
        bound_logger: Logger returned by ``get_logger``
        level: ``INFO``, ``WARNING`` or ``ERROR``
        message: The outcome message
    """
    bound_logger.opt(depth=1).log(level, message)
