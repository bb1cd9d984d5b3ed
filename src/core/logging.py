"""
Centralized logging configuration for the application.
"""

import logging
import logging.handlers
import sys
from pathlib import Path
from typing import Optional

from src.core.config import get_config


# Color codes for terminal output
class ColorCodes:
    """ANSI color codes for terminal output"""
    RESET = '\033[0m'
    RED = '\033[91m'
    GREEN = '\033[92m'
    YELLOW = '\033[93m'
    PURPLE = '\033[95m'
    GREY = '\033[90m'


class ColorFormatter(logging.Formatter):
    """Custom formatter that adds color to log levels in terminal output"""

    LEVEL_COLORS = {
        logging.DEBUG: ColorCodes.GREY,
        logging.INFO: ColorCodes.GREEN,
        logging.WARNING: ColorCodes.YELLOW,
        logging.ERROR: ColorCodes.RED,
        logging.CRITICAL: ColorCodes.PURPLE,
    }

    def format(self, record):
        levelname = record.levelname
        if record.levelno in self.LEVEL_COLORS:
            record.levelname = (
                f"{self.LEVEL_COLORS[record.levelno]}{levelname}{ColorCodes.RESET}"
            )
        try:
            return super().format(record)
        finally:
            # Restore the original levelname for the other handlers
            record.levelname = levelname


class ContextFilter(logging.Filter):
    """Filter that adds contextual information to log records"""

    def __init__(self, app_name: str):
        super().__init__()
        self.app_name = app_name

    def filter(self, record):
        record.app_name = self.app_name
        return True


def setup_logging(
    log_level: Optional[str] = None,
    log_file: Optional[Path] = None,
    app_name: Optional[str] = None,
    enable_colors: bool = True,
    log_format: Optional[str] = None,
    date_format: Optional[str] = None
) -> logging.Logger:
    """
    Setup centralized logging configuration.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional path to log file
        app_name: Application name for context
        enable_colors: Whether to enable colored output in terminal
        log_format: Custom log format string
        date_format: Custom date format string

    Returns:
        Logger: Configured root logger
    """
    if log_level is None or app_name is None:
        config = get_config()
        log_level = log_level or config.log_level
        app_name = app_name or config.app_name

    if not log_format:
        log_format = (
            '%(asctime)s | %(app_name)s | %(levelname)-8s | '
            '%(name)s:%(funcName)s:%(lineno)d | %(message)s'
        )

    if not date_format:
        date_format = '%Y-%m-%d %H:%M:%S'

    root_logger = logging.getLogger()
    root_logger.handlers = []
    root_logger.setLevel(getattr(logging, log_level.upper()))

    context_filter = ContextFilter(app_name)

    # Console handler with color formatting
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(getattr(logging, log_level.upper()))

    if enable_colors and sys.stdout.isatty():
        console_formatter = ColorFormatter(log_format, datefmt=date_format)
    else:
        console_formatter = logging.Formatter(log_format, datefmt=date_format)

    console_handler.setFormatter(console_formatter)
    console_handler.addFilter(context_filter)
    root_logger.addHandler(console_handler)

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)

        # Create rotating file handler (10MB max, keep 5 backups)
        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=10 * 1024 * 1024,
            backupCount=5,
            encoding='utf-8'
        )
        file_handler.setLevel(getattr(logging, log_level.upper()))
        file_handler.setFormatter(logging.Formatter(log_format, datefmt=date_format))
        file_handler.addFilter(context_filter)

        root_logger.addHandler(file_handler)

    configure_third_party_loggers(log_level)

    root_logger.info(
        f"Logging initialized | Level: {log_level} | "
        f"File: {log_file or 'None'} | Colors: {enable_colors}"
    )

    return root_logger


def configure_third_party_loggers(log_level: str):
    """
    Configure logging levels for third-party libraries.

    httpx logs full request URLs at INFO, and sendPhoto URLs embed the bot
    token, so httpx/httpcore stay at WARNING even in DEBUG mode.

    Args:
        log_level: Application log level
    """
    third_party_config = {
        'uvicorn.access': logging.INFO,
        'uvicorn.error': logging.INFO,
        'python_multipart': logging.WARNING,
    }

    for logger_name, level in third_party_config.items():
        if log_level == 'DEBUG':
            level = logging.DEBUG
        logging.getLogger(logger_name).setLevel(level)

    for logger_name in ('httpx', 'httpcore'):
        logging.getLogger(logger_name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance with the given name.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Logger: Configured logger instance
    """
    return logging.getLogger(name)


def mask_token(token: Optional[str]) -> str:
    """Mask a secret for log output, keeping only the last four characters."""
    if not token:
        return "<none>"
    if len(token) <= 8:
        return "***"
    return f"***{token[-4:]}"


def log_exception(logger: logging.Logger, exception: Exception, message: str = None):
    """
    Log an exception with full traceback.

    Args:
        logger: Logger instance to use
        exception: Exception to log
        message: Optional message to prepend
    """
    if message:
        logger.error(f"{message}: {type(exception).__name__}: {str(exception)}", exc_info=True)
    else:
        logger.error(f"{type(exception).__name__}: {str(exception)}", exc_info=True)
