"""
Logging utilities for the command system.
Uses Rich for colored console output.
"""

import logging
import os
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler
from rich.theme import Theme

# Custom theme for logging
CUSTOM_THEME = Theme({
    "logging.level.success": "green",
    "logging.level.command": "cyan",
    "logging.level.debug": "dim cyan",
})

console = Console(theme=CUSTOM_THEME)

LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}


def default_level() -> int:
    """Resolve the default level from LOG_LEVEL / DEBUG."""
    if os.getenv("DEBUG", "false").lower() == "true":
        return logging.DEBUG
    return LEVELS.get(os.getenv("LOG_LEVEL", "INFO").upper(), logging.INFO)


def setup_logging(name: str, level: Optional[int] = None) -> logging.Logger:
    """
    Set up a logger with RichHandler.

    Args:
        name: Logger name
        level: Logging level (default: from LOG_LEVEL, INFO if unset)

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(f"syro.{name}")

    if level is None:
        level = default_level()

    logger.setLevel(level)
    logger.propagate = False

    # Replace handlers so repeated setup never duplicates output
    logger.handlers = []

    handler = RichHandler(
        console=console,
        show_time=True,
        show_path=False,
        rich_tracebacks=True,
    )
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(
        fmt="[%(name)s] %(message)s",
        datefmt="%H:%M:%S",
    ))

    logger.addHandler(handler)

    return logger


class LoggerMixin:
    """Mixin class that provides logger functionality."""

    def __init__(self, name: str):
        self._logger = setup_logging(name)

    @property
    def logger(self) -> logging.Logger:
        """Get the logger instance."""
        return self._logger

    def debug(self, message: str, **kwargs) -> None:
        self._logger.debug(message, extra=kwargs)

    def info(self, message: str, **kwargs) -> None:
        self._logger.info(message, extra=kwargs)

    def warning(self, message: str, **kwargs) -> None:
        self._logger.warning(message, extra=kwargs)

    def error(self, message: str, **kwargs) -> None:
        self._logger.error(message, extra=kwargs)

    def success(self, message: str, **kwargs) -> None:
        """Log success message (INFO prefixed with [SUCCESS])."""
        self._logger.info(f"[SUCCESS] {message}", extra=kwargs)


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance."""
    return setup_logging(name)
