"""
Utility modules for the command system.
"""

from .logger import LoggerMixin, get_logger, setup_logging
from .discord import DiscordUtils
from .validation import ValidationUtils, ValidationResult
from .monitoring import Monitoring, HealthStatus
from .error_handler import ErrorHandler, get_error_handler, setup_error_handler
from .scheduler import SweepJob, SweepScheduler

__all__ = [
    "LoggerMixin",
    "get_logger",
    "setup_logging",
    "DiscordUtils",
    "ValidationUtils",
    "ValidationResult",
    "Monitoring",
    "HealthStatus",
    "ErrorHandler",
    "get_error_handler",
    "setup_error_handler",
    "SweepJob",
    "SweepScheduler",
]
