"""
Error Handler
Failure classification, retry policy and error statistics
"""

import asyncio
import time
import traceback
from typing import Any, Dict, List, Optional

from syro_bot.bot.constants import MESSAGES
from syro_bot.errors import (
    CooldownActive,
    ExecutionTimeout,
    PermissionDenied,
    RetryExhausted,
    ValidationError,
)
from syro_bot.utils.logger import get_logger

# Failure signatures that must never trigger an automatic retry
NON_RETRYABLE_PATTERNS = [
    "Invalid command execution parameters",
    "Command returned invalid result",
    "Permission denied",
    "User not found",
    "Channel not found",
]

NON_RETRYABLE_TYPES = (ValidationError, PermissionDenied, CooldownActive)


class ErrorHandler:
    """Classifies command failures and keeps error statistics."""

    def __init__(self, max_recent_errors: int = 100):
        self.logger = get_logger("ErrorHandler")
        self.total_errors = 0
        self.error_types: Dict[str, int] = {}
        self.recent_errors: List[Dict[str, Any]] = []
        self.max_recent_errors = max_recent_errors

    def initialize(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        """Install as the loop exception handler."""
        if loop is None:
            loop = asyncio.get_event_loop()
        loop.set_exception_handler(self._async_exception_handler)
        self.logger.info("Error handlers initialized")

    def _async_exception_handler(self, loop: asyncio.AbstractEventLoop, context: Dict[str, Any]) -> None:
        exception = context.get("exception")
        if exception:
            self.record(exception, context="async")
        else:
            self.logger.error(f"Async error: {context.get('message', 'Unknown async error')}")

    @staticmethod
    def classify(error: BaseException) -> str:
        """
        Map an error to a coarse kind by string matching.

        Returns:
            One of "timeout", "permission", "not_found", "invalid", "generic"
        """
        if isinstance(error, ExecutionTimeout):
            return "timeout"
        if isinstance(error, PermissionDenied):
            return "permission"

        message = str(error).lower()
        if "timeout" in message or "timed out" in message:
            return "timeout"
        if "permission" in message:
            return "permission"
        if "not found" in message:
            return "not_found"
        if "invalid" in message:
            return "invalid"
        return "generic"

    def user_message(self, error: BaseException) -> str:
        """Human-readable message for the invoker; never the raw error text."""
        if isinstance(error, RetryExhausted):
            return MESSAGES["retry_exhausted"]

        kind = self.classify(error)
        if kind == "timeout":
            return MESSAGES["timeout"]
        if kind == "permission":
            return MESSAGES["permission_error"]
        if kind == "not_found":
            return MESSAGES["not_found"]
        if kind == "invalid":
            return MESSAGES["invalid_args"]
        return MESSAGES["execution_error"]

    @staticmethod
    def is_retryable(error: BaseException) -> bool:
        """Check the error against the non-retryable list."""
        if isinstance(error, NON_RETRYABLE_TYPES):
            return False
        message = str(error)
        return not any(pattern in message for pattern in NON_RETRYABLE_PATTERNS)

    def record(self, error: BaseException, context: str = "") -> None:
        """
        Record an error occurrence.

        Args:
            error: The exception that occurred
            context: Optional context string (command name, subsystem)
        """
        error_type = type(error).__name__
        self.total_errors += 1
        self.error_types[error_type] = self.error_types.get(error_type, 0) + 1

        self.recent_errors.append({
            "type": error_type,
            "kind": self.classify(error),
            "message": str(error),
            "context": context,
            "timestamp": time.time(),
        })
        if len(self.recent_errors) > self.max_recent_errors:
            self.recent_errors = self.recent_errors[-self.max_recent_errors:]

        if context:
            self.logger.error(f"[{context}] {error_type}: {error}")
        else:
            self.logger.error(f"{error_type}: {error}")

        if error.__traceback__ is not None:
            trace = "".join(traceback.format_exception(type(error), error, error.__traceback__))
            self.logger.debug(f"Traceback:\n{trace}")

    def get_stats(self) -> Dict[str, Any]:
        return {
            "totalErrors": self.total_errors,
            "errorTypes": dict(self.error_types),
            "recentErrors": list(self.recent_errors),
        }

    def clear(self) -> None:
        self.total_errors = 0
        self.error_types.clear()
        self.recent_errors.clear()


# Global error handler instance
_error_handler: Optional[ErrorHandler] = None


def get_error_handler() -> ErrorHandler:
    """Get the global error handler instance."""
    global _error_handler
    if _error_handler is None:
        _error_handler = ErrorHandler()
    return _error_handler


def setup_error_handler(loop: Optional[asyncio.AbstractEventLoop] = None) -> ErrorHandler:
    """Set up the global error handler."""
    handler = get_error_handler()
    handler.initialize(loop)
    return handler
