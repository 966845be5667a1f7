"""
Command system exceptions.
"""

from typing import Optional


class CommandError(Exception):
    """Base class for command system errors."""


class ValidationError(CommandError):
    """Malformed descriptor, arguments or configuration value."""


class ConflictError(CommandError):
    """Duplicate command name or alias."""


class PermissionDenied(CommandError):
    """Scope, category or capability check failed."""

    def __init__(self, message: str = "Permission denied"):
        super().__init__(message)


class CooldownActive(CommandError):
    """Invoker (or everyone, for a global window) must wait."""

    def __init__(self, remaining_time: int, kind: str = "user"):
        super().__init__(f"Cooldown active ({kind}): {remaining_time}ms remaining")
        self.remaining_time = remaining_time
        self.kind = kind


class ExecutionTimeout(CommandError):
    """Handler did not settle within the configured timeout."""

    def __init__(self, timeout_ms: int):
        super().__init__(f"Command execution timed out after {timeout_ms}ms")
        self.timeout_ms = timeout_ms


class ExecutionError(CommandError):
    """Handler raised."""

    def __init__(self, message: str, original: Optional[BaseException] = None):
        super().__init__(message)
        self.original = original


class RetryExhausted(CommandError):
    """Every allowed attempt failed; wraps the final error."""

    def __init__(self, attempts: int, last_error: BaseException):
        super().__init__(f"Command failed after {attempts} attempts: {last_error}")
        self.attempts = attempts
        self.last_error = last_error


class OperationResult:
    """Outcome of a registration or administrative call. Truthy on success."""

    def __init__(self, ok: bool, error: Optional[CommandError] = None):
        self.ok = ok
        self.error = error

    @property
    def reason(self) -> Optional[str]:
        return str(self.error) if self.error else None

    def __bool__(self) -> bool:
        return self.ok

    def __repr__(self) -> str:
        if self.ok:
            return "OperationResult(ok)"
        return f"OperationResult({type(self.error).__name__}: {self.error})"

    @classmethod
    def success(cls) -> "OperationResult":
        return cls(True)

    @classmethod
    def failure(cls, error: CommandError) -> "OperationResult":
        return cls(False, error)
