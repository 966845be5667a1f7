"""
Validation Utilities
Helper functions for validating names, prefixes and command input
"""

import math
import re
from typing import Any, List, Optional, Union

# Command names and aliases: one token, no whitespace
COMMAND_NAME_REGEX = re.compile(r"^[a-z0-9][a-z0-9_\-]{0,31}$")

# Common dangerous patterns for injection prevention
DANGEROUS_PATTERNS = [
    re.compile(r"<script", re.IGNORECASE),
    re.compile(r"javascript:", re.IGNORECASE),
    re.compile(r"on\w+=", re.IGNORECASE),
    re.compile(r"data:text/html", re.IGNORECASE),
]


class ValidationResult:
    """Result of a validation operation."""

    def __init__(
        self,
        valid: bool,
        error: Optional[str] = None,
        sanitized: Optional[str] = None,
        value: Optional[Any] = None,
    ):
        self.valid = valid
        self.error = error
        self.sanitized = sanitized
        self.value = value

    def __bool__(self) -> bool:
        return self.valid


class ValidationUtils:
    """Utility class for input validation."""

    @staticmethod
    def sanitize_input(input_value: str) -> str:
        """
        Sanitize user input to prevent injection.

        Args:
            input_value: Input to sanitize

        Returns:
            Sanitized input string
        """
        if not isinstance(input_value, str):
            return ""

        sanitized = input_value.strip()

        # Remove zero-width characters
        sanitized = re.sub(r"[\u200B-\u200D\uFEFF]", "", sanitized)

        # Remove control characters
        sanitized = re.sub(r"[\x00-\x1F\x7F-\x9F]", "", sanitized)

        return sanitized

    @staticmethod
    def is_safe_input(input_value: str) -> bool:
        """Check that input carries none of the dangerous patterns."""
        if not isinstance(input_value, str):
            return True
        return not any(pattern.search(input_value) for pattern in DANGEROUS_PATTERNS)

    @staticmethod
    def validate_command_name(name: Any) -> ValidationResult:
        """
        Validate a command name or alias.

        Args:
            name: Candidate name

        Returns:
            ValidationResult with the normalized (lower-case) name
        """
        if not isinstance(name, str) or not name.strip():
            return ValidationResult(valid=False, error="Command name must be a non-empty string")

        normalized = ValidationUtils.sanitize_input(name).lower()
        if not COMMAND_NAME_REGEX.match(normalized):
            return ValidationResult(valid=False, error=f"Invalid command name: {name!r}")

        return ValidationResult(valid=True, sanitized=normalized)

    @staticmethod
    def validate_prefix(prefix: Any, max_length: int = 5) -> ValidationResult:
        """
        Validate a server command prefix.

        Args:
            prefix: Candidate prefix
            max_length: Maximum allowed length

        Returns:
            ValidationResult with the sanitized prefix
        """
        if not isinstance(prefix, str):
            return ValidationResult(valid=False, error="Prefix must be a string")

        sanitized = ValidationUtils.sanitize_input(prefix)
        if not sanitized:
            return ValidationResult(valid=False, error="Prefix is required")

        if len(sanitized) > max_length:
            return ValidationResult(
                valid=False,
                error=f"Prefix too long (max {max_length} chars)"
            )

        if any(ch.isspace() for ch in sanitized) or not ValidationUtils.is_safe_input(sanitized):
            return ValidationResult(valid=False, error="Prefix contains invalid characters")

        return ValidationResult(valid=True, sanitized=sanitized)

    @staticmethod
    def validate_duration(
        duration: Union[int, float, str, None],
        min_ms: int = 0,
        max_ms: Optional[int] = None,
    ) -> ValidationResult:
        """
        Validate a duration in milliseconds.

        Args:
            duration: Duration value
            min_ms: Minimum allowed (default: 0)
            max_ms: Maximum allowed (default: unbounded)

        Returns:
            ValidationResult with the integer value
        """
        if isinstance(duration, bool):
            return ValidationResult(valid=False, error="Duration must be a number")

        try:
            num = float(duration)
        except (ValueError, TypeError):
            return ValidationResult(valid=False, error="Duration must be a number")

        if not math.isfinite(num):
            return ValidationResult(valid=False, error="Duration must be finite")

        if num < min_ms:
            return ValidationResult(
                valid=False,
                error=f"Duration too short. Minimum: {min_ms}ms",
                value=min_ms,
            )

        if max_ms is not None and num > max_ms:
            return ValidationResult(
                valid=False,
                error=f"Duration too long. Maximum: {max_ms}ms",
                value=max_ms,
            )

        return ValidationResult(valid=True, value=int(num))

    @staticmethod
    def validate_string_list(values: Any, field: str, max_length: Optional[int] = None) -> ValidationResult:
        """
        Validate that a value is a list of non-empty strings.

        Args:
            values: Candidate list
            field: Field name used in the error message
            max_length: Maximum number of entries

        Returns:
            ValidationResult with the list as value
        """
        if values is None:
            return ValidationResult(valid=True, value=[])

        if not isinstance(values, (list, tuple)):
            return ValidationResult(valid=False, error=f"{field} must be a list")

        if any(not isinstance(v, str) or not v.strip() for v in values):
            return ValidationResult(valid=False, error=f"{field} must contain non-empty strings")

        if max_length is not None and len(values) > max_length:
            return ValidationResult(
                valid=False,
                error=f"Too many {field} (max: {max_length})"
            )

        return ValidationResult(valid=True, value=list(values))

    @staticmethod
    def split_arguments(content: str) -> List[str]:
        """Split message content on runs of whitespace."""
        return ValidationUtils.sanitize_input(content).split()
