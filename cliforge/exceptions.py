"""Custom exception hierarchy for cliforge.

This module defines the error types raised by the runtime-state layer,
providing consistent error handling with structured detail metadata.
"""

from typing import Any


class CliforgeError(Exception):
    """Base exception for all cliforge-specific errors.

    Attributes:
        message: The error message.
        details: Arbitrary keyword arguments providing additional error context.

    Example:
        >>> raise CliforgeError("State file unreadable", path="/tmp/state.yaml")
    """

    def __init__(self, message: str, **details: Any) -> None:
        """Initialize a CliforgeError.

        Args:
            message: Human-readable error message.
            **details: Additional contextual information as keyword arguments.
        """
        super().__init__(message)
        self.message = message
        self.details = details

    def __str__(self) -> str:
        """Return the error message."""
        return self.message

    def __repr__(self) -> str:
        """Return a detailed representation of the error."""
        parts = [f"message={self.message!r}"]

        if self.details:
            detail_str = ", ".join(f"{k}={v!r}" for k, v in self.details.items())
            parts.append(f"details={{{detail_str}}}")

        return f"{self.__class__.__name__}({', '.join(parts)})"


class CliforgeNotFoundError(CliforgeError):
    """Raised when a named item does not exist.

    Use this for:
    - Unknown context names
    - Unknown history entry IDs
    - Unknown resource preferences
    """

    def __init__(self, kind: str, key: Any, **details: Any) -> None:
        super().__init__(f"{kind} {key!r} not found", **details)
        self.kind = kind
        self.key = key


class CliforgeAlreadyExistsError(CliforgeError):
    """Raised when creating, renaming or importing onto a taken name."""

    def __init__(self, kind: str, key: Any, **details: Any) -> None:
        super().__init__(f"{kind} {key!r} already exists", **details)
        self.kind = kind
        self.key = key


class CliforgeInvalidOperationError(CliforgeError):
    """Raised when an operation would break a state invariant.

    Use this for:
    - Deleting or renaming the "default" context
    - Deleting the current context
    - Switching to a context that does not exist
    """


class CliforgeValidationError(CliforgeInvalidOperationError):
    """Raised when a value fails validation (e.g. a context without a name)."""


class CliforgeIOError(CliforgeError):
    """Raised for filesystem read/write/rename failures.

    Always carries the failing path and the operation that was attempted.
    """

    def __init__(self, message: str, path: Any, operation: str, **details: Any) -> None:
        super().__init__(f"{message}: {path}", **details)
        self.path = path
        self.operation = operation


class CliforgeParseError(CliforgeError):
    """Raised when a persisted file exists but cannot be decoded.

    A missing file is never a parse error; callers get fresh defaults instead.
    """

    def __init__(self, message: str, path: Any, **details: Any) -> None:
        super().__init__(f"{message}: {path}", **details)
        self.path = path
