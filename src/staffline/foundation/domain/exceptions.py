"""Domain exception hierarchy for type-safe error handling.

This module provides the base exception hierarchy for all domain errors.
Exceptions include structured error codes and context for consistent
API error handling and logging across the console's subsystems.

Example:
    >>> from staffline.foundation.domain.exceptions import InvalidStateTransitionError
    >>> raise InvalidStateTransitionError("Cannot move from COMPLETE to FAILED")
"""

from __future__ import annotations

from typing import Any

__all__ = [
    "DomainError",
    "InvalidStateTransitionError",
]


class DomainError(Exception):
    """Base class for all domain errors.

    Provides error code and structured context for debugging. All domain
    exceptions inherit from this class to enable consistent API error
    handling and logging.

    Attributes:
        error_code: Machine-readable error code for client handling.
        message: Human-readable error description.
        context: Structured debugging information (identity IDs, field names).

    Example:
        >>> raise DomainError("Operation failed", context={"identity_id": "123"})
        DomainError: Operation failed (identity_id=123)
    """

    error_code: str = "DOMAIN_ERROR"

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        """Initialize domain error with message and optional context.

        Args:
            message: Human-readable error description.
            context: Structured debugging information. Keys should be snake_case.
                     Values are typically strings, UUIDs, or primitive types.
        """
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        """String representation including context for logging."""
        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            return f"{self.message} ({context_str})"
        return self.message

    def __repr__(self) -> str:
        """Detailed representation for debugging."""
        return f"{self.__class__.__name__}({self.message!r}, context={self.context!r})"


class InvalidStateTransitionError(DomainError):
    """Raised when a state machine transition is not allowed.

    Attributes:
        error_code: "INVALID_STATE_TRANSITION" (class constant).

    Example:
        >>> raise InvalidStateTransitionError(
        ...     "Cannot move from COMPLETE to PROFILE_WRITING"
        ... )
    """

    error_code: str = "INVALID_STATE_TRANSITION"

    def __init__(self, message: str, **context: Any) -> None:
        """Initialize invalid state transition error.

        Args:
            message: Description of the invalid transition attempt.
            **context: Additional debugging context (e.g., current_state, target_state).
        """
        super().__init__(message, context)
