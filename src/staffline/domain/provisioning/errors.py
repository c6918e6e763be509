"""Provisioning error taxonomy.

Every failure the engine can surface is a :class:`ProvisioningError`
subclass tagged with a :class:`FailureCause`. Errors carry the attempt count
and elapsed time of the step that produced them so callers can report
diagnostics without parsing provider text.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from staffline.foundation.domain.exceptions import DomainError


class FailureCause(StrEnum):
    """Structured cause attached to failed provisioning outcomes."""

    INVALID_INPUT = "invalid_input"
    DUPLICATE_EMAIL = "duplicate_email"
    RATE_LIMITED = "rate_limited"
    IDENTITY_NOT_READY = "identity_not_ready"
    ASSOCIATION_INVALID = "association_invalid"
    PERMISSION_DENIED = "permission_denied"
    PROFILE_ALREADY_EXISTS = "profile_already_exists"
    TIMEOUT = "timeout"
    UNKNOWN = "unknown"

    @property
    def retryable(self) -> bool:
        """Whether the same request may succeed if repeated later."""
        return self in _RETRYABLE_CAUSES


_RETRYABLE_CAUSES = frozenset(
    {
        FailureCause.RATE_LIMITED,
        FailureCause.IDENTITY_NOT_READY,
        FailureCause.TIMEOUT,
        FailureCause.UNKNOWN,
    }
)


class ProvisioningError(DomainError):
    """Base class for provisioning failures.

    Attributes:
        cause: Structured failure cause (class constant per subclass).
        attempts: Attempts made by the failing step.
        elapsed_seconds: Time spent in the failing step.
        retry_after: Provider-suggested wait before retrying, if known.
    """

    cause: FailureCause = FailureCause.UNKNOWN
    error_code: str = "PROVISIONING_ERROR"

    def __init__(
        self,
        message: str,
        *,
        attempts: int = 1,
        elapsed_seconds: float = 0.0,
        retry_after: float | None = None,
        **context: Any,
    ) -> None:
        self.attempts = attempts
        self.elapsed_seconds = elapsed_seconds
        self.retry_after = retry_after
        super().__init__(message, context)


class InvalidInputError(ProvisioningError):
    """Request or provider rejected the account details."""

    cause = FailureCause.INVALID_INPUT
    error_code = "INVALID_INPUT"

    def __init__(self, reason: str, *, field: str | None = None, **kwargs: Any) -> None:
        self.reason = reason
        self.field = field
        if field is not None:
            kwargs["field"] = field
        super().__init__(reason, **kwargs)


class DuplicateEmailError(ProvisioningError):
    """An identity (or a profile) already exists for this email."""

    cause = FailureCause.DUPLICATE_EMAIL
    error_code = "DUPLICATE_EMAIL"


class RateLimitedError(ProvisioningError):
    """Identity provider kept rate limiting until the attempt budget ran out."""

    cause = FailureCause.RATE_LIMITED
    error_code = "RATE_LIMITED"


class IdentityNotReadyError(ProvisioningError):
    """Identity never became visible to the profile store within the budget."""

    cause = FailureCause.IDENTITY_NOT_READY
    error_code = "IDENTITY_NOT_READY"


class PermissionDeniedError(ProvisioningError):
    """Credentials in use are not allowed to perform the step."""

    cause = FailureCause.PERMISSION_DENIED
    error_code = "PERMISSION_DENIED"


class ProfileAlreadyExistsError(ProvisioningError):
    """Primary-key conflict whose existing row could not be fetched."""

    cause = FailureCause.PROFILE_ALREADY_EXISTS
    error_code = "PROFILE_ALREADY_EXISTS"


class ProvisioningTimeoutError(ProvisioningError):
    """Overall deadline elapsed before a terminal state was reached."""

    cause = FailureCause.TIMEOUT
    error_code = "TIMEOUT"


class UnknownProvisioningError(ProvisioningError):
    """Unrecognised failure; not retried beyond its own step budget."""

    cause = FailureCause.UNKNOWN
    error_code = "UNKNOWN"
