"""Value types for the provisioning engine: inputs, outcomes, and states."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING

from staffline.domain.provisioning.errors import FailureCause

if TYPE_CHECKING:
    from decimal import Decimal
    from uuid import UUID

    from staffline.foundation.domain.staff_records import Profile


class IdentityPath(StrEnum):
    """Identity creation strategy, selected once from capabilities."""

    PRIVILEGED = "privileged"
    PUBLIC = "public"


class ProvisioningStatus(StrEnum):
    """Terminal outcome reported to callers."""

    COMPLETE = "complete"
    DEGRADED = "degraded"
    FAILED = "failed"


class ProvisioningState(StrEnum):
    """Orchestrator state machine states."""

    START = "start"
    IDENTITY_CREATING = "identity_creating"
    IDENTITY_VISIBLE = "identity_visible"
    ASSOCIATION_RESOLVED = "association_resolved"
    PROFILE_WRITING = "profile_writing"
    COMPLETE = "complete"
    DEGRADED = "degraded"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (
            ProvisioningState.COMPLETE,
            ProvisioningState.DEGRADED,
            ProvisioningState.FAILED,
        )


@dataclass(frozen=True, slots=True)
class Capabilities:
    """What the configured credentials allow.

    Attributes:
        privileged_available: Privileged (service-role) account creation is
            possible. Selects the identity path and enables identity
            re-verification lookups.
        privileged_lookup_available: Privileged list-by-email is possible.
            Defaults to ``privileged_available``.
    """

    privileged_available: bool = False
    privileged_lookup_available: bool | None = None

    @property
    def identity_path(self) -> IdentityPath:
        if self.privileged_available:
            return IdentityPath.PRIVILEGED
        return IdentityPath.PUBLIC

    @property
    def can_lookup_by_email(self) -> bool:
        if self.privileged_lookup_available is None:
            return self.privileged_available
        return self.privileged_lookup_available


@dataclass(frozen=True, slots=True)
class ProfileFields:
    """Optional profile attributes supplied by the caller."""

    first_name: str | None = None
    last_name: str | None = None
    job_title: str | None = None
    role: str | None = None
    is_sub_admin: bool = False
    is_banned: bool = False
    salary_amount: Decimal | None = None
    salary_date: int | None = None

    def identity_metadata(self, default_role: str) -> dict[str, str | None]:
        """Metadata attached to the identity at creation time."""
        return {
            "role": self.role or default_role,
            "first_name": self.first_name,
            "last_name": self.last_name,
        }


@dataclass(frozen=True, slots=True)
class ProvisioningWarning:
    """Non-fatal condition attached to a successful outcome.

    Attributes:
        code: Stable machine-readable code (e.g. ``association_invalid``).
        message: Human-readable description.
    """

    code: str
    message: str


@dataclass(frozen=True, slots=True)
class ProvisioningFailure:
    """Structured failure attached to a FAILED outcome.

    Attributes:
        cause: Structured failure cause.
        attempts: Attempts made by the step that failed.
        elapsed_seconds: Wall time from request start to failure.
        retry_after: Suggested wait before repeating the request, if known.
        field: Offending input field for INVALID_INPUT, if known.
        reason: Validation reason for INVALID_INPUT raised locally.
        step: Step that was running when the failure occurred, if known.
    """

    cause: FailureCause
    attempts: int
    elapsed_seconds: float
    retry_after: float | None = None
    field: str | None = None
    reason: str | None = None
    step: str | None = None

    @property
    def message(self) -> str:
        return describe_failure(self)


@dataclass(frozen=True)
class ProvisioningResult:
    """Terminal result of a provisioning request.

    Attributes:
        status: COMPLETE, DEGRADED, or FAILED.
        profile: The created (or idempotently fetched) profile on success.
        error: Structured failure on FAILED.
        identity_id: Identity created or reused, when one was obtained.
        warnings: Non-fatal conditions (dropped association, inactive unit).
        states: Ordered state machine trace, START first.
        attempts: Profile write attempts on success.
        already_existed: The profile was written by an earlier request.
    """

    status: ProvisioningStatus
    profile: Profile | None = None
    error: ProvisioningFailure | None = None
    identity_id: UUID | None = None
    warnings: tuple[ProvisioningWarning, ...] = ()
    states: tuple[ProvisioningState, ...] = ()
    attempts: int = 0
    already_existed: bool = False

    @property
    def succeeded(self) -> bool:
        return self.status is not ProvisioningStatus.FAILED

    @property
    def user_message(self) -> str:
        """Human-readable summary derived from structured fields only."""
        if self.error is not None:
            return self.error.message
        if self.status is ProvisioningStatus.DEGRADED:
            return (
                "Staff account created without an organizational unit. "
                "Assign one from the staff screen."
            )
        return "Staff account created."


def describe_failure(failure: ProvisioningFailure) -> str:
    """Build the human-readable message for a failure.

    Only the structured cause and diagnostics are used; provider or store
    message text never reaches the caller.
    """
    attempts = failure.attempts
    elapsed = failure.elapsed_seconds
    cause = failure.cause
    if cause is FailureCause.INVALID_INPUT:
        if failure.reason:
            return f"Invalid account details: {failure.reason}."
        return "The identity provider rejected the account details."
    if cause is FailureCause.DUPLICATE_EMAIL:
        return "A user with this email already exists. Please use a different email."
    if cause is FailureCause.RATE_LIMITED:
        wait = int(failure.retry_after) if failure.retry_after is not None else 60
        return (
            f"Rate limit exceeded after {attempts} attempts: please wait {wait} seconds "
            "before creating another staff member."
        )
    if cause is FailureCause.IDENTITY_NOT_READY:
        return (
            f"The account was created but its profile could not be saved after "
            f"{attempts} attempts ({elapsed:.1f}s); the account was not yet visible. "
            "Try again shortly."
        )
    if cause is FailureCause.PERMISSION_DENIED:
        return (
            "Permission denied. Please check your account permissions "
            "or contact an administrator."
        )
    if cause is FailureCause.PROFILE_ALREADY_EXISTS:
        return "A staff profile for this account already exists."
    if cause is FailureCause.TIMEOUT:
        return (
            f"Provisioning did not finish in time ({elapsed:.1f}s, {attempts} attempts). "
            "Try again; an existing account will be detected."
        )
    if cause is FailureCause.ASSOCIATION_INVALID:
        return "The organizational unit could not be assigned."
    return (
        f"The staff account could not be created after {attempts} attempts. "
        "Please try again or contact support."
    )
