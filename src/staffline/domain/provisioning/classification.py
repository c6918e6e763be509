"""Classification of identity provider and profile store failures.

This is the only place where provider or store *text* is inspected.
Structured signals always win: an HTTP status, a provider error code, a
SQLSTATE, or a reported constraint name. Message substrings are consulted
only when those are missing, and are treated as a compatibility shim: the
constraint names below match the current schema and may change with it.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from staffline.foundation.domain.ports.identity_provider import IdentityErrorKind
from staffline.foundation.domain.ports.profile_store import ConstraintKind

_RETRY_AFTER_PATTERN = re.compile(r"(\d+)\s*seconds?", re.IGNORECASE)

# SQLSTATE codes (PostgreSQL)
SQLSTATE_FOREIGN_KEY_VIOLATION = "23503"
SQLSTATE_UNIQUE_VIOLATION = "23505"
SQLSTATE_INSUFFICIENT_PRIVILEGE = "42501"
SQLSTATE_UNDEFINED_FUNCTION = "42883"

_DUPLICATE_EMAIL_CODES = frozenset({"email_exists", "user_already_exists", "identity_already_exists"})
_RATE_LIMIT_CODES = frozenset(
    {"over_request_rate_limit", "over_email_send_rate_limit", "over_sms_send_rate_limit"}
)
_INVALID_INPUT_CODES = frozenset(
    {"weak_password", "validation_failed", "email_address_invalid", "signup_disabled"}
)
_PERMISSION_CODES = frozenset({"not_admin", "no_authorization", "bad_jwt"})


@dataclass(frozen=True, slots=True)
class ConstraintNames:
    """Constraint names used by the profile table.

    Attributes:
        identity_fk: FK from profile primary key to the identity table.
        org_unit_fk: FK from profile org unit column to the org unit table.
        primary_key: Profile primary key.
        email_unique: Unique constraint on profile email.
    """

    identity_fk: frozenset[str] = frozenset({"users_id_fkey"})
    org_unit_fk: frozenset[str] = frozenset({"users_company_id_fkey"})
    primary_key: frozenset[str] = frozenset({"users_pkey"})
    email_unique: frozenset[str] = frozenset({"users_email_key"})


DEFAULT_CONSTRAINT_NAMES = ConstraintNames()


def parse_retry_after(message: str | None) -> float | None:
    """Extract a wait time from text such as "try again after 42 seconds".

    Args:
        message: Provider message, may be None.

    Returns:
        Seconds to wait, or None if the text carries no number of seconds.
    """
    if not message:
        return None
    match = _RETRY_AFTER_PATTERN.search(message)
    if match is None:
        return None
    return float(match.group(1))


def classify_identity_error(
    status_code: int | None,
    error_code: str | None,
    message: str | None,
) -> IdentityErrorKind:
    """Classify an identity provider failure.

    Precedence: provider error code, then HTTP status, then message text.

    Args:
        status_code: HTTP status of the failed call, if any.
        error_code: Provider machine-readable error code, if any.
        message: Provider message, if any.

    Returns:
        The classified kind. Server errors and transport failures are
        UNKNOWN (retryable); unrecognised client errors are INVALID_INPUT.
    """
    code = (error_code or "").lower()
    if code in _DUPLICATE_EMAIL_CODES:
        return IdentityErrorKind.DUPLICATE_EMAIL
    if code in _RATE_LIMIT_CODES:
        return IdentityErrorKind.RATE_LIMITED
    if code in _INVALID_INPUT_CODES:
        return IdentityErrorKind.INVALID_INPUT
    if code in _PERMISSION_CODES:
        return IdentityErrorKind.PERMISSION_DENIED

    if status_code == 429:
        return IdentityErrorKind.RATE_LIMITED
    if status_code in (401, 403):
        return IdentityErrorKind.PERMISSION_DENIED

    text = (message or "").lower()
    if "already registered" in text or "already exists" in text:
        return IdentityErrorKind.DUPLICATE_EMAIL
    if "security purposes" in text or "rate limit" in text:
        return IdentityErrorKind.RATE_LIMITED
    if "invalid email" in text or "password" in text:
        return IdentityErrorKind.INVALID_INPUT
    if "not allowed" in text or "not authorized" in text:
        return IdentityErrorKind.PERMISSION_DENIED

    if status_code is not None and 400 <= status_code < 500:
        return IdentityErrorKind.INVALID_INPUT
    return IdentityErrorKind.UNKNOWN


def classify_constraint(
    sqlstate: str | None,
    constraint: str | None,
    message: str | None,
    names: ConstraintNames = DEFAULT_CONSTRAINT_NAMES,
) -> ConstraintKind:
    """Classify a rejected profile write.

    Args:
        sqlstate: SQLSTATE reported by the store, if any.
        constraint: Violated constraint name, if reported.
        message: Store message, if any.
        names: Constraint names of the profile table.

    Returns:
        The classified constraint kind.
    """
    text = (message or "").lower()

    if constraint:
        if constraint in names.identity_fk:
            return ConstraintKind.FK_IDENTITY
        if constraint in names.org_unit_fk:
            return ConstraintKind.FK_ORG_UNIT
        if constraint in names.primary_key:
            return ConstraintKind.UNIQUE_PK
        if constraint in names.email_unique:
            return ConstraintKind.UNIQUE_EMAIL

    if sqlstate == SQLSTATE_INSUFFICIENT_PRIVILEGE or _mentions_permission(text):
        return ConstraintKind.PERMISSION

    if sqlstate == SQLSTATE_FOREIGN_KEY_VIOLATION or "foreign key" in text:
        if _mentions_any(text, names.identity_fk) or "users.id" in text or "auth.users" in text:
            return ConstraintKind.FK_IDENTITY
        if _mentions_any(text, names.org_unit_fk) or "company" in text or "org_unit" in text:
            return ConstraintKind.FK_ORG_UNIT
        return ConstraintKind.OTHER

    if sqlstate == SQLSTATE_UNIQUE_VIOLATION or "duplicate key" in text:
        if _mentions_any(text, names.email_unique) or "(email)" in text:
            return ConstraintKind.UNIQUE_EMAIL
        return ConstraintKind.UNIQUE_PK

    # Message-only fallbacks for stores that report no SQLSTATE.
    if _mentions_any(text, names.identity_fk):
        return ConstraintKind.FK_IDENTITY
    if _mentions_any(text, names.org_unit_fk):
        return ConstraintKind.FK_ORG_UNIT
    if _mentions_any(text, names.primary_key):
        return ConstraintKind.UNIQUE_PK
    return ConstraintKind.OTHER


def is_missing_procedure(sqlstate: str | None, message: str | None) -> bool:
    """Whether a failure means the atomic creation procedure is not deployed."""
    if sqlstate == SQLSTATE_UNDEFINED_FUNCTION:
        return True
    text = (message or "").lower()
    return "function" in text and ("does not exist" in text or "not found" in text)


def _mentions_permission(text: str) -> bool:
    return "permission denied" in text or "row-level security" in text or " rls" in text


def _mentions_any(text: str, names: frozenset[str]) -> bool:
    return any(name in text for name in names)
