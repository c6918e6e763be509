"""Port interface for the identity provider.

Adapters translate provider responses into :class:`Identity` records and
provider failures into :class:`IdentityProviderError` with a classified
:class:`IdentityErrorKind`, so the provisioning engine never inspects raw
provider text.
"""

from __future__ import annotations

from enum import StrEnum
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from uuid import UUID

    from staffline.foundation.domain.staff_records import Identity, PublicSignup


class IdentityErrorKind(StrEnum):
    """Classified identity provider failure."""

    DUPLICATE_EMAIL = "duplicate_email"
    RATE_LIMITED = "rate_limited"
    INVALID_INPUT = "invalid_input"
    PERMISSION_DENIED = "permission_denied"
    UNKNOWN = "unknown"


class IdentityProviderError(Exception):
    """Raised by identity provider adapters.

    Attributes:
        kind: Classified failure kind.
        message: Provider message, kept for logs only.
        retry_after: Provider-suggested wait in seconds (rate limits).
        status_code: HTTP status, when the adapter talks HTTP.
    """

    def __init__(
        self,
        kind: IdentityErrorKind,
        message: str,
        *,
        retry_after: float | None = None,
        status_code: int | None = None,
    ) -> None:
        self.kind = kind
        self.message = message
        self.retry_after = retry_after
        self.status_code = status_code
        super().__init__(f"Identity provider error [{kind}]: {message}")


@runtime_checkable
class IdentityProviderPort(Protocol):
    """Port for the identity provider API consumed during provisioning.

    ``create_privileged`` and ``list_by_email`` require elevated
    credentials; callers consult their capabilities before using them.
    """

    async def create_privileged(
        self, email: str, password: str, metadata: dict[str, Any]
    ) -> Identity:
        """Create a confirmed account synchronously.

        Raises:
            IdentityProviderError: On any provider failure.
        """
        ...

    async def create_public(
        self, email: str, password: str, metadata: dict[str, Any]
    ) -> PublicSignup:
        """Self-service signup; the account id may be missing from the response.

        Raises:
            IdentityProviderError: On any provider failure.
        """
        ...

    async def get_by_id(self, identity_id: UUID) -> Identity | None:
        """Point lookup of an account; None if not (yet) visible."""
        ...

    async def list_by_email(self, email: str) -> Identity | None:
        """Privileged lookup of an account by email (case-insensitive)."""
        ...

    async def get_current_user(self, access_token: str) -> Identity | None:
        """Account bound to the session behind ``access_token``, if any."""
        ...
