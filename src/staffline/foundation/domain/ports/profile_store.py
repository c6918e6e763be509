"""Port interface for the profile store.

The store enforces three constraints the provisioning engine reacts to:
the profile primary key references an identity (``fk_identity``), the org
unit column references an org unit (``fk_org_unit``), and the primary key is
unique (``unique_pk``). Adapters surface violations as
:class:`ConstraintError` with a classified :class:`ConstraintKind`.
"""

from __future__ import annotations

from enum import StrEnum
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from uuid import UUID

    from staffline.foundation.domain.staff_records import NewProfile, OrgUnit, Profile


class ConstraintKind(StrEnum):
    """Classified profile store write failure."""

    FK_IDENTITY = "fk_identity"
    FK_ORG_UNIT = "fk_orgunit"
    UNIQUE_PK = "unique_pk"
    UNIQUE_EMAIL = "unique_email"
    PERMISSION = "permission"
    OTHER = "other"


class ConstraintError(Exception):
    """Raised by profile store adapters when a write is rejected.

    Attributes:
        kind: Classified failure kind.
        message: Store message, kept for logs only.
        constraint: Violated constraint name, when the store reports one.
        sqlstate: Five-character SQLSTATE, when available.
    """

    def __init__(
        self,
        kind: ConstraintKind,
        message: str,
        *,
        constraint: str | None = None,
        sqlstate: str | None = None,
    ) -> None:
        self.kind = kind
        self.message = message
        self.constraint = constraint
        self.sqlstate = sqlstate
        super().__init__(f"Profile store rejected write [{kind}]: {message}")


class ProcedureUnavailableError(Exception):
    """Raised when the atomic profile creation procedure is not deployed."""


@runtime_checkable
class ProfileStorePort(Protocol):
    """Port for the profile store API consumed during provisioning."""

    async def create_profile_atomic(self, profile: NewProfile) -> Profile | None:
        """Create the profile via the server-side procedure.

        The procedure retries internally against the identity foreign key.
        May return None when the procedure reports no row.

        Raises:
            ProcedureUnavailableError: If the procedure does not exist.
            ConstraintError: On a structured failure from the procedure.
        """
        ...

    async def insert_profile(self, profile: NewProfile) -> Profile:
        """Insert the profile row directly.

        Raises:
            ConstraintError: If the store rejects the row.
        """
        ...

    async def get_profile(self, identity_id: UUID) -> Profile | None:
        """Fetch the profile for an identity, if one exists."""
        ...


@runtime_checkable
class OrgUnitDirectoryPort(Protocol):
    """Read-only org unit lookup."""

    async def get_org_unit(self, org_unit_id: str) -> OrgUnit | None:
        """Fetch an org unit by id; None if absent or not visible."""
        ...
