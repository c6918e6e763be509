"""Records exchanged with the identity provider and the profile store.

These are plain immutable snapshots. The identity provider owns
``Identity``; the profile store owns ``Profile``; ``OrgUnit`` is read-only
reference data.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from datetime import datetime
    from decimal import Decimal
    from uuid import UUID


@dataclass(frozen=True, slots=True)
class Identity:
    """Authentication account issued by the identity provider.

    Attributes:
        id: Globally unique account identifier (profile primary key anchor).
        email: Account email as stored by the provider.
        email_confirmed: Whether the provider considers the email confirmed.
    """

    id: UUID
    email: str
    email_confirmed: bool = False


@dataclass(frozen=True, slots=True)
class PublicSignup:
    """Raw outcome of a public (self-service) signup call.

    The provider may return the account, only a session, or neither while
    the account is still pending. The access token belongs to this one
    signup and is passed back explicitly when reading the session's account.

    Attributes:
        identity: Account returned in the response body, if it carried an id.
        session_identity_id: Account id found in the returned session, if any.
        access_token: Session token issued by the signup, if any.
    """

    identity: Identity | None = None
    session_identity_id: UUID | None = None
    access_token: str | None = field(default=None, repr=False)

    @property
    def identity_id(self) -> UUID | None:
        """First identity id available in the response, or None."""
        if self.identity is not None:
            return self.identity.id
        return self.session_identity_id

    @property
    def email_confirmed(self) -> bool:
        return self.identity is not None and self.identity.email_confirmed


@dataclass(frozen=True, slots=True)
class OrgUnit:
    """Organizational unit (company/department) reference data."""

    id: str
    name: str
    is_active: bool = True


@dataclass(frozen=True, slots=True)
class NewProfile:
    """Profile row to be written for a freshly created identity.

    ``id`` must equal the identity id; the store enforces that with a
    foreign key.
    """

    id: UUID
    email: str
    role: str
    first_name: str | None = None
    last_name: str | None = None
    job_title: str | None = None
    org_unit_id: str | None = None
    is_sub_admin: bool = False
    is_banned: bool = False
    salary_amount: Decimal | None = None
    salary_date: int | None = None

    def without_org_unit(self) -> NewProfile:
        """Copy of this row with the org unit association dropped."""
        return replace(self, org_unit_id=None)


@dataclass(frozen=True, slots=True)
class Profile:
    """Application-level staff record, one per identity."""

    id: UUID
    email: str
    role: str
    first_name: str | None = None
    last_name: str | None = None
    job_title: str | None = None
    org_unit_id: str | None = None
    is_sub_admin: bool = False
    is_banned: bool = False
    salary_amount: Decimal | None = None
    salary_date: int | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
