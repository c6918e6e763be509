"""Events emitted after a staff profile has been committed."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from staffline.foundation.domain.events import BaseEvent

if TYPE_CHECKING:
    from staffline.foundation.domain.staff_records import Profile


@dataclass(frozen=True, kw_only=True)
class ProfileProvisioned(BaseEvent):
    """A staff profile exists and follow-up work may start.

    Consumed by out-of-process collaborators (welcome email, leave balance
    initialisation). Carries no credentials.

    Attributes:
        email: Profile email.
        role: Assigned role.
        first_name: Given name, if supplied.
        last_name: Family name, if supplied.
        org_unit_id: Attached org unit, or None.
        degraded: The requested org unit association was dropped.
    """

    email: str = ""
    role: str = ""
    first_name: str | None = None
    last_name: str | None = None
    org_unit_id: str | None = None
    degraded: bool = False

    def __post_init__(self) -> None:
        """Reject events that do not identify the provisioned account.

        Raises:
            ValueError: If email or role is empty.
        """
        if not self.email:
            msg = "ProfileProvisioned requires an email"
            raise ValueError(msg)
        if not self.role:
            msg = "ProfileProvisioned requires a role"
            raise ValueError(msg)

    @classmethod
    def from_profile(
        cls,
        profile: Profile,
        *,
        degraded: bool,
        correlation_id: str | None = None,
    ) -> ProfileProvisioned:
        return cls(
            originator_id=profile.id,
            originator_version=1,
            timestamp=datetime.now(UTC),
            correlation_id=correlation_id,
            email=profile.email,
            role=profile.role,
            first_name=profile.first_name,
            last_name=profile.last_name,
            org_unit_id=profile.org_unit_id,
            degraded=degraded,
        )

    @property
    def profile_id(self) -> str:
        return str(self.originator_id)

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data.update(
            {
                "profile_id": self.profile_id,
                "email": self.email,
                "role": self.role,
                "first_name": self.first_name,
                "last_name": self.last_name,
                "org_unit_id": self.org_unit_id,
                "degraded": self.degraded,
            }
        )
        return data
