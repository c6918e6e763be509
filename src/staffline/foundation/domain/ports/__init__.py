"""Port interfaces for the external systems staffline depends on."""

from staffline.foundation.domain.ports.event_publisher import EventPublisherPort
from staffline.foundation.domain.ports.identity_provider import (
    IdentityErrorKind,
    IdentityProviderError,
    IdentityProviderPort,
)
from staffline.foundation.domain.ports.profile_store import (
    ConstraintError,
    ConstraintKind,
    OrgUnitDirectoryPort,
    ProcedureUnavailableError,
    ProfileStorePort,
)

__all__ = [
    "ConstraintError",
    "ConstraintKind",
    "EventPublisherPort",
    "IdentityErrorKind",
    "IdentityProviderError",
    "IdentityProviderPort",
    "OrgUnitDirectoryPort",
    "ProcedureUnavailableError",
    "ProfileStorePort",
]
