"""Staffline Foundation Domain -- pure Python domain primitives.

This package provides the foundational building blocks shared by the
console's subsystems: identifiers, exceptions, events, staff value objects,
records exchanged with external stores, and port interfaces.
"""

from staffline.foundation.domain.events import BaseEvent
from staffline.foundation.domain.exceptions import (
    DomainError,
    InvalidStateTransitionError,
)
from staffline.foundation.domain.identifiers import IdentityId, OrgUnitId
from staffline.foundation.domain.staff_records import (
    Identity,
    NewProfile,
    OrgUnit,
    Profile,
    PublicSignup,
)
from staffline.foundation.domain.staff_value_objects import Email, Password, SalaryTerms

__all__ = [
    "BaseEvent",
    "DomainError",
    "Email",
    "Identity",
    "IdentityId",
    "InvalidStateTransitionError",
    "NewProfile",
    "OrgUnit",
    "OrgUnitId",
    "Password",
    "Profile",
    "PublicSignup",
    "SalaryTerms",
]
