"""Staffline Account Provisioning -- identity plus staff profile creation."""

from staffline.domain.provisioning.association import AssociationResolver, Resolution
from staffline.domain.provisioning.consistency import ConsistencyWaiter
from staffline.domain.provisioning.errors import (
    DuplicateEmailError,
    FailureCause,
    IdentityNotReadyError,
    InvalidInputError,
    PermissionDeniedError,
    ProfileAlreadyExistsError,
    ProvisioningError,
    ProvisioningTimeoutError,
    RateLimitedError,
    UnknownProvisioningError,
)
from staffline.domain.provisioning.events import ProfileProvisioned
from staffline.domain.provisioning.identity_client import CreatedIdentity, IdentityClient
from staffline.domain.provisioning.models import (
    Capabilities,
    IdentityPath,
    ProfileFields,
    ProvisioningFailure,
    ProvisioningResult,
    ProvisioningState,
    ProvisioningStatus,
    ProvisioningWarning,
)
from staffline.domain.provisioning.orchestrator import ProvisioningOrchestrator
from staffline.domain.provisioning.profile_writer import ProfileWriter, WriteOutcome
from staffline.domain.provisioning.retry import (
    Degrade,
    Fatal,
    Retry,
    RetryExhaustedError,
    RetryPolicy,
    retry_with_classifier,
)
from staffline.domain.provisioning.settings import (
    ProvisioningSettings,
    get_provisioning_settings,
)

__all__ = [
    "AssociationResolver",
    "Capabilities",
    "ConsistencyWaiter",
    "CreatedIdentity",
    "Degrade",
    "DuplicateEmailError",
    "FailureCause",
    "Fatal",
    "IdentityClient",
    "IdentityNotReadyError",
    "IdentityPath",
    "InvalidInputError",
    "PermissionDeniedError",
    "ProfileAlreadyExistsError",
    "ProfileFields",
    "ProfileProvisioned",
    "ProfileWriter",
    "ProvisioningError",
    "ProvisioningFailure",
    "ProvisioningOrchestrator",
    "ProvisioningResult",
    "ProvisioningSettings",
    "ProvisioningState",
    "ProvisioningStatus",
    "ProvisioningTimeoutError",
    "ProvisioningWarning",
    "RateLimitedError",
    "Resolution",
    "Retry",
    "RetryExhaustedError",
    "RetryPolicy",
    "UnknownProvisioningError",
    "WriteOutcome",
    "get_provisioning_settings",
    "retry_with_classifier",
]
