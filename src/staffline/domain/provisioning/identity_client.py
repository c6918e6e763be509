"""Identity creation over the privileged or public provider path.

The path is chosen once from :class:`Capabilities`; a failing privileged
call never falls back to public signup, since doing so can hide privileged
misconfiguration and opens a window for duplicate accounts.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from staffline.domain.provisioning.errors import (
    DuplicateEmailError,
    InvalidInputError,
    PermissionDeniedError,
    RateLimitedError,
    UnknownProvisioningError,
)
from staffline.domain.provisioning.models import Capabilities, IdentityPath
from staffline.domain.provisioning.retry import (
    Decision,
    Fatal,
    Retry,
    RetryExhaustedError,
    retry_with_classifier,
)
from staffline.domain.provisioning.settings import ProvisioningSettings
from staffline.foundation.domain.ports.identity_provider import (
    IdentityErrorKind,
    IdentityProviderError,
)
from staffline.foundation.domain.staff_value_objects import Email

if TYPE_CHECKING:
    from uuid import UUID

    from staffline.domain.provisioning.retry import AttemptTracker, Clock, Sleep
    from staffline.foundation.domain.ports.identity_provider import IdentityProviderPort

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class CreatedIdentity:
    """Outcome of a successful identity creation.

    Attributes:
        identity_id: Account id issued by the provider.
        confirmed: Whether the provider confirmed the email.
        path: Path used to create the account.
        attempts: Provider calls made, including rate-limited ones.
    """

    identity_id: UUID
    confirmed: bool
    path: IdentityPath
    attempts: int


class _PendingAccountError(Exception):
    """Signup succeeded but no account id could be recovered."""


class IdentityClient:
    """Creates identities, classifying and retrying provider failures.

    DUPLICATE_EMAIL, INVALID_INPUT and PERMISSION_DENIED stop after the
    first attempt. RATE_LIMITED waits the provider-suggested time (padded
    and capped) and UNKNOWN backs off linearly, both within one attempt budget.
    """

    def __init__(
        self,
        provider: IdentityProviderPort,
        capabilities: Capabilities,
        settings: ProvisioningSettings | None = None,
        *,
        sleep: Sleep = asyncio.sleep,
        clock: Clock = time.monotonic,
    ) -> None:
        self._provider = provider
        self._capabilities = capabilities
        self._settings = settings or ProvisioningSettings()
        self._sleep = sleep
        self._clock = clock

    @property
    def path(self) -> IdentityPath:
        return self._capabilities.identity_path

    async def create_identity(
        self,
        email: str,
        password: str,
        metadata: dict[str, Any],
        *,
        tracker: AttemptTracker | None = None,
    ) -> CreatedIdentity:
        """Create an account for ``email``.

        Args:
            email: Validated, trimmed email.
            password: Initial password.
            metadata: Provider user metadata (role, names).
            tracker: Per-request attempt tracker.

        Returns:
            The created identity.

        Raises:
            DuplicateEmailError: Account already exists (not retried).
            InvalidInputError: Provider rejected the details (not retried).
            PermissionDeniedError: Credentials lack rights (not retried).
            RateLimitedError: Still rate limited when the budget ran out.
            UnknownProvisioningError: Unrecognised failures exhausted the
                budget, or no account id could be recovered.
        """
        path = self.path
        attempts = 0

        async def attempt(n: int) -> tuple[UUID, bool]:
            nonlocal attempts
            attempts = n
            if path is IdentityPath.PRIVILEGED:
                identity = await self._provider.create_privileged(email, password, metadata)
                return identity.id, identity.email_confirmed
            return await self._create_public(email, password, metadata)

        try:
            identity_id, confirmed = await retry_with_classifier(
                attempt,
                policy=self._settings.identity_retry_policy(),
                classify=lambda exc: self._classify(exc, attempts),
                tracker=tracker,
                sleep=self._sleep,
                clock=self._clock,
            )
        except RetryExhaustedError as exhausted:
            raise self._exhausted(exhausted) from exhausted.last_error

        logger.info(
            "identity_created",
            extra={"identity_id": str(identity_id), "path": str(path), "attempts": attempts},
        )
        return CreatedIdentity(
            identity_id=identity_id,
            confirmed=confirmed,
            path=path,
            attempts=attempts,
        )

    async def _create_public(
        self, email: str, password: str, metadata: dict[str, Any]
    ) -> tuple[UUID, bool]:
        signup = await self._provider.create_public(email, password, metadata)
        if signup.identity_id is not None:
            return signup.identity_id, signup.email_confirmed

        logger.warning("identity_signup_pending_without_id", extra={"path": "public"})
        recovered = await self._recover_pending_id(email, signup.access_token)
        if recovered is None:
            raise _PendingAccountError(email)
        return recovered, False

    async def _recover_pending_id(self, email: str, access_token: str | None) -> UUID | None:
        """Best-effort lookup of an account the provider created without returning it."""
        wanted = Email(email).normalized
        current = None
        if access_token:
            try:
                current = await self._provider.get_current_user(access_token)
            except IdentityProviderError as exc:
                logger.warning(
                    "identity_current_user_lookup_failed", extra={"kind": str(exc.kind)}
                )
        if current is not None and current.email.lower() == wanted:
            return current.id

        if not self._capabilities.can_lookup_by_email:
            return None
        try:
            listed = await self._provider.list_by_email(email)
        except IdentityProviderError as exc:
            logger.warning("identity_list_by_email_failed", extra={"kind": str(exc.kind)})
            return None
        return listed.id if listed is not None else None

    def _classify(self, exc: Exception, attempts: int) -> Decision:
        if isinstance(exc, _PendingAccountError):
            return Fatal(
                UnknownProvisioningError(
                    "Identity provider returned no account id",
                    attempts=attempts,
                )
            )
        if not isinstance(exc, IdentityProviderError):
            return Fatal(exc)

        kind = exc.kind
        if kind is IdentityErrorKind.DUPLICATE_EMAIL:
            return Fatal(DuplicateEmailError("Identity already exists for email", attempts=attempts))
        if kind is IdentityErrorKind.INVALID_INPUT:
            return Fatal(InvalidInputError("Identity provider rejected input", attempts=attempts))
        if kind is IdentityErrorKind.PERMISSION_DENIED:
            return Fatal(
                PermissionDeniedError("Identity provider denied the request", attempts=attempts)
            )
        if kind is IdentityErrorKind.RATE_LIMITED:
            delay = self._settings.rate_limit_delay(exc.retry_after)
            logger.warning(
                "identity_rate_limited",
                extra={"attempt": attempts, "retry_after": exc.retry_after, "delay_seconds": delay},
            )
            return Retry(delay=delay)
        logger.warning("identity_create_unknown_error", extra={"attempt": attempts})
        return Retry()

    def _exhausted(self, exhausted: RetryExhaustedError) -> Exception:
        last = exhausted.last_error
        if isinstance(last, IdentityProviderError) and last.kind is IdentityErrorKind.RATE_LIMITED:
            retry_after = (
                last.retry_after
                if last.retry_after is not None
                else self._settings.rate_limit_default_wait
            )
            return RateLimitedError(
                "Identity provider rate limit persisted",
                attempts=exhausted.attempts,
                elapsed_seconds=exhausted.elapsed_seconds,
                retry_after=retry_after,
            )
        return UnknownProvisioningError(
            "Identity creation kept failing",
            attempts=exhausted.attempts,
            elapsed_seconds=exhausted.elapsed_seconds,
        )
