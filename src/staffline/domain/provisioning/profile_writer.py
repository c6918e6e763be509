"""Profile row creation tolerant of identity replication lag.

The server-side procedure is tried first; it retries the identity foreign
key internally. When it is not deployed (or still reports a foreign-key
failure) the writer falls back to a client-driven loop:

- identity FK violation: retry on the delay schedule
- org unit FK violation: drop the association and retry immediately,
  without spending an attempt
- primary-key conflict: fetch and return the existing row
- email conflict: duplicate email
- permission error: permission denied
- anything else: unknown, not retried
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING

from staffline.domain.provisioning.errors import (
    DuplicateEmailError,
    IdentityNotReadyError,
    PermissionDeniedError,
    ProfileAlreadyExistsError,
    UnknownProvisioningError,
)
from staffline.domain.provisioning.retry import (
    Decision,
    Degrade,
    Fatal,
    Retry,
    RetryExhaustedError,
    retry_with_classifier,
)
from staffline.domain.provisioning.settings import ProvisioningSettings
from staffline.foundation.domain.ports.profile_store import (
    ConstraintError,
    ConstraintKind,
    ProcedureUnavailableError,
)
from staffline.foundation.domain.staff_records import NewProfile

if TYPE_CHECKING:
    from uuid import UUID

    from staffline.domain.provisioning.models import ProfileFields
    from staffline.domain.provisioning.retry import AttemptTracker, Clock, Sleep
    from staffline.foundation.domain.ports.identity_provider import IdentityProviderPort
    from staffline.foundation.domain.ports.profile_store import ProfileStorePort
    from staffline.foundation.domain.staff_records import Profile

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class WriteOutcome:
    """Successful profile write.

    Attributes:
        profile: Row as stored.
        attempts: Write attempts made (1 for the procedure path).
        association_dropped: Org unit was removed after an FK violation.
        via_procedure: Row was created (or found) by the atomic procedure.
        already_existed: Row came from a prior run (primary-key conflict).
    """

    profile: Profile
    attempts: int
    association_dropped: bool = False
    via_procedure: bool = False
    already_existed: bool = False


class _IdentityNotVisibleError(Exception):
    """Pre-insert lookup did not find the identity yet."""


class ProfileWriter:
    """Writes the profile for a freshly created identity."""

    def __init__(
        self,
        store: ProfileStorePort,
        identity_provider: IdentityProviderPort | None = None,
        settings: ProvisioningSettings | None = None,
        *,
        sleep: Sleep = asyncio.sleep,
        clock: Clock = time.monotonic,
    ) -> None:
        self._store = store
        self._identity_provider = identity_provider
        self._settings = settings or ProvisioningSettings()
        self._sleep = sleep
        self._clock = clock

    def build_row(
        self,
        identity_id: UUID,
        email: str,
        fields: ProfileFields,
        org_unit_id: str | None,
    ) -> NewProfile:
        return NewProfile(
            id=identity_id,
            email=email,
            role=fields.role or self._settings.default_role,
            first_name=fields.first_name,
            last_name=fields.last_name,
            job_title=fields.job_title,
            org_unit_id=org_unit_id,
            is_sub_admin=fields.is_sub_admin,
            is_banned=fields.is_banned,
            salary_amount=fields.salary_amount,
            salary_date=fields.salary_date,
        )

    async def write(
        self,
        identity_id: UUID,
        email: str,
        fields: ProfileFields,
        org_unit_id: str | None = None,
        *,
        verify_identity: bool = False,
        tracker: AttemptTracker | None = None,
    ) -> WriteOutcome:
        """Create the profile row for ``identity_id``.

        Args:
            identity_id: Identity the profile belongs to (primary key).
            email: Profile email.
            fields: Optional profile attributes.
            org_unit_id: Resolved org unit, or None.
            verify_identity: Look the identity up before each fallback
                attempt (needs privileged lookups).
            tracker: Per-request attempt tracker.

        Returns:
            The write outcome.

        Raises:
            IdentityNotReadyError: Identity FK kept failing for every attempt.
            ProfileAlreadyExistsError: Primary key taken but no row readable.
            DuplicateEmailError: Another profile already owns the email.
            PermissionDeniedError: Store refused the write.
            UnknownProvisioningError: Unrecognised store failure.
        """
        row = self.build_row(identity_id, email, fields, org_unit_id)

        if self._settings.use_atomic_procedure:
            outcome = await self._write_atomic(row)
            if outcome is not None:
                return outcome

        return await self._write_with_retries(
            row, verify_identity=verify_identity, tracker=tracker
        )

    async def _write_atomic(self, row: NewProfile) -> WriteOutcome | None:
        """Try the procedure; None means "use the fallback loop"."""
        try:
            profile = await self._store.create_profile_atomic(row)
        except ProcedureUnavailableError:
            logger.info("profile_procedure_unavailable", extra={"identity_id": str(row.id)})
            return None
        except ConstraintError as exc:
            if exc.kind in (ConstraintKind.FK_IDENTITY, ConstraintKind.FK_ORG_UNIT):
                logger.info(
                    "profile_procedure_fk_fallback",
                    extra={"identity_id": str(row.id), "kind": str(exc.kind)},
                )
                return None
            if exc.kind is ConstraintKind.UNIQUE_PK:
                existing = await self._fetch_existing(row.id, attempts=1)
                return WriteOutcome(
                    profile=existing, attempts=1, via_procedure=True, already_existed=True
                )
            raise self._fatal_for(exc, attempts=1) from exc

        if profile is None:
            profile = await self._store.get_profile(row.id)
            if profile is None:
                logger.warning("profile_procedure_returned_nothing", extra={"identity_id": str(row.id)})
                return None

        logger.info("profile_created_via_procedure", extra={"identity_id": str(row.id)})
        return WriteOutcome(
            profile=profile,
            attempts=1,
            association_dropped=row.org_unit_id is not None and profile.org_unit_id is None,
            via_procedure=True,
        )

    async def _write_with_retries(
        self,
        row: NewProfile,
        *,
        verify_identity: bool,
        tracker: AttemptTracker | None,
    ) -> WriteOutcome:
        current = row
        dropped = False
        attempts = 0

        def drop_association(exc: Exception) -> None:
            nonlocal current, dropped
            logger.warning(
                "profile_write_org_unit_dropped",
                extra={"identity_id": str(row.id), "org_unit_id": current.org_unit_id},
            )
            current = current.without_org_unit()
            dropped = True

        async def attempt(n: int) -> tuple[Profile, bool]:
            nonlocal attempts
            attempts = n
            if verify_identity and not await self._identity_visible(row.id):
                raise _IdentityNotVisibleError(str(row.id))
            try:
                return await self._store.insert_profile(current), False
            except ConstraintError as exc:
                if exc.kind is ConstraintKind.UNIQUE_PK:
                    return await self._fetch_existing(row.id, attempts=n), True
                raise

        def classify(exc: Exception) -> Decision:
            if isinstance(exc, _IdentityNotVisibleError):
                logger.info("profile_write_identity_not_visible", extra={"attempt": attempts})
                return Retry()
            if not isinstance(exc, ConstraintError):
                return Fatal(exc)
            if exc.kind is ConstraintKind.FK_IDENTITY:
                logger.info(
                    "profile_write_fk_identity_retry",
                    extra={"identity_id": str(row.id), "attempt": attempts},
                )
                return Retry()
            if exc.kind is ConstraintKind.FK_ORG_UNIT and current.org_unit_id is not None:
                return Degrade()
            return Fatal(self._fatal_for(exc, attempts=attempts))

        try:
            profile, existed = await retry_with_classifier(
                attempt,
                policy=self._settings.profile_retry_policy(),
                classify=classify,
                on_degrade=drop_association,
                tracker=tracker,
                sleep=self._sleep,
                clock=self._clock,
            )
        except RetryExhaustedError as exhausted:
            logger.warning(
                "profile_write_identity_not_ready",
                extra={
                    "identity_id": str(row.id),
                    "attempts": exhausted.attempts,
                    "elapsed_seconds": exhausted.elapsed_seconds,
                },
            )
            raise IdentityNotReadyError(
                "Identity not visible to the profile store",
                attempts=exhausted.attempts,
                elapsed_seconds=exhausted.elapsed_seconds,
            ) from exhausted.last_error

        logger.info(
            "profile_created",
            extra={"identity_id": str(row.id), "attempts": attempts, "already_existed": existed},
        )
        return WriteOutcome(
            profile=profile,
            attempts=attempts,
            association_dropped=dropped,
            already_existed=existed,
        )

    async def _identity_visible(self, identity_id: UUID) -> bool:
        """Pre-insert lookup; lookup failures count as visible."""
        if self._identity_provider is None:
            return True
        try:
            return await self._identity_provider.get_by_id(identity_id) is not None
        except Exception:
            logger.warning(
                "profile_write_identity_lookup_failed",
                extra={"identity_id": str(identity_id)},
                exc_info=True,
            )
            return True

    async def _fetch_existing(self, identity_id: UUID, *, attempts: int) -> Profile:
        existing = await self._store.get_profile(identity_id)
        if existing is None:
            raise ProfileAlreadyExistsError(
                "Profile primary key taken but row not readable",
                attempts=attempts,
                identity_id=str(identity_id),
            )
        logger.info("profile_already_exists_returned", extra={"identity_id": str(identity_id)})
        return existing

    @staticmethod
    def _fatal_for(exc: ConstraintError, *, attempts: int) -> Exception:
        if exc.kind is ConstraintKind.UNIQUE_EMAIL:
            return DuplicateEmailError("Profile email already in use", attempts=attempts)
        if exc.kind is ConstraintKind.PERMISSION:
            return PermissionDeniedError("Profile store denied the write", attempts=attempts)
        logger.error(
            "profile_write_unrecognised_failure",
            extra={"kind": str(exc.kind), "sqlstate": exc.sqlstate, "constraint": exc.constraint},
        )
        return UnknownProvisioningError("Profile write failed", attempts=attempts)
