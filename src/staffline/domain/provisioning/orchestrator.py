"""Provisioning state machine.

Drives one request through::

    START -> IDENTITY_CREATING -> IDENTITY_VISIBLE -> ASSOCIATION_RESOLVED
          -> PROFILE_WRITING -> COMPLETE | DEGRADED | FAILED

Every non-terminal state may move to FAILED. A created identity is never
deleted when the profile write fails: an identity without a profile is a
recoverable intermediate state that a repeated request detects as a
duplicate email (or resumes, when orphan resume is enabled).
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import structlog

from staffline.domain.provisioning.association import (
    WARNING_ASSOCIATION_INVALID,
    AssociationResolver,
)
from staffline.domain.provisioning.consistency import ConsistencyWaiter
from staffline.domain.provisioning.errors import (
    DuplicateEmailError,
    InvalidInputError,
    ProvisioningError,
    ProvisioningTimeoutError,
    UnknownProvisioningError,
)
from staffline.domain.provisioning.events import ProfileProvisioned
from staffline.domain.provisioning.identity_client import IdentityClient
from staffline.domain.provisioning.models import (
    ProfileFields,
    ProvisioningFailure,
    ProvisioningResult,
    ProvisioningState,
    ProvisioningStatus,
    ProvisioningWarning,
)
from staffline.domain.provisioning.profile_writer import ProfileWriter
from staffline.domain.provisioning.retry import AttemptTracker
from staffline.domain.provisioning.settings import ProvisioningSettings
from staffline.foundation.domain.exceptions import InvalidStateTransitionError
from staffline.foundation.domain.ports.identity_provider import IdentityProviderError
from staffline.foundation.domain.staff_value_objects import Email, Password, SalaryTerms

if TYPE_CHECKING:
    from uuid import UUID

    from staffline.domain.provisioning.models import Capabilities
    from staffline.domain.provisioning.retry import Clock, Sleep
    from staffline.foundation.domain.ports.event_publisher import EventPublisherPort
    from staffline.foundation.domain.ports.identity_provider import IdentityProviderPort
    from staffline.foundation.domain.ports.profile_store import (
        OrgUnitDirectoryPort,
        ProfileStorePort,
    )

logger = structlog.get_logger(__name__)

_S = ProvisioningState

ALLOWED_TRANSITIONS: dict[ProvisioningState, frozenset[ProvisioningState]] = {
    _S.START: frozenset({_S.IDENTITY_CREATING, _S.FAILED}),
    _S.IDENTITY_CREATING: frozenset({_S.IDENTITY_VISIBLE, _S.FAILED}),
    _S.IDENTITY_VISIBLE: frozenset({_S.ASSOCIATION_RESOLVED, _S.FAILED}),
    _S.ASSOCIATION_RESOLVED: frozenset({_S.PROFILE_WRITING, _S.FAILED}),
    _S.PROFILE_WRITING: frozenset({_S.COMPLETE, _S.DEGRADED, _S.FAILED}),
    _S.COMPLETE: frozenset(),
    _S.DEGRADED: frozenset(),
    _S.FAILED: frozenset(),
}


@dataclass
class _Run:
    """Mutable bookkeeping for one request."""

    started: float
    states: list[ProvisioningState] = field(default_factory=lambda: [ProvisioningState.START])
    tracker: AttemptTracker = field(default_factory=AttemptTracker)
    identity_id: UUID | None = None

    @property
    def state(self) -> ProvisioningState:
        return self.states[-1]


class ProvisioningOrchestrator:
    """Creates a staff account: identity, then profile.

    The identity path is fixed by ``capabilities``; nothing here reads
    process-wide configuration.

    Example:
        >>> orchestrator = ProvisioningOrchestrator(
        ...     identity_provider=provider,
        ...     profile_store=store,
        ...     org_unit_directory=directory,
        ...     capabilities=Capabilities(privileged_available=True),
        ... )
        >>> result = await orchestrator.provision_account("a@x.com", "s3cret!", org_unit_id="org-1")
        >>> result.status
        <ProvisioningStatus.COMPLETE: 'complete'>
    """

    def __init__(
        self,
        *,
        identity_provider: IdentityProviderPort,
        profile_store: ProfileStorePort,
        org_unit_directory: OrgUnitDirectoryPort,
        capabilities: Capabilities,
        settings: ProvisioningSettings | None = None,
        event_publisher: EventPublisherPort | None = None,
        sleep: Sleep = asyncio.sleep,
        clock: Clock = time.monotonic,
    ) -> None:
        self._settings = settings or ProvisioningSettings()
        self._capabilities = capabilities
        self._identity_provider = identity_provider
        self._profile_store = profile_store
        self._publisher = event_publisher
        self._clock = clock

        self._identity_client = IdentityClient(
            identity_provider, capabilities, self._settings, sleep=sleep, clock=clock
        )
        self._waiter = ConsistencyWaiter(
            identity_provider, capabilities, self._settings, sleep=sleep
        )
        self._resolver = AssociationResolver(org_unit_directory)
        self._writer = ProfileWriter(
            profile_store,
            identity_provider if capabilities.privileged_available else None,
            self._settings,
            sleep=sleep,
            clock=clock,
        )

    @property
    def capabilities(self) -> Capabilities:
        return self._capabilities

    async def provision_account(
        self,
        email: str,
        password: str,
        fields: ProfileFields | None = None,
        org_unit_id: str | None = None,
        *,
        deadline: float | None = None,
        correlation_id: str | None = None,
    ) -> ProvisioningResult:
        """Provision a staff account end to end.

        Never raises for provisioning failures; they are returned as a
        FAILED result with a structured cause.

        Args:
            email: Account email (trimmed before use).
            password: Initial password.
            fields: Optional profile attributes.
            org_unit_id: Optional org unit to associate.
            deadline: Overall time limit in seconds; overrides the configured one.
            correlation_id: Copied onto the post-commit event.

        Returns:
            Terminal result with the visited state trace.

        Raises:
            InvalidStateTransitionError: On an internal state machine bug.
        """
        run = _Run(started=self._clock())
        fields = fields or ProfileFields()
        log = logger.bind(email=email.strip() if email else email)

        try:
            valid_email = self._validate(email, password, fields)
        except InvalidInputError as exc:
            return self._fail(run, exc, log)

        limit = deadline if deadline is not None else self._settings.deadline_seconds
        try:
            async with asyncio.timeout(limit):
                result = await self._provision(run, valid_email, password, fields, org_unit_id, log)
        except TimeoutError:
            timeout = ProvisioningTimeoutError(
                "Provisioning deadline exceeded",
                attempts=run.tracker.attempts,
                elapsed_seconds=self._clock() - run.started,
                step=run.tracker.step,
            )
            return self._fail(run, timeout, log)
        except InvalidStateTransitionError:
            raise
        except ProvisioningError as exc:
            return self._fail(run, exc, log)
        except Exception as exc:
            log.exception("provisioning_unexpected_error", state=str(run.state))
            unknown = UnknownProvisioningError(
                "Unexpected provisioning failure",
                attempts=max(run.tracker.attempts, 1),
                error_type=type(exc).__name__,
            )
            return self._fail(run, unknown, log)

        await self._publish(result, correlation_id, log)
        return result

    def _validate(self, email: str, password: str, fields: ProfileFields) -> Email:
        try:
            valid_email = Email(email or "")
        except ValueError as exc:
            raise InvalidInputError(str(exc), field="email", attempts=0) from exc
        try:
            Password(password or "", minimum_length=self._settings.minimum_password_length)
        except ValueError as exc:
            raise InvalidInputError(str(exc), field="password", attempts=0) from exc
        try:
            SalaryTerms(amount=fields.salary_amount, day_of_month=fields.salary_date)
        except ValueError as exc:
            raise InvalidInputError(str(exc), field="salary", attempts=0) from exc
        return valid_email

    async def _provision(
        self,
        run: _Run,
        email: Email,
        password: str,
        fields: ProfileFields,
        org_unit_id: str | None,
        log: structlog.typing.FilteringBoundLogger,
    ) -> ProvisioningResult:
        self._transition(run, ProvisioningState.IDENTITY_CREATING)
        run.tracker.begin("identity_create")
        log.info("identity_creating", path=str(self._capabilities.identity_path))

        try:
            created = await self._identity_client.create_identity(
                email.value,
                password,
                fields.identity_metadata(self._settings.default_role),
                tracker=run.tracker,
            )
        except DuplicateEmailError:
            orphan_id = await self._find_orphaned_identity(email, log)
            if orphan_id is None:
                raise
            run.identity_id = orphan_id
            log = log.bind(identity_id=str(orphan_id))
            log.info("identity_orphan_resumed")
            verified = True
        else:
            run.identity_id = created.identity_id
            log = log.bind(identity_id=str(created.identity_id))
            run.tracker.begin("consistency_wait")
            verified = await self._waiter.wait_until_visible(created.identity_id, created.path)
        self._transition(run, ProvisioningState.IDENTITY_VISIBLE)

        run.tracker.begin("association_resolve")
        resolution = await self._resolver.resolve(org_unit_id)
        self._transition(run, ProvisioningState.ASSOCIATION_RESOLVED)

        self._transition(run, ProvisioningState.PROFILE_WRITING)
        run.tracker.begin("profile_write")
        outcome = await self._writer.write(
            run.identity_id,
            email.value,
            fields,
            resolution.org_unit_id,
            verify_identity=self._capabilities.privileged_available and not verified,
            tracker=run.tracker,
        )

        warnings = list(resolution.warnings)
        if outcome.association_dropped:
            warnings.append(
                ProvisioningWarning(
                    code=WARNING_ASSOCIATION_INVALID,
                    message=(
                        f"Org unit {resolution.org_unit_id!r} was rejected by the profile "
                        "store; the profile was saved without it."
                    ),
                )
            )

        degraded = resolution.dropped or outcome.association_dropped
        status = ProvisioningStatus.DEGRADED if degraded else ProvisioningStatus.COMPLETE
        self._transition(
            run, ProvisioningState.DEGRADED if degraded else ProvisioningState.COMPLETE
        )
        log.info(
            "provisioning_succeeded",
            status=str(status),
            attempts=outcome.attempts,
            via_procedure=outcome.via_procedure,
            already_existed=outcome.already_existed,
            elapsed_seconds=round(self._clock() - run.started, 3),
        )
        return ProvisioningResult(
            status=status,
            profile=outcome.profile,
            identity_id=run.identity_id,
            warnings=tuple(warnings),
            states=tuple(run.states),
            attempts=outcome.attempts,
            already_existed=outcome.already_existed,
        )

    async def _find_orphaned_identity(
        self, email: Email, log: structlog.typing.FilteringBoundLogger
    ) -> UUID | None:
        """Existing identity for ``email`` that has no profile, if resumable."""
        if not (self._settings.resume_orphaned_identity and self._capabilities.can_lookup_by_email):
            return None
        try:
            identity = await self._identity_provider.list_by_email(email.value)
        except IdentityProviderError as exc:
            log.warning("identity_orphan_lookup_failed", kind=str(exc.kind))
            return None
        if identity is None:
            return None
        if await self._profile_store.get_profile(identity.id) is not None:
            return None
        return identity.id

    def _transition(self, run: _Run, target: ProvisioningState) -> None:
        current = run.state
        if target not in ALLOWED_TRANSITIONS[current]:
            msg = f"Cannot move from {current.name} to {target.name}"
            raise InvalidStateTransitionError(
                msg, current_state=str(current), target_state=str(target)
            )
        run.states.append(target)

    def _fail(
        self,
        run: _Run,
        error: ProvisioningError,
        log: structlog.typing.FilteringBoundLogger,
    ) -> ProvisioningResult:
        self._transition(run, ProvisioningState.FAILED)
        local_field = getattr(error, "field", None)
        failure = ProvisioningFailure(
            cause=error.cause,
            attempts=error.attempts,
            elapsed_seconds=self._clock() - run.started,
            retry_after=error.retry_after,
            field=local_field,
            reason=getattr(error, "reason", None) if local_field else None,
            step=error.context.get("step"),
        )
        log.warning(
            "provisioning_failed",
            cause=str(failure.cause),
            error_code=error.error_code,
            attempts=failure.attempts,
            step=failure.step,
            elapsed_seconds=round(failure.elapsed_seconds, 3),
            retryable=failure.cause.retryable,
        )
        return ProvisioningResult(
            status=ProvisioningStatus.FAILED,
            error=failure,
            identity_id=run.identity_id,
            states=tuple(run.states),
        )

    async def _publish(
        self,
        result: ProvisioningResult,
        correlation_id: str | None,
        log: structlog.typing.FilteringBoundLogger,
    ) -> None:
        if self._publisher is None or result.profile is None:
            return
        if result.already_existed:
            log.info("profile_provisioned_publish_skipped", reason="already_existed")
            return
        event = ProfileProvisioned.from_profile(
            result.profile,
            degraded=result.status is ProvisioningStatus.DEGRADED,
            correlation_id=correlation_id,
        )
        try:
            await self._publisher.publish(event)
        except Exception:
            log.exception("profile_provisioned_publish_failed")
