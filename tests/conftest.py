"""Shared fakes and fixtures for the provisioning tests.

The fakes model the two external stores closely enough to reproduce
replication lag: an identity is created immediately, but every visibility
check (a provider point lookup or a profile insert's foreign-key check)
fails until ``visibility_lag`` checks have been made for it.
"""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any
from uuid import UUID, uuid4

import pytest

from staffline.domain.provisioning.models import Capabilities
from staffline.domain.provisioning.orchestrator import ProvisioningOrchestrator
from staffline.domain.provisioning.settings import ProvisioningSettings
from staffline.foundation.domain.ports.identity_provider import (
    IdentityErrorKind,
    IdentityProviderError,
)
from staffline.foundation.domain.ports.profile_store import (
    ConstraintError,
    ConstraintKind,
    ProcedureUnavailableError,
)
from staffline.foundation.domain.staff_records import (
    Identity,
    OrgUnit,
    Profile,
    PublicSignup,
)

if TYPE_CHECKING:
    from collections.abc import Callable

    from staffline.foundation.domain.events import BaseEvent
    from staffline.foundation.domain.staff_records import NewProfile


class VirtualClock:
    """Monotonic clock advanced only by ``sleep``."""

    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds
        await asyncio.sleep(0)


class FakeIdentityProvider:
    """In-memory identity provider with configurable visibility lag."""

    def __init__(self, visibility_lag: int = 0) -> None:
        self.visibility_lag = visibility_lag
        self.identities: dict[UUID, Identity] = {}
        self.visibility_checks: dict[UUID, int] = {}
        self.create_errors: list[IdentityProviderError] = []
        self.public_signup_without_id = False
        self.issue_session_tokens = False
        self.sessions: dict[str, Identity] = {}
        self.current_user_tokens: list[str] = []
        self.lookup_error: Exception | None = None
        self.create_privileged_calls = 0
        self.create_public_calls = 0
        self.get_by_id_calls = 0
        self.list_by_email_calls = 0
        self.metadata: list[dict[str, Any]] = []

    def is_visible(self, identity_id: UUID) -> bool:
        if identity_id not in self.identities:
            return False
        checks = self.visibility_checks.get(identity_id, 0) + 1
        self.visibility_checks[identity_id] = checks
        return checks > self.visibility_lag

    def add_identity(self, email: str, *, confirmed: bool = True) -> Identity:
        identity = Identity(id=uuid4(), email=email, email_confirmed=confirmed)
        self.identities[identity.id] = identity
        return identity

    def _create(self, email: str, metadata: dict[str, Any], *, confirmed: bool) -> Identity:
        self.metadata.append(metadata)
        if self.create_errors:
            raise self.create_errors.pop(0)
        if any(i.email.lower() == email.lower() for i in self.identities.values()):
            raise IdentityProviderError(
                IdentityErrorKind.DUPLICATE_EMAIL, "User already registered", status_code=422
            )
        return self.add_identity(email, confirmed=confirmed)

    async def create_privileged(
        self, email: str, password: str, metadata: dict[str, Any]
    ) -> Identity:
        self.create_privileged_calls += 1
        return self._create(email, metadata, confirmed=True)

    async def create_public(
        self, email: str, password: str, metadata: dict[str, Any]
    ) -> PublicSignup:
        self.create_public_calls += 1
        identity = self._create(email, metadata, confirmed=False)
        token = None
        if self.issue_session_tokens:
            token = f"session-{identity.id}"
            self.sessions[token] = identity
        # let concurrent signups interleave before the response is returned
        await asyncio.sleep(0)
        if self.public_signup_without_id:
            return PublicSignup(access_token=token)
        return PublicSignup(identity=identity, access_token=token)

    async def get_by_id(self, identity_id: UUID) -> Identity | None:
        self.get_by_id_calls += 1
        if self.lookup_error is not None:
            raise self.lookup_error
        if not self.is_visible(identity_id):
            return None
        return self.identities[identity_id]

    async def list_by_email(self, email: str) -> Identity | None:
        self.list_by_email_calls += 1
        for identity in self.identities.values():
            if identity.email.lower() == email.lower():
                return identity
        return None

    async def get_current_user(self, access_token: str) -> Identity | None:
        self.current_user_tokens.append(access_token)
        return self.sessions.get(access_token)


class FakeProfileStore:
    """In-memory profile store enforcing the identity FK, org unit FK and PK."""

    def __init__(
        self,
        identity_provider: FakeIdentityProvider,
        org_unit_ids: set[str] | None = None,
        *,
        procedure_available: bool = False,
    ) -> None:
        self.identity_provider = identity_provider
        self.org_unit_ids = org_unit_ids if org_unit_ids is not None else set()
        self.procedure_available = procedure_available
        self.procedure_returns_none = False
        self.insert_error: ConstraintError | None = None
        self.rows: dict[UUID, Profile] = {}
        self.insert_calls = 0
        self.procedure_calls = 0
        self.inserted: list[NewProfile] = []

    def _store(self, row: NewProfile) -> Profile:
        if not self.identity_provider.is_visible(row.id):
            raise ConstraintError(
                ConstraintKind.FK_IDENTITY,
                'insert or update on table "users" violates foreign key constraint "users_id_fkey"',
                constraint="users_id_fkey",
                sqlstate="23503",
            )
        if row.org_unit_id is not None and row.org_unit_id not in self.org_unit_ids:
            raise ConstraintError(
                ConstraintKind.FK_ORG_UNIT,
                'violates foreign key constraint "users_company_id_fkey"',
                constraint="users_company_id_fkey",
                sqlstate="23503",
            )
        if row.id in self.rows:
            raise ConstraintError(
                ConstraintKind.UNIQUE_PK,
                'duplicate key value violates unique constraint "users_pkey"',
                constraint="users_pkey",
                sqlstate="23505",
            )
        if any(p.email.lower() == row.email.lower() for p in self.rows.values()):
            raise ConstraintError(
                ConstraintKind.UNIQUE_EMAIL,
                'duplicate key value violates unique constraint "users_email_key"',
                constraint="users_email_key",
                sqlstate="23505",
            )
        now = datetime.now(UTC)
        profile = Profile(
            id=row.id,
            email=row.email,
            role=row.role,
            first_name=row.first_name,
            last_name=row.last_name,
            job_title=row.job_title,
            org_unit_id=row.org_unit_id,
            is_sub_admin=row.is_sub_admin,
            is_banned=row.is_banned,
            salary_amount=row.salary_amount,
            salary_date=row.salary_date,
            created_at=now,
            updated_at=now,
        )
        self.rows[row.id] = profile
        return profile

    async def create_profile_atomic(self, profile: NewProfile) -> Profile | None:
        if not self.procedure_available:
            raise ProcedureUnavailableError("function create_staff_profile does not exist")
        self.procedure_calls += 1
        stored = self._store(profile)
        if self.procedure_returns_none:
            return None
        return stored

    async def insert_profile(self, profile: NewProfile) -> Profile:
        self.insert_calls += 1
        self.inserted.append(profile)
        if self.insert_error is not None:
            raise self.insert_error
        return self._store(profile)

    async def get_profile(self, identity_id: UUID) -> Profile | None:
        return self.rows.get(identity_id)


class FakeOrgUnitDirectory:
    def __init__(self, units: list[OrgUnit] | None = None) -> None:
        self.units = {u.id: u for u in units or []}
        self.error: Exception | None = None
        self.calls: list[str] = []

    async def get_org_unit(self, org_unit_id: str) -> OrgUnit | None:
        self.calls.append(org_unit_id)
        if self.error is not None:
            raise self.error
        return self.units.get(org_unit_id)


class RecordingPublisher:
    def __init__(self) -> None:
        self.events: list[BaseEvent] = []
        self.error: Exception | None = None

    async def publish(self, event: BaseEvent) -> None:
        if self.error is not None:
            raise self.error
        self.events.append(event)


@pytest.fixture()
def clock() -> VirtualClock:
    return VirtualClock()


@pytest.fixture()
def settings() -> ProvisioningSettings:
    return ProvisioningSettings(_env_file=None)  # type: ignore[call-arg]


@pytest.fixture()
def identity_provider() -> FakeIdentityProvider:
    return FakeIdentityProvider()


@pytest.fixture()
def org_units() -> FakeOrgUnitDirectory:
    return FakeOrgUnitDirectory(
        [
            OrgUnit(id="org-1", name="Head Office"),
            OrgUnit(id="org-closed", name="Old Branch", is_active=False),
        ]
    )


@pytest.fixture()
def profile_store(identity_provider: FakeIdentityProvider) -> FakeProfileStore:
    return FakeProfileStore(identity_provider, {"org-1", "org-closed"})


@pytest.fixture()
def publisher() -> RecordingPublisher:
    return RecordingPublisher()


@pytest.fixture()
def make_orchestrator(
    identity_provider: FakeIdentityProvider,
    profile_store: FakeProfileStore,
    org_units: FakeOrgUnitDirectory,
    publisher: RecordingPublisher,
    settings: ProvisioningSettings,
    clock: VirtualClock,
) -> Callable[..., ProvisioningOrchestrator]:
    """Factory building an orchestrator over the shared fakes."""

    def _make(
        *,
        privileged: bool = True,
        settings_override: ProvisioningSettings | None = None,
    ) -> ProvisioningOrchestrator:
        return ProvisioningOrchestrator(
            identity_provider=identity_provider,
            profile_store=profile_store,
            org_unit_directory=org_units,
            capabilities=Capabilities(privileged_available=privileged),
            settings=settings_override or settings,
            event_publisher=publisher,
            sleep=clock.sleep,
            clock=clock,
        )

    return _make
