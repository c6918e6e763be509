"""Tests for the staff HTTP API: router, problem responses, app factory."""

from __future__ import annotations

from contextlib import AsyncExitStack
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from staffline.domain.provisioning.errors import FailureCause
from staffline.domain.provisioning.models import (
    IdentityPath,
    ProvisioningFailure,
    ProvisioningResult,
    ProvisioningStatus,
)
from staffline.foundation.domain.ports.identity_provider import (
    IdentityErrorKind,
    IdentityProviderError,
)
from staffline.infra.fastapi import AppSettings, ProvisioningFailedError, create_app
from staffline.infra.fastapi.app_factory import _build_orchestrator
from staffline.infra.fastapi.error_handlers import CAUSE_STATUS, PROBLEM_MEDIA_TYPE
from staffline.infra.identity.settings import IdentityProviderSettings
from staffline.infra.taskiq.settings import TaskIQSettings

STAFF = {
    "email": "jane@example.com",
    "password": "secret1",
    "first_name": "Jane",
    "last_name": "Doe",
    "job_title": "Barista",
}


def _client(orchestrator) -> TestClient:
    app = create_app(AppSettings(title="Staffline Test", version="9.9.9"), orchestrator=orchestrator)
    return TestClient(app, raise_server_exceptions=False)


@pytest.mark.unit
class TestCreateStaff:
    def test_complete_returns_201(self, make_orchestrator) -> None:
        with _client(make_orchestrator()) as client:
            response = client.post("/staff", json={**STAFF, "company_id": "org-1"})

        assert response.status_code == 201
        body = response.json()
        assert body["status"] == "complete"
        assert body["profile"]["org_unit_id"] == "org-1"
        assert body["profile"]["email"] == "jane@example.com"
        assert body["warnings"] == []
        assert body["states"][0] == "start"
        assert body["states"][-1] == "complete"
        assert "password" not in response.text

    def test_degraded_returns_201_with_warning(self, make_orchestrator) -> None:
        with _client(make_orchestrator()) as client:
            response = client.post("/staff", json={**STAFF, "org_unit_id": "org-missing"})

        assert response.status_code == 201
        body = response.json()
        assert body["status"] == "degraded"
        assert body["profile"]["org_unit_id"] is None
        assert [w["code"] for w in body["warnings"]] == ["association_invalid"]

    def test_request_id_becomes_correlation_id(self, make_orchestrator, publisher) -> None:
        with _client(make_orchestrator()) as client:
            client.post("/staff", json=STAFF, headers={"X-Request-ID": "req-123"})

        assert publisher.events[0].correlation_id == "req-123"

    def test_duplicate_returns_409_problem(self, make_orchestrator) -> None:
        with _client(make_orchestrator()) as client:
            client.post("/staff", json=STAFF)
            response = client.post("/staff", json=STAFF)

        assert response.status_code == 409
        assert response.headers["content-type"].startswith(PROBLEM_MEDIA_TYPE)
        problem = response.json()
        assert problem["type"] == "/errors/duplicate-email"
        assert problem["error_code"] == "DUPLICATE_EMAIL"
        assert problem["instance"] == "/staff"
        assert problem["context"]["retryable"] is False
        assert "already exists" in problem["detail"]

    def test_invalid_email_returns_422_with_field(self, make_orchestrator, identity_provider) -> None:
        with _client(make_orchestrator()) as client:
            response = client.post("/staff", json={**STAFF, "email": "not-an-email"})

        assert response.status_code == 422
        problem = response.json()
        assert problem["error_code"] == "INVALID_INPUT"
        assert problem["context"]["field"] == "email"
        assert problem["context"]["attempts"] == 0
        assert identity_provider.create_privileged_calls == 0

    def test_rate_limited_returns_429_with_retry_after(
        self, make_orchestrator, identity_provider
    ) -> None:
        identity_provider.create_errors = [
            IdentityProviderError(
                IdentityErrorKind.RATE_LIMITED, "rate limit", retry_after=30.5, status_code=429
            )
            for _ in range(3)
        ]
        with _client(make_orchestrator()) as client:
            response = client.post("/staff", json=STAFF)

        assert response.status_code == 429
        assert response.headers["Retry-After"] == "31"
        problem = response.json()
        assert problem["context"]["attempts"] == 3
        assert problem["context"]["retryable"] is True

    def test_identity_not_ready_returns_503(self, make_orchestrator, identity_provider) -> None:
        identity_provider.visibility_lag = 1000
        with _client(make_orchestrator(privileged=False)) as client:
            response = client.post("/staff", json=STAFF)

        assert response.status_code == 503
        problem = response.json()
        assert problem["type"] == "/errors/identity-not-ready"
        assert problem["context"]["attempts"] == 5
        assert "identity_id" in problem["context"]

    def test_malformed_body_returns_422_without_values(self, make_orchestrator) -> None:
        with _client(make_orchestrator()) as client:
            response = client.post("/staff", json={"email": "jane@example.com", "salary_date": "x"})

        assert response.status_code == 422
        problem = response.json()
        assert problem["error_code"] == "REQUEST_VALIDATION_ERROR"
        locs = [tuple(e["loc"]) for e in problem["context"]["errors"]]
        assert ("body", "password") in locs

    def test_unexpected_error_returns_500(self) -> None:
        orchestrator = MagicMock()
        orchestrator.provision_account = AsyncMock(side_effect=RuntimeError("boom"))

        with _client(orchestrator) as client:
            response = client.post("/staff", json=STAFF)

        assert response.status_code == 500
        assert response.json()["error_code"] == "INTERNAL_ERROR"
        assert "boom" not in response.text


@pytest.mark.unit
class TestProvisioningFailedError:
    def test_every_cause_has_a_status(self) -> None:
        assert set(CAUSE_STATUS) == set(FailureCause)

    def test_requires_failed_result(self) -> None:
        with pytest.raises(ValueError, match="failed result"):
            ProvisioningFailedError(ProvisioningResult(status=ProvisioningStatus.COMPLETE))

    def test_context_from_failure(self) -> None:
        result = ProvisioningResult(
            status=ProvisioningStatus.FAILED,
            error=ProvisioningFailure(
                cause=FailureCause.TIMEOUT, attempts=2, elapsed_seconds=30.01234
            ),
        )
        error = ProvisioningFailedError(result)

        assert error.error_code == "TIMEOUT"
        assert error.context["elapsed_seconds"] == 30.012
        assert error.context["retryable"] is True
        assert "field" not in error.context
        assert "step" not in error.context

    def test_context_names_failing_step(self) -> None:
        result = ProvisioningResult(
            status=ProvisioningStatus.FAILED,
            error=ProvisioningFailure(
                cause=FailureCause.TIMEOUT, attempts=3, elapsed_seconds=1.0, step="profile_write"
            ),
        )
        error = ProvisioningFailedError(result)

        assert error.context["step"] == "profile_write"


@pytest.mark.unit
class TestCreateApp:
    def test_returns_fastapi_instance(self, make_orchestrator) -> None:
        app = create_app(AppSettings(title="My Title", version="1.2.3"), orchestrator=make_orchestrator())
        assert isinstance(app, FastAPI)
        assert app.title == "My Title"
        assert app.version == "1.2.3"

    def test_staff_route_registered(self, make_orchestrator) -> None:
        app = create_app(orchestrator=make_orchestrator())
        assert app.url_path_for("create_staff") == "/staff"

    def test_lifespan_builds_orchestrator_when_not_injected(self, make_orchestrator) -> None:
        built = make_orchestrator()
        with (
            patch(
                "staffline.infra.fastapi.app_factory._build_orchestrator",
                AsyncMock(return_value=built),
            ) as build,
            patch("staffline.infra.fastapi.app_factory.configure_logging") as configure,
        ):
            app = create_app()
            with TestClient(app):
                assert app.state.orchestrator is built

        build.assert_awaited_once()
        configure.assert_called_once()


@pytest.mark.unit
class TestBuildOrchestrator:
    @pytest.mark.asyncio
    async def test_capabilities_follow_service_key(self) -> None:
        database = MagicMock()
        database.dispose = AsyncMock()
        with (
            patch(
                "staffline.infra.fastapi.app_factory.get_identity_settings",
                return_value=IdentityProviderSettings(anon_key="anon", service_role_key="svc"),
            ),
            patch(
                "staffline.infra.fastapi.app_factory.get_database_manager",
                return_value=database,
            ),
            patch(
                "staffline.infra.fastapi.app_factory.get_taskiq_settings",
                return_value=TaskIQSettings(publish_events=False),
            ),
        ):
            async with AsyncExitStack() as stack:
                orchestrator = await _build_orchestrator(stack)
                assert orchestrator.capabilities.identity_path is IdentityPath.PRIVILEGED

        database.dispose.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_public_path_without_service_key(self) -> None:
        database = MagicMock()
        database.dispose = AsyncMock()
        with (
            patch(
                "staffline.infra.fastapi.app_factory.get_identity_settings",
                return_value=IdentityProviderSettings(anon_key="anon", service_role_key=""),
            ),
            patch(
                "staffline.infra.fastapi.app_factory.get_database_manager",
                return_value=database,
            ),
            patch(
                "staffline.infra.fastapi.app_factory.get_taskiq_settings",
                return_value=TaskIQSettings(publish_events=False),
            ),
        ):
            async with AsyncExitStack() as stack:
                orchestrator = await _build_orchestrator(stack)
                assert orchestrator.capabilities.identity_path is IdentityPath.PUBLIC
