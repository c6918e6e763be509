"""Staff provisioning REST API router."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Header, Request

from staffline.domain.provisioning.orchestrator import ProvisioningOrchestrator  # noqa: TC001
from staffline.infra.fastapi.error_handlers import ProvisioningFailedError
from staffline.infra.fastapi.schemas import CreateStaffRequest, StaffCreatedResponse

router = APIRouter(prefix="/staff", tags=["staff"])


def get_orchestrator(request: Request) -> ProvisioningOrchestrator:
    """Orchestrator built by the application lifespan."""
    orchestrator: ProvisioningOrchestrator = request.app.state.orchestrator
    return orchestrator


Orchestrator = Annotated[ProvisioningOrchestrator, Depends(get_orchestrator)]


@router.post("", status_code=201)
async def create_staff(
    body: CreateStaffRequest,
    orchestrator: Orchestrator,
    x_request_id: Annotated[str | None, Header()] = None,
) -> StaffCreatedResponse:
    """Create an identity and staff profile.

    Returns 201 for complete and degraded results; failures are raised as
    problem responses with a status chosen from the failure cause.
    """
    result = await orchestrator.provision_account(
        body.email,
        body.password,
        body.profile_fields(),
        body.org_unit_id,
        correlation_id=x_request_id,
    )
    if not result.succeeded:
        raise ProvisioningFailedError(result)
    return StaffCreatedResponse.from_result(result)
