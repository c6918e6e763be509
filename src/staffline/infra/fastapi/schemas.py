"""Request and response models for the staff endpoint."""

from __future__ import annotations

from datetime import datetime  # noqa: TC003 -- pydantic needs it at runtime
from decimal import Decimal  # noqa: TC003 -- pydantic needs it at runtime

from pydantic import BaseModel, Field

from staffline.domain.provisioning.models import (
    ProfileFields,
    ProvisioningResult,
)
from staffline.foundation.domain.staff_records import Profile  # noqa: TC001


class CreateStaffRequest(BaseModel):
    """Body of ``POST /staff``.

    Only shape is checked here; email format, password length, and salary
    ranges are validated by the provisioning engine.
    """

    email: str
    password: str = Field(repr=False)
    first_name: str | None = None
    last_name: str | None = None
    job_title: str | None = None
    role: str | None = None
    org_unit_id: str | None = Field(default=None, alias="company_id")
    is_sub_admin: bool = False
    salary_amount: Decimal | None = None
    salary_date: int | None = None

    model_config = {"populate_by_name": True}

    def profile_fields(self) -> ProfileFields:
        return ProfileFields(
            first_name=self.first_name,
            last_name=self.last_name,
            job_title=self.job_title,
            role=self.role,
            is_sub_admin=self.is_sub_admin,
            salary_amount=self.salary_amount,
            salary_date=self.salary_date,
        )


class ProfileResponse(BaseModel):
    id: str
    email: str
    role: str
    first_name: str | None
    last_name: str | None
    job_title: str | None
    org_unit_id: str | None
    is_sub_admin: bool
    is_banned: bool
    salary_amount: Decimal | None
    salary_date: int | None
    created_at: datetime | None

    @classmethod
    def from_profile(cls, profile: Profile) -> ProfileResponse:
        return cls(
            id=str(profile.id),
            email=profile.email,
            role=profile.role,
            first_name=profile.first_name,
            last_name=profile.last_name,
            job_title=profile.job_title,
            org_unit_id=profile.org_unit_id,
            is_sub_admin=profile.is_sub_admin,
            is_banned=profile.is_banned,
            salary_amount=profile.salary_amount,
            salary_date=profile.salary_date,
            created_at=profile.created_at,
        )


class WarningResponse(BaseModel):
    code: str
    message: str


class StaffCreatedResponse(BaseModel):
    """Body of a successful (complete or degraded) provisioning."""

    status: str
    message: str
    profile: ProfileResponse
    warnings: list[WarningResponse]
    states: list[str]
    attempts: int

    @classmethod
    def from_result(cls, result: ProvisioningResult) -> StaffCreatedResponse:
        if result.profile is None:
            msg = "Successful provisioning result carries no profile"
            raise ValueError(msg)
        return cls(
            status=str(result.status),
            message=result.user_message,
            profile=ProfileResponse.from_profile(result.profile),
            warnings=[WarningResponse(code=w.code, message=w.message) for w in result.warnings],
            states=[str(s) for s in result.states],
            attempts=result.attempts,
        )
