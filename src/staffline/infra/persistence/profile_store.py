"""PostgreSQL profile store and org unit directory.

Staff profiles live in ``users`` (primary key references the identity
provider's account table); org units live in ``companies``. Profile creation
prefers the ``create_staff_profile`` procedure, which retries the identity
foreign key server-side.

Database errors are translated here: psycopg diagnostics (SQLSTATE and
constraint name) are handed to the classification functions, so the
engine only ever sees :class:`ConstraintError` or
:class:`ProcedureUnavailableError`.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any
from uuid import UUID

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError

from staffline.domain.provisioning.classification import (
    DEFAULT_CONSTRAINT_NAMES,
    ConstraintNames,
    classify_constraint,
    is_missing_procedure,
)
from staffline.foundation.domain.ports.profile_store import (
    ConstraintError,
    ProcedureUnavailableError,
)
from staffline.foundation.domain.staff_records import OrgUnit, Profile

if TYPE_CHECKING:
    from collections.abc import Mapping

    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from staffline.foundation.domain.staff_records import NewProfile

logger = logging.getLogger(__name__)

_PROFILE_COLUMNS = """
    id, email, role, first_name, last_name, job_title, company_id,
    is_sub_admin, is_banned, salary_amount, salary_date, created_at, updated_at
"""


class SqlProfileStore:
    """Profile store backed by the ``users`` table.

    Args:
        session_factory: Async session factory.
        constraint_names: Constraint names of the ``users`` table.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        constraint_names: ConstraintNames = DEFAULT_CONSTRAINT_NAMES,
    ) -> None:
        self._session_factory = session_factory
        self._constraint_names = constraint_names

    async def create_profile_atomic(self, profile: NewProfile) -> Profile | None:
        async with self._session_factory() as session:
            try:
                result = await session.execute(
                    text(f"""
                        SELECT {_PROFILE_COLUMNS}
                        FROM create_staff_profile(
                            p_user_id := :id,
                            p_email := :email,
                            p_role := :role,
                            p_first_name := :first_name,
                            p_last_name := :last_name,
                            p_job_title := :job_title,
                            p_company_id := :company_id,
                            p_salary_amount := :salary_amount,
                            p_salary_date := :salary_date,
                            p_is_sub_admin := :is_sub_admin
                        )
                    """),
                    _row_params(profile),
                )
                row = result.mappings().first()
                await session.commit()
            except DBAPIError as exc:
                raise self._translate(exc, procedure=True) from exc

        if row is None or row["id"] is None:
            return None
        return _to_profile(row)

    async def insert_profile(self, profile: NewProfile) -> Profile:
        async with self._session_factory() as session:
            try:
                result = await session.execute(
                    text(f"""
                        INSERT INTO users
                            (id, email, role, first_name, last_name, job_title,
                             company_id, is_sub_admin, is_banned, salary_amount,
                             salary_date, created_at, updated_at)
                        VALUES
                            (:id, :email, :role, :first_name, :last_name, :job_title,
                             :company_id, :is_sub_admin, :is_banned, :salary_amount,
                             :salary_date, NOW(), NOW())
                        RETURNING {_PROFILE_COLUMNS}
                    """),
                    _row_params(profile),
                )
                row = result.mappings().one()
                await session.commit()
            except DBAPIError as exc:
                raise self._translate(exc, procedure=False) from exc
        return _to_profile(row)

    async def get_profile(self, identity_id: UUID) -> Profile | None:
        async with self._session_factory() as session:
            result = await session.execute(
                text(f"SELECT {_PROFILE_COLUMNS} FROM users WHERE id = :id"),
                {"id": str(identity_id)},
            )
            row = result.mappings().first()
        if row is None:
            return None
        return _to_profile(row)

    def _translate(self, exc: DBAPIError, *, procedure: bool) -> Exception:
        orig = exc.orig
        sqlstate = getattr(orig, "sqlstate", None)
        diag = getattr(orig, "diag", None)
        constraint = getattr(diag, "constraint_name", None) if diag is not None else None
        message = str(orig) if orig is not None else str(exc)

        if procedure and is_missing_procedure(sqlstate, message):
            return ProcedureUnavailableError(message)

        kind = classify_constraint(sqlstate, constraint, message, self._constraint_names)
        logger.info(
            "profile_store_write_rejected",
            extra={"sqlstate": sqlstate, "constraint": constraint, "kind": str(kind)},
        )
        return ConstraintError(kind, message, constraint=constraint, sqlstate=sqlstate)


class SqlOrgUnitDirectory:
    """Read-only org unit lookup against the ``companies`` table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def get_org_unit(self, org_unit_id: str) -> OrgUnit | None:
        async with self._session_factory() as session:
            result = await session.execute(
                text("""
                    SELECT id, name, is_active
                    FROM companies
                    WHERE id::text = :id
                """),
                {"id": org_unit_id},
            )
            row = result.mappings().first()
        if row is None:
            return None
        return OrgUnit(id=str(row["id"]), name=str(row["name"]), is_active=bool(row["is_active"]))


def _row_params(profile: NewProfile) -> dict[str, Any]:
    return {
        "id": str(profile.id),
        "email": profile.email,
        "role": profile.role,
        "first_name": profile.first_name,
        "last_name": profile.last_name,
        "job_title": profile.job_title,
        "company_id": profile.org_unit_id,
        "is_sub_admin": profile.is_sub_admin,
        "is_banned": profile.is_banned,
        "salary_amount": profile.salary_amount,
        "salary_date": profile.salary_date,
    }


def _to_profile(row: Mapping[str, Any]) -> Profile:
    company_id = row["company_id"]
    return Profile(
        id=UUID(str(row["id"])),
        email=str(row["email"]),
        role=str(row["role"]),
        first_name=row["first_name"],
        last_name=row["last_name"],
        job_title=row["job_title"],
        org_unit_id=str(company_id) if company_id is not None else None,
        is_sub_admin=bool(row["is_sub_admin"]),
        is_banned=bool(row["is_banned"]),
        salary_amount=row["salary_amount"],
        salary_date=row["salary_date"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )
