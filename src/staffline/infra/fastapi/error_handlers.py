"""RFC 7807 Problem Details exception handlers for the staff API.

Failed provisioning results are raised by the router as
:class:`ProvisioningFailedError` and translated here; the HTTP status is
chosen from the structured failure cause.

Usage:
    from staffline.infra.fastapi.error_handlers import register_exception_handlers

    app = FastAPI()
    register_exception_handlers(app)
"""

from __future__ import annotations

import logging
import math
from typing import TYPE_CHECKING, Any

from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from staffline.domain.provisioning.errors import FailureCause
from staffline.foundation.domain.exceptions import DomainError

if TYPE_CHECKING:
    from fastapi import FastAPI, Request

    from staffline.domain.provisioning.models import ProvisioningResult

logger = logging.getLogger(__name__)

PROBLEM_MEDIA_TYPE = "application/problem+json"

# cause -> (status, title)
CAUSE_STATUS: dict[FailureCause, tuple[int, str]] = {
    FailureCause.INVALID_INPUT: (422, "Invalid Staff Details"),
    FailureCause.DUPLICATE_EMAIL: (409, "Staff Already Exists"),
    FailureCause.PROFILE_ALREADY_EXISTS: (409, "Staff Already Exists"),
    FailureCause.PERMISSION_DENIED: (403, "Forbidden"),
    FailureCause.RATE_LIMITED: (429, "Rate Limited"),
    FailureCause.IDENTITY_NOT_READY: (503, "Identity Not Ready"),
    FailureCause.TIMEOUT: (504, "Provisioning Timed Out"),
    FailureCause.ASSOCIATION_INVALID: (422, "Invalid Org Unit"),
    FailureCause.UNKNOWN: (502, "Provisioning Failed"),
}


class ProblemDetail(BaseModel):
    """RFC 7807 Problem Details response model.

    Extension fields:
    - error_code: Machine-readable error code for client handling
    - context: Structured debugging information
    """

    type: str = Field(..., examples=["/errors/duplicate-email"])
    title: str
    status: int = Field(..., ge=400, le=599)
    detail: str
    instance: str | None = None
    error_code: str | None = None
    context: dict[str, Any] | None = None


class ProvisioningFailedError(DomainError):
    """Raised by the router when provisioning ends in FAILED."""

    error_code: str = "PROVISIONING_FAILED"

    def __init__(self, result: ProvisioningResult) -> None:
        if result.error is None:
            msg = "ProvisioningFailedError requires a failed result"
            raise ValueError(msg)
        self.result = result
        self.failure = result.error
        self.error_code = str(result.error.cause).upper()
        context: dict[str, Any] = {
            "cause": str(result.error.cause),
            "attempts": result.error.attempts,
            "elapsed_seconds": round(result.error.elapsed_seconds, 3),
            "retryable": result.error.cause.retryable,
        }
        if result.error.field is not None:
            context["field"] = result.error.field
        if result.error.step is not None:
            context["step"] = result.error.step
        if result.identity_id is not None:
            context["identity_id"] = str(result.identity_id)
        super().__init__(result.user_message, context)


def _create_problem_response(problem: ProblemDetail) -> JSONResponse:
    return JSONResponse(
        status_code=problem.status,
        content=problem.model_dump(exclude_none=True),
        media_type=PROBLEM_MEDIA_TYPE,
    )


async def provisioning_failed_handler(
    request: Request,
    exc: ProvisioningFailedError,
) -> JSONResponse:
    """Translate a failed provisioning result into a problem response.

    RATE_LIMITED responses carry ``Retry-After`` when a wait is known.
    """
    cause = exc.failure.cause
    status, title = CAUSE_STATUS[cause]
    problem = ProblemDetail(
        type=f"/errors/{cause.replace('_', '-')}",
        title=title,
        status=status,
        detail=exc.message,
        instance=str(request.url.path),
        error_code=exc.error_code,
        context=exc.context,
    )
    response = _create_problem_response(problem)
    if cause is FailureCause.RATE_LIMITED and exc.failure.retry_after is not None:
        response.headers["Retry-After"] = str(math.ceil(exc.failure.retry_after))
    return response


async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    """Translate any other DomainError to 400 Bad Request."""
    problem = ProblemDetail(
        type="/errors/domain-error",
        title="Bad Request",
        status=400,
        detail=str(exc),
        instance=str(request.url.path),
        error_code=exc.error_code,
    )
    return _create_problem_response(problem)


async def request_validation_handler(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    """Translate Pydantic RequestValidationError to 422.

    Submitted values are left out of the response so a password never
    echoes back.
    """
    errors = [
        {
            "loc": list(error.get("loc", [])),
            "msg": error.get("msg", ""),
            "type": error.get("type", ""),
        }
        for error in exc.errors()
    ]
    problem = ProblemDetail(
        type="/errors/request-validation-error",
        title="Request Validation Error",
        status=422,
        detail="Request validation failed",
        instance=str(request.url.path),
        error_code="REQUEST_VALIDATION_ERROR",
        context={"errors": errors},
    )
    return _create_problem_response(problem)


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all: log the exception, return a generic 500."""
    logger.exception(
        "unhandled_exception",
        extra={
            "path": str(request.url.path),
            "method": request.method,
            "exception_type": type(exc).__name__,
        },
    )
    problem = ProblemDetail(
        type="/errors/internal-error",
        title="Internal Server Error",
        status=500,
        detail="An internal error occurred.",
        instance=str(request.url.path),
        error_code="INTERNAL_ERROR",
    )
    return _create_problem_response(problem)


def register_exception_handlers(app: FastAPI) -> None:
    """Register handlers from most to least specific."""
    app.add_exception_handler(
        ProvisioningFailedError,
        provisioning_failed_handler,  # type: ignore[arg-type]
    )
    app.add_exception_handler(
        DomainError,
        domain_error_handler,  # type: ignore[arg-type]
    )
    app.add_exception_handler(
        RequestValidationError,
        request_validation_handler,  # type: ignore[arg-type]
    )
    app.add_exception_handler(Exception, unhandled_exception_handler)
