"""Staffline Infra FastAPI -- staff provisioning HTTP API."""

from staffline.infra.fastapi.app_factory import create_app
from staffline.infra.fastapi.error_handlers import (
    ProblemDetail,
    ProvisioningFailedError,
    register_exception_handlers,
)
from staffline.infra.fastapi.router import router
from staffline.infra.fastapi.settings import AppSettings

__all__ = [
    "AppSettings",
    "ProblemDetail",
    "ProvisioningFailedError",
    "create_app",
    "register_exception_handlers",
    "router",
]
