"""Application settings for the staff API.

Environment variables use the ``APP_`` prefix (e.g., ``APP_TITLE``).
"""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _default_version() -> str:
    """Resolve default app version from package metadata."""
    try:
        from importlib.metadata import version

        return version("staffline")
    except Exception:
        return "0.0.0"


class AppSettings(BaseSettings):
    """FastAPI application settings."""

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        extra="ignore",
    )

    title: str = Field(default="Staffline")
    version: str = Field(default=_default_version())
    description: str = Field(default="Staff account provisioning API")
    docs_url: str | None = Field(default="/docs")
    openapi_url: str | None = Field(default="/openapi.json")
    debug: bool = Field(default=False)
