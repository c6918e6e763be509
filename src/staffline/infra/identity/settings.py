"""Identity provider configuration.

Loaded from environment variables with IDENTITY_ prefix.

Environment Variables:
    IDENTITY_BASE_URL: Provider base URL (e.g. https://project.example.co)
    IDENTITY_ANON_KEY: Public (anon) API key used for self-service signup
    IDENTITY_SERVICE_ROLE_KEY: Privileged key; enables admin account creation
    IDENTITY_TIMEOUT: HTTP request timeout in seconds
    IDENTITY_LIST_PAGE_SIZE: Page size when listing accounts by email
    IDENTITY_LIST_MAX_PAGES: Pages scanned before giving up on a lookup
"""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from staffline.domain.provisioning.models import Capabilities


class IdentityProviderSettings(BaseSettings):
    """Identity provider connection settings.

    Example:
        >>> settings = IdentityProviderSettings(base_url="http://localhost:9999")
        >>> settings.capabilities().privileged_available
        False
    """

    model_config = SettingsConfigDict(
        env_prefix="IDENTITY_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    base_url: str = Field(default="http://localhost:9999")
    anon_key: str = Field(default="", repr=False)
    service_role_key: str = Field(default="", repr=False)
    timeout: float = Field(default=10.0, gt=0, le=120)
    list_page_size: int = Field(default=200, ge=1, le=1000)
    list_max_pages: int = Field(default=10, ge=1)

    def capabilities(self) -> Capabilities:
        """Capabilities implied by the configured keys."""
        return Capabilities(privileged_available=bool(self.service_role_key))


@lru_cache(maxsize=1)
def get_identity_settings() -> IdentityProviderSettings:
    """Get cached IdentityProviderSettings.

    Clear cache with ``get_identity_settings.cache_clear()`` for testing.
    """
    return IdentityProviderSettings()
