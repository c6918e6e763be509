"""Provisioning engine configuration.

Loaded from environment variables with the ``PROVISIONING_`` prefix.

Environment Variables:
    PROVISIONING_IDENTITY_MAX_ATTEMPTS: Identity creation attempt budget
    PROVISIONING_RATE_LIMIT_DEFAULT_WAIT: Wait when the provider gives none
    PROVISIONING_RATE_LIMIT_WAIT_PADDING: Seconds added to provider waits
    PROVISIONING_RATE_LIMIT_WAIT_CAP: Upper bound for a single rate-limit wait
    PROVISIONING_UNKNOWN_ERROR_BACKOFF_STEP: Linear backoff step for unknown errors
    PROVISIONING_PRIVILEGED_VISIBILITY_WAIT: Wait after privileged creation
    PROVISIONING_PUBLIC_VISIBILITY_WAIT: Wait after public signup
    PROVISIONING_PROFILE_MAX_ATTEMPTS: Client-driven profile insert budget
    PROVISIONING_PROFILE_RETRY_DELAYS: Comma-separated delay schedule
    PROVISIONING_USE_ATOMIC_PROCEDURE: Try the server-side procedure first
    PROVISIONING_DEADLINE_SECONDS: Overall deadline per request (unset = none)
    PROVISIONING_RESUME_ORPHANED_IDENTITY: Reuse an identity that has no profile
    PROVISIONING_MINIMUM_PASSWORD_LENGTH: Minimum initial password length
    PROVISIONING_DEFAULT_ROLE: Role assigned when the request names none
"""

from __future__ import annotations

from functools import lru_cache
from typing import Annotated, Any

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from staffline.domain.provisioning.retry import RetryPolicy


class ProvisioningSettings(BaseSettings):
    """Retry budgets, waits, and behaviour switches for provisioning.

    Example:
        >>> settings = ProvisioningSettings()
        >>> settings.profile_retry_policy().delays
        (1.0, 2.0, 3.0, 4.0, 5.0)
    """

    model_config = SettingsConfigDict(
        env_prefix="PROVISIONING_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    identity_max_attempts: int = Field(default=3, ge=1, le=10)
    rate_limit_default_wait: float = Field(default=60.0, ge=0)
    rate_limit_wait_padding: float = Field(default=2.0, ge=0)
    rate_limit_wait_cap: float = Field(default=65.0, ge=0)
    unknown_error_backoff_step: float = Field(default=2.0, ge=0)

    privileged_visibility_wait: float = Field(default=2.0, ge=0)
    public_visibility_wait: float = Field(default=3.0, ge=0)

    profile_max_attempts: int = Field(default=5, ge=1, le=20)
    profile_retry_delays: Annotated[tuple[float, ...], NoDecode] = Field(
        default=(1.0, 2.0, 3.0, 4.0, 5.0)
    )
    use_atomic_procedure: bool = True

    deadline_seconds: float | None = Field(default=None, gt=0)
    resume_orphaned_identity: bool = False
    minimum_password_length: int = Field(default=6, ge=1)
    default_role: str = "staff"

    @field_validator("profile_retry_delays", mode="before")
    @classmethod
    def _parse_delays(cls, v: Any) -> Any:
        if isinstance(v, str):
            parts = v.strip().strip("[]()").split(",")
            return tuple(float(part) for part in parts if part.strip())
        return v

    def identity_retry_policy(self) -> RetryPolicy:
        return RetryPolicy.linear(self.identity_max_attempts, self.unknown_error_backoff_step)

    def profile_retry_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_attempts=self.profile_max_attempts,
            delays=self.profile_retry_delays,
        )

    def rate_limit_delay(self, retry_after: float | None) -> float:
        """Wait applied after a rate-limited attempt."""
        wait = retry_after if retry_after is not None else self.rate_limit_default_wait
        return min(wait + self.rate_limit_wait_padding, self.rate_limit_wait_cap)


@lru_cache(maxsize=1)
def get_provisioning_settings() -> ProvisioningSettings:
    """Get cached ProvisioningSettings singleton.

    Clear cache with ``get_provisioning_settings.cache_clear()`` for testing.
    """
    return ProvisioningSettings()
