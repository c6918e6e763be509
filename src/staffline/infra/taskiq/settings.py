"""TaskIQ configuration using Pydantic settings.

Settings are loaded from environment variables with ``TASKIQ_`` prefix.
"""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class TaskIQSettings(BaseSettings):
    """Configuration for the post-commit event broker.

    Environment Variables:
        TASKIQ_REDIS_URL: Redis URL for the broker (default: redis://localhost:6379/1)
        TASKIQ_RESULT_TTL: Result backend TTL in seconds (default: 3600)
        TASKIQ_QUEUE_NAME: Redis stream name (default: staffline)
        TASKIQ_PUBLISH_EVENTS: Enqueue ProfileProvisioned events (default: true)

    Example:
        >>> TaskIQSettings().redis_url
        'redis://localhost:6379/1'
    """

    model_config = SettingsConfigDict(
        env_prefix="TASKIQ_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    redis_url: str = Field(
        default="redis://localhost:6379/1",
        description="Redis URL for the TaskIQ broker",
    )
    result_ttl: int = Field(
        default=3600,
        ge=60,
        le=86400,
        description="Result backend TTL in seconds",
    )
    queue_name: str = Field(default="staffline", description="Redis stream name")
    publish_events: bool = Field(
        default=True,
        description="Enqueue post-commit events from the API process",
    )


@lru_cache(maxsize=1)
def get_taskiq_settings() -> TaskIQSettings:
    """Get cached TaskIQ settings singleton."""
    return TaskIQSettings()
