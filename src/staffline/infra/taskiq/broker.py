"""TaskIQ broker configured with Redis Stream.

Redis Stream gives acknowledged delivery, so a post-commit event survives a
worker restart.

Usage:
    # Start worker (loads the dispatch task)
    # taskiq worker staffline.infra.taskiq.broker:broker staffline.infra.taskiq.tasks
"""

from __future__ import annotations

from functools import lru_cache

from taskiq_redis import RedisAsyncResultBackend, RedisStreamBroker

from staffline.infra.taskiq.settings import get_taskiq_settings


@lru_cache(maxsize=1)
def get_result_backend() -> RedisAsyncResultBackend[int]:
    """Get or create the TaskIQ result backend."""
    settings = get_taskiq_settings()
    return RedisAsyncResultBackend(
        redis_url=settings.redis_url,
        result_ex_time=settings.result_ttl,
    )


@lru_cache(maxsize=1)
def get_broker() -> RedisStreamBroker:
    """Get or create the TaskIQ broker configured from TaskIQSettings."""
    settings = get_taskiq_settings()
    return RedisStreamBroker(
        url=settings.redis_url,
        queue_name=settings.queue_name,
    ).with_result_backend(get_result_backend())


class _LazyBroker:
    """Lazy proxy that defers broker creation until first attribute access."""

    _instance: RedisStreamBroker | None = None

    def _get(self) -> RedisStreamBroker:
        if self._instance is None:
            self._instance = get_broker()
        return self._instance

    def __getattr__(self, name: str) -> object:
        return getattr(self._get(), name)


# `taskiq worker module:broker` needs a module attribute.
broker: RedisStreamBroker = _LazyBroker()  # type: ignore[assignment]
