"""Event publisher enqueuing post-commit events on the TaskIQ broker."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from taskiq import AsyncTaskiqDecoratedTask

    from staffline.foundation.domain.events import BaseEvent

logger = logging.getLogger(__name__)


class TaskIQEventPublisher:
    """Implements :class:`EventPublisherPort` by kicking the dispatch task.

    Only enqueues. Listeners run in the worker process.

    Args:
        task: Decorated dispatch task; defaults to
            :func:`staffline.infra.taskiq.tasks.dispatch_profile_provisioned`.
    """

    def __init__(self, task: AsyncTaskiqDecoratedTask[[dict[str, Any]], int] | None = None) -> None:
        if task is None:
            from staffline.infra.taskiq.tasks import dispatch_profile_provisioned

            task = dispatch_profile_provisioned
        self._task = task

    async def publish(self, event: BaseEvent) -> None:
        payload = event.to_dict()
        await self._task.kiq(payload)
        logger.info(
            "event_enqueued",
            extra={"topic": payload["topic"], "originator_id": payload["originator_id"]},
        )
