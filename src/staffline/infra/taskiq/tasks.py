"""Worker tasks fanning post-commit events out to discovered listeners."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from taskiq import TaskiqEvents

from staffline.foundation.application.discovery import (
    PROFILE_PROVISIONED_GROUP,
    discover_listeners,
)
from staffline.infra.observability.logging import configure_logging
from staffline.infra.taskiq.broker import broker

if TYPE_CHECKING:
    from taskiq import TaskiqState

logger = logging.getLogger(__name__)

DISPATCH_PROFILE_PROVISIONED = "staffline.dispatch_profile_provisioned"


@broker.on_event(TaskiqEvents.WORKER_STARTUP)
async def _configure_worker(state: TaskiqState) -> None:
    configure_logging()


@broker.task(task_name=DISPATCH_PROFILE_PROVISIONED)
async def dispatch_profile_provisioned(payload: dict[str, Any]) -> int:
    """Deliver a ProfileProvisioned payload to every registered listener.

    A failing listener is logged and does not stop the others; the profile
    is already committed, so nothing here can undo it.

    Args:
        payload: ``ProfileProvisioned.to_dict()`` output.

    Returns:
        Number of listeners that completed without raising.
    """
    delivered = 0
    for discovered in discover_listeners(PROFILE_PROVISIONED_GROUP):
        try:
            await discovered.listener(payload)
        except Exception:
            logger.exception(
                "profile_provisioned_listener_failed",
                extra={"listener": discovered.name, "profile_id": payload.get("profile_id")},
            )
            continue
        delivered += 1

    logger.info(
        "profile_provisioned_dispatched",
        extra={"profile_id": payload.get("profile_id"), "delivered": delivered},
    )
    return delivered
