"""Entry-point-based discovery of event listeners.

Collaborators outside this project (welcome email, leave-balance
initialisation, audit) register async callables under an entry-point group;
the background worker loads them with :func:`discover_listeners`.

Example ``pyproject.toml`` of a listener package::

    [project.entry-points."staffline.profile_provisioned"]
    welcome_email = "mail_app.listeners:send_welcome_email"
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from importlib.metadata import entry_points
from typing import Any

logger = logging.getLogger(__name__)

PROFILE_PROVISIONED_GROUP = "staffline.profile_provisioned"

EventListener = Callable[[dict[str, Any]], Awaitable[None]]


@dataclass(frozen=True, slots=True)
class DiscoveredListener:
    """A single discovered listener.

    Attributes:
        name: Entry point name (e.g., ``"welcome_email"``).
        group: Entry point group.
        listener: The loaded async callable.
    """

    name: str
    group: str
    listener: EventListener


def discover_listeners(
    group: str = PROFILE_PROVISIONED_GROUP,
    *,
    exclude_names: frozenset[str] = frozenset(),
) -> list[DiscoveredListener]:
    """Load all listeners registered for an entry-point group.

    Entry points that fail to load, or that do not resolve to a callable,
    are logged and skipped so one broken collaborator cannot block the rest.

    Args:
        group: The entry point group name.
        exclude_names: Entry point names to skip.

    Returns:
        Successfully loaded listeners, in entry-point iteration order.
    """
    listeners: list[DiscoveredListener] = []
    for ep in entry_points(group=group):
        if ep.name in exclude_names:
            logger.debug("Skipping excluded listener %s:%s", group, ep.name)
            continue
        try:
            loaded = ep.load()
        except Exception:
            logger.exception("Failed to load listener %s:%s", group, ep.name)
            continue
        if not callable(loaded):
            logger.warning("Listener %s:%s is not callable, skipping", group, ep.name)
            continue
        listeners.append(DiscoveredListener(name=ep.name, group=group, listener=loaded))

    logger.info("Discovered %d listeners in group %r", len(listeners), group)
    return listeners
