"""Staffline Foundation Application -- cross-cutting application utilities."""

from staffline.foundation.application.discovery import (
    PROFILE_PROVISIONED_GROUP,
    DiscoveredListener,
    EventListener,
    discover_listeners,
)

__all__ = [
    "PROFILE_PROVISIONED_GROUP",
    "DiscoveredListener",
    "EventListener",
    "discover_listeners",
]
