"""Base event classes for domain events.

Extends the eventsourcing library's DomainEvent with tracing metadata and
standardized serialization so that events can cross process boundaries
(task queues, webhooks) as plain dictionaries.

Example:
    Define a domain event by subclassing BaseEvent::

        from dataclasses import dataclass
        from staffline.foundation.domain.events import BaseEvent

        @dataclass(frozen=True, kw_only=True)
        class ResourceCreated(BaseEvent):
            title: str = ""

        ResourceCreated.get_topic()
        # Returns: "myapp.domain.events:ResourceCreated"
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from eventsourcing.domain import DomainEvent


@dataclass(frozen=True, kw_only=True)
class BaseEvent(DomainEvent):
    """Base class for all domain events.

    Attributes:
        correlation_id: Request or workflow ID for distributed tracing.
        causation_id: Parent event ID that triggered this event.
        user_id: Acting user identifier for audit trail.

    Inherited from DomainEvent (eventsourcing library):
        originator_id: ID (UUID) of the record that emitted this event.
        originator_version: Record version.
        timestamp: Event occurrence time (datetime with timezone, UTC).

    Note:
        Events are immutable (frozen dataclass).
    """

    correlation_id: str | None = None
    causation_id: str | None = None
    user_id: str | None = None

    @classmethod
    def get_topic(cls) -> str:
        """Get fully-qualified topic for event routing.

        Returns:
            Fully-qualified topic string in format "module:class".
        """
        return f"{cls.__module__}:{cls.__qualname__}"

    def to_dict(self) -> dict[str, Any]:
        """Serialize base event fields to a JSON-compatible dictionary.

        UUIDs become hyphenated strings and datetimes ISO 8601 strings.
        Subclasses extend the returned dictionary with their own fields.

        Returns:
            Dictionary containing the topic and all base event fields.
        """
        originator_id = self.originator_id
        timestamp = self.timestamp
        return {
            "topic": self.get_topic(),
            "originator_id": str(originator_id) if originator_id is not None else None,
            "originator_version": self.originator_version,
            "timestamp": timestamp.isoformat() if timestamp is not None else None,
            "correlation_id": self.correlation_id,
            "causation_id": self.causation_id,
            "user_id": self.user_id,
        }
