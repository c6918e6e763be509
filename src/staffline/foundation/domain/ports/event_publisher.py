"""Port interface for post-commit event publication.

Example:
    >>> class PrintingPublisher:
    ...     async def publish(self, event: BaseEvent) -> None:
    ...         print(event.to_dict())
    >>> isinstance(PrintingPublisher(), EventPublisherPort)
    True
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from staffline.foundation.domain.events import BaseEvent


@runtime_checkable
class EventPublisherPort(Protocol):
    """Port for handing committed domain events to out-of-process consumers.

    Implementations should only enqueue; consumers run elsewhere.
    """

    async def publish(self, event: BaseEvent) -> None:
        """Publish a single event.

        Args:
            event: The committed domain event.
        """
        ...
