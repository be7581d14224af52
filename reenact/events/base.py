"""
Abstract base class for event publishers.
"""

from abc import ABC, abstractmethod

from reenact.events.models import BaseReplayEvent


class EventPublisher(ABC):
    """Abstract base class for event publishers.

    This class defines the interface for delivering replay progress events
    to a consumer (terminal output, an asyncio queue, a remote service).
    Multiple publishers can be attached to one run through
    `EventPublisherManager`.
    """

    @abstractmethod
    def is_available(self) -> bool:
        """Check if the publisher is available and ready to use.

        Returns:
            True if publisher is available, False otherwise
        """
        raise NotImplementedError("is_available() must be implemented by subclasses")

    @abstractmethod
    async def publish(self, event: BaseReplayEvent) -> None:
        """Deliver one progress event.

        Events of one run arrive in emission order: `run-started`, then one
        group per action, and finally `run-completed`. An executed action
        emits `action-started` followed by exactly one of `action-success`,
        `action-failed` or `action-skipped`. An action skipped before it runs
        (duplicate click, failed dependency, closed modal or finished action
        group) emits only `action-skipped`.

        Args:
            event: The event to deliver

        Raises:
            PublisherUnavailableError: If publisher is not available
        """
        raise NotImplementedError("publish() must be implemented by subclasses")
