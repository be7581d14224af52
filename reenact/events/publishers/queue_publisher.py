"""
Outbound channel publisher backed by an `asyncio.Queue`.
"""

import asyncio
from typing import Optional

from reenact.events.base import EventPublisher
from reenact.events.exceptions import PublisherUnavailableError
from reenact.events.models import BaseReplayEvent


class QueueEventPublisher(EventPublisher):
    """Push every event onto an asyncio queue for a consumer task to read.

    Example:
        ```python
        publisher = QueueEventPublisher()
        manager = EventPublisherManager([publisher])

        async def consume() -> None:
            while True:
                event = await publisher.queue.get()
                print(event.event_type)
        ```
    """

    def __init__(self, queue: Optional["asyncio.Queue[BaseReplayEvent]"] = None) -> None:
        self.queue: "asyncio.Queue[BaseReplayEvent]" = queue or asyncio.Queue()
        self._available = True

    def is_available(self) -> bool:
        return self._available

    def close(self) -> None:
        """Stop accepting events."""
        self._available = False

    async def publish(self, event: BaseReplayEvent) -> None:
        if not self.is_available():
            raise PublisherUnavailableError("queue", "closed")
        await self.queue.put(event)
