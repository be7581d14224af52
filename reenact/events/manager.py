"""
Thread-safe manager for multiple event publishers.
"""

import asyncio
from threading import Lock
from typing import List, Optional

from reenact.utils.logging_config import logger

from .base import EventPublisher
from .models import BaseReplayEvent


class EventPublisherManager:
    """Thread-safe manager for multiple event publishers.

    Events are fanned out to every available publisher concurrently. A
    failing publisher never interrupts the run or the other publishers.
    """

    def __init__(self, publishers: Optional[List[EventPublisher]] = None):
        """Initialize the event publisher manager.

        Args:
            publishers: List of event publishers to manage
        """
        self.publishers = list(publishers or [])
        self._lock = Lock()

    def add_publisher(self, publisher: EventPublisher) -> None:
        with self._lock:
            self.publishers.append(publisher)

    def get_available_publishers(self) -> List[EventPublisher]:
        """Get list of available publishers.

        Returns:
            List of publishers that are available and ready
        """
        with self._lock:
            return [p for p in self.publishers if p.is_available()]

    async def publish(self, event: BaseReplayEvent) -> None:
        """Publish an event to all available publishers.

        Args:
            event: Event to publish
        """
        publishers = self.get_available_publishers()
        if not publishers:
            return

        results = await asyncio.gather(
            *(publisher.publish(event) for publisher in publishers), return_exceptions=True
        )
        for publisher, result in zip(publishers, results):
            if isinstance(result, Exception):
                logger.debug(
                    f"Publisher {type(publisher).__name__} failed on {type(event).__name__}: {result}"
                )

    def has_publishers(self) -> bool:
        """Check if any publishers are available."""
        return len(self.get_available_publishers()) > 0
