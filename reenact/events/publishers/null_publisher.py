"""
No-op event publisher.
"""

from reenact.events.base import EventPublisher
from reenact.events.models import BaseReplayEvent


class NullEventPublisher(EventPublisher):
    """Publisher that discards every event (library usage and tests)."""

    def is_available(self) -> bool:
        return True

    async def publish(self, event: BaseReplayEvent) -> None:
        pass
