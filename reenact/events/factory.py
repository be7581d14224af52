"""
Factory for creating event publishers.
"""

from typing import Any, Dict, List, Optional

from reenact.utils.logging_config import logger

from .base import EventPublisher
from .publishers import NullEventPublisher, QueueEventPublisher, RichTerminalPublisher
from .types import EventPublisherType


class EventPublisherFactory:
    """Factory for creating event publishers with explicit configuration."""

    @staticmethod
    def create_publishers(
        publisher_types: List[EventPublisherType], configs: Optional[Dict[str, Any]] = None
    ) -> List[EventPublisher]:
        """Create multiple event publishers with explicit configuration.

        Args:
            publisher_types: List of publisher types to create
            configs: Per-type keyword arguments, keyed by the publisher type value
                (e.g. `{"rich_terminal": {"verbose": True}}`)

        Returns:
            List of event publisher instances
        """
        configs = configs or {}
        publishers: List[EventPublisher] = []

        for publisher_type in publisher_types:
            kwargs = configs.get(publisher_type.value, {})
            try:
                if publisher_type == EventPublisherType.NULL:
                    publishers.append(NullEventPublisher())
                elif publisher_type == EventPublisherType.RICH_TERMINAL:
                    publishers.append(RichTerminalPublisher(**kwargs))
                elif publisher_type == EventPublisherType.QUEUE:
                    publishers.append(QueueEventPublisher(**kwargs))
            except Exception as e:
                # Skip failed publishers instead of failing the entire factory
                logger.warning(f"⚠️ Could not create {publisher_type.value} publisher: {e}")
                continue

        return publishers
