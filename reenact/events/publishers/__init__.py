"""
Event publisher implementations.
"""

from .null_publisher import NullEventPublisher
from .queue_publisher import QueueEventPublisher
from .rich_terminal_publisher import RichTerminalPublisher

__all__ = ["NullEventPublisher", "QueueEventPublisher", "RichTerminalPublisher"]
