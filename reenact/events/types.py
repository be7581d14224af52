"""
Event types and enumerations for the event publishing system.
"""

from enum import Enum


class EventPublisherType(str, Enum):
    """Supported event publisher types."""

    NULL = "null"  # No-op publisher for testing/development
    RICH_TERMINAL = "rich_terminal"  # Rich terminal output publisher
    QUEUE = "queue"  # asyncio.Queue outbound channel


class EventType(str, Enum):
    """Types of events emitted during a replay run, in emission order."""

    RUN_STARTED = "run-started"
    ACTION_STARTED = "action-started"
    ACTION_SUCCESS = "action-success"
    ACTION_FAILED = "action-failed"
    ACTION_SKIPPED = "action-skipped"
    RUN_COMPLETED = "run-completed"
