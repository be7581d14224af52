"""
Progress event publishing for reenact.

A replay run emits typed events (`run-started`, `action-started`,
`action-success`, `action-failed`, `action-skipped`, `run-completed`)
through an `EventPublisherManager`, which fans them out to every attached
publisher.

## Usage Examples

```python
from reenact.events import EventPublisherManager
from reenact.events.publishers import QueueEventPublisher

queue_publisher = QueueEventPublisher()
manager = EventPublisherManager([queue_publisher])
```
"""

from .base import EventPublisher
from .exceptions import PublisherUnavailableError
from .factory import EventPublisherFactory
from .manager import EventPublisherManager
from .models import (
    ActionFailedEvent,
    ActionSkippedEvent,
    ActionStartedEvent,
    ActionSuccessEvent,
    BaseReplayEvent,
    ReplayEvent,
    RunCompletedEvent,
    RunStartedEvent,
)
from .types import EventPublisherType, EventType

__all__ = [
    "ActionFailedEvent",
    "ActionSkippedEvent",
    "ActionStartedEvent",
    "ActionSuccessEvent",
    "BaseReplayEvent",
    "EventPublisher",
    "EventPublisherFactory",
    "EventPublisherManager",
    "EventPublisherType",
    "EventType",
    "PublisherUnavailableError",
    "ReplayEvent",
    "RunCompletedEvent",
    "RunStartedEvent",
]
