"""
reenact - Browser Recording Replay Engine

Replays captured browser sessions against live sites, tolerating the drift
between capture time and replay time: changed DOM, timing differences and
navigation side effects.

## Key Features

1. **Resilient Element Resolution** - Priority ordered selectors with retry backoff
2. **History-Aware Navigation** - Browser back/forward before fresh page loads
3. **Recording Preprocessing** - Trigger correction, ordering and input deduplication
4. **Failure Classification** - Fatal, recoverable and expected errors handled differently
5. **Event Tracking** - Typed progress events for terminals and outbound channels

## Core Components

- `ReplayOrchestrator` - Replays one recording in one browser session
- `RecordingPreprocessor` - Produces the replayable copy of a recording
- `Recording` / `RunResult` - Input and output models
- `ConfigurationFactory` - Settings from environment, `.env` and `reenact.toml`
"""

# The replication package must load before schemas and events, which import its errors
from reenact.replication import (
    ElementLocator,
    ErrorSeverity,
    NavigationHistoryManager,
    RecordingPreprocessor,
    ReplayError,
    ReplayOrchestrator,
)
from reenact.schemas.recording import Recording
from reenact.schemas.results import PreprocessResult, RunResult, RunStatus
from reenact.config import ConfigurationFactory, ReenactSettings, RunOptions, TimingMode
from reenact.events import EventPublisherManager

__version__ = "0.1.0"
__all__ = [
    # Replay engine
    "ReplayOrchestrator",
    "RecordingPreprocessor",
    "ElementLocator",
    "NavigationHistoryManager",
    "ReplayError",
    "ErrorSeverity",
    # Models
    "Recording",
    "RunResult",
    "RunStatus",
    "PreprocessResult",
    # Configuration
    "ConfigurationFactory",
    "ReenactSettings",
    "RunOptions",
    "TimingMode",
    # Events
    "EventPublisherManager",
]
