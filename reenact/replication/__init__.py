"""
Recording replay engine for reenact.

## Key Components

1. **ReplayOrchestrator** - Drives one recording through one browser session
2. **ActionExecutor** - Type-specific action handlers returning explicit outcomes
3. **ElementLocator** - Priority ordered element resolution with retry backoff
4. **NavigationHistoryManager** - History-aware navigation between recorded URLs
5. **NavigationAnalyzer / RecordingPreprocessor** - Recording cleanup before replay

## Usage Examples

```python
from reenact.config import RunOptions
from reenact.replication import ReplayOrchestrator
from reenact.schemas.recording import Recording

recording = Recording.from_json_file(Path("recordings/login.json"))
result = await ReplayOrchestrator(RunOptions(headless=True)).execute(recording)
```
"""

from .errors import (
    ElementNotFoundError,
    ErrorSeverity,
    FileUploadMissingError,
    NavigationFailureError,
    NavigationTimeoutError,
    RecordingMalformedError,
    ReplayError,
    SessionTerminatedError,
    classify_error,
)
from .element_locator import ContentSignatureMatcher, ElementLocator
from .navigation_history import NavigationHistoryManager, NavigationResult
from .navigation_analyzer import NavigationAnalysis, NavigationAnalyzer
from .preprocessor import RecordingPreprocessor
from .run_context import Fatal, Recoverable, RunContext, Skip, Success
from .action_executor import ActionExecutor, ActionStep
from .orchestrator import ReplayOrchestrator

__all__ = [
    "ActionExecutor",
    "ActionStep",
    "ContentSignatureMatcher",
    "ElementLocator",
    "ElementNotFoundError",
    "ErrorSeverity",
    "Fatal",
    "FileUploadMissingError",
    "NavigationAnalysis",
    "NavigationAnalyzer",
    "NavigationFailureError",
    "NavigationHistoryManager",
    "NavigationResult",
    "NavigationTimeoutError",
    "RecordingMalformedError",
    "Recoverable",
    "ReplayError",
    "ReplayOrchestrator",
    "RecordingPreprocessor",
    "RunContext",
    "SessionTerminatedError",
    "Skip",
    "Success",
    "classify_error",
]
