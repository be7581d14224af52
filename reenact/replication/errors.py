"""
Replay error classes for the reenact engine.

This module contains all exception classes raised while replaying a
recording. Handlers raise them, the action executor converts them into
outcomes, and `classify_error` maps any exception (including raw Playwright
errors) onto an `ErrorSeverity` that drives the failure policy.

## Exception Hierarchy

```
ReplayError (base)
├── ElementNotFoundError
├── NavigationFailureError
│   └── NavigationTimeoutError
├── SessionTerminatedError
├── FileUploadMissingError
└── RecordingMalformedError
```

## Usage Examples

```python
from reenact.replication.errors import (
    ElementNotFoundError,
    ErrorSeverity,
    ReplayError,
    classify_error,
)

try:
    locator = await element_locator.resolve(page, action.selector, timeout_ms=30000)
except ElementNotFoundError as e:
    print(f"Element missing: {e}")
except ReplayError as e:
    severity = classify_error(e)
```
"""

from enum import Enum
from typing import List, Optional


class ErrorSeverity(str, Enum):
    """How the orchestrator should react to a failed action."""

    FATAL = "fatal"
    RECOVERABLE = "recoverable"
    EXPECTED = "expected"


class ReplayError(Exception):
    """Base exception for all replay-related errors.

    Example:
        ```python
        try:
            await executor.execute(page, action, context)
        except ReplayError as e:
            print(f"Replay error: {e}")
        ```
    """

    pass


class ElementNotFoundError(ReplayError):
    """Raised when no identification strategy matched after every retry.

    Attributes:
        strategies (List[str]): Strategy kinds that were tried, in order
        attempts (int): Number of full scans performed

    Example:
        ```python
        try:
            await element_locator.resolve(page, strategy, timeout_ms=5000)
        except ElementNotFoundError as e:
            print(e.strategies)
        ```
    """

    def __init__(self, message: str, strategies: Optional[List[str]] = None, attempts: int = 0):
        super().__init__(message)
        self.strategies = strategies or []
        self.attempts = attempts


class NavigationFailureError(ReplayError):
    """Raised when neither history replay nor a direct load reached the target URL.

    Example:
        ```python
        result = await history.navigate(page, target, timeout_ms, timing_mode)
        if not result.success:
            raise NavigationFailureError(f"Could not reach {target}")
        ```
    """

    def __init__(self, message: str, target_url: Optional[str] = None):
        super().__init__(message)
        self.target_url = target_url


class NavigationTimeoutError(NavigationFailureError):
    """Raised when a navigation timed out without landing on the target URL."""

    pass


class SessionTerminatedError(ReplayError):
    """Raised when the browser, context or page is gone.

    Always fatal: no further action can execute once the session is closed.
    """

    pass


class FileUploadMissingError(ReplayError):
    """Raised when a recorded upload file cannot be located on disk.

    The input handler recovers from it by synthesizing a placeholder file.
    """

    def __init__(self, message: str, file_name: Optional[str] = None):
        super().__init__(message)
        self.file_name = file_name


class RecordingMalformedError(ReplayError):
    """Raised when a recording cannot be parsed or is missing required data.

    Example:
        ```python
        try:
            recording = Recording.from_json_file(path)
        except RecordingMalformedError as e:
            print(f"Invalid recording: {e}")
        ```
    """

    pass


_FATAL_MESSAGES = (
    "browser has been closed",
    "context has been closed",
    "page has been closed",
    "target closed",
    "target page, context or browser has been closed",
    "connection closed",
)

_EXPECTED_MESSAGES = (
    "page navigated",
    "execution context was destroyed",
    "frame was detached",
)


def classify_error(error: BaseException) -> ErrorSeverity:
    """Classify an exception raised while executing an action.

    Typed replay errors are classified by type first; anything else (usually
    a raw Playwright error) is classified by its message.

    Args:
        error (BaseException): The exception to classify

    Returns:
        ErrorSeverity: FATAL when the session is gone, EXPECTED for navigation
            side effects of the action itself, RECOVERABLE otherwise
    """
    if isinstance(error, SessionTerminatedError):
        return ErrorSeverity.FATAL
    if isinstance(error, ReplayError):
        return ErrorSeverity.RECOVERABLE

    message = str(error).lower()

    if any(fragment in message for fragment in _FATAL_MESSAGES):
        return ErrorSeverity.FATAL

    if any(fragment in message for fragment in _EXPECTED_MESSAGES):
        return ErrorSeverity.EXPECTED

    if "navigation" in message and "timeout" not in message:
        return ErrorSeverity.EXPECTED

    return ErrorSeverity.RECOVERABLE
