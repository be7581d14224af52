"""
Logging configuration utilities for the reenact replay engine.

This module provides the logging setup shared by every reenact module,
including a custom logging level, suppression of noisy third-party loggers
and module-specific logger configuration.

## Key Components

1. **ReenactLogger** - Custom logger class with a `reenact_log` method
2. **configure_logging()** - Function to configure logging for all reenact modules
3. **Custom Logging Level** - REENACT_LOGGING_LEVEL (35) for replay progress messages

## Usage Examples

```python
from reenact.utils import logger, configure_logging

# Use custom logging
logger.reenact_log("🎬 Replay started")

# Configure logging (usually done automatically)
configure_logging()
```
"""

import logging
import os
from typing import Any

# Keep Playwright driver chatter out of replay output
os.environ["PLAYWRIGHT_LOGGING_LEVEL"] = "critical"

# Custom reenact logging level
REENACT_LOGGING_LEVEL: int = 35

# Check if logging is enabled via environment variable (read at module level)
LOGGING_ENABLED = os.getenv("REENACT_LOGGING_ENABLED", "true").lower() == "true"

# Set actual level based on enabled/disabled
ACTUAL_LEVEL: int = REENACT_LOGGING_LEVEL if LOGGING_ENABLED else 999

FORMAT: str = "%(asctime)s - %(message)s"


# Register custom logging level
logging.addLevelName(REENACT_LOGGING_LEVEL, "REENACT")


class ReenactLogger(logging.Logger):
    """Custom logger class for reenact with additional logging methods.

    This logger extends the standard Python logger with a `reenact_log`
    method that uses the REENACT_LOGGING_LEVEL (35), above WARNING, so replay
    progress stays visible while library debug output is hidden.

    Example:
        ```python
        from reenact.utils import logger

        logger.reenact_log("🖱️ Click on %s", selector)
        ```
    """

    def reenact_log(self, msg: str, *args: Any, **kwargs: Any) -> None:
        """Log a message with the custom reenact logging level.

        Args:
            msg (str): The message to log
            *args (Any): Additional arguments for string formatting
            **kwargs (Any): Additional keyword arguments for logging
        """
        if self.isEnabledFor(REENACT_LOGGING_LEVEL):
            self._log(REENACT_LOGGING_LEVEL, msg, args, **kwargs)


# Register the custom logger class
logging.setLoggerClass(ReenactLogger)


def configure_logging() -> None:
    """Configure logging based on the REENACT_LOGGING_ENABLED environment variable.

    1. Sets the root logger to ACTUAL_LEVEL (REENACT_LOGGING_LEVEL or 999)
    2. Configures all reenact module loggers to ACTUAL_LEVEL
    3. Disables propagation to prevent duplicate output
    4. Removes existing handlers and attaches a single formatted stream handler

    The function is automatically called when the module is imported, but can be
    called manually to reconfigure logging if needed.
    """
    logging.basicConfig(
        level=ACTUAL_LEVEL,
        format=FORMAT,
        datefmt="%Y-%m-%d %H:%M:%S",
        force=True,
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(ACTUAL_LEVEL)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    reenact_modules = [
        "reenact",
        "reenact.cli",
        "reenact.config",
        "reenact.events",
        "reenact.replication",
        "reenact.schemas",
        "reenact.utils",
        "playwright",
        "patchright",
        "asyncio",
    ]

    for module in reenact_modules:
        module_logger = logging.getLogger(module)

        if LOGGING_ENABLED:
            module_logger.setLevel(ACTUAL_LEVEL)
        else:
            module_logger.setLevel(999)

        module_logger.propagate = False

        for handler in module_logger.handlers[:]:
            module_logger.removeHandler(handler)

        if LOGGING_ENABLED and not module_logger.handlers:
            handler = logging.StreamHandler()
            formatter = logging.Formatter(FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
            handler.setFormatter(formatter)
            module_logger.addHandler(handler)


# Configure logging when module is imported
configure_logging()

# Get the module logger (already configured in configure_logging)
logger: ReenactLogger = logging.getLogger(__name__)  # type: ignore
