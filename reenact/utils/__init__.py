"""
Utility modules for reenact.

## Key Components

1. **logger / configure_logging** - Logging setup with the custom REENACT level
2. **ScreenshotManager** - Per-action screenshot capture
3. **URL helpers** - Host/path URL comparison and success-flow pattern matching
"""

from .logging_config import ReenactLogger, configure_logging, logger
from .screenshot_manager import ScreenshotManager
from .url_matching import is_auth_url, matches_any_pattern, same_host, urls_match

__all__ = [
    "ReenactLogger",
    "ScreenshotManager",
    "configure_logging",
    "is_auth_url",
    "logger",
    "matches_any_pattern",
    "same_host",
    "urls_match",
]
