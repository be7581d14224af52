"""
Configuration management for reenact.

## Key Components

1. **RunOptions** - Options for a single replay run
2. **ReenactSettings** - Environment / `.env` / TOML backed settings
3. **ConfigurationFactory** - Cached settings construction
4. **TOMLConfigLoader** - `reenact.toml` reader

## Usage Examples

```python
from reenact.config import ConfigurationFactory

settings = ConfigurationFactory.get_settings()
options = settings.replay
```
"""

from .factory import ConfigurationFactory
from .settings import (
    BrowserKind,
    ReenactSettings,
    RunOptions,
    ScreenshotMode,
    TimingMode,
)
from .toml_loader import TOMLConfigLoader

__all__ = [
    "BrowserKind",
    "ConfigurationFactory",
    "ReenactSettings",
    "RunOptions",
    "ScreenshotMode",
    "TimingMode",
    "TOMLConfigLoader",
]
