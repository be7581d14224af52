"""
TOML configuration loader for reenact.

Reads `reenact.toml` and flattens nested tables into dotted keys, e.g.

```toml
[replay]
browser = "firefox"
timing_mode = "fast"

[paths]
screenshots_dir = "./artifacts/screenshots"
```

becomes `{"replay.browser": "firefox", "replay.timing_mode": "fast", ...}`.
"""

from pathlib import Path
from typing import Any, Dict, Optional

import tomli


class TOMLConfigLoader:
    """Loader for TOML-based configuration files."""

    def __init__(self, config_path: Optional[Path] = None):
        """Initialize TOML config loader.

        Args:
            config_path: Path to TOML configuration file. Defaults to 'reenact.toml'
        """
        self.config_path = config_path or Path("reenact.toml")
        self._config_cache: Optional[Dict[str, Any]] = None

    def load_config(self) -> Dict[str, Any]:
        """Load configuration from the TOML file.

        Returns:
            Dictionary containing flattened configuration

        Raises:
            FileNotFoundError: If config file doesn't exist
            ValueError: If TOML file is invalid
        """
        if self._config_cache is not None:
            return self._config_cache

        if not self.config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {self.config_path}")

        self._config_cache = self._flatten_config(self._load_toml_file())
        return self._config_cache

    def _load_toml_file(self) -> Dict[str, Any]:
        try:
            with open(self.config_path, "rb") as f:
                return tomli.load(f)
        except tomli.TOMLDecodeError as e:
            raise ValueError(f"Invalid TOML configuration file: {e}")

    def _flatten_config(self, config: Dict[str, Any], prefix: str = "") -> Dict[str, Any]:
        flattened: Dict[str, Any] = {}

        for key, value in config.items():
            full_key = f"{prefix}.{key}" if prefix else key
            if isinstance(value, dict):
                flattened.update(self._flatten_config(value, full_key))
            else:
                flattened[full_key] = value

        return flattened

    def get_value(self, key: str, default: Any = None) -> Any:
        """Get a specific configuration value by its dotted key.

        Example:
            ```python
            loader = TOMLConfigLoader()
            browser = loader.get_value("replay.browser", "chromium")
            ```
        """
        return self.load_config().get(key, default)

    def reload(self) -> None:
        """Clear configuration cache to force reload on next access."""
        self._config_cache = None
