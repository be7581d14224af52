"""
Configuration factory for managing settings instances.

This module provides a factory for creating and caching a `ReenactSettings`
instance from a TOML file (CLI usage) or from environment variables only
(library usage).
"""

from pathlib import Path
from typing import Any, Dict, Optional

from reenact.config.settings import ReenactSettings
from reenact.config.toml_loader import TOMLConfigLoader

_PROJECT_FIELDS = {
    "project.name": "project_name",
    "paths.recordings_dir": "recordings_dir",
    "logging.enabled": "logging_enabled",
    "events.publishers": "event_publishers",
}

# TOML keys that live under `ReenactSettings.replay`
_REPLAY_FIELDS = {
    "paths.screenshots_dir": "screenshots_dir",
    "paths.videos_dir": "videos_dir",
    "paths.upload_search_dirs": "upload_search_dirs",
}


class ConfigurationFactory:
    """Factory for creating and managing configuration instances.

    The settings object is created once and cached; call `reset()` to force
    a reload (tests do this between cases).
    """

    _instance: Optional[ReenactSettings] = None
    _toml_loader: Optional[TOMLConfigLoader] = None

    @classmethod
    def get_settings(cls, config_path: Optional[Path] = None) -> ReenactSettings:
        """Get or create the settings instance.

        Args:
            config_path (Optional[Path]): TOML file to load. When omitted,
                `reenact.toml` in the working directory is used if present,
                otherwise only environment variables are read.

        Returns:
            ReenactSettings: Configured settings instance

        Raises:
            ValueError: If configuration is invalid
        """
        if cls._instance is None:
            toml_path = config_path or Path("reenact.toml")
            if toml_path.exists():
                cls._instance = cls._load_from_toml(toml_path)
            elif config_path is not None:
                raise ValueError(f"Configuration file not found: {config_path}")
            else:
                cls._instance = cls._load_from_env_only()

        return cls._instance

    @classmethod
    def _load_from_toml(cls, config_path: Path) -> ReenactSettings:
        cls._toml_loader = TOMLConfigLoader(config_path)
        try:
            toml_config = cls._toml_loader.load_config()
            return ReenactSettings(**cls._convert_toml_to_pydantic(toml_config))
        except Exception as e:
            raise ValueError(f"TOML configuration error: {str(e)}")

    @classmethod
    def _load_from_env_only(cls) -> ReenactSettings:
        try:
            return ReenactSettings()
        except Exception as e:
            raise ValueError(f"Environment configuration error: {str(e)}")

    @classmethod
    def _convert_toml_to_pydantic(cls, toml_config: Dict[str, Any]) -> Dict[str, Any]:
        """Convert flattened TOML keys into `ReenactSettings` constructor arguments.

        Every `replay.<field>` key is passed through to `RunOptions`; the
        `paths.*` keys for artifacts are folded into the same section.
        """
        pydantic_config: Dict[str, Any] = {}
        replay: Dict[str, Any] = {}

        for toml_key, field_name in _PROJECT_FIELDS.items():
            if toml_key in toml_config:
                pydantic_config[field_name] = toml_config[toml_key]

        for toml_key, field_name in _REPLAY_FIELDS.items():
            if toml_key in toml_config:
                replay[field_name] = toml_config[toml_key]

        for key, value in toml_config.items():
            if key.startswith("replay."):
                replay[key[len("replay.") :]] = value

        if replay:
            pydantic_config["replay"] = replay

        return pydantic_config

    @classmethod
    def reset(cls) -> None:
        """Reset the singleton instance (useful for testing)."""
        cls._instance = None
        cls._toml_loader = None
