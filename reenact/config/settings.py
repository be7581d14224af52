"""
Core configuration settings for reenact using Pydantic Settings.

This module provides type-safe configuration for replay runs. `RunOptions`
holds everything one `ReplayOrchestrator.execute()` call needs and can be
built directly in code; `ReenactSettings` wraps it with environment
variable, `.env` and TOML support for the CLI.
"""

import tempfile
from enum import Enum
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from reenact.events.types import EventPublisherType


class BrowserKind(str, Enum):
    """Browser engines a recording can be replayed in."""

    CHROMIUM = "chromium"
    FIREFOX = "firefox"
    WEBKIT = "webkit"


class TimingMode(str, Enum):
    """How recorded inter-action gaps are reproduced."""

    INSTANT = "instant"
    FAST = "fast"
    REALISTIC = "realistic"

    @property
    def multiplier(self) -> float:
        return {TimingMode.INSTANT: 0.0, TimingMode.FAST: 0.25, TimingMode.REALISTIC: 1.0}[self]


class ScreenshotMode(str, Enum):
    """When screenshots are captured during a run."""

    NEVER = "never"
    ON_FAILURE = "on-failure"
    ALWAYS = "always"


def _default_upload_dirs() -> List[Path]:
    cwd = Path.cwd()
    return [
        cwd,
        cwd / "fixtures",
        cwd / "uploads",
        cwd / "test-files",
        Path.home() / "Downloads",
        Path(tempfile.gettempdir()),
    ]


class RunOptions(BaseModel):
    """Options for a single replay run.

    Example:
        ```python
        from reenact.config import RunOptions, TimingMode

        options = RunOptions(headless=False, timing_mode=TimingMode.FAST)
        ```
    """

    browser: BrowserKind = Field(default=BrowserKind.CHROMIUM, description="Browser engine")
    headless: bool = Field(default=True, description="Run the browser without a window")
    timeout_ms: int = Field(default=30000, gt=0, description="Per-operation timeout")
    enable_timing: bool = Field(default=True, description="Reproduce recorded pauses")
    timing_mode: TimingMode = Field(default=TimingMode.REALISTIC)
    speed_multiplier: Optional[float] = Field(
        default=None,
        ge=0.0,
        description="Explicit delay multiplier, overrides the timing mode when set",
    )
    max_action_delay_ms: int = Field(default=30000, ge=0)

    video: bool = Field(default=False, description="Record a video of the session")
    videos_dir: Path = Field(default=Path("./videos"))
    screenshot_mode: ScreenshotMode = Field(default=ScreenshotMode.ON_FAILURE)
    screenshots_dir: Path = Field(default=Path("./screenshots"))

    element_retry_limit: int = Field(default=2, ge=0)
    element_retry_base_delay_ms: int = Field(default=500, ge=0)

    navigation_observe_ms: int = Field(
        default=3000, ge=0, description="How long to watch for navigation after a click"
    )
    auth_navigation_wait_ms: int = Field(default=10000, ge=0)
    settle_delay_ms: int = Field(default=300, ge=0)
    modal_wait_ms: int = Field(default=5000, ge=0)

    duplicate_window_ms: int = Field(default=500, ge=0)
    carousel_duplicate_window_ms: int = Field(default=200, ge=0)
    carousel_click_cap: int = Field(default=10, gt=0)

    stealth: bool = Field(default=True, description="Suppress automation fingerprints")
    upload_search_dirs: List[Path] = Field(default_factory=_default_upload_dirs)
    run_id: Optional[str] = Field(default=None, description="Run id, generated when absent")

    def effective_multiplier(self) -> float:
        """Delay multiplier: an explicit non-1.0 override wins over the timing mode."""
        if self.speed_multiplier is not None and self.speed_multiplier != 1.0:
            return self.speed_multiplier
        return self.timing_mode.multiplier


class ReenactSettings(BaseSettings):
    """Main configuration settings for reenact.

    Values come from (highest first) constructor arguments, environment
    variables prefixed `REENACT_`, a `.env` file and code defaults. Nested
    replay options use `__`, e.g. `REENACT_REPLAY__TIMING_MODE=fast`.
    """

    model_config = SettingsConfigDict(
        env_prefix="REENACT_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    project_name: str = Field(default="reenact", description="Name shown in CLI output")
    recordings_dir: Path = Field(default=Path("./recordings"))
    logging_enabled: bool = Field(default=True)
    event_publishers: List[EventPublisherType] = Field(
        default_factory=lambda: [EventPublisherType.RICH_TERMINAL]
    )
    replay: RunOptions = Field(default_factory=RunOptions)

    @field_validator("recordings_dir", mode="before")
    @classmethod
    def _expand_path(cls, value: object) -> object:
        if isinstance(value, str):
            return Path(value).expanduser()
        return value
