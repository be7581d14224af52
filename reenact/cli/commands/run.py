"""
Run command implementation for reenact CLI.

This module implements the 'run' command which replays a recording file in a
live browser and prints progress through the rich terminal publisher.
"""

import asyncio
from pathlib import Path
from typing import Any, Dict, Optional

import typer
from rich.console import Console

from reenact.config import (
    BrowserKind,
    ConfigurationFactory,
    RunOptions,
    ScreenshotMode,
    TimingMode,
)
from reenact.events import EventPublisherFactory, EventPublisherManager, EventPublisherType
from reenact.replication import RecordingMalformedError, ReplayOrchestrator
from reenact.schemas.recording import Recording
from reenact.schemas.results import RunResult
from reenact.utils.logging_config import logger

console = Console()


def build_run_options(
    base: RunOptions,
    browser: Optional[BrowserKind] = None,
    headed: bool = False,
    timing_mode: Optional[TimingMode] = None,
    speed: Optional[float] = None,
    timeout: Optional[int] = None,
    video: bool = False,
    screenshots: Optional[ScreenshotMode] = None,
) -> RunOptions:
    """Apply command-line overrides on top of the configured run options."""
    overrides: Dict[str, Any] = {}
    if browser is not None:
        overrides["browser"] = browser
    if headed:
        overrides["headless"] = False
    if timing_mode is not None:
        overrides["timing_mode"] = timing_mode
    if speed is not None:
        overrides["speed_multiplier"] = speed
    if timeout is not None:
        overrides["timeout_ms"] = timeout
    if video:
        overrides["video"] = True
    if screenshots is not None:
        overrides["screenshot_mode"] = screenshots
    return RunOptions.model_validate({**base.model_dump(), **overrides})


def locate_recording(recording_file: Path, recordings_dir: Path) -> Path:
    """Resolve a bare recording name against the configured recordings directory."""
    if recording_file.exists() or recording_file.is_absolute():
        return recording_file
    candidate = recordings_dir / recording_file
    return candidate if candidate.exists() else recording_file


async def replay_recording(
    recording_file: Path, options: RunOptions, manager: EventPublisherManager
) -> RunResult:
    """Load `recording_file` and replay it with `options`.

    Raises:
        RecordingMalformedError: If the recording cannot be parsed
    """
    recording = Recording.from_json_file(recording_file)
    orchestrator = ReplayOrchestrator(options, event_manager=manager)
    return await orchestrator.execute(recording)


def run(
    recording_file: Path = typer.Argument(..., help="Recording JSON file to replay"),
    browser: Optional[BrowserKind] = typer.Option(None, "--browser", "-b", help="Browser engine"),
    headed: bool = typer.Option(False, "--headed", help="Show the browser window"),
    timing_mode: Optional[TimingMode] = typer.Option(
        None, "--timing-mode", "-t", help="How recorded pauses are reproduced"
    ),
    speed: Optional[float] = typer.Option(
        None, "--speed", help="Explicit delay multiplier, overrides the timing mode"
    ),
    timeout: Optional[int] = typer.Option(None, "--timeout", help="Per-operation timeout in ms"),
    video: bool = typer.Option(False, "--video", help="Record a video of the run"),
    screenshots: Optional[ScreenshotMode] = typer.Option(
        None, "--screenshots", help="When to capture screenshots"
    ),
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="reenact.toml to load"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Print every action start"),
) -> None:
    """Replay a recording in a live browser.

    Exits with status 0 when every action succeeded (or was skipped on
    purpose) and 1 otherwise.
    """
    try:
        settings = ConfigurationFactory.get_settings(config)
    except ValueError as e:
        console.print(f"❌ Invalid configuration: {e}")
        raise typer.Exit(1)

    if not settings.logging_enabled:
        logger.disabled = True

    console.print(f"[bold]{settings.project_name}[/bold] replaying {recording_file.name}")
    recording_file = locate_recording(recording_file, settings.recordings_dir)

    options = build_run_options(
        settings.replay, browser, headed, timing_mode, speed, timeout, video, screenshots
    )

    publisher_types = list(settings.event_publishers)
    if EventPublisherType.RICH_TERMINAL not in publisher_types:
        publisher_types.append(EventPublisherType.RICH_TERMINAL)
    publishers = EventPublisherFactory.create_publishers(
        publisher_types,
        {EventPublisherType.RICH_TERMINAL.value: {"console": console, "verbose": verbose}},
    )
    manager = EventPublisherManager(publishers)

    try:
        result = asyncio.run(replay_recording(recording_file, options, manager))
    except RecordingMalformedError as e:
        console.print(f"❌ Invalid recording: {e}")
        raise typer.Exit(1)

    if result.screenshots:
        console.print(f"📸 Screenshots: {len(result.screenshots)} in {options.screenshots_dir}")
    if result.video:
        console.print(f"🎥 Video: {result.video}")

    if not result.succeeded:
        raise typer.Exit(1)
