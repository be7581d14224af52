"""
Rich terminal event publisher for reenact.

This module provides a terminal publisher that displays replay progress,
per-action results and the final run summary with colored output using the
Rich library.
"""

from typing import Optional

from rich.console import Console
from rich.table import Table
from rich.text import Text

from reenact.events.base import EventPublisher
from reenact.events.exceptions import PublisherUnavailableError
from reenact.events.models import (
    ActionFailedEvent,
    ActionSkippedEvent,
    ActionStartedEvent,
    ActionSuccessEvent,
    BaseReplayEvent,
    RunCompletedEvent,
    RunStartedEvent,
)
from reenact.schemas.results import RunStatus


class RichTerminalPublisher(EventPublisher):
    """Rich terminal-based event publisher with colored output.

    Attributes:
        console (Console): Rich console instance for output
        style (str): Color style for progress messages
        verbose (bool): Also print `action-started` lines

    Example:
        ```python
        from reenact.events.publishers import RichTerminalPublisher

        orchestrator = ReplayOrchestrator(
            options, event_manager=EventPublisherManager([RichTerminalPublisher()])
        )
        ```
    """

    def __init__(self, console: Optional[Console] = None, verbose: bool = False) -> None:
        self.console = console or Console()
        self._available = True
        self.style = "bright_blue"
        self.verbose = verbose

    def is_available(self) -> bool:
        """Check if rich terminal publisher is available (always True)."""
        return self._available

    async def publish(self, event: BaseReplayEvent) -> None:
        """Print a line (or a summary table) for the event.

        Raises:
            PublisherUnavailableError: If publisher is not available
        """
        if not self.is_available():
            raise PublisherUnavailableError("rich terminal")

        if isinstance(event, RunStartedEvent):
            self.console.print(
                Text(f"🚀 Replaying '{event.test_name}' in {event.browser}", style=self.style)
            )
            self.console.print(
                Text(f"🌐 {event.start_url} ({event.total_actions} actions)", style=self.style)
            )
        elif isinstance(event, ActionStartedEvent):
            if self.verbose:
                self.console.print(
                    Text(
                        f"⚙️  [{event.index + 1}/{event.total}] {event.action_type} {event.action_id}",
                        style=self.style,
                    )
                )
        elif isinstance(event, ActionSuccessEvent):
            detail = f" ({event.detail})" if event.detail else ""
            if self.verbose and event.selector_used:
                detail += f" via {event.selector_used}"
            self.console.print(
                Text(
                    f"✅ [{event.index + 1}] {event.action_type} {event.action_id}{detail}",
                    style="green",
                )
            )
        elif isinstance(event, ActionSkippedEvent):
            self.console.print(
                Text(
                    f"⏭️  [{event.index + 1}] {event.action_type} {event.action_id}: {event.reason}",
                    style="yellow",
                )
            )
        elif isinstance(event, ActionFailedEvent):
            elapsed = f" after {event.duration_ms:.0f}ms" if self.verbose else ""
            self.console.print(
                Text(
                    f"❌ [{event.index + 1}] {event.action_type} {event.action_id}: "
                    f"{event.message}{elapsed}",
                    style="red",
                )
            )
        elif isinstance(event, RunCompletedEvent):
            self._print_summary(event)

    def _print_summary(self, event: RunCompletedEvent) -> None:
        status_style = {
            RunStatus.SUCCESS: "bold green",
            RunStatus.PARTIAL: "bold yellow",
            RunStatus.FAILED: "bold red",
            RunStatus.CANCELLED: "bold magenta",
        }[event.status]

        table = Table(title="Replay summary", show_header=False)
        table.add_column("Metric", style=self.style)
        table.add_column("Value")
        table.add_row("Status", Text(event.status.value, style=status_style))
        table.add_row("Actions", str(event.actions_total))
        table.add_row("Executed", str(event.actions_executed))
        table.add_row("Failed", str(event.actions_failed))
        table.add_row("Skipped", str(event.actions_skipped))
        table.add_row("Duration", f"{event.duration_ms / 1000:.2f}s")
        if event.video:
            table.add_row("Video", event.video)
        self.console.print(table)
