"""
Validate command implementation for reenact CLI.

Parses and preprocesses a recording without opening a browser, printing
every warning the preprocessor produced and every point where a hover or
click probably went unrecorded.
"""

from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from reenact.replication import RecordingMalformedError, RecordingPreprocessor
from reenact.schemas.recording import Recording

console = Console()


def validate(
    recording_file: Path = typer.Argument(..., help="Recording JSON file to check"),
) -> None:
    """Check that a recording parses and show what preprocessing would change."""
    try:
        recording = Recording.from_json_file(recording_file)
    except RecordingMalformedError as e:
        console.print(f"❌ Invalid recording: {e}")
        raise typer.Exit(1)

    result = RecordingPreprocessor().preprocess(recording)

    console.print(f"✅ '{recording.test_name}' parsed: {len(recording.actions)} actions")
    console.print(f"   Start URL: {recording.url}")
    console.print(f"   Replayable actions: {len(result.recording.actions)}")
    if result.removed_action_ids:
        console.print(f"   Superseded inputs removed: {', '.join(result.removed_action_ids)}")

    if result.warnings:
        console.print(f"\n⚠️  {len(result.warnings)} warning(s):")
        for warning in result.warnings:
            console.print(f"   • {warning}")

    if result.insertions:
        table = Table(title="Probable missing prerequisites")
        table.add_column("Before action")
        table.add_column("Index", justify="right")
        table.add_column("Kind")
        table.add_column("Parent selector")
        for insertion in result.insertions:
            table.add_row(
                insertion.before_action_id,
                str(insertion.index),
                insertion.kind,
                insertion.parent_selector,
            )
        console.print(table)
