"""CLI progress display for push operations.

This module provides a Rich-based progress display that acts as the
ProgressReporter of the sync engine.
"""

from typing import Optional

from rich.markup import escape
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TaskProgressColumn,
    TextColumn,
    TimeElapsedColumn,
)

from .models import UploadOutcome
from .sync.engine import SyncEngine
from .sync.progress import ProgressEvent, SyncStatus


class PushProgressDisplay:
    """Rich-based progress display for a push.

    Shows one task whose description follows the latest event message and
    whose completion follows the event's percentage. Duplicate deliveries
    of the same event are harmless.
    """

    def __init__(self) -> None:
        """Initialize the progress display."""
        self._progress: Optional[Progress] = None
        self._task: Optional[TaskID] = None
        self.last_event: Optional[ProgressEvent] = None

    def report(self, event: ProgressEvent) -> None:
        """Handle a progress event from the engine.

        Args:
            event: Progress event
        """
        self.last_event = event
        if self._progress is None or self._task is None:
            return

        style = {
            SyncStatus.SUCCESS: "green",
            SyncStatus.ERROR: "red",
        }.get(event.status, "bold blue")
        self._progress.update(
            self._task,
            description=f"[{style}]{escape(event.message)}",
            completed=event.progress,
        )

    def __enter__(self) -> "PushProgressDisplay":
        """Enter context manager - start progress display."""
        self._progress = Progress(
            SpinnerColumn(),
            TextColumn("{task.description}"),
            BarColumn(),
            TaskProgressColumn(),
            TimeElapsedColumn(),
            refresh_per_second=4,
        )
        self._progress.__enter__()
        self._task = self._progress.add_task("Preparing push...", total=100)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Exit context manager - stop progress display."""
        if self._progress is not None:
            self._progress.__exit__(exc_type, exc_val, exc_tb)
            self._progress = None
            self._task = None


def run_push_with_progress(
    engine: SyncEngine,
    data: bytes,
    message: Optional[str] = None,
    project_id: Optional[str] = None,
) -> UploadOutcome:
    """Run a push with a Rich progress display.

    The display replaces any reporter the engine was created with for the
    duration of the push.

    Args:
        engine: SyncEngine instance
        data: Archive bytes
        message: Commit message
        project_id: Project identifier for statistics

    Returns:
        UploadOutcome
    """
    previous = engine.progress.reporter
    with PushProgressDisplay() as display:
        engine.progress.reporter = display
        try:
            return engine.push_archive(data, message=message, project_id=project_id)
        finally:
            engine.progress.reporter = previous
