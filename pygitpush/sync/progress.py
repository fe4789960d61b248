"""Progress reporting for sync operations.

The engine never talks to a UI directly. It emits ``ProgressEvent`` values
to a ``ProgressReporter``; the CLI plugs in a rich display, tests plug in
``RecordingReporter``.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Protocol

logger = logging.getLogger(__name__)

# Start and terminal events are delivered this many times, so a sink that
# drops a single update still sees the run begin and end
CRITICAL_DELIVERY_COUNT = 2


class SyncStatus(str, Enum):
    """Coarse state shown to the user."""

    IDLE = "idle"
    UPLOADING = "uploading"
    SUCCESS = "success"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (SyncStatus.SUCCESS, SyncStatus.ERROR)


@dataclass(frozen=True)
class ProgressEvent:
    """A single progress update."""

    status: SyncStatus
    progress: int
    """Percent complete, 0-100"""

    message: str = ""


class ProgressReporter(Protocol):
    """Anything that accepts progress events."""

    def report(self, event: ProgressEvent) -> None: ...


class CallbackReporter:
    """Adapts a plain function(event) to the ProgressReporter protocol."""

    def __init__(self, callback: Callable[[ProgressEvent], None]):
        self.callback = callback

    def report(self, event: ProgressEvent) -> None:
        self.callback(event)


class RecordingReporter:
    """Keeps every event it receives."""

    def __init__(self) -> None:
        self.events: list[ProgressEvent] = []

    def report(self, event: ProgressEvent) -> None:
        self.events.append(event)

    @property
    def messages(self) -> list[str]:
        return [event.message for event in self.events]

    @property
    def last(self) -> Optional[ProgressEvent]:
        return self.events[-1] if self.events else None

    def statuses(self) -> list[SyncStatus]:
        return [event.status for event in self.events]


class ProgressEmitter:
    """Sends progress events to an optional reporter.

    Progress values are clamped to 0-100. A failing reporter is logged and
    otherwise ignored: progress display must never fail a sync.
    """

    def __init__(self, reporter: Optional[ProgressReporter] = None):
        self.reporter = reporter

    def emit(
        self,
        status: SyncStatus,
        progress: int,
        message: str = "",
        critical: bool = False,
    ) -> None:
        """Emit one event.

        Args:
            status: Coarse status
            progress: Percent complete (clamped to 0-100)
            message: Human-readable description
            critical: Deliver CRITICAL_DELIVERY_COUNT times
        """
        if self.reporter is None:
            return
        event = ProgressEvent(
            status=status, progress=max(0, min(100, int(progress))), message=message
        )
        deliveries = CRITICAL_DELIVERY_COUNT if critical else 1
        for _ in range(deliveries):
            try:
                self.reporter.report(event)
            except Exception as e:
                logger.warning(f"Progress reporter failed: {e}")

    def started(self, message: str) -> None:
        self.emit(SyncStatus.UPLOADING, 0, message, critical=True)

    def uploading(self, progress: int, message: str) -> None:
        self.emit(SyncStatus.UPLOADING, progress, message, critical=progress == 0)

    def succeeded(self, message: str) -> None:
        self.emit(SyncStatus.SUCCESS, 100, message, critical=True)

    def failed(self, message: str, progress: int = 0) -> None:
        self.emit(SyncStatus.ERROR, progress, message, critical=True)
