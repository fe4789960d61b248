"""Push statistics.

Each sync records an ``attempt`` when it starts and a ``success`` or
``failure`` when it ends. The JSON store keeps running totals and the most
recent records in the user's config directory.
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Optional, Protocol

logger = logging.getLogger(__name__)

MAX_STORED_RECORDS = 100
STATS_FILE_NAME = "push_stats.json"


class PushEvent(str, Enum):
    """Kind of statistics record."""

    ATTEMPT = "attempt"
    SUCCESS = "success"
    FAILURE = "failure"


@dataclass
class PushRecord:
    """One statistics event for one push."""

    event: PushEvent
    repo_owner: str
    repo_name: str
    branch: str
    project_id: Optional[str] = None
    files_count: int = 0
    commit_message: str = ""
    error: Optional[str] = None
    timestamp: str = field(default_factory=lambda: datetime.now().isoformat())
    """ISO timestamp of the event"""

    def to_dict(self) -> dict:
        """Convert record to dictionary for JSON serialization."""
        return {
            "event": self.event.value,
            "timestamp": self.timestamp,
            "project_id": self.project_id,
            "repo_owner": self.repo_owner,
            "repo_name": self.repo_name,
            "branch": self.branch,
            "files_count": self.files_count,
            "commit_message": self.commit_message,
            "error": self.error,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "PushRecord":
        """Create PushRecord from dictionary."""
        return cls(
            event=PushEvent(data.get("event", PushEvent.ATTEMPT.value)),
            timestamp=data.get("timestamp", ""),
            project_id=data.get("project_id"),
            repo_owner=data.get("repo_owner", ""),
            repo_name=data.get("repo_name", ""),
            branch=data.get("branch", ""),
            files_count=int(data.get("files_count", 0)),
            commit_message=data.get("commit_message", ""),
            error=data.get("error"),
        )


@dataclass
class PushSummary:
    """Totals plus the most recent records."""

    total_attempts: int = 0
    total_successes: int = 0
    total_failures: int = 0
    last_push: Optional[str] = None
    last_success: Optional[str] = None
    records: list[PushRecord] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "total_attempts": self.total_attempts,
            "total_successes": self.total_successes,
            "total_failures": self.total_failures,
            "last_push": self.last_push,
            "last_success": self.last_success,
            "records": [record.to_dict() for record in self.records],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "PushSummary":
        return cls(
            total_attempts=int(data.get("total_attempts", 0)),
            total_successes=int(data.get("total_successes", 0)),
            total_failures=int(data.get("total_failures", 0)),
            last_push=data.get("last_push"),
            last_success=data.get("last_success"),
            records=[PushRecord.from_dict(r) for r in data.get("records", [])],
        )

    def add(self, record: PushRecord, max_records: int = MAX_STORED_RECORDS) -> None:
        """Update totals with a record and keep the newest ``max_records``."""
        if record.event == PushEvent.ATTEMPT:
            self.total_attempts += 1
            self.last_push = record.timestamp
        elif record.event == PushEvent.SUCCESS:
            self.total_successes += 1
            self.last_success = record.timestamp
        else:
            self.total_failures += 1
        self.records = [record, *self.records][:max_records]


class PushStatistics(Protocol):
    """Receiver of push statistics records."""

    def record(self, record: PushRecord) -> None: ...


class InMemoryPushStatistics:
    """Statistics kept in memory only."""

    def __init__(self) -> None:
        self.records: list[PushRecord] = []

    def record(self, record: PushRecord) -> None:
        self.records.append(record)

    @property
    def events(self) -> list[PushEvent]:
        return [record.event for record in self.records]


class PushStatisticsStore:
    """Persists push statistics as JSON.

    The file lives in the user's config directory. Read and write failures
    are logged and never interrupt a push.
    """

    def __init__(
        self, stats_dir: Optional[Path] = None, max_records: int = MAX_STORED_RECORDS
    ):
        """Initialize statistics store.

        Args:
            stats_dir: Directory for the statistics file. Defaults to
                      ~/.config/pygitpush/
            max_records: Number of records kept
        """
        if stats_dir is None:
            stats_dir = Path.home() / ".config" / "pygitpush"
        self.stats_dir = stats_dir
        self.stats_file = stats_dir / STATS_FILE_NAME
        self.max_records = max_records

    def load(self) -> PushSummary:
        """Load statistics, or empty statistics if none are stored."""
        if not self.stats_file.exists():
            logger.debug(f"No push statistics found at {self.stats_file}")
            return PushSummary()

        try:
            with open(self.stats_file, encoding="utf-8") as f:
                data = json.load(f)
            return PushSummary.from_dict(data)
        except (json.JSONDecodeError, KeyError, ValueError, TypeError) as e:
            logger.warning(f"Failed to load push statistics: {e}")
            return PushSummary()

    def record(self, record: PushRecord) -> None:
        """Add a record and save."""
        summary = self.load()
        summary.add(record, self.max_records)

        try:
            self.stats_dir.mkdir(parents=True, exist_ok=True)
            with open(self.stats_file, "w", encoding="utf-8") as f:
                json.dump(summary.to_dict(), f, indent=2)
            logger.debug(f"Recorded push {record.event.value} in {self.stats_file}")
        except OSError as e:
            logger.warning(f"Failed to save push statistics: {e}")

    def clear(self) -> bool:
        """Delete stored statistics.

        Returns:
            True if statistics were cleared, False if none existed
        """
        if self.stats_file.exists():
            self.stats_file.unlink()
            logger.debug(f"Cleared push statistics at {self.stats_file}")
            return True
        return False
