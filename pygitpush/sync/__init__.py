"""Sync engine for pygitpush - diff a project export and push the changes."""

from .commit import CommitAssembler
from .comparator import FileComparator, contents_equivalent, summarize_changes
from .engine import SyncEngine, SyncPhase, default_commit_message
from .ignore import DEFAULT_IGNORE_PATTERNS, IGNORE_FILE_NAME, IgnoreMatcher
from .operations import SyncOperations
from .pipeline import BlobUploadPipeline
from .progress import (
    CRITICAL_DELIVERY_COUNT,
    CallbackReporter,
    ProgressEmitter,
    ProgressEvent,
    ProgressReporter,
    RecordingReporter,
    SyncStatus,
)
from .queue import SerialWriteQueue
from .rate_limit import BudgetDecision, RateGovernor
from .scanner import (
    RemoteScanner,
    iter_local_files,
    local_paths,
    prepare_local_files,
)
from .stats import (
    InMemoryPushStatistics,
    PushEvent,
    PushRecord,
    PushStatistics,
    PushStatisticsStore,
    PushSummary,
)

__all__ = [
    "SyncEngine",
    "SyncPhase",
    "default_commit_message",
    "FileComparator",
    "contents_equivalent",
    "summarize_changes",
    "RemoteScanner",
    "iter_local_files",
    "local_paths",
    "prepare_local_files",
    "IgnoreMatcher",
    "IGNORE_FILE_NAME",
    "DEFAULT_IGNORE_PATTERNS",
    "RateGovernor",
    "BudgetDecision",
    "SerialWriteQueue",
    "SyncOperations",
    "BlobUploadPipeline",
    "CommitAssembler",
    "ProgressEvent",
    "ProgressReporter",
    "ProgressEmitter",
    "CallbackReporter",
    "RecordingReporter",
    "SyncStatus",
    "CRITICAL_DELIVERY_COUNT",
    "PushStatistics",
    "PushStatisticsStore",
    "InMemoryPushStatistics",
    "PushRecord",
    "PushEvent",
    "PushSummary",
]
