"""Core sync engine for pushing a project export to a branch."""

import logging
import threading
import time
from collections.abc import Mapping
from enum import Enum
from typing import Callable, Optional

from ..api import GitHubClient
from ..archive import check_archive_size, extract_archive
from ..auth import TokenProvider, is_authentication_failure
from ..exceptions import (
    GitPushError,
    GitPushNotFoundError,
    GitPushPermissionError,
    GitPushRepositoryAccessError,
    GitPushRepositoryNotFoundError,
)
from ..models import FileChange, FileStatus, RepositoryTarget, UploadOutcome
from ..utils import MAX_ARCHIVE_SIZE, MAX_BATCH_SIZE
from .commit import CommitAssembler
from .comparator import FileComparator, summarize_changes
from .ignore import IgnoreMatcher
from .operations import SyncOperations
from .pipeline import BlobUploadPipeline
from .progress import ProgressEmitter, ProgressReporter
from .rate_limit import RateGovernor
from .scanner import RemoteScanner, prepare_local_files
from .stats import PushEvent, PushRecord, PushStatistics

logger = logging.getLogger(__name__)

DEFAULT_COMMIT_TITLE = "Add/update files from project export"


def default_commit_message(files_count: int) -> str:
    """Commit message used when the caller gives none."""
    return f"{DEFAULT_COMMIT_TITLE}\n\nUpdated {files_count} files"


class SyncPhase(str, Enum):
    """Steps of a push, in order, plus the terminal states."""

    IDLE = "idle"
    VALIDATING = "validating"
    COMPARING = "comparing"
    RATE_CHECKING = "rate_checking"
    UPLOADING = "uploading"
    ASSEMBLING = "assembling"
    SUCCESS = "success"
    ERROR = "error"
    AUTH_ERROR = "auth_error"

    @property
    def is_terminal(self) -> bool:
        return self in (SyncPhase.SUCCESS, SyncPhase.ERROR, SyncPhase.AUTH_ERROR)

    @property
    def is_active(self) -> bool:
        return self is not SyncPhase.IDLE and not self.is_terminal


class SyncEngine:
    """Orchestrates one push: compare, check budget, upload, commit.

    An engine instance runs one push at a time; each push starts from
    ``IDLE``. Progress goes to the optional reporter, statistics to the
    optional statistics receiver. Neither may fail a push.
    """

    def __init__(
        self,
        client: GitHubClient,
        target: RepositoryTarget,
        reporter: Optional[ProgressReporter] = None,
        stats: Optional[PushStatistics] = None,
        credentials: Optional[TokenProvider] = None,
        apply_deletions: bool = False,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], None] = time.sleep,
        batch_size: int = MAX_BATCH_SIZE,
        max_archive_size: int = MAX_ARCHIVE_SIZE,
    ):
        """Initialize sync engine.

        Args:
            client: GitHub API client
            target: Repository and branch to push to
            reporter: Progress sink
            stats: Push statistics receiver
            credentials: Credential provider cleared on authentication
                failures (defaults to the client's provider)
            apply_deletions: Remove remote-only files from the branch
            clock: Returns the current Unix time
            sleep: Blocks for the given number of seconds
            batch_size: Files per upload batch
            max_archive_size: Largest accepted archive in bytes
        """
        self.client = client
        self.target = target
        self.progress = ProgressEmitter(reporter)
        self.stats = stats
        self.credentials = credentials or getattr(client, "token_provider", None)
        self.apply_deletions = apply_deletions
        self._clock = clock
        self._sleep = sleep
        self.batch_size = batch_size
        self.max_archive_size = max_archive_size

        self.phase = SyncPhase.IDLE
        self.phase_history: list[SyncPhase] = []
        self.warnings: list[str] = []
        self._lock = threading.Lock()

    # =========================
    # Public API
    # =========================

    def push_archive(
        self,
        data: bytes,
        message: Optional[str] = None,
        project_id: Optional[str] = None,
    ) -> UploadOutcome:
        """Push the contents of a ZIP export.

        Args:
            data: Archive bytes
            message: Commit message (a default is generated when omitted)
            project_id: Identifier of the exported project, for statistics

        Returns:
            UploadOutcome

        Raises:
            GitPushError: Any failure, after it was reported
        """

        def load() -> dict[str, bytes]:
            check_archive_size(data, self.max_archive_size)
            return extract_archive(data)

        return self._execute(load, message, project_id)

    def push_files(
        self,
        files: Mapping[str, bytes],
        message: Optional[str] = None,
        project_id: Optional[str] = None,
    ) -> UploadOutcome:
        """Push an already extracted file set (archive path -> content)."""
        return self._execute(lambda: dict(files), message, project_id)

    def compare_archive(self, data: bytes) -> dict[str, FileChange]:
        """Classify archive contents against the branch without writing.

        No rate check, no statistics, no phase change.
        """
        self.target.validate()
        check_archive_size(data, self.max_archive_size)
        files = extract_archive(data)
        ignore = IgnoreMatcher.from_files(files)
        local_files = prepare_local_files(files, ignore)
        self._ensure_repository()
        snapshot = RemoteScanner(self.client, self.target).scan()
        return FileComparator(self.client, self.target).compare(
            local_files, snapshot, ignore
        )

    # =========================
    # State machine
    # =========================

    def _set_phase(self, phase: SyncPhase) -> None:
        logger.debug(f"Sync phase: {self.phase.value} -> {phase.value}")
        self.phase = phase
        self.phase_history.append(phase)

    def _begin(self) -> None:
        with self._lock:
            if self.phase.is_active:
                raise GitPushError(
                    f"A push to {self.target.full_name} is already in progress"
                )
            self.phase = SyncPhase.IDLE
            self.phase_history = [SyncPhase.IDLE]
            self.warnings = []
            self._set_phase(SyncPhase.VALIDATING)

    def _execute(
        self,
        load: Callable[[], dict[str, bytes]],
        message: Optional[str],
        project_id: Optional[str],
    ) -> UploadOutcome:
        self._begin()
        started = time.monotonic()
        self._record(PushEvent.ATTEMPT, project_id, commit_message=message or "")
        self.progress.started(f"Preparing push to {self.target.full_name}...")

        try:
            outcome = self._run(load, message, started)
        except Exception as e:
            self._handle_failure(e, project_id, message)
            raise

        self._set_phase(SyncPhase.SUCCESS)
        self._record(
            PushEvent.SUCCESS,
            project_id,
            files_count=outcome.files_uploaded,
            commit_message=message or "",
        )
        return outcome

    def _run(
        self,
        load: Callable[[], dict[str, bytes]],
        message: Optional[str],
        started: float,
    ) -> UploadOutcome:
        target = self.target

        # Validating
        target.validate()
        if self.credentials is not None:
            self.credentials.get_token()
        files = load()
        ignore = IgnoreMatcher.from_files(files)
        local_files = prepare_local_files(files, ignore)
        self.progress.uploading(5, f"Checking repository {target.full_name}...")
        self._ensure_repository()

        # Comparing
        self._set_phase(SyncPhase.COMPARING)
        self.progress.uploading(10, "Fetching repository state...")
        snapshot = RemoteScanner(self.client, target).scan()

        comparator = FileComparator(
            self.client,
            target,
            progress_callback=lambda text, percent: self.progress.uploading(
                10 + percent * 15 // 100, text
            ),
        )
        changes = comparator.compare(local_files, snapshot, ignore)
        counts = summarize_changes(changes)
        logger.info(
            f"Changes: {counts['added']} added, {counts['modified']} modified, "
            f"{counts['unchanged']} unchanged, {counts['deleted']} deleted"
        )

        changed = {
            path: change.content
            for path, change in changes.items()
            if change.is_changed and change.content is not None
        }
        deleted = sorted(
            path
            for path, change in changes.items()
            if change.status == FileStatus.DELETED
        )
        if deleted and not self.apply_deletions:
            logger.info(f"{len(deleted)} remote-only file(s) kept on the branch")
            deleted = []
        total_files = len(changes) - counts["deleted"]

        governor = RateGovernor(self.client, clock=self._clock, sleep=self._sleep)
        operations = SyncOperations(self.client, target, governor=governor)

        if not changed and not deleted:
            self.progress.succeeded("No changes detected")
            return UploadOutcome(
                files_uploaded=0,
                total_files=total_files,
                api_calls=operations.api_calls,
                duration_ms=self._elapsed_ms(started),
                changes=changes,
            )

        # Rate checking
        self._set_phase(SyncPhase.RATE_CHECKING)
        self.progress.uploading(25, "Checking API rate limit...")
        governor.ensure_budget(len(changed), on_warning=self._warn)

        # Uploading
        self._set_phase(SyncPhase.UPLOADING)
        pipeline = BlobUploadPipeline(
            operations,
            governor,
            batch_size=self.batch_size,
            sleep=self._sleep,
            progress=self.progress,
        )
        new_items = pipeline.upload(changed)

        # Assembling
        self._set_phase(SyncPhase.ASSEMBLING)
        unchanged = [
            path
            for path, change in changes.items()
            if change.status == FileStatus.UNCHANGED
        ]
        commit_sha = CommitAssembler(operations, self.progress).assemble(
            new_items,
            snapshot,
            unchanged,
            message or default_commit_message(len(new_items)),
            deleted_paths=deleted,
        )

        self.progress.succeeded(f"Successfully pushed {len(new_items)} files")
        return UploadOutcome(
            files_uploaded=len(new_items),
            total_files=total_files,
            api_calls=operations.api_calls,
            duration_ms=self._elapsed_ms(started),
            commit_sha=commit_sha,
            changes=changes,
        )

    # =========================
    # Helpers
    # =========================

    def _ensure_repository(self) -> None:
        """Check that the target repository exists and accepts pushes.

        Raises:
            GitPushRepositoryNotFoundError: If the repository is missing
            GitPushRepositoryAccessError: If the token cannot push to it
        """
        name = self.target.full_name
        try:
            repository = self.client.get_repository(self.target.owner, self.target.repo)
        except GitPushNotFoundError as e:
            raise GitPushRepositoryNotFoundError(
                f"Repository {name} not found or not visible to this token",
                e.status_code,
            ) from e
        except GitPushPermissionError as e:
            raise GitPushRepositoryAccessError(
                f"Access to repository {name} denied: {e}", e.status_code
            ) from e

        permissions = (repository or {}).get("permissions") or {}
        if permissions and not permissions.get("push", False):
            raise GitPushRepositoryAccessError(
                f"Access to repository {name} denied: token has no push permission",
                403,
            )

    def _warn(self, warning: str) -> None:
        self.warnings.append(warning)
        self.progress.uploading(25, warning)

    def _handle_failure(
        self, error: Exception, project_id: Optional[str], message: Optional[str]
    ) -> None:
        if is_authentication_failure(error):
            self._set_phase(SyncPhase.AUTH_ERROR)
            logger.warning(f"Authentication failed, clearing credentials: {error}")
            if self.credentials is not None:
                try:
                    self.credentials.clear()
                except Exception as e:
                    logger.warning(f"Failed to clear credentials: {e}")
        else:
            self._set_phase(SyncPhase.ERROR)
            logger.error(f"Push to {self.target.full_name} failed: {error}")

        self.progress.failed(str(error) or type(error).__name__)
        self._record(
            PushEvent.FAILURE,
            project_id,
            commit_message=message or "",
            error=str(error),
        )

    def _record(
        self,
        event: PushEvent,
        project_id: Optional[str],
        files_count: int = 0,
        commit_message: str = "",
        error: Optional[str] = None,
    ) -> None:
        if self.stats is None:
            return
        record = PushRecord(
            event=event,
            project_id=project_id,
            repo_owner=self.target.owner,
            repo_name=self.target.repo,
            branch=self.target.branch,
            files_count=files_count,
            commit_message=commit_message,
            error=error,
        )
        try:
            self.stats.record(record)
        except Exception as e:
            logger.warning(f"Failed to record push statistics: {e}")

    @staticmethod
    def _elapsed_ms(started: float) -> int:
        return int((time.monotonic() - started) * 1000)
