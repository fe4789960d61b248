"""Blob upload pipeline: batches, serial writes and per-file retries."""

import logging
import threading
import time
from collections.abc import Mapping
from typing import Callable, Optional

from ..exceptions import (
    GitPushThrottlingError,
    GitPushTransientError,
    GitPushUploadError,
)
from ..models import TreeItem
from ..utils import (
    BATCH_PAUSE_SECONDS,
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_RETRY_DELAY,
    MAX_BATCH_SIZE,
    strip_root_prefix,
)
from .operations import SyncOperations
from .progress import ProgressEmitter
from .queue import SerialWriteQueue
from .rate_limit import RateGovernor

logger = logging.getLogger(__name__)


class BlobUploadPipeline:
    """Uploads changed files as blobs and returns the resulting tree items.

    Files are split into ordered batches. Within a batch every file goes
    through a single-worker queue, so blob creation is strictly sequential
    and follows the order of the input mapping.
    """

    def __init__(
        self,
        operations: SyncOperations,
        governor: RateGovernor,
        batch_size: int = MAX_BATCH_SIZE,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        retry_base_delay: float = DEFAULT_RETRY_DELAY,
        batch_pause: float = BATCH_PAUSE_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
        progress: Optional[ProgressEmitter] = None,
        progress_range: tuple[int, int] = (30, 80),
    ):
        """Initialize the pipeline.

        Args:
            operations: Write operations for the target repository
            governor: Rate governor pacing each write
            batch_size: Maximum files per batch
            max_attempts: Attempts per file before giving up
            retry_base_delay: Linear backoff step for transient failures
            batch_pause: Pause between two batches
            sleep: Blocks for the given number of seconds
            progress: Progress emitter
            progress_range: Percent range covered by the upload phase
        """
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self.operations = operations
        self.governor = governor
        self.batch_size = batch_size
        self.max_attempts = max_attempts
        self.retry_base_delay = retry_base_delay
        self.batch_pause = batch_pause
        self._sleep = sleep
        self.progress = progress or ProgressEmitter()
        self.progress_range = progress_range

        self.files_uploaded = 0
        self.retries = 0
        self._aborted = threading.Event()

    @property
    def api_calls(self) -> int:
        """Write requests issued so far, failed attempts included."""
        return self.operations.api_calls

    def plan_batches(self, paths: list[str]) -> list[list[str]]:
        """Split paths into consecutive batches of at most ``batch_size``.

        With the default size, 30 paths make one batch and 31 make two
        (30 + 1).
        """
        return [
            paths[start : start + self.batch_size]
            for start in range(0, len(paths), self.batch_size)
        ]

    def _percent(self, done: int, total: int) -> int:
        low, high = self.progress_range
        if total == 0:
            return high
        return low + (high - low) * done // total

    def upload(self, changed: Mapping[str, bytes]) -> list[TreeItem]:
        """Create one blob per changed file.

        Args:
            changed: Mapping of path to content, in upload order

        Returns:
            Tree items in input order, paths without root prefix

        Raises:
            GitPushUploadError: If a file still fails after max_attempts
        """
        paths = list(changed)
        batches = self.plan_batches(paths)
        total = len(paths)
        items: list[TreeItem] = []

        logger.debug(f"Uploading {total} file(s) in {len(batches)} batch(es)")

        self._aborted.clear()
        with SerialWriteQueue() as queue:
            for index, batch in enumerate(batches):
                if index > 0 and self.batch_pause > 0:
                    self._sleep(self.batch_pause)

                self.progress.uploading(
                    self._percent(len(items), total),
                    f"Processing batch {index + 1}/{len(batches)}",
                )
                futures = [
                    queue.submit(self._run_item, path, changed[path])
                    for path in batch
                ]
                items.extend(queue.drain(futures))

        return items

    def _run_item(self, path: str, content: bytes) -> TreeItem:
        # Items queued behind a failed one must not write
        if self._aborted.is_set():
            raise GitPushUploadError(
                f"Skipped {path}: an earlier upload failed", path
            )
        try:
            return self._upload_item(path, content)
        except BaseException:
            self._aborted.set()
            raise

    def _upload_item(self, path: str, content: bytes) -> TreeItem:
        """Create a single blob, retrying throttled and transient failures.

        Runs on the write queue's worker thread.
        """
        attempt = 0
        while True:
            attempt += 1
            self.governor.before_write()
            try:
                sha = self.operations.create_blob(content)
            except GitPushThrottlingError as e:
                if attempt >= self.max_attempts:
                    raise GitPushUploadError(
                        f"Failed to upload {path} after {attempt} attempts: {e}",
                        path,
                    ) from e
                self.retries += 1
                self.governor.backoff(attempt, e)
                continue
            except GitPushTransientError as e:
                if attempt >= self.max_attempts:
                    raise GitPushUploadError(
                        f"Failed to upload {path} after {attempt} attempts: {e}",
                        path,
                    ) from e
                self.retries += 1
                delay = attempt * self.retry_base_delay
                logger.warning(
                    f"Upload of {path} failed (attempt {attempt}/"
                    f"{self.max_attempts}), retrying in {delay:.1f}s: {e}"
                )
                self._sleep(delay)
                continue

            self.governor.record_write()
            self.files_uploaded += 1
            logger.debug(f"Created blob {sha[:7]} for {path}")
            return TreeItem(path=strip_root_prefix(path), sha=sha)
