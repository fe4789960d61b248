"""File comparison logic for sync operations."""

import logging
from collections.abc import Mapping
from typing import Callable, Optional

from ..api import GitHubClient
from ..exceptions import GitPushAPIError, GitPushComparisonError, GitPushError
from ..models import (
    FileChange,
    FileStatus,
    LocalFile,
    RemoteTreeSnapshot,
    RepositoryTarget,
)
from ..utils import (
    calculate_git_blob_hash,
    is_binary_content,
    normalize_content_for_comparison,
)
from .ignore import IgnoreMatcher
from .scanner import iter_local_files, local_paths

logger = logging.getLogger(__name__)


class FileComparator:
    """Compares archive contents with the remote tree of a branch.

    A blob hash mismatch is not enough to call a file modified: line
    endings and trailing whitespace change the hash without changing the
    file for the user. On a mismatch the remote content is fetched and both
    sides are compared after normalization.
    """

    def __init__(
        self,
        client: GitHubClient,
        target: RepositoryTarget,
        progress_callback: Optional[Callable[[str, int], None]] = None,
    ):
        """Initialize file comparator.

        Args:
            client: GitHub API client used to fetch remote content
            target: Repository and branch being compared against
            progress_callback: Optional function(message, percent)
        """
        self.client = client
        self.target = target
        self.progress_callback = progress_callback
        self.content_fetches = 0

    def _notify(self, message: str, percent: int) -> None:
        if self.progress_callback is not None:
            self.progress_callback(message, percent)

    def compare(
        self,
        local_files: Mapping[str, bytes],
        snapshot: RemoteTreeSnapshot,
        ignore: Optional[IgnoreMatcher] = None,
    ) -> dict[str, FileChange]:
        """Classify every local and remote path.

        Args:
            local_files: Mapping of archive path to content (root prefix
                allowed)
            snapshot: Remote tree of the target branch
            ignore: Rules protecting remote-only paths from deletion
                (built from the local .gitignore when omitted)

        Returns:
            Mapping of normalized path to FileChange

        Raises:
            GitPushComparisonError: If the comparison fails unexpectedly
        """
        try:
            return self._compare(local_files, snapshot, ignore)
        except GitPushError:
            raise
        except Exception as e:
            raise GitPushComparisonError(f"Comparison failed: {e}") from e

    def _compare(
        self,
        local_files: Mapping[str, bytes],
        snapshot: RemoteTreeSnapshot,
        ignore: Optional[IgnoreMatcher],
    ) -> dict[str, FileChange]:
        if ignore is None:
            ignore = IgnoreMatcher.from_files(local_files)

        changes: dict[str, FileChange] = {}
        files = iter_local_files(local_files)
        total = len(files) or 1

        self._notify("Comparing files...", 0)
        for index, local_file in enumerate(files):
            changes[local_file.path] = self._compare_single_file(local_file, snapshot)
            self._notify(
                f"Compared {index + 1}/{len(files)} files", (index + 1) * 90 // total
            )

        self._notify("Checking for deleted files...", 90)
        present = local_paths(local_files)
        for path in sorted(snapshot.existing_files):
            if path in changes or path in present:
                continue
            # Files excluded on the way in must not be deleted on the way out
            if ignore.is_ignored(path):
                logger.debug(f"Remote-only path is ignored, not deleting: {path}")
                continue
            changes[path] = FileChange(path=path, status=FileStatus.DELETED)

        self._notify("Comparison complete", 100)
        return changes

    def _compare_single_file(
        self, local_file: LocalFile, snapshot: RemoteTreeSnapshot
    ) -> FileChange:
        """Classify one local file.

        Args:
            local_file: File from the archive
            snapshot: Remote tree of the target branch

        Returns:
            FileChange for this file
        """
        remote_sha = snapshot.existing_files.get(local_file.path)
        if remote_sha is None:
            return FileChange(
                path=local_file.path,
                status=FileStatus.ADDED,
                content=local_file.content,
            )

        if self._hash_matches(local_file.content, remote_sha):
            return FileChange(
                path=local_file.path,
                status=FileStatus.UNCHANGED,
                content=local_file.content,
            )

        return self._compare_with_remote_content(local_file)

    def _hash_matches(self, content: bytes, remote_sha: str) -> bool:
        """Compare local content with a remote blob sha without a download."""
        if calculate_git_blob_hash(content) == remote_sha:
            return True
        if is_binary_content(content):
            return False
        normalized = normalize_content_for_comparison(content.decode("utf-8"))
        return calculate_git_blob_hash(normalized) == remote_sha

    def _compare_with_remote_content(self, local_file: LocalFile) -> FileChange:
        """Fetch the remote file and compare normalized content.

        If the remote content cannot be fetched the file is treated as
        modified, so a real divergence is never hidden.
        """
        try:
            self.content_fetches += 1
            remote_content = self.client.get_file_content(
                self.target.owner,
                self.target.repo,
                local_file.path,
                ref=self.target.branch,
            )
        except (GitPushAPIError, ValueError) as e:
            logger.warning(
                f"Failed to fetch remote content for {local_file.path}: {e}"
            )
            return FileChange(
                path=local_file.path,
                status=FileStatus.MODIFIED,
                content=local_file.content,
            )

        if contents_equivalent(local_file.content, remote_content):
            # Hash difference came from line endings or whitespace only
            status = FileStatus.UNCHANGED
        else:
            status = FileStatus.MODIFIED

        return FileChange(
            path=local_file.path,
            status=status,
            content=local_file.content,
            previous_content=remote_content,
        )


def contents_equivalent(local: bytes, remote: bytes) -> bool:
    """Check whether two file contents are the same for sync purposes.

    Binary content (on either side) is compared byte for byte. Text is
    compared after normalize_content_for_comparison.

    Examples:
        >>> contents_equivalent(b"a\\r\\nb", b"a\\nb")
        True
        >>> contents_equivalent(b"a\\nb", b"a\\nc")
        False
    """
    if local == remote:
        return True
    if is_binary_content(local) or is_binary_content(remote):
        return False
    return normalize_content_for_comparison(
        local.decode("utf-8")
    ) == normalize_content_for_comparison(remote.decode("utf-8"))


def summarize_changes(changes: Mapping[str, FileChange]) -> dict[str, int]:
    """Count changes per status.

    Returns:
        Dictionary with one count per FileStatus value
    """
    stats = {status.value: 0 for status in FileStatus}
    for change in changes.values():
        stats[change.status.value] += 1
    return stats
