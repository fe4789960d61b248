"""Data models shared by the sync components."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from .config import config
from .exceptions import GitPushConfigError
from .utils import BLOB_FILE_MODE


@dataclass
class LocalFile:
    """A file extracted from the project archive."""

    path: str
    """Path relative to the repository root (root prefix stripped)"""

    content: bytes
    """Raw file content, uploaded as-is"""

    original_path: str = ""
    """Entry name inside the archive"""

    def __post_init__(self) -> None:
        if not self.original_path:
            self.original_path = self.path

    @property
    def size(self) -> int:
        """File size in bytes."""
        return len(self.content)


@dataclass(frozen=True)
class RemoteTreeSnapshot:
    """State of the target branch, fetched once per sync."""

    base_commit_sha: Optional[str]
    """Commit the branch ref points to (None for an empty repository)"""

    base_tree_sha: Optional[str]
    """Root tree of that commit"""

    existing_files: dict[str, str] = field(default_factory=dict)
    """Blob path -> blob sha for every file on the branch"""

    @classmethod
    def empty(cls) -> "RemoteTreeSnapshot":
        """Snapshot of a repository without any commit on the branch."""
        return cls(base_commit_sha=None, base_tree_sha=None, existing_files={})

    @property
    def is_empty(self) -> bool:
        """True if the branch has no commit yet."""
        return self.base_commit_sha is None


class FileStatus(str, Enum):
    """Classification of a path during comparison."""

    ADDED = "added"
    MODIFIED = "modified"
    UNCHANGED = "unchanged"
    DELETED = "deleted"


@dataclass
class FileChange:
    """Comparison result for a single path."""

    path: str
    status: FileStatus
    content: Optional[bytes] = None
    previous_content: Optional[bytes] = None

    @property
    def is_changed(self) -> bool:
        """True if the file needs a blob upload."""
        return self.status in (FileStatus.ADDED, FileStatus.MODIFIED)


@dataclass
class TreeItem:
    """An entry of a tree creation request."""

    path: str
    sha: Optional[str]
    mode: str = BLOB_FILE_MODE
    type: str = "blob"

    def to_dict(self) -> dict[str, Any]:
        """Convert to the API payload format.

        A ``None`` sha is sent as JSON null, which removes the path from
        the base tree.
        """
        return {
            "path": self.path,
            "mode": self.mode,
            "type": self.type,
            "sha": self.sha,
        }


@dataclass
class UploadOutcome:
    """Summary of one sync invocation."""

    files_uploaded: int
    total_files: int
    api_calls: int
    duration_ms: int
    commit_sha: Optional[str] = None
    changes: dict[str, FileChange] = field(default_factory=dict)


@dataclass
class RateBudget:
    """Remaining core API budget as reported by the rate limit endpoint."""

    remaining: int
    reset_epoch_seconds: int
    limit: Optional[int] = None

    def seconds_until_reset(self, now: float) -> float:
        """Seconds until the budget resets (never negative)."""
        return max(0.0, self.reset_epoch_seconds - now)


@dataclass(frozen=True)
class RepositoryTarget:
    """Coordinates of the branch a sync writes to."""

    owner: str
    repo: str
    branch: str = "main"

    @property
    def is_configured(self) -> bool:
        return bool(self.owner and self.repo)

    def validate(self) -> None:
        """Check that owner and repository name are set.

        Raises:
            GitPushConfigError: If either is missing
        """
        if not self.is_configured:
            raise GitPushConfigError(
                "Repository details not configured: owner and repository name "
                "are required"
            )

    @property
    def full_name(self) -> str:
        """owner/repo string."""
        return f"{self.owner}/{self.repo}"

    @classmethod
    def from_config(
        cls,
        owner: Optional[str] = None,
        repo: Optional[str] = None,
        branch: Optional[str] = None,
    ) -> "RepositoryTarget":
        """Build a target, filling missing values from the configuration.

        Missing coordinates are left empty; ``validate()`` reports them.
        """
        return cls(
            owner=owner or config.repo_owner or "",
            repo=repo or config.repo_name or "",
            branch=branch or config.branch or "main",
        )
