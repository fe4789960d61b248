"""Write operations against the target repository."""

import logging
from typing import Any, Optional

from ..api import GitHubClient
from ..models import RepositoryTarget, TreeItem
from .rate_limit import RateGovernor

logger = logging.getLogger(__name__)


class SyncOperations:
    """Mutating Git data calls for one repository, with call accounting.

    Every method issues exactly one request and increments ``api_calls``
    whether the request succeeds or not. Tree, commit and ref writes are
    paced by ``governor`` when one is set; blob writes are paced by the
    upload pipeline, which owns their retries.
    """

    def __init__(
        self,
        client: GitHubClient,
        target: RepositoryTarget,
        governor: Optional[RateGovernor] = None,
    ):
        """Initialize sync operations.

        Args:
            client: GitHub API client
            target: Repository and branch written to
            governor: Rate governor spacing tree, commit and ref writes
        """
        self.client = client
        self.target = target
        self.governor = governor
        self.api_calls = 0

    def _before_paced_write(self) -> None:
        self.api_calls += 1
        if self.governor is not None:
            self.governor.before_write()

    def _after_paced_write(self) -> None:
        if self.governor is not None:
            self.governor.record_write()

    def create_blob(self, content: bytes) -> str:
        """Create a blob from raw content.

        Args:
            content: File content, uploaded unmodified

        Returns:
            Blob sha
        """
        self.api_calls += 1
        return self.client.create_blob(self.target.owner, self.target.repo, content)

    def create_tree(
        self, items: list[TreeItem], base_tree: Optional[str] = None
    ) -> str:
        """Create a tree on top of ``base_tree``.

        Returns:
            Tree sha
        """
        self._before_paced_write()
        logger.debug(f"Creating tree with {len(items)} item(s) on {base_tree}")
        sha = self.client.create_tree(
            self.target.owner, self.target.repo, items, base_tree=base_tree
        )
        self._after_paced_write()
        return sha

    def create_commit(self, message: str, tree_sha: str, parents: list[str]) -> str:
        """Create a commit.

        Returns:
            Commit sha
        """
        self._before_paced_write()
        sha = self.client.create_commit(
            self.target.owner, self.target.repo, message, tree_sha, parents
        )
        self._after_paced_write()
        return sha

    def update_branch(self, commit_sha: str) -> Any:
        """Fast-forward the target branch to ``commit_sha`` (never forced)."""
        self._before_paced_write()
        result = self.client.update_ref(
            self.target.owner,
            self.target.repo,
            self.target.branch,
            commit_sha,
            force=False,
        )
        self._after_paced_write()
        return result

    def create_branch(self, commit_sha: str) -> Any:
        """Create the target branch pointing at ``commit_sha``."""
        self._before_paced_write()
        result = self.client.create_ref(
            self.target.owner, self.target.repo, self.target.branch, commit_sha
        )
        self._after_paced_write()
        return result
