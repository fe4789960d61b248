"""Commit assembly: tree, commit and branch update."""

import logging
from collections.abc import Iterable
from typing import Optional

from ..models import RemoteTreeSnapshot, TreeItem
from .operations import SyncOperations
from .progress import ProgressEmitter

logger = logging.getLogger(__name__)


class CommitAssembler:
    """Turns uploaded blobs into a commit on the target branch.

    The new tree is built on top of the branch's current tree, so paths not
    listed keep their content. The commit's only parent is the branch head
    the comparison was made against, and the branch is updated without
    force: if someone pushed in between, the update is rejected instead of
    discarding their work.
    """

    def __init__(
        self, operations: SyncOperations, progress: Optional[ProgressEmitter] = None
    ):
        self.operations = operations
        self.progress = progress or ProgressEmitter()

    def build_tree_items(
        self,
        new_items: list[TreeItem],
        snapshot: RemoteTreeSnapshot,
        unchanged_paths: Iterable[str] = (),
        deleted_paths: Iterable[str] = (),
    ) -> list[TreeItem]:
        """Entries of the tree creation request.

        Changed files come first, then unchanged files carried over with
        their existing sha, then removals (``sha=None``).
        """
        items = list(new_items)
        seen = {item.path for item in items}

        for path in unchanged_paths:
            sha = snapshot.existing_files.get(path)
            if sha is None or path in seen:
                continue
            items.append(TreeItem(path=path, sha=sha))
            seen.add(path)

        for path in deleted_paths:
            if path in seen or path not in snapshot.existing_files:
                continue
            items.append(TreeItem(path=path, sha=None))
            seen.add(path)

        return items

    def assemble(
        self,
        new_items: list[TreeItem],
        snapshot: RemoteTreeSnapshot,
        unchanged_paths: Iterable[str],
        message: str,
        deleted_paths: Iterable[str] = (),
    ) -> Optional[str]:
        """Create tree and commit, then move the branch.

        Args:
            new_items: Tree items for uploaded blobs
            snapshot: Remote state the comparison was made against
            unchanged_paths: Paths whose remote blob is kept
            message: Commit message
            deleted_paths: Paths to remove from the tree

        Returns:
            New commit sha, or None when there was nothing to commit

        Raises:
            GitPushNonFastForwardError: If the branch moved in the meantime
        """
        deleted = [path for path in deleted_paths if path in snapshot.existing_files]
        if not new_items and not deleted:
            logger.debug("Nothing to commit")
            return None

        items = self.build_tree_items(new_items, snapshot, unchanged_paths, deleted)

        self.progress.uploading(85, "Creating tree...")
        tree_sha = self.operations.create_tree(items, base_tree=snapshot.base_tree_sha)

        self.progress.uploading(90, "Creating commit...")
        parents = [] if snapshot.is_empty else [snapshot.base_commit_sha]
        commit_sha = self.operations.create_commit(message, tree_sha, parents)

        self.progress.uploading(95, "Updating branch...")
        if snapshot.is_empty:
            self.operations.create_branch(commit_sha)
        else:
            self.operations.update_branch(commit_sha)

        logger.info(
            f"Committed {commit_sha[:7]} to "
            f"{self.operations.target.full_name}@{self.operations.target.branch}"
        )
        return commit_sha
