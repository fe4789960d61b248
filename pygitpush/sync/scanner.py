"""Scanning of the two sides of a sync: archive contents and remote tree."""

import logging
from collections.abc import Mapping
from typing import Optional

from ..api import GitHubClient
from ..models import LocalFile, RemoteTreeSnapshot, RepositoryTarget
from ..utils import is_directory_entry, strip_root_prefix
from .ignore import IgnoreMatcher

logger = logging.getLogger(__name__)


def iter_local_files(files: Mapping[str, bytes]) -> list[LocalFile]:
    """Turn archive entries into LocalFile objects.

    The export root prefix is stripped. Directory placeholders and
    zero-length entries are skipped, and when two entries normalize to the
    same path only the first one is kept.

    Args:
        files: Mapping of archive path to content

    Returns:
        LocalFile objects in archive order, with unique paths
    """
    local_files: list[LocalFile] = []
    seen: set[str] = set()

    for original_path, content in files.items():
        if is_directory_entry(original_path) or not content:
            logger.debug(f"Skipping entry: {original_path}")
            continue

        path = strip_root_prefix(original_path)
        if path in seen:
            logger.warning(
                f"Duplicate path after normalization, skipping: {original_path}"
            )
            continue
        seen.add(path)
        local_files.append(
            LocalFile(path=path, content=content, original_path=original_path)
        )

    return local_files


def local_paths(files: Mapping[str, bytes]) -> set[str]:
    """Every path present in the archive, empty files included.

    Only directory placeholders are left out. A remote path in this set is
    never a deletion, even when its local entry is not uploaded.
    """
    return {
        strip_root_prefix(path) for path in files if not is_directory_entry(path)
    }


def prepare_local_files(
    files: Mapping[str, bytes], ignore: Optional[IgnoreMatcher] = None
) -> dict[str, bytes]:
    """Apply ignore rules to the extracted archive.

    Args:
        files: Mapping of archive path to content
        ignore: Matcher to apply (built from the archive's .gitignore when
            omitted)

    Returns:
        Filtered mapping, keys unchanged
    """
    if ignore is None:
        ignore = IgnoreMatcher.from_files(files)
    kept = ignore.filter(files)
    logger.debug(f"{len(kept)} of {len(files)} archive entries kept after filtering")
    return kept


class RemoteScanner:
    """Fetches the remote tree of the target branch."""

    def __init__(self, client: GitHubClient, target: RepositoryTarget):
        """Initialize remote scanner.

        Args:
            client: GitHub API client
            target: Repository and branch to read
        """
        self.client = client
        self.target = target

    def scan(self) -> RemoteTreeSnapshot:
        """Read branch head, its tree and every blob path in it.

        Returns:
            RemoteTreeSnapshot (empty if the branch has no commit yet)
        """
        owner, repo, branch = self.target.owner, self.target.repo, self.target.branch

        base_commit_sha = self.client.get_branch_head(owner, repo, branch)
        if base_commit_sha is None:
            logger.debug(f"Branch {branch} of {owner}/{repo} has no commits yet")
            return RemoteTreeSnapshot.empty()

        commit = self.client.get_commit(owner, repo, base_commit_sha)
        base_tree_sha = commit["tree"]["sha"]

        tree = self.client.get_tree(owner, repo, base_tree_sha, recursive=True)
        if tree.get("truncated"):
            logger.warning(
                f"Tree of {owner}/{repo}@{branch} was truncated by the API; "
                "files missing from the listing will be treated as new"
            )

        existing_files = {
            item["path"]: item["sha"]
            for item in tree.get("tree", [])
            if item.get("type") == "blob"
        }
        logger.debug(
            f"Remote tree {base_tree_sha[:7]} has {len(existing_files)} file(s)"
        )
        return RemoteTreeSnapshot(
            base_commit_sha=base_commit_sha,
            base_tree_sha=base_tree_sha,
            existing_files=existing_files,
        )
