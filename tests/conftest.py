"""Shared fixtures for the pygitpush test suite."""

import hashlib
import io
import time
import zipfile
from typing import Optional

import pytest

from pygitpush.auth import TokenProvider
from pygitpush.exceptions import GitPushNonFastForwardError, GitPushNotFoundError
from pygitpush.models import RateBudget, RepositoryTarget, TreeItem
from pygitpush.utils import calculate_git_blob_hash

WRITE_CALLS = (
    "create_blob",
    "create_tree",
    "create_commit",
    "update_ref",
    "create_ref",
)


class FakeGitHubClient:
    """In-memory stand-in for GitHubClient.

    Stores blobs, trees, commits and refs like a tiny Git remote and
    records every call in order. ``failures`` maps a method name to a list
    of exceptions raised (one per call) before the method succeeds.
    """

    def __init__(self, remaining: int = 5000, reset_in: int = 3600):
        self.token_provider = TokenProvider("test-token")
        self.calls: list[str] = []
        self.blobs: dict[str, bytes] = {}
        self.trees: dict[str, dict[str, str]] = {}
        self.commits: dict[str, dict] = {}
        self.refs: dict[str, str] = {}
        self.failures: dict[str, list[Exception]] = {}
        self.repository: Optional[dict] = {"permissions": {"push": True}}
        self.repository_error: Optional[Exception] = None
        self.tree_payloads: list[list[TreeItem]] = []
        self.tree_bases: list[Optional[str]] = []
        self.commit_payloads: list[dict] = []
        self.ref_updates: list[dict] = []
        self.rate_budget = RateBudget(
            remaining=remaining,
            reset_epoch_seconds=int(time.time()) + reset_in,
            limit=5000,
        )
        self._counter = 0
        self.closed = False

    # helpers

    def _maybe_fail(self, name: str) -> None:
        pending = self.failures.get(name)
        if pending:
            raise pending.pop(0)

    def _record(self, name: str) -> None:
        self.calls.append(name)
        self._maybe_fail(name)

    def _store_tree(self, entries: dict[str, str]) -> str:
        listing = "".join(f"{path}:{sha};" for path, sha in sorted(entries.items()))
        sha = hashlib.sha1(f"tree{listing}".encode()).hexdigest()
        self.trees[sha] = dict(entries)
        return sha

    def _store_commit(self, message: str, tree_sha: str, parents: list[str]) -> str:
        self._counter += 1
        sha = hashlib.sha1(
            f"commit{tree_sha}{parents}{message}{self._counter}".encode()
        ).hexdigest()
        self.commits[sha] = {"tree": tree_sha, "parents": list(parents)}
        return sha

    def seed(self, files: dict[str, bytes], branch: str = "main") -> str:
        """Create an initial commit on ``branch`` without recording calls."""
        entries = {}
        for path, content in files.items():
            sha = calculate_git_blob_hash(content)
            self.blobs[sha] = content
            entries[path] = sha
        tree_sha = self._store_tree(entries)
        parent = self.refs.get(branch)
        commit_sha = self._store_commit("seed", tree_sha, [parent] if parent else [])
        self.refs[branch] = commit_sha
        return commit_sha

    def files_on(self, branch: str = "main") -> dict[str, bytes]:
        """Content of every file on a branch."""
        head = self.refs[branch]
        tree = self.trees[self.commits[head]["tree"]]
        return {path: self.blobs[sha] for path, sha in tree.items()}

    @property
    def write_calls(self) -> list[str]:
        return [name for name in self.calls if name in WRITE_CALLS]

    def close(self) -> None:
        self.closed = True

    def __enter__(self) -> "FakeGitHubClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    # reads

    def get_authenticated_user(self):
        self._record("get_authenticated_user")
        return {"login": "octocat"}

    def get_rate_limit(self) -> RateBudget:
        self._record("get_rate_limit")
        return RateBudget(
            remaining=self.rate_budget.remaining,
            reset_epoch_seconds=self.rate_budget.reset_epoch_seconds,
            limit=self.rate_budget.limit,
        )

    def get_repository(self, owner, repo):
        self._record("get_repository")
        if self.repository_error is not None:
            raise self.repository_error
        return self.repository

    def get_branch_head(self, owner, repo, branch):
        self._record("get_branch_head")
        return self.refs.get(branch)

    def get_commit(self, owner, repo, sha):
        self._record("get_commit")
        return {"sha": sha, "tree": {"sha": self.commits[sha]["tree"]}}

    def get_tree(self, owner, repo, tree_sha, recursive=True):
        self._record("get_tree")
        return {
            "sha": tree_sha,
            "truncated": False,
            "tree": [
                {"path": path, "mode": "100644", "type": "blob", "sha": sha}
                for path, sha in sorted(self.trees[tree_sha].items())
            ],
        }

    def get_file_content(self, owner, repo, path, ref):
        self._record("get_file_content")
        head = self.refs.get(ref)
        tree = self.trees[self.commits[head]["tree"]] if head else {}
        if path not in tree:
            raise GitPushNotFoundError(f"Resource not found: {path}", 404)
        return self.blobs[tree[path]]

    # writes

    def create_blob(self, owner, repo, content: bytes) -> str:
        self._record("create_blob")
        sha = calculate_git_blob_hash(content)
        self.blobs[sha] = content
        return sha

    def create_tree(self, owner, repo, items, base_tree=None) -> str:
        self._record("create_tree")
        self.tree_payloads.append(list(items))
        self.tree_bases.append(base_tree)
        entries = dict(self.trees[base_tree]) if base_tree else {}
        for item in items:
            if item.sha is None:
                entries.pop(item.path, None)
            else:
                entries[item.path] = item.sha
        return self._store_tree(entries)

    def create_commit(self, owner, repo, message, tree_sha, parents) -> str:
        self._record("create_commit")
        self.commit_payloads.append(
            {"message": message, "tree": tree_sha, "parents": list(parents)}
        )
        return self._store_commit(message, tree_sha, parents)

    def update_ref(self, owner, repo, branch, sha, force=False):
        self._record("update_ref")
        self.ref_updates.append({"branch": branch, "sha": sha, "force": force})
        current = self.refs.get(branch)
        if not force and current not in self.commits[sha]["parents"]:
            raise GitPushNonFastForwardError(
                f"Update of branch '{branch}' is not a fast-forward", 422
            )
        self.refs[branch] = sha
        return {"ref": f"refs/heads/{branch}", "object": {"sha": sha}}

    def create_ref(self, owner, repo, branch, sha):
        self._record("create_ref")
        self.refs[branch] = sha
        return {"ref": f"refs/heads/{branch}", "object": {"sha": sha}}


def build_zip(files: dict[str, bytes], directories: tuple[str, ...] = ()) -> bytes:
    """Build a ZIP archive in memory."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        for directory in directories:
            archive.writestr(directory, b"")
        for path, content in files.items():
            archive.writestr(path, content)
    return buffer.getvalue()


@pytest.fixture
def fake_client():
    """Create an empty in-memory GitHub remote."""
    return FakeGitHubClient()


@pytest.fixture
def target():
    """Target repository used across tests."""
    return RepositoryTarget(owner="octo", repo="demo", branch="main")


@pytest.fixture
def make_zip():
    """Return the in-memory ZIP builder."""
    return build_zip


@pytest.fixture
def no_sleep():
    """A sleep replacement that records requested delays."""
    delays: list[float] = []

    def sleep(seconds: float) -> None:
        delays.append(seconds)

    sleep.delays = delays  # type: ignore[attr-defined]
    return sleep
