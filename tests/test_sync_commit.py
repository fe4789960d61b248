"""Tests for commit assembly."""

import pytest

from pygitpush.exceptions import GitPushNonFastForwardError
from pygitpush.models import RemoteTreeSnapshot, TreeItem
from pygitpush.sync import (
    CommitAssembler,
    RateGovernor,
    RecordingReporter,
    SyncOperations,
)
from pygitpush.sync.progress import ProgressEmitter
from pygitpush.utils import calculate_git_blob_hash


def snapshot_of(client, branch: str = "main") -> RemoteTreeSnapshot:
    head = client.refs[branch]
    tree_sha = client.commits[head]["tree"]
    return RemoteTreeSnapshot(
        base_commit_sha=head,
        base_tree_sha=tree_sha,
        existing_files=dict(client.trees[tree_sha]),
    )


def blob_item(client, path: str, content: bytes) -> TreeItem:
    sha = client.create_blob("octo", "demo", content)
    return TreeItem(path=path, sha=sha)


@pytest.fixture
def assembler(fake_client, target):
    return CommitAssembler(SyncOperations(fake_client, target))


class TestBuildTreeItems:
    """Tests for the tree request entries."""

    def test_order_new_then_unchanged_then_deleted(self, assembler):
        """Test entry order and shas."""
        snapshot = RemoteTreeSnapshot(
            base_commit_sha="c1",
            base_tree_sha="t1",
            existing_files={"keep.txt": "k" * 40, "gone.txt": "g" * 40},
        )
        new = [TreeItem(path="new.txt", sha="n" * 40)]

        items = assembler.build_tree_items(
            new, snapshot, unchanged_paths=["keep.txt"], deleted_paths=["gone.txt"]
        )

        assert [(i.path, i.sha) for i in items] == [
            ("new.txt", "n" * 40),
            ("keep.txt", "k" * 40),
            ("gone.txt", None),
        ]

    def test_unknown_paths_are_skipped(self, assembler):
        """Test that paths missing from the snapshot are not carried over."""
        snapshot = RemoteTreeSnapshot(
            base_commit_sha="c1", base_tree_sha="t1", existing_files={}
        )

        items = assembler.build_tree_items(
            [], snapshot, unchanged_paths=["a"], deleted_paths=["b"]
        )

        assert items == []

    def test_no_duplicate_paths(self, assembler):
        """Test that a new item wins over an unchanged entry for the same path."""
        snapshot = RemoteTreeSnapshot(
            base_commit_sha="c1",
            base_tree_sha="t1",
            existing_files={"a.txt": "o" * 40},
        )
        new = [TreeItem(path="a.txt", sha="n" * 40)]

        items = assembler.build_tree_items(new, snapshot, unchanged_paths=["a.txt"])

        assert len(items) == 1
        assert items[0].sha == "n" * 40


class TestAssemble:
    """Tests for tree, commit and ref creation."""

    def test_commit_on_existing_branch(self, assembler, fake_client):
        """Test a fast-forward commit built on the base tree."""
        base = fake_client.seed({"README.md": b"old", "keep.txt": b"k"})
        snapshot = snapshot_of(fake_client)
        new = [blob_item(fake_client, "README.md", b"new")]

        sha = assembler.assemble(new, snapshot, ["keep.txt"], "Update readme")

        assert fake_client.refs["main"] == sha
        assert fake_client.commit_payloads[-1]["parents"] == [base]
        assert fake_client.commit_payloads[-1]["message"] == "Update readme"
        assert fake_client.tree_bases[-1] == snapshot.base_tree_sha
        assert fake_client.ref_updates[-1]["force"] is False
        assert fake_client.files_on("main") == {
            "README.md": b"new",
            "keep.txt": b"k",
        }

    def test_empty_repository_creates_branch(self, assembler, fake_client):
        """Test the first commit of a repository."""
        new = [blob_item(fake_client, "a.txt", b"a")]

        sha = assembler.assemble(new, RemoteTreeSnapshot.empty(), [], "Initial")

        assert fake_client.commit_payloads[-1]["parents"] == []
        assert fake_client.tree_bases[-1] is None
        assert "create_ref" in fake_client.calls
        assert "update_ref" not in fake_client.calls
        assert fake_client.refs["main"] == sha

    def test_nothing_to_commit(self, assembler, fake_client):
        """Test that no request is made without changes."""
        fake_client.seed({"a.txt": b"a"})

        result = assembler.assemble([], snapshot_of(fake_client), ["a.txt"], "msg")

        assert result is None
        assert fake_client.write_calls == []

    def test_deletions_only(self, assembler, fake_client):
        """Test a commit that only removes files."""
        fake_client.seed({"a.txt": b"a", "b.txt": b"b"})

        assembler.assemble(
            [], snapshot_of(fake_client), ["a.txt"], "Remove b", deleted_paths=["b.txt"]
        )

        assert fake_client.files_on("main") == {"a.txt": b"a"}

    def test_branch_moved_is_rejected(self, assembler, fake_client):
        """Test that a concurrent push is never overwritten."""
        fake_client.seed({"a.txt": b"a"})
        snapshot = snapshot_of(fake_client)
        fake_client.seed({"a.txt": b"theirs"})
        their_head = fake_client.refs["main"]
        new = [blob_item(fake_client, "a.txt", b"ours")]

        with pytest.raises(GitPushNonFastForwardError):
            assembler.assemble(new, snapshot, [], "msg")

        assert fake_client.refs["main"] == their_head

    def test_progress_steps(self, fake_client, target):
        """Test the progress messages of the assembling phase."""
        reporter = RecordingReporter()
        assembler = CommitAssembler(
            SyncOperations(fake_client, target), ProgressEmitter(reporter)
        )
        fake_client.seed({"a.txt": b"a"})
        new = [TreeItem(path="b.txt", sha=calculate_git_blob_hash(b"b"))]
        fake_client.blobs[new[0].sha] = b"b"

        assembler.assemble(new, snapshot_of(fake_client), ["a.txt"], "msg")

        assert reporter.messages == [
            "Creating tree...",
            "Creating commit...",
            "Updating branch...",
        ]
        assert [e.progress for e in reporter.events] == [85, 90, 95]


class TestWritePacing:
    """Tests for pacing of tree, commit and ref writes."""

    def test_assembly_writes_are_spaced(self, fake_client, target):
        """Test that each assembly write waits for the minimum interval."""
        sleeps: list[float] = []
        governor = RateGovernor(fake_client, clock=lambda: 1000.0, sleep=sleeps.append)
        operations = SyncOperations(fake_client, target, governor=governor)
        fake_client.seed({"a.txt": b"a"})
        snapshot = snapshot_of(fake_client)

        governor.before_write()
        new = [TreeItem(path="b.txt", sha=operations.create_blob(b"b"))]
        governor.record_write()

        CommitAssembler(operations).assemble(new, snapshot, ["a.txt"], "msg")

        assert sleeps == [1.0, 1.0, 1.0]
        assert governor.writes_recorded == 4
        assert operations.api_calls == 4

    def test_branch_creation_is_paced(self, fake_client, target):
        sleeps: list[float] = []
        governor = RateGovernor(fake_client, clock=lambda: 1000.0, sleep=sleeps.append)
        operations = SyncOperations(fake_client, target, governor=governor)
        new = [blob_item(fake_client, "a.txt", b"a")]

        CommitAssembler(operations).assemble(
            new, RemoteTreeSnapshot.empty(), [], "Initial"
        )

        assert fake_client.write_calls[-2:] == ["create_commit", "create_ref"]
        assert sleeps == [1.0, 1.0]
