"""Tests for SyncOperations (applying single actions)."""

import os
from unittest.mock import patch

import pytest

from dbxsync.exceptions import (
    DbxNetworkError,
    FilesystemError,
    RenameError,
    TransferError,
)
from dbxsync.sync.comparator import SyncAction, SyncDecision
from dbxsync.sync.operations import SyncOperations
from dbxsync.sync.scanner import TEMP_FILE_PREFIX, Entry, EntryKind


def _leftovers(directory):
    return [p.name for p in directory.iterdir() if p.name.startswith(TEMP_FILE_PREFIX)]


class TestDownload:
    """Tests for atomic downloads."""

    def test_download_creates_parents_and_sets_mtime(self, store, tmp_path):
        store.add_dir("/R")
        store.add_file("/R/a/b/f.txt", b"content", 1577836800)
        ops = SyncOperations(store, tmp_path, "/R")

        ops.download_file("a/b/f.txt", 1577836800)

        target = tmp_path / "a" / "b" / "f.txt"
        assert target.read_bytes() == b"content"
        assert int(target.stat().st_mtime) == 1577836800
        assert _leftovers(target.parent) == []

    def test_failed_download_leaves_no_partial_file(self, store, tmp_path):
        def partial_then_fail(remote_file, sink):
            sink.write(b"half")
            raise DbxNetworkError("connection reset")

        store.download = partial_then_fail
        ops = SyncOperations(store, tmp_path, "/R")

        with pytest.raises(TransferError) as exc_info:
            ops.download_file("f.txt")

        assert exc_info.value.path == "/R/f.txt"
        assert not (tmp_path / "f.txt").exists()
        assert _leftovers(tmp_path) == []

    def test_failed_download_keeps_previous_version(self, store, tmp_path):
        (tmp_path / "f.txt").write_bytes(b"old")
        ops = SyncOperations(store, tmp_path, "/R")

        with pytest.raises(TransferError):
            ops.download_file("f.txt")

        assert (tmp_path / "f.txt").read_bytes() == b"old"

    def test_rename_failure_discards_temp_file(self, store, tmp_path):
        store.add_file("/R/f.txt", b"data", 100)
        ops = SyncOperations(store, tmp_path, "/R")

        with patch(
            "dbxsync.sync.operations.os.replace", side_effect=OSError("EXDEV")
        ):
            with pytest.raises(RenameError):
                ops.download_file("f.txt")

        assert not (tmp_path / "f.txt").exists()
        assert _leftovers(tmp_path) == []

    def test_parent_creation_failure_is_filesystem_error(self, store, tmp_path):
        (tmp_path / "blocker").write_text("a file, not a directory")
        ops = SyncOperations(store, tmp_path, "/R")

        with pytest.raises(FilesystemError):
            ops.download_file("blocker/f.txt")


class TestRemoteOperations:
    """Tests for mkdir, upload and delete against the remote store."""

    def test_upload_splits_directory_and_name(self, store, tmp_path):
        store.add_dir("/R")
        store.add_dir("/R/docs")
        (tmp_path / "docs").mkdir()
        (tmp_path / "docs" / "a.txt").write_text("abc")

        SyncOperations(store, tmp_path, "/R").upload_file("docs/a.txt")

        assert store.calls == [("upload", "/R/docs/a.txt")]
        assert store.files["/R/docs/a.txt"][0] == b"abc"

    def test_upload_failure_is_transfer_error(self, store, tmp_path):
        (tmp_path / "a.txt").write_text("abc")
        with pytest.raises(TransferError):
            SyncOperations(store, tmp_path, "/Missing").upload_file("a.txt")

    def test_mkdir_remote_failure_is_transfer_error(self, store, tmp_path):
        with pytest.raises(TransferError) as exc_info:
            SyncOperations(store, tmp_path, "/R").mkdir_remote("x/y")
        assert exc_info.value.path == "/R/x/y"

    def test_delete_remote(self, store, tmp_path):
        store.add_dir("/R")
        store.add_file("/R/old.txt", b"x", 1)
        SyncOperations(store, tmp_path, "/R").delete_remote("old.txt")
        assert "/R/old.txt" not in store.files


class TestLocalOperations:
    """Tests for local mkdir and delete."""

    def test_delete_local_file_and_directory(self, store, tmp_path):
        (tmp_path / "d").mkdir()
        (tmp_path / "d" / "f").write_text("x")
        ops = SyncOperations(store, tmp_path, "/R")

        ops.delete_local("d/f")
        ops.delete_local("d")

        assert not (tmp_path / "d").exists()

    def test_delete_directory_removes_download_leftovers(self, store, tmp_path):
        (tmp_path / "d").mkdir()
        (tmp_path / "d" / f"{TEMP_FILE_PREFIX}f.txt.abc").write_text("partial")

        SyncOperations(store, tmp_path, "/R").delete_local("d")

        assert not (tmp_path / "d").exists()

    def test_delete_directory_removes_symlinks_without_following(
        self, store, tmp_path
    ):
        outside = tmp_path / "outside"
        outside.mkdir()
        (outside / "keep.txt").write_text("x")
        (tmp_path / "d").mkdir()
        os.symlink(outside, tmp_path / "d" / "link")

        SyncOperations(store, tmp_path, "/R").delete_local("d")

        assert not (tmp_path / "d").exists()
        assert (outside / "keep.txt").exists()

    def test_delete_non_empty_directory_fails(self, store, tmp_path):
        (tmp_path / "d").mkdir()
        (tmp_path / "d" / "f").write_text("x")
        with pytest.raises(FilesystemError):
            SyncOperations(store, tmp_path, "/R").delete_local("d")


class TestDryRun:
    """Dry-run replaces every mutating call with a no-op."""

    @pytest.mark.parametrize(
        "action",
        [
            SyncAction.MKDIR_LOCAL,
            SyncAction.MKDIR_REMOTE,
            SyncAction.UPLOAD,
            SyncAction.DOWNLOAD,
            SyncAction.DELETE_LOCAL,
            SyncAction.DELETE_REMOTE,
        ],
    )
    def test_no_mutation(self, store, tmp_path, action):
        (tmp_path / "f.txt").write_text("keep")
        entry = Entry(relative_path="f.txt", kind=EntryKind.FILE, mtime=1, size=4)
        decision = SyncDecision(
            action=action,
            reason="test",
            relative_path="f.txt",
            source=entry,
            destination=entry,
        )

        SyncOperations(store, tmp_path, "/R", dry_run=True).apply(decision)

        assert store.calls == []
        assert sorted(os.listdir(tmp_path)) == ["f.txt"]
        assert (tmp_path / "f.txt").read_text() == "keep"
