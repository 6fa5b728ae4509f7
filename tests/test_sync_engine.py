"""Tests for the sync engine."""

import logging
import os
from unittest.mock import Mock, patch

import pytest

from dbxsync.exceptions import (
    DbxNetworkError,
    FilesystemError,
    RemoteListError,
    TransferError,
    UsageError,
)
from dbxsync.output import OutputFormatter
from dbxsync.sync import TEMP_FILE_PREFIX, SyncEngine, SyncOptions, SyncPhase

EPOCH_2020 = 1577836800
ACTION_VERBS = ("mkdir ", "upload ", "download ", "delete ")


def _actions(caplog) -> list[str]:
    return [
        r.getMessage()
        for r in caplog.records
        if r.name == "dbxsync.sync.engine" and r.getMessage().startswith(ACTION_VERBS)
    ]


def _write(path, content: str, mtime: int) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)
    os.utime(path, (mtime, mtime))


class TestSyncEngine:
    """Test SyncEngine functionality."""

    @pytest.fixture
    def mock_output(self):
        """Create a mock output formatter."""
        output = Mock(spec=OutputFormatter)
        output.quiet = True  # Suppress output during tests
        output.json_output = False
        return output

    @pytest.fixture
    def engine(self, store, mock_output):
        """Create a sync engine instance."""
        return SyncEngine(store, mock_output)

    @pytest.fixture(autouse=True)
    def capture_actions(self, caplog):
        caplog.set_level(logging.INFO, logger="dbxsync")

    @pytest.fixture
    def public_store(self, store):
        store.add_dir("/Public", EPOCH_2020)
        store.add_file("/Public/a.txt", b"0123456789", EPOCH_2020)
        return store

    # ------------------------------------------------------------------
    # Direction resolution
    # ------------------------------------------------------------------

    def test_both_local_is_usage_error(self, engine, store, tmp_path):
        with pytest.raises(UsageError):
            engine.sync(str(tmp_path), str(tmp_path / "other"))
        assert store.calls == []
        assert engine.phase == SyncPhase.FAILED

    def test_both_remote_is_usage_error(self, engine, store):
        with pytest.raises(UsageError):
            engine.sync("dropbox:/a", "dropbox:/b")
        assert store.calls == []

    # ------------------------------------------------------------------
    # Download direction
    # ------------------------------------------------------------------

    def test_download_scenario_and_idempotence(
        self, engine, public_store, tmp_path, caplog
    ):
        local = tmp_path / "local"
        local.mkdir()
        local = local.resolve()

        stats = engine.sync("dropbox:/", str(local))

        assert _actions(caplog) == [
            f"mkdir {local / 'Public'}",
            f"download /Public/a.txt -> {local / 'Public' / 'a.txt'}",
        ]
        assert stats["mkdirs"] == 1
        assert stats["downloads"] == 1
        assert (local / "Public" / "a.txt").read_bytes() == b"0123456789"
        assert int((local / "Public" / "a.txt").stat().st_mtime) == EPOCH_2020
        assert engine.phase == SyncPhase.DONE

        caplog.clear()
        public_store.calls.clear()
        stats = engine.sync("dropbox:/", str(local))

        assert _actions(caplog) == []
        assert stats["mkdirs"] == 0
        assert stats["downloads"] == 0
        assert stats["skips"] == 2
        assert public_store.mutating_calls() == []

    def test_download_creates_missing_local_root(self, engine, public_store, tmp_path):
        local = tmp_path / "new" / "root"
        engine.sync("dropbox:/Public", str(local))
        assert (local / "a.txt").exists()

    def test_download_remote_newer_replaces_local(self, engine, public_store, tmp_path):
        _write(tmp_path / "a.txt", "9876543210", EPOCH_2020 - 60)

        stats = engine.sync("dropbox:/Public", str(tmp_path))

        assert stats["downloads"] == 1
        assert (tmp_path / "a.txt").read_text() == "0123456789"

    def test_download_local_newer_same_size_is_kept(
        self, engine, public_store, tmp_path
    ):
        _write(tmp_path / "a.txt", "9876543210", EPOCH_2020 + 60)

        stats = engine.sync("dropbox:/Public", str(tmp_path))

        assert stats["downloads"] == 0
        assert (tmp_path / "a.txt").read_text() == "9876543210"

    def test_local_extra_file_kept_without_delete(self, engine, public_store, tmp_path):
        _write(tmp_path / "extra.txt", "x", 1)

        stats = engine.sync("dropbox:/Public", str(tmp_path))

        assert stats["deletes"] == 0
        assert (tmp_path / "extra.txt").exists()

    def test_local_extra_tree_removed_with_delete(
        self, engine, public_store, tmp_path, caplog
    ):
        tmp_path = tmp_path.resolve()
        _write(tmp_path / "x" / "y" / "z.txt", "x", 1)

        stats = engine.sync(
            "dropbox:/Public", str(tmp_path), SyncOptions(delete=True)
        )

        assert stats["deletes"] == 3
        assert not (tmp_path / "x").exists()
        assert (tmp_path / "a.txt").exists()
        assert _actions(caplog)[-3:] == [
            f"delete {tmp_path / 'x' / 'y' / 'z.txt'}",
            f"delete {tmp_path / 'x' / 'y'}",
            f"delete {tmp_path / 'x'}",
        ]

    def test_delete_removes_directory_holding_download_leftover(
        self, engine, store, tmp_path
    ):
        store.add_dir("/R")
        _write(tmp_path / "Old" / "f.txt", "x", 1)
        (tmp_path / "Old" / f"{TEMP_FILE_PREFIX}f.txt.abc").write_text("partial")

        stats = engine.sync("dropbox:/R", str(tmp_path), SyncOptions(delete=True))

        assert stats["deletes"] == 2
        assert not (tmp_path / "Old").exists()

    def test_remote_list_failure_aborts(self, engine, store, tmp_path):
        with pytest.raises(RemoteListError):
            engine.sync("dropbox:/Missing", str(tmp_path))
        assert engine.phase == SyncPhase.FAILED

    def test_transfer_failure_aborts_without_rollback(
        self, engine, store, tmp_path
    ):
        store.add_dir("/R")
        store.add_file("/R/a.txt", b"a", 1)
        store.add_file("/R/b.txt", b"b", 1)
        real_download = store.download

        def fail_on_b(remote_file, sink):
            if remote_file.endswith("b.txt"):
                raise DbxNetworkError("reset")
            return real_download(remote_file, sink)

        store.download = fail_on_b

        with pytest.raises(TransferError):
            engine.sync("dropbox:/R", str(tmp_path))

        assert (tmp_path / "a.txt").exists()
        assert not (tmp_path / "b.txt").exists()

    def test_rename_failure_is_not_fatal(self, engine, store, tmp_path, mock_output):
        store.add_dir("/R")
        store.add_file("/R/a.txt", b"a", 1)
        store.add_file("/R/b.txt", b"b", 1)

        with patch(
            "dbxsync.sync.operations.os.replace", side_effect=OSError("EXDEV")
        ):
            stats = engine.sync("dropbox:/R", str(tmp_path))

        assert stats["rename_failures"] == 2
        assert stats["downloads"] == 2
        assert mock_output.warning.call_count == 2
        assert engine.phase == SyncPhase.DONE
        assert os.listdir(tmp_path) == []

    # ------------------------------------------------------------------
    # Upload direction
    # ------------------------------------------------------------------

    def test_upload_creates_directories_before_files(self, engine, store, tmp_path):
        store.add_dir("/R")
        _write(tmp_path / "a" / "b" / "c" / "f.txt", "data", 1000)

        stats = engine.sync(str(tmp_path), "dropbox:/R")

        assert store.mutating_calls() == [
            ("mkdir", "/R/a"),
            ("mkdir", "/R/a/b"),
            ("mkdir", "/R/a/b/c"),
            ("upload", "/R/a/b/c/f.txt"),
        ]
        assert stats["mkdirs"] == 3
        assert stats["uploads"] == 1

    def test_upload_is_idempotent(self, engine, store, tmp_path):
        store.add_dir("/R")
        _write(tmp_path / "d" / "f.txt", "data", 1000)

        engine.sync(str(tmp_path), "dropbox:/R")
        store.calls.clear()
        stats = engine.sync(str(tmp_path), "dropbox:/R")

        assert store.mutating_calls() == []
        assert stats["skips"] == 2

    def test_upload_into_missing_remote_root(self, engine, store, tmp_path):
        _write(tmp_path / "f.txt", "data", 1000)

        engine.sync(str(tmp_path), "dropbox:/Backup")

        assert store.mutating_calls() == [
            ("mkdir", "/Backup"),
            ("upload", "/Backup/f.txt"),
        ]

    def test_upload_missing_local_source_fails(self, engine, store, tmp_path):
        with pytest.raises(FilesystemError):
            engine.sync(str(tmp_path / "missing"), "dropbox:/R")
        assert store.calls == []

    def test_remote_deletions_are_deepest_first(self, engine, store, tmp_path):
        store.add_dir("/R")
        store.add_dir("/R/x")
        store.add_dir("/R/x/y")
        store.add_file("/R/x/y/z.txt", b"z", 1)
        _write(tmp_path / "keep.txt", "k", 1000)

        engine.sync(str(tmp_path), "dropbox:/R", SyncOptions(delete=True))

        deletes = [c for c in store.mutating_calls() if c[0] == "delete"]
        assert deletes == [
            ("delete", "/R/x/y/z.txt"),
            ("delete", "/R/x/y"),
            ("delete", "/R/x"),
        ]

    def test_remote_extra_kept_without_delete(self, engine, store, tmp_path):
        store.add_dir("/R")
        store.add_file("/R/old.txt", b"old", 1)
        _write(tmp_path / "keep.txt", "k", 1000)

        engine.sync(str(tmp_path), "dropbox:/R")

        assert "/R/old.txt" in store.files

    # ------------------------------------------------------------------
    # Dry run
    # ------------------------------------------------------------------

    def test_dry_run_matches_live_decisions(self, engine, store, tmp_path, caplog):
        store.add_dir("/R")
        store.add_dir("/R/extra")
        _write(tmp_path / "a" / "f.txt", "data", 1000)
        options = SyncOptions(delete=True)

        engine.sync(str(tmp_path), "dropbox:/R", SyncOptions(dry_run=True, delete=True))
        dry_actions = _actions(caplog)
        assert store.mutating_calls() == []

        caplog.clear()
        engine.sync(str(tmp_path), "dropbox:/R", options)
        live_actions = _actions(caplog)

        assert dry_actions == live_actions
        assert len(live_actions) == 3

    def test_download_dry_run_matches_live_decisions(
        self, engine, public_store, tmp_path, caplog
    ):
        public_store.add_dir("/Public/sub", EPOCH_2020)
        public_store.add_file("/Public/sub/b.txt", b"bb", EPOCH_2020)
        local = tmp_path.resolve() / "missing" / "root"

        engine.sync("dropbox:/Public", str(local), SyncOptions(dry_run=True))
        dry_actions = _actions(caplog)
        assert not local.exists()

        caplog.clear()
        stats = engine.sync("dropbox:/Public", str(local))
        live_actions = _actions(caplog)

        assert dry_actions == live_actions
        assert live_actions[0] == f"mkdir {local}"
        assert stats["mkdirs"] == 2
        assert stats["downloads"] == 2
        assert (local / "sub" / "b.txt").read_bytes() == b"bb"
