"""Execution of sync decisions against the remote store and local disk."""

import logging
import os
import posixpath
import tempfile
from pathlib import Path
from typing import Optional

from ..exceptions import DbxError, FilesystemError, RenameError, TransferError
from ..utils import join_remote_path
from .comparator import SyncAction, SyncDecision
from .scanner import TEMP_FILE_PREFIX
from .store import RemoteStore

logger = logging.getLogger(__name__)


class SyncOperations:
    """Applies single sync decisions.

    In dry-run mode every mutating call is skipped; everything else,
    including path resolution, behaves the same as in a live run.
    """

    def __init__(
        self,
        store: RemoteStore,
        local_root: Path,
        remote_root: str,
        dry_run: bool = False,
        temp_prefix: str = TEMP_FILE_PREFIX,
    ):
        """Initialize sync operations.

        Args:
            store: Remote store client
            local_root: Local root directory of the sync
            remote_root: Remote root directory of the sync
            dry_run: Skip all mutating calls
            temp_prefix: File name prefix for in-progress downloads
        """
        self.store = store
        self.local_root = local_root
        self.remote_root = remote_root
        self.dry_run = dry_run
        self.temp_prefix = temp_prefix

    def local_path(self, relative_path: str) -> Path:
        """Absolute local path of a relative sync path."""
        return self.local_root.joinpath(*relative_path.split("/"))

    def remote_path(self, relative_path: str) -> str:
        """Absolute remote path of a relative sync path."""
        return join_remote_path(self.remote_root, relative_path)

    def apply(self, decision: SyncDecision) -> None:
        """Apply one decision.

        Raises:
            TransferError: If a remote operation fails
            FilesystemError: If a local operation fails
            RenameError: If a finished download cannot be moved into place
        """
        action = decision.action
        path = decision.relative_path

        if action == SyncAction.SKIP:
            return
        if action == SyncAction.MKDIR_LOCAL:
            self.mkdir_local(path)
        elif action == SyncAction.MKDIR_REMOTE:
            self.mkdir_remote(path)
        elif action == SyncAction.DOWNLOAD:
            mtime = decision.source.mtime if decision.source else None
            self.download_file(path, mtime)
        elif action == SyncAction.UPLOAD:
            self.upload_file(path)
        elif action == SyncAction.DELETE_LOCAL:
            self.delete_local(path)
        elif action == SyncAction.DELETE_REMOTE:
            self.delete_remote(path)
        else:
            raise ValueError(f"Unknown sync action: {action}")

    # =========================
    # Directories
    # =========================

    def mkdir_local(self, relative_path: str) -> None:
        """Create a local directory (and any missing parents)."""
        target = self.local_path(relative_path)
        if self.dry_run:
            return
        try:
            target.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise FilesystemError(str(target), f"Cannot create {target}: {e}") from e

    def mkdir_remote(self, relative_path: str) -> None:
        """Create a remote directory. Its parent must exist."""
        target = self.remote_path(relative_path)
        if self.dry_run:
            return
        try:
            self.store.mkdir(target)
        except DbxError as e:
            raise TransferError(target, f"Cannot create {target}: {e}") from e

    # =========================
    # Transfers
    # =========================

    def upload_file(self, relative_path: str) -> None:
        """Upload a local file to the matching remote path."""
        source = self.local_path(relative_path)
        target = self.remote_path(relative_path)
        if self.dry_run:
            return
        try:
            self.store.upload(
                source, posixpath.dirname(target), posixpath.basename(target)
            )
        except (DbxError, OSError) as e:
            raise TransferError(target, f"Upload of {source} failed: {e}") from e
        logger.debug("Uploaded %s -> %s", source, target)

    def download_file(self, relative_path: str, mtime: Optional[int] = None) -> None:
        """Download a remote file atomically.

        The content is written to a temporary file next to the target and
        renamed over it once complete, so the target path never holds a
        partial file.

        Args:
            relative_path: Relative path of the file
            mtime: Modification time to apply to the downloaded file

        Raises:
            FilesystemError: If the parent directory or temp file cannot be
                created
            TransferError: If the download fails (temp file is removed)
            RenameError: If the final rename fails (temp file is removed)
        """
        source = self.remote_path(relative_path)
        target = self.local_path(relative_path)
        if self.dry_run:
            return

        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            fd, temp_name = tempfile.mkstemp(
                prefix=f"{self.temp_prefix}{target.name}.", dir=target.parent
            )
        except OSError as e:
            raise FilesystemError(
                str(target.parent), f"Cannot prepare download into {target.parent}: {e}"
            ) from e
        temp_path = Path(temp_name)

        try:
            with os.fdopen(fd, "wb") as sink:
                self.store.download(source, sink)
            if mtime is not None:
                os.utime(temp_path, (mtime, mtime))
        except (DbxError, OSError) as e:
            self._discard(temp_path)
            raise TransferError(source, f"Download of {source} failed: {e}") from e

        try:
            os.replace(temp_path, target)
        except OSError as e:
            self._discard(temp_path)
            raise RenameError(
                str(target), f"Cannot move download into place at {target}: {e}"
            ) from e
        logger.debug("Downloaded %s -> %s", source, target)

    def _discard(self, temp_path: Path) -> None:
        try:
            temp_path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning("Could not remove temporary file %s: %s", temp_path, e)

    # =========================
    # Deletion
    # =========================

    def delete_local(self, relative_path: str) -> None:
        """Delete a local file or an (already emptied) directory.

        A directory may still hold entries the local walker never reports,
        namely download leftovers and symlinks. Those are unlinked before
        the directory itself is removed.
        """
        target = self.local_path(relative_path)
        if self.dry_run:
            return
        try:
            if target.is_dir() and not target.is_symlink():
                self._remove_unlisted(target)
                target.rmdir()
            else:
                target.unlink()
        except OSError as e:
            raise FilesystemError(str(target), f"Cannot delete {target}: {e}") from e

    def _remove_unlisted(self, directory: Path) -> None:
        with os.scandir(directory) as it:
            unlisted = [
                Path(item.path)
                for item in it
                if item.is_symlink()
                or (
                    self.temp_prefix
                    and item.name.startswith(self.temp_prefix)
                    and item.is_file(follow_symlinks=False)
                )
            ]
        for path in unlisted:
            logger.debug("Removing unlisted entry %s", path)
            path.unlink()

    def delete_remote(self, relative_path: str) -> None:
        """Delete a remote file or directory."""
        target = self.remote_path(relative_path)
        if self.dry_run:
            return
        try:
            self.store.delete(target)
        except DbxError as e:
            raise TransferError(target, f"Cannot delete {target}: {e}") from e
