"""Comparison logic deciding which sync actions to take."""

from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .modes import SyncDirection
from .scanner import Entry


class SyncAction(str, Enum):
    """Actions that can be taken during sync."""

    MKDIR_LOCAL = "mkdir_local"
    """Create a local directory"""

    MKDIR_REMOTE = "mkdir_remote"
    """Create a remote directory"""

    UPLOAD = "upload"
    """Upload local file to remote"""

    DOWNLOAD = "download"
    """Download remote file to local"""

    DELETE_LOCAL = "delete_local"
    """Delete local file or directory"""

    DELETE_REMOTE = "delete_remote"
    """Delete remote file or directory"""

    SKIP = "skip"
    """Skip entry (no action needed)"""

    @property
    def is_mkdir(self) -> bool:
        return self in (SyncAction.MKDIR_LOCAL, SyncAction.MKDIR_REMOTE)

    @property
    def is_transfer(self) -> bool:
        return self in (SyncAction.UPLOAD, SyncAction.DOWNLOAD)

    @property
    def is_delete(self) -> bool:
        return self in (SyncAction.DELETE_LOCAL, SyncAction.DELETE_REMOTE)


@dataclass
class SyncDecision:
    """Represents a decision about how to sync one entry."""

    action: SyncAction
    """Action to take"""

    reason: str
    """Human-readable reason for this decision"""

    relative_path: str
    """Relative path of the entry"""

    source: Optional[Entry]
    """Entry on the source side (if exists)"""

    destination: Optional[Entry]
    """Entry on the destination side (if exists)"""


class FileComparator:
    """Compares a source tree against a destination tree.

    The source side is walked in pre-order, so every MKDIR is produced
    before the decisions for the directory's descendants. Deletions are
    produced from a post-order walk of the destination.

    All timestamps are whole seconds and compared without tolerance.
    """

    def __init__(self, direction: SyncDirection, delete: bool = False):
        """Initialize file comparator.

        Args:
            direction: Which side is the source
            delete: Whether destination-only entries are deleted
        """
        self.direction = direction
        self.delete = delete
        self._created_dirs: list[str] = []

    @property
    def _mkdir_action(self) -> SyncAction:
        if self.direction.destination_is_remote:
            return SyncAction.MKDIR_REMOTE
        return SyncAction.MKDIR_LOCAL

    @property
    def _transfer_action(self) -> SyncAction:
        if self.direction == SyncDirection.DOWNLOAD:
            return SyncAction.DOWNLOAD
        return SyncAction.UPLOAD

    @property
    def _delete_action(self) -> SyncAction:
        if self.direction.destination_is_remote:
            return SyncAction.DELETE_REMOTE
        return SyncAction.DELETE_LOCAL

    def compare(
        self,
        source_entries: Iterable[Entry],
        destination: Mapping[str, Entry],
    ) -> Iterator[SyncDecision]:
        """Yield a decision for each source entry, in source order.

        Args:
            source_entries: Source entries in pre-order
            destination: Destination entries keyed by relative path

        Yields:
            SyncDecision for every source entry (including skips)
        """
        for entry in source_entries:
            existing = destination.get(entry.relative_path)
            if entry.is_dir:
                yield self._compare_directory(entry, existing)
            else:
                yield self._compare_file(entry, existing)

    def deletions(
        self,
        source_paths: Iterable[str],
        destination_entries: Iterable[Entry],
    ) -> Iterator[SyncDecision]:
        """Yield deletions for destination entries missing from the source.

        Nothing is yielded unless the comparator was created with
        ``delete=True``.

        Args:
            source_paths: Relative paths present on the source side
            destination_entries: Destination entries in post-order

        Yields:
            Delete decisions, deepest entries first
        """
        if not self.delete:
            return
        known = set(source_paths)
        for entry in destination_entries:
            if entry.relative_path not in known:
                yield SyncDecision(
                    action=self._delete_action,
                    reason="Not present in source",
                    relative_path=entry.relative_path,
                    source=None,
                    destination=entry,
                )

    def _already_created(self, path: str) -> bool:
        """Check whether a MKDIR issued earlier covers this path.

        A plain string-prefix test, not aware of path segments: an issued
        "photos-2020" also covers "photos".
        """
        return any(created.startswith(path) for created in self._created_dirs)

    def _compare_directory(
        self, entry: Entry, existing: Optional[Entry]
    ) -> SyncDecision:
        path = entry.relative_path
        if existing is not None:
            return SyncDecision(
                action=SyncAction.SKIP,
                reason="Directory exists",
                relative_path=path,
                source=entry,
                destination=existing,
            )
        if self._already_created(path):
            return SyncDecision(
                action=SyncAction.SKIP,
                reason="Directory already created",
                relative_path=path,
                source=entry,
                destination=None,
            )
        self._created_dirs.append(path)
        return SyncDecision(
            action=self._mkdir_action,
            reason="New directory",
            relative_path=path,
            source=entry,
            destination=None,
        )

    def _compare_file(self, entry: Entry, existing: Optional[Entry]) -> SyncDecision:
        path = entry.relative_path
        reason = self._transfer_reason(entry, existing)
        if reason is None:
            return SyncDecision(
                action=SyncAction.SKIP,
                reason="Files are identical (same size and time)",
                relative_path=path,
                source=entry,
                destination=existing,
            )
        return SyncDecision(
            action=self._transfer_action,
            reason=reason,
            relative_path=path,
            source=entry,
            destination=existing,
        )

    def _transfer_reason(
        self, source: Entry, destination: Optional[Entry]
    ) -> Optional[str]:
        """Return why a file must be transferred, or None to skip it."""
        if destination is None:
            return "New file"
        if destination.is_dir:
            return "Destination is a directory"
        if source.size != destination.size:
            return f"Sizes differ ({source.size} vs {destination.size})"

        if self.direction == SyncDirection.DOWNLOAD:
            remote_mtime, local_mtime = source.mtime, destination.mtime
            if remote_mtime > local_mtime:
                return "Remote file is newer"
        else:
            remote_mtime, local_mtime = destination.mtime, source.mtime
            if remote_mtime < local_mtime:
                return "Local file is newer"
        return None
