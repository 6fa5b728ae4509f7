"""Sync directions."""

from enum import Enum


class SyncDirection(str, Enum):
    """Which side of a sync is the source of truth."""

    DOWNLOAD = "download"
    """Remote is the source, local becomes its mirror"""

    UPLOAD = "upload"
    """Local is the source, remote becomes its mirror"""

    @property
    def source_is_remote(self) -> bool:
        """Whether the source tree is the remote one."""
        return self == SyncDirection.DOWNLOAD

    @property
    def destination_is_remote(self) -> bool:
        """Whether the destination tree is the remote one."""
        return self == SyncDirection.UPLOAD
