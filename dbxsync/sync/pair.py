"""Sync pair resolution from command-line arguments."""

from dataclasses import dataclass
from pathlib import Path

from ..exceptions import UsageError
from ..utils import REMOTE_PREFIX, is_remote_path, normalize_remote_path
from .modes import SyncDirection


@dataclass
class SyncPair:
    """A local directory, a remote directory and the direction between them."""

    local: Path
    """Absolute, canonical local directory"""

    remote: str
    """Normalized remote directory (no prefix, rooted, no trailing slash)"""

    direction: SyncDirection

    @property
    def source(self) -> str:
        """Human-readable source location."""
        if self.direction.source_is_remote:
            return f"{REMOTE_PREFIX}{self.remote}"
        return str(self.local)

    @property
    def destination(self) -> str:
        """Human-readable destination location."""
        if self.direction.destination_is_remote:
            return f"{REMOTE_PREFIX}{self.remote}"
        return str(self.local)

    @classmethod
    def resolve(cls, source: str, destination: str) -> "SyncPair":
        """Determine the sync direction from two path arguments.

        Exactly one of the arguments must carry the ``dropbox:`` prefix.
        No filesystem or network access happens here apart from
        canonicalizing the local path.

        Args:
            source: Path whose tree is mirrored
            destination: Path that becomes the mirror

        Returns:
            SyncPair with a normalized remote and canonical local path

        Raises:
            UsageError: If neither or both paths are remote

        Examples:
            >>> pair = SyncPair.resolve("dropbox:/Public", "/tmp/public")
            >>> pair.direction
            <SyncDirection.DOWNLOAD: 'download'>
        """
        source_remote = is_remote_path(source)
        destination_remote = is_remote_path(destination)

        if source_remote and destination_remote:
            raise UsageError(
                "Both paths are remote; exactly one path must start with "
                f"'{REMOTE_PREFIX}'"
            )
        if not source_remote and not destination_remote:
            raise UsageError(
                "Both paths are local; exactly one path must start with "
                f"'{REMOTE_PREFIX}'"
            )

        if source_remote:
            remote, local, direction = source, destination, SyncDirection.DOWNLOAD
        else:
            remote, local, direction = destination, source, SyncDirection.UPLOAD

        if not local:
            raise UsageError("Local path must not be empty")

        return cls(
            local=Path(local).expanduser().resolve(),
            remote=normalize_remote_path(remote),
            direction=direction,
        )
