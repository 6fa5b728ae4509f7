"""Remote store capability interface used by the sync engine."""

from pathlib import Path
from typing import IO, Any, Optional, Protocol, runtime_checkable

from ..models import Metadata


@runtime_checkable
class RemoteStore(Protocol):
    """Operations the sync engine needs from a remote store.

    ``DropboxClient`` implements this protocol; tests substitute mocks.
    Every operation raises a ``DbxError`` subclass on failure.
    """

    def list(self, path: str) -> list[Metadata]:
        """Return the immediate children of a remote directory."""
        ...

    def upload(
        self, local_file: Path, remote_dir: str, name: Optional[str] = None
    ) -> Any:
        """Upload a file into an existing remote directory, overwriting."""
        ...

    def download(self, remote_file: str, sink: IO[bytes]) -> Any:
        """Write the content of a remote file into ``sink``."""
        ...

    def mkdir(self, remote_dir: str) -> Any:
        """Create a remote directory whose parent exists."""
        ...

    def delete(self, path: str) -> Any:
        """Recursively delete a remote file or directory."""
        ...

    def escape(self, path: str) -> str:
        """Escape a remote path for transport."""
        ...
