"""Data models for API responses."""

import posixpath
from dataclasses import dataclass
from typing import Any, Optional

from .exceptions import DbxInvalidResponseError
from .utils import parse_dropbox_timestamp


@dataclass
class Metadata:
    """Metadata of a remote file or directory as returned by the API."""

    path: str
    """Absolute remote path (case as stored on the server)"""

    is_dir: bool
    """Whether the entry is a directory"""

    bytes: int = 0
    """File size in bytes (0 for directories)"""

    modified: Optional[str] = None
    """Modification timestamp, e.g. "Wed, 01 Jan 2020 00:00:00 +0000" """

    rev: Optional[str] = None
    """Opaque revision token"""

    mime_type: Optional[str] = None
    icon: Optional[str] = None
    thumb_exists: bool = False
    size: Optional[str] = None
    """Human-readable size as reported by the server"""

    is_deleted: bool = False

    @classmethod
    def from_api_response(cls, data: dict[str, Any]) -> "Metadata":
        """Create Metadata from an API response dictionary.

        Raises:
            DbxInvalidResponseError: If the response has no path
        """
        if not isinstance(data, dict) or "path" not in data:
            raise DbxInvalidResponseError(f"Metadata response has no path: {data!r}")
        return cls(
            path=data["path"],
            is_dir=bool(data.get("is_dir", False)),
            bytes=int(data.get("bytes", 0) or 0),
            modified=data.get("modified"),
            rev=data.get("rev"),
            mime_type=data.get("mime_type"),
            icon=data.get("icon"),
            thumb_exists=bool(data.get("thumb_exists", False)),
            size=data.get("size"),
            is_deleted=bool(data.get("is_deleted", False)),
        )

    @property
    def name(self) -> str:
        """Last path segment."""
        return posixpath.basename(self.path.rstrip("/"))

    @property
    def mtime(self) -> Optional[int]:
        """Modification time as whole Unix seconds, if known."""
        dt = parse_dropbox_timestamp(self.modified)
        if dt is None:
            return None
        return int(dt.timestamp())
