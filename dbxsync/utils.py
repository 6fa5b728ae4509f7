"""Utility functions for dbxsync."""

import posixpath
import string
from datetime import datetime, timezone
from email.utils import format_datetime, parsedate_to_datetime
from typing import Optional

# =============================================================================
# Constants
# =============================================================================

# Prefix marking a command-line path as remote
REMOTE_PREFIX: str = "dropbox:"

# Chunk size for streaming downloads and uploads (64 KB)
DEFAULT_CHUNK_SIZE: int = 64 * 1024

# Retry configuration for transient HTTP errors
DEFAULT_MAX_RETRIES: int = 3
DEFAULT_RETRY_DELAY: float = 1.0  # seconds

# Characters left untouched by escape_path
PATH_SAFE_CHARS = frozenset(string.ascii_letters + string.digits + "_./-")


# =============================================================================
# Path utilities
# =============================================================================


def is_remote_path(path: str) -> bool:
    """Check whether a command-line path carries the remote prefix."""
    return path.startswith(REMOTE_PREFIX)


def normalize_remote_path(path: str) -> str:
    """Normalize a remote path to a rooted POSIX path without trailing slash.

    Args:
        path: Remote path, with or without the ``dropbox:`` prefix

    Returns:
        Normalized path ("/" for the root)

    Examples:
        >>> normalize_remote_path("dropbox:")
        '/'
        >>> normalize_remote_path("dropbox:Public/")
        '/Public'
        >>> normalize_remote_path("/a//b/")
        '/a/b'
    """
    if is_remote_path(path):
        path = path[len(REMOTE_PREFIX) :]
    path = posixpath.normpath("/" + path.strip())
    # normpath keeps a leading "//" as-is
    if path.startswith("//"):
        path = "/" + path.lstrip("/")
    return path


def join_remote_path(root: str, relative_path: str) -> str:
    """Join a remote root and a relative path."""
    if not relative_path:
        return root
    return posixpath.join(root, relative_path)


def escape_path(path: str) -> str:
    """Percent-encode a path for use in an API URL.

    Everything except ASCII letters, digits, ``_``, ``.``, ``/`` and ``-``
    is encoded; non-ASCII characters are encoded as their UTF-8 bytes.

    Examples:
        >>> escape_path("/Public/my file.txt")
        '/Public/my%20file.txt'
        >>> escape_path("/caf\\u00e9")
        '/caf%C3%A9'
    """
    parts = []
    for char in path:
        if char in PATH_SAFE_CHARS:
            parts.append(char)
        else:
            parts.extend(f"%{byte:02X}" for byte in char.encode("utf-8"))
    return "".join(parts)


# =============================================================================
# Timestamp utilities
# =============================================================================


def parse_dropbox_timestamp(timestamp_str: Optional[str]) -> Optional[datetime]:
    """Parse a "modified" timestamp from the API.

    The API uses the RFC 2822 date format, which is parsed independently
    of the current locale.

    Args:
        timestamp_str: Timestamp such as "Wed, 01 Jan 2020 00:00:00 +0000"

    Returns:
        Timezone-aware datetime, or None if parsing fails
    """
    if not timestamp_str:
        return None
    try:
        dt = parsedate_to_datetime(timestamp_str.strip())
    except (TypeError, ValueError):
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def format_dropbox_timestamp(timestamp: float) -> str:
    """Format a Unix timestamp the way the API does."""
    dt = datetime.fromtimestamp(int(timestamp), tz=timezone.utc)
    return format_datetime(dt)


# =============================================================================
# Size formatting utilities
# =============================================================================


def format_size(size_bytes: int) -> str:
    """Format file size in human-readable format.

    Args:
        size_bytes: Size in bytes

    Returns:
        Formatted size string (e.g., "1.5 MB", "256 B")
    """
    if size_bytes < 1024:
        return f"{size_bytes} B"
    elif size_bytes < 1024 * 1024:
        return f"{size_bytes / 1024:.1f} KB"
    elif size_bytes < 1024 * 1024 * 1024:
        return f"{size_bytes / 1024 / 1024:.1f} MB"
    else:
        return f"{size_bytes / 1024 / 1024 / 1024:.1f} GB"
