"""dbxsync - mirror local directories to and from a Dropbox-style store."""

from .api import DropboxClient
from .exceptions import (
    DbxAPIError,
    DbxAuthenticationError,
    DbxConfigError,
    DbxError,
    DbxInvalidResponseError,
    DbxNetworkError,
    DbxNotFoundError,
    DbxPermissionError,
    DbxRateLimitError,
    FilesystemError,
    RemoteListError,
    RenameError,
    TransferError,
    UsageError,
)
from .utils import escape_path, normalize_remote_path

__all__ = [
    "DropboxClient",
    "DbxError",
    "DbxAPIError",
    "DbxAuthenticationError",
    "DbxConfigError",
    "DbxInvalidResponseError",
    "DbxNetworkError",
    "DbxNotFoundError",
    "DbxPermissionError",
    "DbxRateLimitError",
    "FilesystemError",
    "RemoteListError",
    "RenameError",
    "TransferError",
    "UsageError",
    "escape_path",
    "normalize_remote_path",
]
