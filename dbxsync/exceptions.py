"""Exception hierarchy for dbxsync."""

from typing import Optional


class DbxError(Exception):
    """Base exception for all dbxsync errors."""


class DbxConfigError(DbxError):
    """Raised when configuration is missing or invalid."""


class UsageError(DbxError):
    """Raised when a command is invoked with invalid arguments.

    Sync raises this before any I/O happens, e.g. when neither or both
    paths carry the remote prefix.
    """


class DbxAPIError(DbxError):
    """Base exception for remote API errors."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class DbxAuthenticationError(DbxAPIError):
    """Raised when the access token is rejected."""


class DbxPermissionError(DbxAPIError):
    """Raised when access to a resource is forbidden."""


class DbxNotFoundError(DbxAPIError):
    """Raised when a remote path does not exist."""


class DbxRateLimitError(DbxAPIError):
    """Raised when the API rate limit is exceeded."""


class DbxNetworkError(DbxAPIError):
    """Raised on connection failures and timeouts."""


class DbxInvalidResponseError(DbxAPIError):
    """Raised when the API returns a body we cannot parse."""


class SyncPathError(DbxError):
    """Base exception for sync failures tied to a single path."""

    def __init__(self, path: str, message: Optional[str] = None):
        self.path = str(path)
        super().__init__(message or self.path)


class RemoteListError(SyncPathError):
    """Raised when listing a remote directory fails during a tree walk."""

    def __init__(self, path: str, message: Optional[str] = None):
        super().__init__(path, message or f"Failed to list remote directory: {path}")


class TransferError(SyncPathError):
    """Raised when an upload, download, mkdir or delete fails."""


class FilesystemError(SyncPathError):
    """Raised when a local file or directory cannot be created or accessed."""


class RenameError(SyncPathError):
    """Raised when moving a finished download into place fails.

    This is the only recoverable sync error: the temporary file is
    discarded and the sync continues with the next action.
    """
