"""API client for the remote file store."""

from __future__ import annotations

import logging
import posixpath
import random
import time
from pathlib import Path
from typing import IO, Any, Iterator

import httpx

from .config import config
from .exceptions import (
    DbxAPIError,
    DbxAuthenticationError,
    DbxConfigError,
    DbxInvalidResponseError,
    DbxNetworkError,
    DbxNotFoundError,
    DbxPermissionError,
    DbxRateLimitError,
)
from .models import Metadata
from .utils import (
    DEFAULT_CHUNK_SIZE,
    DEFAULT_MAX_RETRIES,
    DEFAULT_RETRY_DELAY,
    escape_path,
    normalize_remote_path,
)

logger = logging.getLogger(__name__)


class DropboxClient:
    """Client for a Dropbox-style REST API.

    Implements the remote store operations used by the sync engine:
    ``list``, ``upload``, ``download``, ``mkdir``, ``delete`` and ``escape``.
    """

    def __init__(
        self,
        access_token: str | None = None,
        api_url: str | None = None,
        content_url: str | None = None,
        root: str | None = None,
        escape_paths: bool | None = None,
        max_retries: int = DEFAULT_MAX_RETRIES,
        retry_delay: float = DEFAULT_RETRY_DELAY,
        timeout: float = 30.0,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        transport: httpx.BaseTransport | None = None,
    ):
        """Initialize the API client.

        Args:
            access_token: OAuth access token (uses config if not provided)
            api_url: Base URL for metadata and file operations
            content_url: Base URL for uploads and downloads
            root: Root namespace ("auto", "dropbox" or "sandbox")
            escape_paths: Percent-encode paths in URLs (uses config if None)
            max_retries: Maximum number of retry attempts (default: 3)
            retry_delay: Initial delay between retries in seconds (default: 1.0)
            timeout: Request timeout in seconds (default: 30.0)
            chunk_size: Chunk size for streaming transfers in bytes
            transport: Optional httpx transport (used by tests)
        """
        self.access_token = access_token or config.access_token
        self.api_url = (api_url or config.api_url).rstrip("/")
        self.content_url = (content_url or config.content_url).rstrip("/")
        self.root = root or config.root
        self.escape_paths = (
            config.escape_paths if escape_paths is None else escape_paths
        )
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.timeout = timeout
        self.chunk_size = chunk_size
        self._transport = transport

        if not self.access_token:
            raise DbxConfigError(
                "Access token not configured. Run 'dbxsync init' or set "
                "DBXSYNC_ACCESS_TOKEN."
            )

        self._client: httpx.Client | None = None

    def _get_client(self) -> httpx.Client:
        """Get or create the httpx client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.Client(
                headers={"Authorization": f"Bearer {self.access_token}"},
                timeout=httpx.Timeout(self.timeout),
                follow_redirects=True,
                transport=self._transport,
            )
        return self._client

    def close(self) -> None:
        """Close the client and release connections."""
        if self._client is not None and not self._client.is_closed:
            self._client.close()
            self._client = None

    def __enter__(self) -> DropboxClient:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    # =========================
    # Request handling
    # =========================

    def escape(self, path: str) -> str:
        """Escape a remote path for use in a URL.

        Returns the path unchanged when escaping is disabled.
        """
        if not self.escape_paths:
            return path
        return escape_path(path)

    def _url(self, base: str, action: str, path: str) -> str:
        path = normalize_remote_path(path)
        return f"{base}/{action}/{self.root}{self.escape(path)}"

    def _calculate_retry_delay(self, attempt: int) -> float:
        """Calculate delay before next retry using exponential backoff.

        Args:
            attempt: Current attempt number (0-based)

        Returns:
            Delay in seconds
        """
        base_delay = self.retry_delay * (2**attempt)
        # Add jitter: +/- 25% of base delay
        jitter = base_delay * 0.25 * (2 * random.random() - 1)
        return base_delay + jitter

    def _error_for_response(self, response: httpx.Response) -> DbxAPIError:
        """Map an error response to an exception.

        Args:
            response: Response with a 4xx or 5xx status

        Returns:
            Exception describing the failure
        """
        status_code = response.status_code

        if status_code == 401:
            return DbxAuthenticationError(
                "Invalid access token or unauthorized access", status_code
            )
        if status_code == 403:
            return DbxPermissionError(
                "Access forbidden - check your permissions", status_code
            )
        if status_code == 404:
            return DbxNotFoundError(
                f"Not found: {response.request.url.path}", status_code
            )
        if status_code == 429 or (
            status_code == 503 and "Retry-After" in response.headers
        ):
            return DbxRateLimitError(
                "Rate limit exceeded - please try again later", status_code
            )

        error_msg = f"API request failed with status {status_code}"
        try:
            if response.content:
                error_data = response.json()
                if isinstance(error_data, dict):
                    msg = error_data.get("error") or error_data.get("message")
                    if msg:
                        error_msg = f"{error_msg}: {msg}"
        except ValueError:
            # Not a JSON body, keep the status-based message
            pass
        return DbxAPIError(error_msg, status_code)

    def _should_retry(self, error: DbxAPIError, attempt: int) -> bool:
        """Determine if a request should be retried.

        Network errors, rate limits and 5xx responses are retried; client
        errors are not.
        """
        if attempt >= self.max_retries:
            return False
        if isinstance(error, (DbxNetworkError, DbxRateLimitError)):
            return True
        return error.status_code is not None and 500 <= error.status_code < 600

    def _request(
        self, method: str, url: str, retry: bool = True, **kwargs: Any
    ) -> Any:
        """Make an API request and decode the JSON response.

        Args:
            method: HTTP method
            url: Full request URL
            retry: Whether transient failures are retried
            **kwargs: Additional arguments passed to httpx

        Returns:
            Decoded JSON data ({} for an empty body)

        Raises:
            DbxAPIError: If the request fails after all retries
        """
        client = self._get_client()
        max_retries = self.max_retries if retry else 0

        for attempt in range(max_retries + 1):
            error: DbxAPIError
            retry_after: str | None = None
            try:
                response = client.request(method, url, **kwargs)
            except httpx.RequestError as e:
                error = DbxNetworkError(f"Network error: {e}")
                cause: Exception = e
            else:
                if response.is_success:
                    return self._decode(response)
                error = self._error_for_response(response)
                retry_after = response.headers.get("Retry-After")
                cause = error

            if attempt >= max_retries or not self._should_retry(error, attempt):
                if cause is error:
                    raise error
                raise error from cause

            if retry_after and retry_after.isdigit():
                delay = float(retry_after)
            else:
                delay = self._calculate_retry_delay(attempt)
            logger.debug(
                "%s %s failed (%s), retrying in %.1fs", method, url, error, delay
            )
            time.sleep(delay)

        raise DbxAPIError("Request failed after all retry attempts")

    def _decode(self, response: httpx.Response) -> Any:
        if not response.content:
            return {}
        content_type = response.headers.get("Content-Type", "")
        if "json" not in content_type and "javascript" not in content_type:
            if "text/html" in content_type:
                raise DbxAuthenticationError(
                    "Invalid access token - server returned HTML instead of JSON"
                )
            raise DbxInvalidResponseError(f"Unexpected response type: {content_type}")
        try:
            return response.json()
        except ValueError as e:
            raise DbxInvalidResponseError("Invalid JSON response from server") from e

    # =========================
    # Account
    # =========================

    def account_info(self) -> Any:
        """Get information about the authenticated account."""
        return self._request("GET", f"{self.api_url}/account/info")

    # =========================
    # Metadata
    # =========================

    def metadata(self, path: str, list_contents: bool = True) -> Any:
        """Get raw metadata for a path.

        Args:
            path: Remote path
            list_contents: Include the children of a directory

        Returns:
            Metadata dictionary; directories carry a "contents" list
        """
        params = {"list": "true" if list_contents else "false"}
        return self._request(
            "GET", self._url(self.api_url, "metadata", path), params=params
        )

    def stat(self, path: str) -> Metadata:
        """Get metadata for a single remote path."""
        return Metadata.from_api_response(self.metadata(path, list_contents=False))

    def list(self, path: str) -> list[Metadata]:
        """List the immediate children of a remote directory.

        Args:
            path: Remote directory path

        Returns:
            Children metadata (deleted entries are skipped)

        Raises:
            DbxNotFoundError: If the directory does not exist
        """
        data = self.metadata(path, list_contents=True)
        if not isinstance(data, dict):
            raise DbxInvalidResponseError(f"Unexpected metadata response for {path}")
        children = [Metadata.from_api_response(c) for c in data.get("contents", [])]
        return [child for child in children if not child.is_deleted]

    # =========================
    # File Operations
    # =========================

    def _iter_file(self, stream: IO[bytes]) -> Iterator[bytes]:
        while True:
            chunk = stream.read(self.chunk_size)
            if not chunk:
                break
            yield chunk

    def upload(
        self, local_file: Path, remote_dir: str, name: str | None = None
    ) -> Metadata:
        """Upload a local file into a remote directory, overwriting.

        Args:
            local_file: Local file to upload
            remote_dir: Existing remote directory
            name: Remote file name (defaults to the local name)

        Returns:
            Metadata of the stored file
        """
        target = posixpath.join(normalize_remote_path(remote_dir), name or local_file.name)
        url = self._url(self.content_url, "files_put", target)
        size = local_file.stat().st_size

        logger.debug("Uploading %s -> %s (%d bytes)", local_file, target, size)
        with open(local_file, "rb") as f:
            data = self._request(
                "PUT",
                url,
                retry=False,
                params={"overwrite": "true"},
                headers={
                    "Content-Length": str(size),
                    "Content-Type": "application/octet-stream",
                },
                content=self._iter_file(f),
            )
        return Metadata.from_api_response(data)

    def download(self, remote_file: str, sink: IO[bytes]) -> int:
        """Download a remote file into a binary sink.

        Args:
            remote_file: Remote file path
            sink: Writable binary file object

        Returns:
            Number of bytes written

        Raises:
            DbxNotFoundError: If the file does not exist
            DbxAPIError: If the download fails
        """
        url = self._url(self.content_url, "files", remote_file)
        client = self._get_client()
        written = 0

        try:
            with client.stream("GET", url) as response:
                if response.is_error:
                    response.read()
                    raise self._error_for_response(response)
                for chunk in response.iter_bytes(chunk_size=self.chunk_size):
                    sink.write(chunk)
                    written += len(chunk)
        except httpx.RequestError as e:
            raise DbxNetworkError(f"Network error during download: {e}") from e

        logger.debug("Downloaded %s (%d bytes)", remote_file, written)
        return written

    def mkdir(self, remote_dir: str) -> Metadata:
        """Create a remote directory. The parent must already exist."""
        data = self._request(
            "POST",
            f"{self.api_url}/fileops/create_folder",
            data={"root": self.root, "path": normalize_remote_path(remote_dir)},
        )
        return Metadata.from_api_response(data)

    def delete(self, path: str) -> Metadata:
        """Delete a remote file or directory (recursively)."""
        data = self._request(
            "POST",
            f"{self.api_url}/fileops/delete",
            data={"root": self.root, "path": normalize_remote_path(path)},
        )
        return Metadata.from_api_response(data)
