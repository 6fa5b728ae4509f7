"""Shared fixtures for the dbxsync test suite."""

from __future__ import annotations

import posixpath
from pathlib import Path
from typing import Optional

import pytest

from dbxsync.exceptions import DbxAPIError, DbxNotFoundError
from dbxsync.models import Metadata
from dbxsync.utils import format_dropbox_timestamp

# Modification time the in-memory server assigns to uploads
SERVER_TIME = 2_000_000_000


class InMemoryStore:
    """Remote store keeping its tree in dictionaries and recording calls."""

    def __init__(self):
        self.dirs: dict[str, int] = {"/": 0}
        self.files: dict[str, tuple[bytes, int]] = {}
        self.calls: list[tuple[str, str]] = []

    def add_dir(self, path: str, mtime: int = 0) -> None:
        self.dirs[path] = mtime

    def add_file(self, path: str, content: bytes, mtime: int) -> None:
        self.files[path] = (content, mtime)

    def _children(self, path: str) -> list[str]:
        entries = list(self.dirs) + list(self.files)
        return [p for p in entries if p != "/" and posixpath.dirname(p) == path]

    def _metadata(self, path: str) -> Metadata:
        if path in self.dirs:
            return Metadata(
                path=path,
                is_dir=True,
                modified=format_dropbox_timestamp(self.dirs[path]),
            )
        content, mtime = self.files[path]
        return Metadata(
            path=path,
            is_dir=False,
            bytes=len(content),
            modified=format_dropbox_timestamp(mtime),
            rev=f"rev-{mtime}",
        )

    def list(self, path: str) -> list[Metadata]:
        self.calls.append(("list", path))
        if path not in self.dirs:
            raise DbxNotFoundError(f"Not found: {path}", 404)
        return [self._metadata(p) for p in self._children(path)]

    def upload(
        self, local_file: Path, remote_dir: str, name: Optional[str] = None
    ) -> Metadata:
        path = posixpath.join(remote_dir, name or local_file.name)
        self.calls.append(("upload", path))
        if remote_dir not in self.dirs:
            raise DbxNotFoundError(f"Not found: {remote_dir}", 404)
        self.files[path] = (local_file.read_bytes(), SERVER_TIME)
        return self._metadata(path)

    def download(self, remote_file: str, sink) -> int:
        self.calls.append(("download", remote_file))
        if remote_file not in self.files:
            raise DbxNotFoundError(f"Not found: {remote_file}", 404)
        content = self.files[remote_file][0]
        sink.write(content)
        return len(content)

    def mkdir(self, remote_dir: str) -> Metadata:
        self.calls.append(("mkdir", remote_dir))
        if remote_dir in self.dirs or remote_dir in self.files:
            raise DbxAPIError(f"Already exists: {remote_dir}", 403)
        if posixpath.dirname(remote_dir) not in self.dirs:
            raise DbxNotFoundError(f"Parent missing: {remote_dir}", 404)
        self.dirs[remote_dir] = SERVER_TIME
        return self._metadata(remote_dir)

    def delete(self, path: str) -> Metadata:
        self.calls.append(("delete", path))
        if path not in self.dirs and path not in self.files:
            raise DbxNotFoundError(f"Not found: {path}", 404)
        metadata = self._metadata(path)
        for p in list(self.dirs):
            if p == path or p.startswith(path + "/"):
                del self.dirs[p]
        for p in list(self.files):
            if p == path or p.startswith(path + "/"):
                del self.files[p]
        return metadata

    def escape(self, path: str) -> str:
        return path

    def mutating_calls(self) -> list[tuple[str, str]]:
        return [call for call in self.calls if call[0] != "list"]


@pytest.fixture
def store():
    """Provide an empty in-memory remote store."""
    return InMemoryStore()
