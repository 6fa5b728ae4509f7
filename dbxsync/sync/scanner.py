"""Tree walkers producing entries for sync comparison."""

import logging
import os
import posixpath
from collections.abc import Iterator
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional

from ..exceptions import DbxError, DbxNotFoundError, FilesystemError, RemoteListError
from ..models import Metadata
from ..utils import join_remote_path, normalize_remote_path
from .store import RemoteStore

logger = logging.getLogger(__name__)

# Prefix of in-progress download files; the local walker never reports them
TEMP_FILE_PREFIX = ".dbxsync-"


class EntryKind(str, Enum):
    """Kind of a tree entry."""

    FILE = "file"
    DIRECTORY = "directory"


@dataclass
class Entry:
    """A file or directory relative to the root of a sync tree."""

    relative_path: str
    """Forward-slash separated path below the root (never the root itself)"""

    kind: EntryKind

    mtime: int
    """Modification time in whole Unix seconds"""

    size: Optional[int] = None
    """File size in bytes (None for directories)"""

    revision: Optional[str] = None
    """Opaque revision token (remote entries only)"""

    @property
    def is_dir(self) -> bool:
        return self.kind == EntryKind.DIRECTORY

    @property
    def parent(self) -> str:
        """Relative path of the parent directory ("" for the root)."""
        return posixpath.dirname(self.relative_path)

    @classmethod
    def from_metadata(cls, metadata: Metadata, relative_path: str) -> "Entry":
        """Create an Entry from remote metadata."""
        if metadata.is_dir:
            return cls(
                relative_path=relative_path,
                kind=EntryKind.DIRECTORY,
                mtime=metadata.mtime or 0,
                revision=metadata.rev,
            )
        return cls(
            relative_path=relative_path,
            kind=EntryKind.FILE,
            mtime=metadata.mtime or 0,
            size=metadata.bytes,
            revision=metadata.rev,
        )

    @classmethod
    def from_stat(cls, relative_path: str, stat: os.stat_result, is_dir: bool) -> "Entry":
        """Create an Entry from a local stat result, truncating mtime."""
        if is_dir:
            return cls(
                relative_path=relative_path,
                kind=EntryKind.DIRECTORY,
                mtime=int(stat.st_mtime),
            )
        return cls(
            relative_path=relative_path,
            kind=EntryKind.FILE,
            mtime=int(stat.st_mtime),
            size=stat.st_size,
        )


def build_entry_map(entries: Iterator[Entry]) -> dict[str, Entry]:
    """Materialize a walk into a relative-path keyed map.

    The map keeps the walk order, so iterating a map built from a
    pre-order walk is again pre-order.
    """
    return {entry.relative_path: entry for entry in entries}


class RemoteTreeWalker:
    """Recursively enumerates a remote subtree, depth-first and pre-order.

    The walk is lazy: one ``list`` call is made per directory as the
    iteration reaches it. A walker can be iterated only once.

    Examples:
        >>> walker = RemoteTreeWalker(client, "/Public")
        >>> remote_map = build_entry_map(walker)
    """

    def __init__(self, store: RemoteStore, root: str, missing_ok: bool = False):
        """Initialize the remote walker.

        Args:
            store: Remote store providing ``list``
            root: Remote directory to enumerate
            missing_ok: Treat a missing root as an empty tree instead of
                raising RemoteListError
        """
        self.store = store
        self.root = normalize_remote_path(root)
        self.missing_ok = missing_ok
        self.root_exists: Optional[bool] = None
        self._iterator: Optional[Iterator[Entry]] = None

    def __iter__(self) -> Iterator[Entry]:
        if self._iterator is None:
            self._iterator = self._walk("")
        return self._iterator

    def _list(self, relative_dir: str) -> list[Metadata]:
        remote_dir = join_remote_path(self.root, relative_dir)
        logger.debug("Listing remote directory %s", remote_dir)
        try:
            children = self.store.list(remote_dir)
        except DbxNotFoundError as e:
            if not relative_dir and self.missing_ok:
                logger.debug("Remote root %s does not exist", remote_dir)
                self.root_exists = False
                return []
            raise RemoteListError(remote_dir) from e
        except DbxError as e:
            raise RemoteListError(remote_dir) from e
        if not relative_dir:
            self.root_exists = True
        return sorted(children, key=lambda m: m.name)

    def _walk(self, relative_dir: str) -> Iterator[Entry]:
        for metadata in self._list(relative_dir):
            relative_path = posixpath.join(relative_dir, metadata.name)
            entry = Entry.from_metadata(metadata, relative_path)
            yield entry
            if entry.is_dir:
                yield from self._walk(relative_path)


class LocalTreeWalker:
    """Recursively enumerates a local subtree.

    ``walk()`` yields ancestors before descendants, ``walk_post_order()``
    yields descendants before ancestors. Symlinked directories are not
    followed. Leftover download temp files are skipped.
    """

    def __init__(self, root: Path, temp_prefix: str = TEMP_FILE_PREFIX):
        self.root = root
        self.temp_prefix = temp_prefix

    def _scan(self, directory: Path) -> list[tuple[str, os.stat_result, bool]]:
        """Return (name, stat, is_dir) for the children of a directory."""
        children = []
        try:
            with os.scandir(directory) as it:
                for item in it:
                    if self.temp_prefix and item.name.startswith(self.temp_prefix):
                        continue
                    if item.is_symlink() and (item.is_dir() or not item.is_file()):
                        logger.debug("Skipping symlink %s", item.path)
                        continue
                    is_dir = item.is_dir(follow_symlinks=False)
                    children.append((item.name, item.stat(), is_dir))
        except FileNotFoundError:
            if directory == self.root:
                return []
            raise FilesystemError(str(directory), f"Directory vanished: {directory}")
        except OSError as e:
            raise FilesystemError(
                str(directory), f"Cannot read directory {directory}: {e}"
            ) from e
        children.sort(key=lambda child: child[0])
        return children

    def _walk(self, relative_dir: str, post_order: bool) -> Iterator[Entry]:
        directory = self.root / relative_dir if relative_dir else self.root
        for name, stat, is_dir in self._scan(directory):
            relative_path = posixpath.join(relative_dir, name)
            entry = Entry.from_stat(relative_path, stat, is_dir)
            if not post_order:
                yield entry
            if is_dir:
                yield from self._walk(relative_path, post_order)
            if post_order:
                yield entry

    def walk(self) -> Iterator[Entry]:
        """Yield entries in pre-order (ancestors first)."""
        return self._walk("", post_order=False)

    def walk_post_order(self) -> Iterator[Entry]:
        """Yield entries in post-order (descendants first)."""
        return self._walk("", post_order=True)

    def __iter__(self) -> Iterator[Entry]:
        return self.walk()
