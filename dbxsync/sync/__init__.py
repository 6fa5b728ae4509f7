"""Sync engine for dbxsync - one-way mirroring between local and remote trees."""

from .comparator import FileComparator, SyncAction, SyncDecision
from .engine import SyncEngine, SyncOptions, SyncPhase
from .modes import SyncDirection
from .operations import SyncOperations
from .pair import SyncPair
from .scanner import (
    TEMP_FILE_PREFIX,
    Entry,
    EntryKind,
    LocalTreeWalker,
    RemoteTreeWalker,
    build_entry_map,
)
from .store import RemoteStore

__all__ = [
    "SyncEngine",
    "SyncOptions",
    "SyncPhase",
    "SyncDirection",
    "SyncPair",
    "SyncOperations",
    "FileComparator",
    "SyncAction",
    "SyncDecision",
    "Entry",
    "EntryKind",
    "LocalTreeWalker",
    "RemoteTreeWalker",
    "RemoteStore",
    "TEMP_FILE_PREFIX",
    "build_entry_map",
]
