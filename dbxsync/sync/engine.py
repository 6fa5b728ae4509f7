"""Core sync engine for executing sync operations."""

import logging
import time
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from rich.progress import Progress, SpinnerColumn, TextColumn

from ..exceptions import FilesystemError, RenameError
from ..output import OutputFormatter
from .comparator import FileComparator, SyncAction, SyncDecision
from .operations import SyncOperations
from .pair import SyncPair
from .scanner import (
    TEMP_FILE_PREFIX,
    Entry,
    LocalTreeWalker,
    RemoteTreeWalker,
    build_entry_map,
)
from .store import RemoteStore

logger = logging.getLogger(__name__)


class SyncPhase(str, Enum):
    """Phases of a sync run, in order."""

    RESOLVE_DIRECTION = "resolve_direction"
    BUILD_REMOTE_MAP = "build_remote_map"
    RECONCILE = "reconcile"
    DELETE = "delete"
    DONE = "done"
    FAILED = "failed"


@dataclass
class SyncOptions:
    """Options for a single sync run."""

    dry_run: bool = False
    """Log decisions without changing anything"""

    delete: bool = False
    """Delete destination entries missing from the source"""

    temp_prefix: str = TEMP_FILE_PREFIX
    """File name prefix for in-progress downloads"""


_ACTION_VERBS = {
    SyncAction.MKDIR_LOCAL: "mkdir",
    SyncAction.MKDIR_REMOTE: "mkdir",
    SyncAction.UPLOAD: "upload",
    SyncAction.DOWNLOAD: "download",
    SyncAction.DELETE_LOCAL: "delete",
    SyncAction.DELETE_REMOTE: "delete",
}

_STAT_KEYS = {
    SyncAction.MKDIR_LOCAL: "mkdirs",
    SyncAction.MKDIR_REMOTE: "mkdirs",
    SyncAction.UPLOAD: "uploads",
    SyncAction.DOWNLOAD: "downloads",
    SyncAction.DELETE_LOCAL: "deletes",
    SyncAction.DELETE_REMOTE: "deletes",
    SyncAction.SKIP: "skips",
}


class SyncEngine:
    """Mirrors one side of a sync pair onto the other.

    A run walks through ``SyncPhase`` in order. Any error other than
    ``RenameError`` stops the run where it happened; actions already
    applied are kept.
    """

    def __init__(
        self,
        store: RemoteStore,
        output: Optional[OutputFormatter] = None,
    ):
        """Initialize sync engine.

        Args:
            store: Remote store client
            output: Output formatter for displaying progress/status
        """
        self.store = store
        self.output = output or OutputFormatter()
        self.phase = SyncPhase.RESOLVE_DIRECTION

    def sync(
        self,
        source: str,
        destination: str,
        options: Optional[SyncOptions] = None,
    ) -> dict:
        """Sync a source path onto a destination path.

        Exactly one of the two paths must carry the ``dropbox:`` prefix.

        Args:
            source: Path whose tree is mirrored
            destination: Path that becomes the mirror
            options: Run options (dry-run, delete)

        Returns:
            Dictionary with sync statistics

        Raises:
            UsageError: If the direction cannot be resolved
            RemoteListError: If the remote tree cannot be listed
            TransferError: If a remote operation fails
            FilesystemError: If a local operation fails

        Examples:
            >>> engine = SyncEngine(client)
            >>> stats = engine.sync("dropbox:/Public", "./public")
            >>> print(f"Downloaded {stats['downloads']} files")
        """
        options = options or SyncOptions()
        self.phase = SyncPhase.RESOLVE_DIRECTION
        try:
            pair = SyncPair.resolve(source, destination)
            return self.sync_pair(pair, options)
        except Exception:
            self.phase = SyncPhase.FAILED
            raise

    def sync_pair(self, pair: SyncPair, options: SyncOptions) -> dict:
        """Sync a resolved pair.

        Args:
            pair: Resolved sync pair
            options: Run options

        Returns:
            Dictionary with sync statistics
        """
        start_time = time.time()
        stats = self._create_empty_stats()

        if not self.output.quiet:
            self.output.info(f"Syncing: {pair.source} -> {pair.destination}")
            if options.dry_run:
                self.output.info("Dry run: No changes will be made")

        operations = SyncOperations(
            self.store,
            local_root=pair.local,
            remote_root=pair.remote,
            dry_run=options.dry_run,
            temp_prefix=options.temp_prefix,
        )
        comparator = FileComparator(pair.direction, delete=options.delete)
        local_walker = LocalTreeWalker(pair.local, temp_prefix=options.temp_prefix)

        if not pair.direction.source_is_remote:
            if not pair.local.is_dir():
                raise FilesystemError(
                    str(pair.local), f"Local directory does not exist: {pair.local}"
                )

        self.phase = SyncPhase.BUILD_REMOTE_MAP
        remote_walker = RemoteTreeWalker(
            self.store, pair.remote, missing_ok=pair.direction.destination_is_remote
        )
        remote_map = self._build_remote_map(remote_walker)
        logger.debug("Remote map has %d entries", len(remote_map))

        self.phase = SyncPhase.RECONCILE
        source_paths: Iterable[str]
        if pair.direction.source_is_remote:
            self._ensure_local_root(pair, options, stats)
            local_map = build_entry_map(local_walker.walk())
            source_paths = remote_map.keys()
            self._execute(
                comparator.compare(remote_map.values(), local_map),
                operations,
                stats,
            )
        else:
            if remote_walker.root_exists is False:
                self._ensure_remote_root(pair, operations, stats)
            seen: list[str] = []
            self._execute(
                comparator.compare(self._track(local_walker.walk(), seen), remote_map),
                operations,
                stats,
            )
            source_paths = seen

        if options.delete:
            self.phase = SyncPhase.DELETE
            destination_entries: Iterable[Entry]
            if pair.direction.destination_is_remote:
                destination_entries = reversed(list(remote_map.values()))
            else:
                destination_entries = local_walker.walk_post_order()
            self._execute(
                comparator.deletions(source_paths, destination_entries),
                operations,
                stats,
            )

        self.phase = SyncPhase.DONE
        logger.debug("Sync finished in %.2fs: %s", time.time() - start_time, stats)
        return stats

    def _create_empty_stats(self) -> dict:
        """Create an empty statistics dictionary.

        Returns:
            Dictionary with zero counts for all stat categories
        """
        return {
            "mkdirs": 0,
            "uploads": 0,
            "downloads": 0,
            "deletes": 0,
            "skips": 0,
            "rename_failures": 0,
        }

    def _build_remote_map(self, walker: RemoteTreeWalker) -> dict[str, Entry]:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            transient=True,
            disable=self.output.quiet or self.output.json_output,
        ) as progress:
            task = progress.add_task("Scanning remote directory...", total=None)
            remote_map: dict[str, Entry] = {}
            for entry in walker:
                remote_map[entry.relative_path] = entry
                progress.update(
                    task, description=f"Scanning remote: {len(remote_map)} entries"
                )
        return remote_map

    def _track(self, entries: Iterable[Entry], seen: list[str]) -> Iterator[Entry]:
        """Pass entries through, recording their paths."""
        for entry in entries:
            seen.append(entry.relative_path)
            yield entry

    def _ensure_local_root(
        self, pair: SyncPair, options: SyncOptions, stats: dict
    ) -> None:
        if pair.local.is_dir():
            return
        self._log_action("mkdir", str(pair.local))
        stats["mkdirs"] += 1
        if options.dry_run:
            return
        try:
            pair.local.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise FilesystemError(
                str(pair.local), f"Cannot create {pair.local}: {e}"
            ) from e

    def _ensure_remote_root(
        self, pair: SyncPair, operations: SyncOperations, stats: dict
    ) -> None:
        """Create a missing remote root before uploading into it."""
        self._log_action("mkdir", pair.destination)
        stats["mkdirs"] += 1
        operations.mkdir_remote("")

    def _log_action(self, verb: str, target: str, source: Optional[str] = None) -> None:
        message = f"{verb} {source} -> {target}" if source else f"{verb} {target}"
        logger.info(message)
        self.output.info(message)

    def _describe(
        self, decision: SyncDecision, operations: SyncOperations
    ) -> tuple[str, Optional[str]]:
        """Return (target, source) strings for logging a decision."""
        local = str(operations.local_path(decision.relative_path))
        remote = operations.remote_path(decision.relative_path)
        action = decision.action
        if action == SyncAction.DOWNLOAD:
            return local, remote
        if action == SyncAction.UPLOAD:
            return remote, local
        if action in (SyncAction.MKDIR_REMOTE, SyncAction.DELETE_REMOTE):
            return remote, None
        return local, None

    def _execute(
        self,
        decisions: Iterable[SyncDecision],
        operations: SyncOperations,
        stats: dict,
    ) -> None:
        """Apply decisions one at a time as they are produced."""
        for decision in decisions:
            stats[_STAT_KEYS[decision.action]] += 1
            if decision.action == SyncAction.SKIP:
                logger.debug("skip %s (%s)", decision.relative_path, decision.reason)
                continue

            target, source = self._describe(decision, operations)
            self._log_action(_ACTION_VERBS[decision.action], target, source)
            logger.debug("%s: %s", decision.relative_path, decision.reason)

            try:
                operations.apply(decision)
            except RenameError as e:
                stats["rename_failures"] += 1
                logger.warning("%s", e)
                self.output.warning(str(e))
                continue

            if not operations.dry_run:
                self.output.success(f"  done: {target}")
