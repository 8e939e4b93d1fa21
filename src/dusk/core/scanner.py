"""Parallel filesystem walker that builds an aggregation tree."""

from __future__ import annotations

import logging
import os
import stat
import threading
import time
from collections import deque
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Iterable

from dusk.core.deduper import Deduper
from dusk.core.tree import AggregationTree, EmptyDirPolicy
from dusk.errors import InvalidRootError
from dusk.models.entry import Entry, EntryKind
from dusk.models.scan_stats import ScanStats

log = logging.getLogger(__name__)

ProgressCallback = Callable[[ScanStats], None]


class SizeMetric(Enum):
    """Which size of a file is counted."""

    APPARENT = "apparent"
    ON_DISK = "on_disk"


@dataclass(frozen=True, slots=True)
class ScanConfig:
    """Options for one scan.

    ``threads=0`` sizes the worker pool to the number of logical CPUs.
    """

    size_metric: SizeMetric = SizeMetric.ON_DISK
    follow_symlinked_files: bool = False
    count_hard_links: bool = False
    threads: int = 0
    empty_dir_policy: EmptyDirPolicy = EmptyDirPolicy.RETAIN


@dataclass(slots=True)
class ScanResult:
    """Tree and statistics produced by :meth:`Scanner.scan`."""

    tree: AggregationTree
    stats: ScanStats
    truncated: bool = False


@dataclass(slots=True)
class _UnitTally:
    files: int = 0
    directories: int = 0
    others: int = 0
    bytes_counted: int = 0
    file_sizes: list[int] = field(default_factory=list)


def _describe_mode(mode: int) -> str:
    if stat.S_ISCHR(mode):
        return "character device"
    if stat.S_ISBLK(mode):
        return "block device"
    if stat.S_ISFIFO(mode):
        return "named pipe"
    if stat.S_ISSOCK(mode):
        return "socket"
    return "special file"


class Scanner:
    """Walks one or more roots in parallel and aggregates sizes bottom-up.

    Every directory is one unit of work on the thread pool.  A unit lists
    its directory, stats and measures every child on the spot, then
    splices the whole batch into the tree in one locked step.  Child
    directories come back to the dispatcher, which keeps at most
    ``2 * workers`` units in flight.

    Cancellation is cooperative: set :attr:`cancel_event` (or call
    :meth:`cancel`) and no new units are started; running units stop
    listing, attach what they have, and the result is marked truncated.
    """

    def __init__(
        self,
        config: ScanConfig | None = None,
        cancel_event: threading.Event | None = None,
    ) -> None:
        self.config = config or ScanConfig()
        self.cancel_event = cancel_event or threading.Event()
        self.stats = ScanStats()

    @property
    def workers(self) -> int:
        return self.config.threads or os.cpu_count() or 1

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()

    def cancel(self) -> None:
        """Ask running workers to wind down."""
        self.cancel_event.set()

    def scan(
        self,
        paths: Iterable[str | os.PathLike],
        on_progress: ProgressCallback | None = None,
    ) -> ScanResult:
        """Scan *paths* and return the populated tree.

        Every root is checked before any work starts.

        Raises:
            InvalidRootError: If a root does not exist or cannot be read.
        """
        roots = self.validate_roots(paths)
        started = time.monotonic()
        self.stats = stats = ScanStats()
        tree = AggregationTree(self.config.empty_dir_policy)
        deduper = Deduper()

        pending: deque[int] = deque()
        tally = _UnitTally()
        for path, st in roots:
            entry = self._entry_from_stat(path, path, st, deduper, tally)
            index = tree.add_root(entry)
            if entry.is_dir:
                pending.append(index)
        stats.record_unit(**_tally_kwargs(tally))

        log.info("Scanning %d root(s) with %d workers", len(roots), self.workers)
        limit = self.workers * 2
        with ThreadPoolExecutor(max_workers=self.workers, thread_name_prefix="dusk-scan") as pool:
            in_flight: set[Future[list[int]]] = set()
            while pending or in_flight:
                while pending and len(in_flight) < limit and not self.cancelled:
                    node = pending.popleft()
                    in_flight.add(pool.submit(self._scan_directory, tree, node, deduper))
                if not in_flight:
                    break
                done, in_flight = wait(in_flight, return_when=FIRST_COMPLETED)
                for future in done:
                    pending.extend(future.result())
                stats.elapsed = time.monotonic() - started
                if on_progress:
                    on_progress(stats)

        stats.elapsed = time.monotonic() - started
        truncated = self.cancelled
        tree.truncated = truncated
        if truncated:
            log.info("Scan cancelled after %d entries, %d directories not visited", stats.entries_traversed, len(pending))
        else:
            log.info("Scanned %d entries in %.2fs", stats.entries_traversed, stats.elapsed)
        if stats.errors:
            log.info("%d path(s) could not be read", len(stats.errors))
        return ScanResult(tree=tree, stats=stats, truncated=truncated)

    # -- Units of work --

    def _scan_directory(self, tree: AggregationTree, node: int, deduper: Deduper) -> list[int]:
        """List one directory, attach its children and return the subdirectories to visit."""
        dir_path = tree.path_of(node)
        entries: list[Entry] = []
        tally = _UnitTally()
        try:
            with os.scandir(dir_path) as it:
                for dirent in it:
                    if self.cancelled:
                        break
                    entries.append(self._entry_from_dirent(dirent, deduper, tally))
        except OSError as exc:
            reason = exc.strerror or str(exc)
            log.debug("Cannot list %s: %s", dir_path, reason)
            tree[node].error_marker = reason
            self.stats.add_error(dir_path, reason)

        indices = tree.attach(node, entries)
        self.stats.record_unit(**_tally_kwargs(tally))
        return [i for i, e in zip(indices, entries) if e.is_dir and e.error_marker is None]

    def _entry_from_dirent(self, dirent: os.DirEntry, deduper: Deduper, tally: _UnitTally) -> Entry:
        try:
            st = dirent.stat(follow_symlinks=False)
        except OSError as exc:
            reason = exc.strerror or str(exc)
            log.debug("Cannot stat %s: %s", dirent.path, reason)
            self.stats.add_error(dirent.path, reason)
            kind = _kind_hint(dirent)
            match kind:
                case EntryKind.DIRECTORY:
                    tally.directories += 1
                case EntryKind.FILE | EntryKind.SYMLINK:
                    tally.files += 1
                case _:
                    tally.others += 1
            return Entry(name=dirent.name, kind=kind, error_marker=reason)
        return self._entry_from_stat(dirent.name, dirent.path, st, deduper, tally)

    def _entry_from_stat(
        self,
        name: str,
        path: str,
        st: os.stat_result,
        deduper: Deduper,
        tally: _UnitTally,
    ) -> Entry:
        mode = st.st_mode
        if stat.S_ISDIR(mode):
            tally.directories += 1
            return Entry(name=name, kind=EntryKind.DIRECTORY, device_id=st.st_dev, inode=st.st_ino)

        if stat.S_ISLNK(mode):
            kind = EntryKind.SYMLINK
            if self.config.follow_symlinked_files:
                st = self._symlink_target(path) or st
        elif stat.S_ISREG(mode):
            kind = EntryKind.FILE
        else:
            tally.others += 1
            self.stats.add_unsupported(path, _describe_mode(mode))
            return Entry(name=name, kind=EntryKind.OTHER, device_id=st.st_dev, inode=st.st_ino)

        tally.files += 1
        size = self._size_of(st)
        entry = Entry(name=name, kind=kind, size_bytes=size, device_id=st.st_dev, inode=st.st_ino)
        if not self.config.count_hard_links and st.st_nlink > 1 and not deduper.add(st.st_dev, st.st_ino):
            entry.size_bytes = 0
            entry.duplicate_marker = True
            return entry
        tally.bytes_counted += size
        tally.file_sizes.append(size)
        return entry

    @staticmethod
    def _symlink_target(path: str) -> os.stat_result | None:
        """Stat the target of a symlink if it is a regular file."""
        try:
            target = os.stat(path)
        except OSError:
            return None
        return target if stat.S_ISREG(target.st_mode) else None

    def _size_of(self, st: os.stat_result) -> int:
        if self.config.size_metric is SizeMetric.ON_DISK:
            blocks = getattr(st, "st_blocks", None)
            if blocks is not None:
                return blocks * 512
        return st.st_size

    def validate_roots(self, paths: Iterable[str | os.PathLike]) -> list[tuple[str, os.stat_result]]:
        """Stat every root up front.

        Raises:
            InvalidRootError: For the first root that is missing or unreadable.
        """
        return [self._validate_root(p) for p in paths]

    @staticmethod
    def _validate_root(path: str | os.PathLike) -> tuple[str, os.stat_result]:
        path_str = os.fspath(path)
        try:
            st = os.stat(path_str)
        except OSError as exc:
            raise InvalidRootError(path_str, exc.strerror or str(exc)) from exc
        if stat.S_ISDIR(st.st_mode) and not os.access(path_str, os.R_OK | os.X_OK):
            raise InvalidRootError(path_str, "Permission denied")
        return path_str, st


def _kind_hint(dirent: os.DirEntry) -> EntryKind:
    """Best guess at an entry's kind when it cannot be stat-ed."""
    try:
        if dirent.is_symlink():
            return EntryKind.SYMLINK
        if dirent.is_dir(follow_symlinks=False):
            return EntryKind.DIRECTORY
        if dirent.is_file(follow_symlinks=False):
            return EntryKind.FILE
    except OSError:
        pass
    return EntryKind.OTHER


def _tally_kwargs(tally: _UnitTally) -> dict:
    return {
        "files": tally.files,
        "directories": tally.directories,
        "others": tally.others,
        "bytes_counted": tally.bytes_counted,
        "file_sizes": tally.file_sizes,
    }
