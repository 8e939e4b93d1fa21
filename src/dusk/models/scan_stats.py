"""Scan statistics shared between scan workers and the UI."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field


@dataclass(frozen=True, slots=True)
class ScanIssue:
    """A path that could not be read completely, and why."""

    path: str
    reason: str


@dataclass(frozen=True, slots=True)
class StatsSnapshot:
    """Point-in-time copy of the progress counters."""

    files: int = 0
    directories: int = 0
    others: int = 0
    bytes_counted: int = 0
    entries_traversed: int = 0
    errors: int = 0
    elapsed: float = 0.0


@dataclass
class ScanStats:
    """Counters and failure records collected during one scan.

    Writers go through :meth:`record_unit` and :meth:`add_error`, which
    take the internal lock.  Readers (the progress display) just read the
    integer attributes or call :meth:`snapshot`; a slightly stale value is
    fine there and nobody waits on the scanners.
    """

    files: int = 0
    directories: int = 0
    others: int = 0
    bytes_counted: int = 0
    entries_traversed: int = 0
    smallest_file_bytes: int | None = None
    largest_file_bytes: int = 0
    errors: list[ScanIssue] = field(default_factory=list)
    unsupported: list[ScanIssue] = field(default_factory=list)
    elapsed: float = 0.0
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def record_unit(
        self,
        *,
        files: int = 0,
        directories: int = 0,
        others: int = 0,
        bytes_counted: int = 0,
        file_sizes: list[int] | None = None,
    ) -> None:
        """Fold the tallies of one finished unit of work into the totals."""
        with self._lock:
            self.files += files
            self.directories += directories
            self.others += others
            self.bytes_counted += bytes_counted
            self.entries_traversed += files + directories + others
            if file_sizes:
                low = min(file_sizes)
                if self.smallest_file_bytes is None or low < self.smallest_file_bytes:
                    self.smallest_file_bytes = low
                self.largest_file_bytes = max(self.largest_file_bytes, max(file_sizes))

    def add_error(self, path: str, reason: str) -> None:
        with self._lock:
            self.errors.append(ScanIssue(path, reason))

    def add_unsupported(self, path: str, reason: str) -> None:
        with self._lock:
            self.unsupported.append(ScanIssue(path, reason))

    @property
    def error_count(self) -> int:
        return len(self.errors)

    def snapshot(self) -> StatsSnapshot:
        """Return the current counters without blocking writers."""
        return StatsSnapshot(
            files=self.files,
            directories=self.directories,
            others=self.others,
            bytes_counted=self.bytes_counted,
            entries_traversed=self.entries_traversed,
            errors=len(self.errors),
            elapsed=self.elapsed,
        )
