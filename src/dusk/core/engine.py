"""Background scan orchestration for interactive sessions."""

from __future__ import annotations

import logging
import os
import threading
from typing import Callable, Iterable

from dusk.core.scanner import ScanConfig, Scanner, ScanResult
from dusk.models.scan_stats import ScanStats, StatsSnapshot

log = logging.getLogger(__name__)

ProgressCallback = Callable[[ScanStats], None]
DoneCallback = Callable[[ScanResult], None]


class ScanEngine:
    """Runs a :class:`Scanner` on a background thread.

    The caller keeps drawing progress from :meth:`snapshot` (which never
    blocks the workers) and collects the finished tree with
    :meth:`wait`.  Roots are validated before the thread starts, so an
    invalid path fails :meth:`start` rather than surfacing later.
    """

    def __init__(self, config: ScanConfig | None = None) -> None:
        self.scanner = Scanner(config)
        self._thread: threading.Thread | None = None
        self._result: ScanResult | None = None
        self._error: BaseException | None = None
        self._done = threading.Event()

    @property
    def done(self) -> bool:
        return self._done.is_set()

    def start(
        self,
        paths: Iterable[str | os.PathLike],
        on_progress: ProgressCallback | None = None,
        on_done: DoneCallback | None = None,
    ) -> None:
        """Validate *paths* and begin scanning them in the background.

        Raises:
            InvalidRootError: If any root is missing or unreadable.
            RuntimeError: If a scan was already started.
        """
        if self._thread is not None:
            raise RuntimeError("scan already started")
        roots = [path for path, _st in self.scanner.validate_roots(paths)]

        def _run() -> None:
            try:
                self._result = self.scanner.scan(roots, on_progress=on_progress)
            except Exception as exc:
                log.exception("Scan failed")
                self._error = exc
            finally:
                self._done.set()
            if on_done and self._result is not None:
                on_done(self._result)

        self._thread = threading.Thread(target=_run, name="dusk-scan-dispatch", daemon=True)
        self._thread.start()

    def snapshot(self) -> StatsSnapshot:
        """Current progress counters."""
        return self.scanner.stats.snapshot()

    def cancel(self) -> None:
        """Request cooperative cancellation; the partial tree is still returned."""
        log.info("Scan cancellation requested")
        self.scanner.cancel()

    def wait(self, timeout: float | None = None) -> ScanResult | None:
        """Block until the scan finishes; returns None if *timeout* expires.

        Re-raises any unexpected error from the scan thread.
        """
        if not self._done.wait(timeout):
            return None
        if self._error is not None:
            raise self._error
        return self._result
