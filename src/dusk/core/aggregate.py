"""Non-interactive per-path size report."""

from __future__ import annotations

import logging
import os
import threading
from dataclasses import dataclass, field
from typing import Iterable

from dusk.core.scanner import ScanConfig, Scanner
from dusk.core.tree import AggregationTree
from dusk.models.entry import EntryKind
from dusk.models.scan_stats import ScanStats

log = logging.getLogger(__name__)


@dataclass(slots=True)
class AggregateRow:
    """Total for one path given on the command line."""

    path: str
    size_bytes: int
    errors: int = 0
    is_file: bool = False


@dataclass(slots=True)
class AggregateReport:
    """Rows in output order, the optional total, and the scan statistics."""

    rows: list[AggregateRow] = field(default_factory=list)
    total: AggregateRow | None = None
    stats: ScanStats = field(default_factory=ScanStats)
    truncated: bool = False

    @property
    def num_errors(self) -> int:
        return sum(r.errors for r in self.rows)


def count_errors(tree: AggregationTree, index: int) -> int:
    """Number of entries under *index* (inclusive) that could not be read."""
    return sum(1 for node in tree.walk(index) if tree[node].error_marker is not None)


def aggregate(
    paths: Iterable[str | os.PathLike],
    config: ScanConfig | None = None,
    *,
    compute_total: bool = True,
    sort_by_size: bool = True,
    cancel_event: threading.Event | None = None,
) -> AggregateReport:
    """Scan *paths* and summarize each one.

    Rows are sorted ascending by size when *sort_by_size* is set, so the
    biggest path ends up right above the total.  A total row is only
    produced for more than one path.

    Raises:
        InvalidRootError: If a path is missing or unreadable.
    """
    result = Scanner(config, cancel_event=cancel_event).scan(paths)
    tree = result.tree

    rows = [
        AggregateRow(
            path=tree[root].name,
            size_bytes=tree[root].aggregate_size,
            errors=count_errors(tree, root),
            is_file=tree[root].kind is not EntryKind.DIRECTORY,
        )
        for root in tree.roots
    ]
    if sort_by_size:
        rows.sort(key=lambda r: r.size_bytes)

    report = AggregateReport(rows=rows, stats=result.stats, truncated=result.truncated)
    if compute_total and len(rows) > 1:
        report.total = AggregateRow(
            path="total",
            size_bytes=sum(r.size_bytes for r in rows),
            errors=report.num_errors,
        )
    log.debug("Aggregated %d path(s), %d error(s)", len(rows), report.num_errors)
    return report
