"""Summary of entries marked for deletion."""

from __future__ import annotations

import os
from dataclasses import dataclass

from dusk.browser.state import SelectionState
from dusk.core.tree import AggregationTree
from dusk.utils import ByteFormat, bytes_to_human


@dataclass(frozen=True, slots=True)
class MarkedEntry:
    index: int
    path: str
    size: int


def marked_entries(selection: SelectionState, tree: AggregationTree) -> list[MarkedEntry]:
    """Marked entries in the order they were marked; vanished ones are skipped."""
    return [
        MarkedEntry(index=i, path=tree.path_of(i), size=tree[i].aggregate_size)
        for i in selection.marked
        if i in tree
    ]


def marked_size(entries: list[MarkedEntry]) -> int:
    """Bytes that deleting *entries* would free.

    An entry nested under another marked entry is already part of the
    ancestor's aggregate and is not counted twice.
    """
    paths = [e.path for e in entries]
    total = 0
    for entry in entries:
        if not any(entry.path.startswith(other.rstrip(os.sep) + os.sep) for other in paths if other != entry.path):
            total += entry.size
    return total


def marked_title(entries: list[MarkedEntry], fmt: ByteFormat = ByteFormat.METRIC) -> str:
    if not entries:
        return ""
    count = len(entries)
    return f"Marked {count} item{'s' if count != 1 else ''} ({bytes_to_human(marked_size(entries), fmt)})"
