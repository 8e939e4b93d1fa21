"""Filesystem entry dataclass."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class EntryKind(Enum):
    """What kind of filesystem object an entry describes."""

    FILE = "file"
    DIRECTORY = "directory"
    SYMLINK = "symlink"
    OTHER = "other"


@dataclass(slots=True)
class Entry:
    """Single node of the aggregation tree.

    ``size_bytes`` is the entry's own contribution (always 0 for
    directories and for hardlink duplicates).  ``aggregate_size`` is
    maintained by the tree: the own size for leaves, the sum over live
    children for directories.  ``parent`` is a plain arena index and
    never owns anything.
    """

    name: str
    kind: EntryKind
    size_bytes: int = 0
    device_id: int = 0
    inode: int = 0
    aggregate_size: int = 0
    entry_count: int = 0
    error_marker: str | None = None
    duplicate_marker: bool = False
    parent: int | None = None
    children: list[int] = field(default_factory=list)

    @property
    def is_dir(self) -> bool:
        return self.kind is EntryKind.DIRECTORY
