"""Arena-backed hierarchy of scanned entries with live aggregate sizes."""

from __future__ import annotations

import logging
import os
import threading
from enum import Enum
from typing import Callable, Iterator, Sequence

from dusk.models.entry import Entry, EntryKind
from dusk.models.removal_result import RemovalOutcome
from dusk.utils import remove_path

log = logging.getLogger(__name__)

Remover = Callable[[str, EntryKind], None]


class SortKey(Enum):
    SIZE = "size"
    NAME = "name"
    COUNT = "count"


class SortOrder(Enum):
    DESCENDING = "descending"
    ASCENDING = "ascending"

    def flipped(self) -> SortOrder:
        if self is SortOrder.DESCENDING:
            return SortOrder.ASCENDING
        return SortOrder.DESCENDING


class EmptyDirPolicy(Enum):
    """What happens to a directory once deletion has emptied it."""

    RETAIN = "retain"
    PRUNE = "prune"


_SORT_KEYS: dict[SortKey, Callable[[Entry], object]] = {
    SortKey.SIZE: lambda e: e.aggregate_size,
    SortKey.NAME: lambda e: e.name.casefold(),
    SortKey.COUNT: lambda e: e.entry_count,
}


class AggregationTree:
    """Flat store of :class:`Entry` objects addressed by stable indices.

    Every mutation walks the parent chain and adjusts ``aggregate_size``
    and ``entry_count`` on each ancestor, so for every directory the
    aggregate always equals the sum over its live children.  Removed
    slots become ``None`` and their indices are never handed out again.

    While a scan is running, workers call :meth:`attach` concurrently;
    the lock covers only the index splice and the ancestor update.
    """

    def __init__(self, empty_dir_policy: EmptyDirPolicy = EmptyDirPolicy.RETAIN) -> None:
        self.empty_dir_policy = empty_dir_policy
        self.truncated = False
        self._entries: list[Entry | None] = []
        self._roots: list[int] = []
        self._live = 0
        self._lock = threading.Lock()

    # -- Queries --

    @property
    def roots(self) -> list[int]:
        return list(self._roots)

    @property
    def total_size(self) -> int:
        """Aggregate size across all roots."""
        return sum(self._entries[r].aggregate_size for r in self._roots)

    @property
    def total_count(self) -> int:
        """Number of live entries, roots included."""
        return self._live

    def __len__(self) -> int:
        return self._live

    def __contains__(self, index: object) -> bool:
        return isinstance(index, int) and 0 <= index < len(self._entries) and self._entries[index] is not None

    def __getitem__(self, index: int) -> Entry:
        if index not in self:
            raise KeyError(index)
        return self._entries[index]

    def get(self, index: int) -> Entry | None:
        return self._entries[index] if index in self else None

    def children(self, index: int | None) -> list[int]:
        """Child indices of *index*, or the roots when *index* is None."""
        if index is None:
            return self.roots
        return list(self[index].children)

    def depth(self, index: int) -> int:
        depth = 0
        node = self[index].parent
        while node is not None:
            depth += 1
            node = self._entries[node].parent
        return depth

    def path_of(self, index: int) -> str:
        """Filesystem path of an entry, rebuilt from the root's name down."""
        names: list[str] = []
        node: int | None = index
        while node is not None:
            entry = self[node]
            names.append(entry.name)
            node = entry.parent
        return os.path.join(*reversed(names))

    def find(self, path: str | os.PathLike) -> int | None:
        """Index of the live entry at *path*, or None."""
        target = os.path.normpath(os.fspath(path))
        for root in self._roots:
            root_path = os.path.normpath(self._entries[root].name)
            if target == root_path:
                return root
            prefix = root_path.rstrip(os.sep) + os.sep
            if not target.startswith(prefix):
                continue
            node = root
            for part in target[len(prefix):].split(os.sep):
                node = self.child_named(node, part)
                if node is None:
                    break
            else:
                return node
        return None

    def child_named(self, index: int, name: str) -> int | None:
        for child in self[index].children:
            if self._entries[child].name == name:
                return child
        return None

    def walk(self, index: int | None = None) -> Iterator[int]:
        """Yield live indices depth-first, parents before children."""
        stack = list(reversed(self.children(None))) if index is None else [index]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(self._entries[node].children))

    def sort_children(
        self,
        index: int | None,
        key: SortKey = SortKey.SIZE,
        order: SortOrder = SortOrder.DESCENDING,
    ) -> list[int]:
        """Return child indices in display order.

        The stored child order is left alone.  Python's sort is stable,
        including with ``reverse=True``, so ties keep insertion order.
        """
        keyfunc = _SORT_KEYS[key]
        return sorted(
            self.children(index),
            key=lambda i: keyfunc(self._entries[i]),
            reverse=order is SortOrder.DESCENDING,
        )

    def resolve(self, path_stack: Sequence[int]) -> int | None:
        """Follow a stack of indices from a root; None addresses the root list.

        Raises:
            KeyError: If any step is gone or is not a child of the previous one.
        """
        node: int | None = None
        for index in path_stack:
            if index not in self or index not in self.children(node):
                raise KeyError(index)
            node = index
        return node

    # -- Mutators --

    def add_root(self, entry: Entry) -> int:
        """Store *entry* as a new top-level node."""
        with self._lock:
            entry.parent = None
            self._reset_counts(entry)
            index = self._store(entry)
            self._roots.append(index)
            return index

    def insert_child(self, parent: int, entry: Entry) -> int:
        """Attach one entry under *parent* and grow every ancestor's aggregate."""
        return self.attach(parent, [entry])[0]

    def attach(self, parent: int, entries: Sequence[Entry]) -> list[int]:
        """Splice a batch of freshly scanned entries under *parent*."""
        with self._lock:
            owner = self[parent]
            if not owner.is_dir:
                raise ValueError(f"cannot attach children to non-directory {owner.name!r}")
            indices: list[int] = []
            added = 0
            for entry in entries:
                entry.parent = parent
                self._reset_counts(entry)
                index = self._store(entry)
                owner.children.append(index)
                indices.append(index)
                added += entry.aggregate_size
            self._propagate(parent, added, len(indices))
            return indices

    def remove_subtree(self, index: int, remover: Remover | None = None) -> RemovalOutcome:
        """Delete *index* and everything below it, on disk and in the tree.

        Entries are attempted deepest first and independently of each
        other.  Whatever is removed is pruned and subtracted from every
        ancestor straight away; whatever fails stays in the tree with its
        size still counted.  A directory is only attempted once none of
        its children remain.
        """
        outcome = RemovalOutcome(node=index)
        if index not in self:
            return outcome
        remover = remover or remove_path
        parent = self._entries[index].parent

        for node in self._post_order(index):
            entry = self._entries[node]
            if entry.children:
                continue
            self._remove_one(node, remover, outcome)

        if self.empty_dir_policy is EmptyDirPolicy.PRUNE and index not in self:
            self._prune_emptied(parent, remover, outcome)

        log.info(
            "Removed %d entries (%d bytes) under node %d, %d failure(s)",
            outcome.entries_removed,
            outcome.freed_bytes,
            index,
            len(outcome.errors),
        )
        return outcome

    # -- Internals --

    def _store(self, entry: Entry) -> int:
        self._entries.append(entry)
        self._live += 1
        return len(self._entries) - 1

    @staticmethod
    def _reset_counts(entry: Entry) -> None:
        entry.children = []
        entry.entry_count = 0
        entry.aggregate_size = 0 if entry.is_dir else entry.size_bytes

    def _propagate(self, start: int | None, size_delta: int, count_delta: int) -> None:
        node = start
        while node is not None:
            entry = self._entries[node]
            entry.aggregate_size += size_delta
            entry.entry_count += count_delta
            node = entry.parent

    def _post_order(self, index: int) -> list[int]:
        order: list[int] = []
        stack = [index]
        while stack:
            node = stack.pop()
            order.append(node)
            stack.extend(self._entries[node].children)
        order.reverse()
        return order

    def _remove_one(self, node: int, remover: Remover, outcome: RemovalOutcome) -> bool:
        entry = self._entries[node]
        path = self.path_of(node)
        try:
            remover(path, entry.kind)
        except FileNotFoundError:
            log.debug("Already gone: %s", path)
        except OSError as exc:
            log.warning("Could not remove %s: %s", path, exc)
            outcome.errors.append(f"{path}: {exc.strerror or exc}")
            return False
        outcome.freed_bytes += entry.aggregate_size
        outcome.entries_removed += 1
        outcome.removed.append(node)
        self._prune(node)
        return True

    def _prune(self, node: int) -> None:
        with self._lock:
            entry = self._entries[node]
            if entry.parent is None:
                self._roots.remove(node)
            else:
                self._entries[entry.parent].children.remove(node)
                self._propagate(entry.parent, -entry.aggregate_size, -(entry.entry_count + 1))
            self._entries[node] = None
            self._live -= 1

    def _prune_emptied(self, node: int | None, remover: Remover, outcome: RemovalOutcome) -> None:
        """Remove ancestors left without children; roots are always kept."""
        while node is not None:
            entry = self._entries[node]
            if entry.children or entry.parent is None:
                return
            parent = entry.parent
            if not self._remove_one(node, remover, outcome):
                return
            node = parent
