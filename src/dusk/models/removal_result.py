"""Removal result dataclass."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(slots=True)
class RemovalOutcome:
    """Result of removing a subtree from disk and from the tree."""

    node: int
    freed_bytes: int = 0
    entries_removed: int = 0
    removed: list[int] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        """True when the requested node itself is gone."""
        return self.node in self.removed
