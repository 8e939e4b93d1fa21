"""Immutable browser state values."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from dusk.core.tree import SortKey, SortOrder
from dusk.utils import ByteFormat

# Lines of the screen not available to the entry list: header, column
# ruler, status line and mark summary.
LIST_CHROME = 4


class Mode(Enum):
    SCANNING = "scanning"
    READY = "ready"
    CONFIRM_DELETE = "confirm_delete"
    HELP = "help"
    EXITING = "exiting"


@dataclass(frozen=True, slots=True)
class SelectionState:
    """Where the user is and what they picked.

    ``path_stack`` holds the directories descended into, starting at a
    root; an empty stack lists the roots themselves.  ``cursors`` has one
    slot per listing depth (``len(path_stack) + 1``): each slot is the
    node selected in that listing, so for every level above the current
    one it is the directory that was entered.  ``marked`` keeps marking
    order.
    """

    path_stack: tuple[int, ...] = ()
    cursors: tuple[int | None, ...] = (None,)
    sort_key: SortKey = SortKey.SIZE
    sort_order: SortOrder = SortOrder.DESCENDING
    marked: tuple[int, ...] = ()
    scroll_offset: int = 0

    @property
    def cursor(self) -> int | None:
        return self.cursors[-1]

    @property
    def current(self) -> int | None:
        """Directory whose children are listed; None for the root list."""
        return self.path_stack[-1] if self.path_stack else None

    @property
    def depth(self) -> int:
        return len(self.path_stack)

    def is_marked(self, index: int) -> bool:
        return index in self.marked


@dataclass(frozen=True, slots=True)
class BrowserState:
    """Complete state of an interactive session at one point in time."""

    mode: Mode = Mode.SCANNING
    selection: SelectionState = field(default_factory=SelectionState)
    width: int = 80
    height: int = 24
    byte_format: ByteFormat = ByteFormat.METRIC
    status: str = ""
    pending_delete: tuple[int, ...] = ()
    truncated: bool = False
    cancel_requested: bool = False

    @property
    def list_height(self) -> int:
        """Number of entry rows that fit on screen."""
        return max(1, self.height - LIST_CHROME)
