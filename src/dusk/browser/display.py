"""Display model built from browser state; consumed by a renderer."""

from __future__ import annotations

from dataclasses import dataclass

from dusk.browser.marks import MarkedEntry, marked_entries, marked_size, marked_title
from dusk.browser.state import BrowserState, Mode
from dusk.browser.transitions import listing
from dusk.core.tree import AggregationTree
from dusk.models.entry import EntryKind
from dusk.models.scan_stats import StatsSnapshot
from dusk.utils import bytes_to_human, format_elapsed

HELP_LINES: tuple[str, ...] = (
    "Navigation",
    "  j / Down        move down",
    "  k / Up          move up",
    "  Ctrl-d / PgDn   page down",
    "  Ctrl-u / PgUp   page up",
    "  g / Home        first entry",
    "  G / End         last entry",
    "  o / l / Enter   open directory",
    "  u / h / Bksp    go to parent",
    "Sorting (press again to reverse)",
    "  s               by size",
    "  n               by name",
    "  c               by entry count",
    "Deletion",
    "  Space           mark / unmark entry",
    "  d               delete marked entries (or the selected one)",
    "  y / n           confirm / cancel deletion",
    "Other",
    "  ?               toggle this help",
    "  q               quit",
)


@dataclass(frozen=True, slots=True)
class Row:
    """One line of the entry list."""

    index: int
    name: str
    size: int
    percentage_of_parent: float
    kind: EntryKind
    entry_count: int = 0
    marked: bool = False
    selected: bool = False
    error: str | None = None
    duplicate: bool = False


@dataclass(frozen=True, slots=True)
class DisplayModel:
    """Everything a renderer needs to draw one frame."""

    mode: Mode
    header: str
    rows: tuple[Row, ...] = ()
    status: str = ""
    marked_title: str = ""
    marked: tuple[MarkedEntry, ...] = ()
    prompt: str = ""
    help_lines: tuple[str, ...] = ()
    progress: StatsSnapshot | None = None


def build_display(
    state: BrowserState,
    tree: AggregationTree | None,
    progress: StatsSnapshot | None = None,
) -> DisplayModel:
    """Project *state* onto a display model. Has no side effects."""
    if state.mode is Mode.SCANNING or tree is None:
        return _scanning_display(state, progress or StatsSnapshot())

    selection = state.selection
    fmt = state.byte_format
    parent = selection.current
    parent_size = tree[parent].aggregate_size if parent is not None else tree.total_size
    order = listing(selection, tree)
    visible = order[selection.scroll_offset:selection.scroll_offset + state.list_height]

    rows = []
    for index in visible:
        entry = tree[index]
        rows.append(
            Row(
                index=index,
                name=entry.name,
                size=entry.aggregate_size,
                percentage_of_parent=entry.aggregate_size / max(parent_size, 1),
                kind=entry.kind,
                entry_count=entry.entry_count,
                marked=selection.is_marked(index),
                selected=index == selection.cursor,
                error=entry.error_marker,
                duplicate=entry.duplicate_marker,
            )
        )

    location = tree.path_of(parent) if parent is not None else "(roots)"
    header = (
        f"{location}  {bytes_to_human(parent_size, fmt)}  "
        f"{len(order)} entr{'ies' if len(order) != 1 else 'y'}  "
        f"sort: {selection.sort_key.value} {selection.sort_order.value}"
    )
    if state.truncated:
        header += "  [partial scan]"

    marked = marked_entries(selection, tree)
    prompt = ""
    if state.mode is Mode.CONFIRM_DELETE:
        prompt = _confirm_prompt(state, tree)

    return DisplayModel(
        mode=state.mode,
        header=header,
        rows=tuple(rows),
        status=state.status,
        marked_title=marked_title(marked, fmt),
        marked=tuple(marked),
        prompt=prompt,
        help_lines=HELP_LINES if state.mode is Mode.HELP else (),
    )


def _scanning_display(state: BrowserState, progress: StatsSnapshot) -> DisplayModel:
    fmt = state.byte_format
    status = (
        f"{progress.files:,} files, {progress.directories:,} dirs, "
        f"{bytes_to_human(progress.bytes_counted, fmt)} counted, "
        f"{progress.errors} error{'s' if progress.errors != 1 else ''}  "
        f"({format_elapsed(progress.elapsed)})"
    )
    if state.status:
        status = f"{status}  {state.status}"
    return DisplayModel(mode=state.mode, header="Scanning…", status=status, progress=progress)


def _confirm_prompt(state: BrowserState, tree: AggregationTree) -> str:
    targets = [
        MarkedEntry(index=i, path=tree.path_of(i), size=tree[i].aggregate_size)
        for i in state.pending_delete
        if i in tree
    ]
    count = len(targets)
    size = bytes_to_human(marked_size(targets), state.byte_format)
    if count == 1:
        return f"Permanently delete {targets[0].path} ({size})? [y/N]"
    return f"Permanently delete {count} entries ({size})? [y/N]"
