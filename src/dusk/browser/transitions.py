"""Pure state transitions of the interactive browser.

Every function here takes a :class:`BrowserState` plus a read-only view
of the tree and returns a new state.  Nothing in this module touches the
filesystem or mutates the tree; the confirmed delete is carried out by
:class:`dusk.browser.session.Browser`, which then calls
:func:`after_deletion`.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Sequence

from dusk.browser.events import (
    Back,
    CancelScan,
    ChangeSort,
    ConfirmNo,
    Delete,
    Down,
    End,
    Enter,
    Event,
    Home,
    PageDown,
    PageUp,
    Quit,
    Resize,
    ScanFinished,
    ToggleHelp,
    ToggleMark,
    Up,
)
from dusk.browser.state import BrowserState, Mode, SelectionState
from dusk.core.tree import AggregationTree, SortKey, SortOrder
from dusk.models.removal_result import RemovalOutcome
from dusk.utils import ByteFormat, bytes_to_human

# Order a sort key starts with when it is first selected.
DEFAULT_ORDERS: dict[SortKey, SortOrder] = {
    SortKey.SIZE: SortOrder.DESCENDING,
    SortKey.NAME: SortOrder.ASCENDING,
    SortKey.COUNT: SortOrder.DESCENDING,
}


def initial_state(
    width: int = 80,
    height: int = 24,
    *,
    sort_key: SortKey = SortKey.SIZE,
    sort_order: SortOrder | None = None,
    byte_format: ByteFormat = ByteFormat.METRIC,
) -> BrowserState:
    """State of a session whose scan has just started."""
    selection = SelectionState(sort_key=sort_key, sort_order=sort_order or DEFAULT_ORDERS[sort_key])
    return BrowserState(mode=Mode.SCANNING, selection=selection, width=width, height=height, byte_format=byte_format)


def listing(selection: SelectionState, tree: AggregationTree) -> list[int]:
    """Children of the viewed directory in display order."""
    return tree.sort_children(selection.current, selection.sort_key, selection.sort_order)


def transition(state: BrowserState, event: Event, tree: AggregationTree | None) -> BrowserState:
    """Apply one input event.

    ``ConfirmYes`` leaves the state unchanged; the session performs the
    deletion and then calls :func:`after_deletion`.
    """
    match event:
        case Quit():
            return replace(state, mode=Mode.EXITING, cancel_requested=state.mode is Mode.SCANNING)
        case Resize(width=width, height=height):
            state = replace(state, width=max(1, width), height=max(1, height))
            if tree is None or state.mode is Mode.SCANNING:
                return state
            return _with_cursor(state, tree, state.selection.cursor)

    match state.mode:
        case Mode.SCANNING:
            return _on_scanning(state, event, tree)
        case Mode.READY:
            return _on_ready(replace(state, status=""), event, tree)
        case Mode.CONFIRM_DELETE:
            return _on_confirm(state, event)
        case Mode.HELP:
            if isinstance(event, (ToggleHelp, Back)):
                return replace(state, mode=Mode.READY)
            return state
    return state


def deletion_targets(state: BrowserState, tree: AggregationTree) -> list[int]:
    """Pending targets still in the tree, deepest path first."""
    live = [i for i in dict.fromkeys(state.pending_delete) if i in tree]
    return sorted(live, key=tree.depth, reverse=True)


def after_deletion(
    state: BrowserState,
    tree: AggregationTree,
    outcomes: Sequence[RemovalOutcome],
    previous_positions: Sequence[int] = (),
) -> BrowserState:
    """State after the session removed the confirmed targets.

    Marks are cleared.  Directories on the path stack that no longer
    exist are popped; a cursor whose node is gone moves to whatever now
    occupies its old position at the level left on screen.
    *previous_positions* are the ones :func:`stack_positions` reported
    before the deletion.
    """
    selection = state.selection
    stack = list(selection.path_stack)
    try:
        tree.resolve(stack)
    except KeyError as exc:
        del stack[stack.index(exc.args[0]):]
    cursors = tuple(stack) + (selection.cursors[len(stack)] if len(stack) < len(selection.cursors) else None,)
    selection = replace(selection, path_stack=tuple(stack), cursors=cursors, marked=())

    cursor = selection.cursor
    order = listing(selection, tree)
    if cursor is None or cursor not in tree or cursor not in order:
        depth = len(stack)
        previous = previous_positions[depth] if depth < len(previous_positions) else 0
        cursor = order[min(previous, len(order) - 1)] if order else None

    state = replace(
        state,
        mode=Mode.READY,
        selection=selection,
        pending_delete=(),
        status=_deletion_status(outcomes, state.byte_format),
    )
    return _with_cursor(state, tree, cursor)


def cursor_position(selection: SelectionState, order: Sequence[int]) -> int:
    cursor = selection.cursor
    if cursor is None or cursor not in order:
        return 0
    return order.index(cursor)


def stack_positions(selection: SelectionState, tree: AggregationTree) -> tuple[int, ...]:
    """Where each level's selected node sits in its parent's listing.

    One position per directory on the path stack, then the cursor's
    position in the viewed listing.
    """
    positions: list[int] = []
    parent: int | None = None
    for node in selection.path_stack:
        order = tree.sort_children(parent, selection.sort_key, selection.sort_order)
        positions.append(order.index(node) if node in order else 0)
        parent = node
    positions.append(cursor_position(selection, listing(selection, tree)))
    return tuple(positions)


# -- Per-mode handlers --


def _on_scanning(state: BrowserState, event: Event, tree: AggregationTree | None) -> BrowserState:
    match event:
        case CancelScan():
            return replace(state, cancel_requested=True, status="Cancelling scan…")
        case ScanFinished(truncated=truncated):
            if tree is None:
                raise ValueError("scan finished without a tree")
            roots = tree.roots
            stack: tuple[int, ...] = ()
            if len(roots) == 1 and tree[roots[0]].is_dir:
                stack = (roots[0],)
            selection = replace(state.selection, path_stack=stack, cursors=stack + (None,), scroll_offset=0)
            state = replace(
                state,
                mode=Mode.READY,
                selection=selection,
                truncated=truncated,
                status="Scan cancelled, showing partial results" if truncated else "",
            )
            order = listing(selection, tree)
            return _with_cursor(state, tree, order[0] if order else None)
    return state


def _on_ready(state: BrowserState, event: Event, tree: AggregationTree | None) -> BrowserState:
    if tree is None:
        return state
    selection = state.selection
    match event:
        case Up():
            return _move(state, tree, -1)
        case Down():
            return _move(state, tree, 1)
        case PageUp():
            return _move(state, tree, -state.list_height)
        case PageDown():
            return _move(state, tree, state.list_height)
        case Home():
            order = listing(selection, tree)
            return _with_cursor(state, tree, order[0] if order else None)
        case End():
            order = listing(selection, tree)
            return _with_cursor(state, tree, order[-1] if order else None)
        case Enter():
            return _enter(state, tree)
        case Back():
            if not selection.path_stack:
                return state
            selection = replace(selection, path_stack=selection.path_stack[:-1], cursors=selection.cursors[:-1])
            return _with_cursor(replace(state, selection=selection), tree, selection.cursor)
        case ChangeSort(key=key):
            if key is selection.sort_key:
                order = selection.sort_order.flipped()
            else:
                order = DEFAULT_ORDERS[key]
            selection = replace(selection, sort_key=key, sort_order=order)
            return _with_cursor(replace(state, selection=selection), tree, selection.cursor)
        case ToggleMark():
            cursor = selection.cursor
            if cursor is None:
                return state
            if selection.is_marked(cursor):
                marked = tuple(i for i in selection.marked if i != cursor)
            else:
                marked = selection.marked + (cursor,)
            state = replace(state, selection=replace(selection, marked=marked))
            return _move(state, tree, 1)
        case Delete():
            if selection.marked:
                targets = selection.marked
            elif selection.cursor is not None:
                targets = (selection.cursor,)
            else:
                return state
            return replace(state, mode=Mode.CONFIRM_DELETE, pending_delete=targets)
        case ToggleHelp():
            return replace(state, mode=Mode.HELP)
    return state


def _on_confirm(state: BrowserState, event: Event) -> BrowserState:
    if isinstance(event, (ConfirmNo, Back)):
        return replace(state, mode=Mode.READY, pending_delete=())
    return state


# -- Cursor helpers --


def _enter(state: BrowserState, tree: AggregationTree) -> BrowserState:
    selection = state.selection
    cursor = selection.cursor
    if cursor is None or cursor not in tree:
        return state
    entry = tree[cursor]
    if not entry.is_dir or not entry.children:
        return state
    selection = replace(
        selection,
        path_stack=selection.path_stack + (cursor,),
        cursors=selection.cursors + (None,),
        scroll_offset=0,
    )
    order = listing(selection, tree)
    return _with_cursor(replace(state, selection=selection), tree, order[0])


def _move(state: BrowserState, tree: AggregationTree, delta: int) -> BrowserState:
    order = listing(state.selection, tree)
    if not order:
        return _with_cursor(state, tree, None)
    position = cursor_position(state.selection, order) + delta
    position = max(0, min(position, len(order) - 1))
    return _with_cursor(state, tree, order[position])


def _with_cursor(state: BrowserState, tree: AggregationTree, cursor: int | None) -> BrowserState:
    """Select *cursor* in the current listing and scroll it into view."""
    selection = state.selection
    order = listing(selection, tree)
    if cursor is not None and cursor not in order:
        cursor = order[0] if order else None
    position = order.index(cursor) if cursor is not None else 0

    height = state.list_height
    offset = selection.scroll_offset
    if position < offset:
        offset = position
    elif position >= offset + height:
        offset = position - height + 1
    offset = max(0, min(offset, max(0, len(order) - height)))

    selection = replace(selection, cursors=selection.cursors[:-1] + (cursor,), scroll_offset=offset)
    return replace(state, selection=selection)


def _deletion_status(outcomes: Sequence[RemovalOutcome], fmt: ByteFormat) -> str:
    freed = sum(o.freed_bytes for o in outcomes)
    removed = sum(o.entries_removed for o in outcomes)
    errors = [e for o in outcomes for e in o.errors]
    message = f"Deleted {removed} entr{'ies' if removed != 1 else 'y'}, freed {bytes_to_human(freed, fmt)}"
    if errors:
        message += f"; {len(errors)} failed: {errors[0]}"
    return message
