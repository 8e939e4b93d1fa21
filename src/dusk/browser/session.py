"""Interactive session: owns the tree once scanning is over."""

from __future__ import annotations

import logging

from dusk.browser.display import DisplayModel, build_display
from dusk.browser.events import ConfirmYes, Event, ScanFinished
from dusk.browser.state import BrowserState, Mode
from dusk.browser.transitions import (
    after_deletion,
    deletion_targets,
    initial_state,
    stack_positions,
    transition,
)
from dusk.core.scanner import ScanResult
from dusk.core.tree import AggregationTree, Remover, SortKey, SortOrder
from dusk.models.removal_result import RemovalOutcome
from dusk.models.scan_stats import StatsSnapshot
from dusk.utils import ByteFormat

log = logging.getLogger(__name__)


class Browser:
    """Feeds events through the transition functions, one at a time.

    The session has no tree while the scan runs; :meth:`finish_scan`
    hands it over.  From then on the browser is the only writer, and
    the only write it ever makes is a confirmed deletion.
    """

    def __init__(
        self,
        width: int = 80,
        height: int = 24,
        *,
        sort_key: SortKey = SortKey.SIZE,
        sort_order: SortOrder | None = None,
        byte_format: ByteFormat = ByteFormat.METRIC,
        remover: Remover | None = None,
    ) -> None:
        self.tree: AggregationTree | None = None
        self.state: BrowserState = initial_state(
            width, height, sort_key=sort_key, sort_order=sort_order, byte_format=byte_format
        )
        self._remover = remover

    @property
    def exiting(self) -> bool:
        return self.state.mode is Mode.EXITING

    @property
    def cancel_requested(self) -> bool:
        return self.state.cancel_requested

    def finish_scan(self, result: ScanResult) -> BrowserState:
        """Take ownership of the scanned tree and leave the scanning mode."""
        self.tree = result.tree
        return self.dispatch(ScanFinished(truncated=result.truncated))

    def dispatch(self, event: Event) -> BrowserState:
        """Apply *event* and return the new state."""
        if isinstance(event, ConfirmYes) and self.state.mode is Mode.CONFIRM_DELETE:
            self.state = self._confirm_delete()
        else:
            self.state = transition(self.state, event, self.tree)
        return self.state

    def display(self, progress: StatsSnapshot | None = None) -> DisplayModel:
        return build_display(self.state, self.tree, progress)

    def _confirm_delete(self) -> BrowserState:
        tree = self.tree
        state = self.state
        positions = stack_positions(state.selection, tree)
        outcomes: list[RemovalOutcome] = []
        for target in deletion_targets(state, tree):
            # An earlier target may have taken this one with it.
            if target not in tree:
                continue
            outcomes.append(tree.remove_subtree(target, self._remover))
        log.info("Deleted %d target(s), total now %d bytes", len(outcomes), tree.total_size)
        return after_deletion(state, tree, outcomes, positions)
