"""Interactive browser: state machine, display model and session."""

from dusk.browser.display import DisplayModel, Row, build_display
from dusk.browser.session import Browser
from dusk.browser.state import BrowserState, Mode, SelectionState
from dusk.browser.transitions import after_deletion, initial_state, transition

__all__ = [
    "Browser",
    "BrowserState",
    "DisplayModel",
    "Mode",
    "Row",
    "SelectionState",
    "after_deletion",
    "build_display",
    "initial_state",
    "transition",
]
