"""Input events understood by the browser, independent of any terminal."""

from __future__ import annotations

from dataclasses import dataclass

from dusk.core.tree import SortKey


@dataclass(frozen=True, slots=True)
class Up:
    pass


@dataclass(frozen=True, slots=True)
class Down:
    pass


@dataclass(frozen=True, slots=True)
class PageUp:
    pass


@dataclass(frozen=True, slots=True)
class PageDown:
    pass


@dataclass(frozen=True, slots=True)
class Home:
    pass


@dataclass(frozen=True, slots=True)
class End:
    pass


@dataclass(frozen=True, slots=True)
class Enter:
    """Descend into the selected directory."""


@dataclass(frozen=True, slots=True)
class Back:
    """Return to the parent listing."""


@dataclass(frozen=True, slots=True)
class ToggleMark:
    pass


@dataclass(frozen=True, slots=True)
class Delete:
    """Ask to delete the marked entries, or the selected one."""


@dataclass(frozen=True, slots=True)
class ConfirmYes:
    pass


@dataclass(frozen=True, slots=True)
class ConfirmNo:
    pass


@dataclass(frozen=True, slots=True)
class ChangeSort:
    key: SortKey


@dataclass(frozen=True, slots=True)
class ToggleHelp:
    pass


@dataclass(frozen=True, slots=True)
class Quit:
    pass


@dataclass(frozen=True, slots=True)
class Resize:
    width: int
    height: int


@dataclass(frozen=True, slots=True)
class ScanFinished:
    """The scanner handed over its tree."""

    truncated: bool = False


@dataclass(frozen=True, slots=True)
class CancelScan:
    pass


Event = (
    Up
    | Down
    | PageUp
    | PageDown
    | Home
    | End
    | Enter
    | Back
    | ToggleMark
    | Delete
    | ConfirmYes
    | ConfirmNo
    | ChangeSort
    | ToggleHelp
    | Quit
    | Resize
    | ScanFinished
    | CancelScan
)
