"""Terminal front end: draws display models and turns keys into events."""

from __future__ import annotations

import logging
import os
import shutil
import time
from typing import Iterable

import click

from dusk.browser.display import DisplayModel, Row
from dusk.browser.events import (
    Back,
    CancelScan,
    ChangeSort,
    ConfirmNo,
    ConfirmYes,
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
    ToggleHelp,
    ToggleMark,
    Up,
)
from dusk.browser.session import Browser
from dusk.browser.state import Mode
from dusk.core.engine import ScanEngine
from dusk.core.scanner import ScanConfig
from dusk.core.tree import SortKey
from dusk.models.entry import EntryKind
from dusk.utils import ByteFormat, bytes_to_human, format_percentage

log = logging.getLogger(__name__)

# Seconds between progress redraws while scanning.
_REDRAW_INTERVAL = 0.1

_BAR_WIDTH = 10

_NAVIGATION_KEYS: dict[str, Event] = {
    "k": Up(),
    "\x1b[A": Up(),
    "j": Down(),
    "\x1b[B": Down(),
    "\x15": PageUp(),  # Ctrl-u
    "\x1b[5~": PageUp(),
    "\x04": PageDown(),  # Ctrl-d
    "\x1b[6~": PageDown(),
    "g": Home(),
    "\x1b[H": Home(),
    "G": End(),
    "\x1b[F": End(),
    "o": Enter(),
    "l": Enter(),
    "\r": Enter(),
    "\n": Enter(),
    "\x1b[C": Enter(),
    "u": Back(),
    "h": Back(),
    "\x7f": Back(),
    "\x1b[D": Back(),
    " ": ToggleMark(),
    "d": Delete(),
    "s": ChangeSort(SortKey.SIZE),
    "n": ChangeSort(SortKey.NAME),
    "c": ChangeSort(SortKey.COUNT),
    "?": ToggleHelp(),
    "q": Quit(),
}

_CONFIRM_KEYS: dict[str, Event] = {
    "y": ConfirmYes(),
    "Y": ConfirmYes(),
    "n": ConfirmNo(),
    "N": ConfirmNo(),
    "\x1b": ConfirmNo(),
    "q": Quit(),
}

_HELP_KEYS: dict[str, Event] = {
    "?": ToggleHelp(),
    "\x1b": ToggleHelp(),
    "q": Quit(),
}


def key_to_event(key: str, mode: Mode) -> Event | None:
    """Translate a key read from the terminal for the given mode."""
    if key == "\x03":  # Ctrl-c
        return Quit()
    match mode:
        case Mode.CONFIRM_DELETE:
            return _CONFIRM_KEYS.get(key)
        case Mode.HELP:
            return _HELP_KEYS.get(key)
        case Mode.READY:
            return _NAVIGATION_KEYS.get(key)
    return None


def render_lines(model: DisplayModel, fmt: ByteFormat, width: int) -> list[str]:
    """Turn a display model into styled terminal lines."""
    lines = [click.style(_fit(model.header, width), bold=True, reverse=True)]

    if model.mode is Mode.SCANNING:
        lines.append("")
        lines.append(model.status)
        return lines

    if model.help_lines:
        lines.extend(_fit(line, width) for line in model.help_lines)
        return lines

    lines.append(click.style(_fit(f"{'SIZE':>{fmt.width}} | {'SHARE':^6} | {'':{_BAR_WIDTH}} | NAME", width), dim=True))
    lines.extend(_render_row(row, fmt, width) for row in model.rows)

    if model.prompt:
        lines.append(click.style(_fit(model.prompt, width), fg="red", bold=True))
    elif model.marked_title:
        lines.append(click.style(_fit(model.marked_title, width), fg="yellow"))
    if model.status:
        lines.append(_fit(model.status, width))
    return lines


def _render_row(row: Row, fmt: ByteFormat, width: int) -> str:
    filled = round(row.percentage_of_parent * _BAR_WIDTH)
    bar = "█" * filled + " " * (_BAR_WIDTH - filled)
    name = row.name + ("/" if row.kind is EntryKind.DIRECTORY else "")
    if row.error:
        name += f"  <{row.error}>"
    if row.duplicate:
        name += "  (hardlink)"
    mark = "*" if row.marked else " "
    text = _fit(
        f"{bytes_to_human(row.size, fmt):>{fmt.width}} | {format_percentage(row.percentage_of_parent)} | {bar} |{mark}{name}",
        width,
    )
    if row.error:
        fg = "red"
    elif row.marked:
        fg = "yellow"
    elif row.duplicate:
        fg = "bright_black"
    else:
        fg = None
    return click.style(text, fg=fg, bold=row.kind is EntryKind.DIRECTORY, reverse=row.selected)


def _fit(text: str, width: int) -> str:
    if len(text) <= width:
        return text
    return text[: max(0, width - 1)] + "…"


def draw(model: DisplayModel, fmt: ByteFormat, width: int) -> None:
    click.clear()
    click.echo("\n".join(render_lines(model, fmt, width)))


def _read_key() -> str:
    """Read one key press; Ctrl-c and Ctrl-d come back as control characters."""
    try:
        return click.getchar()
    except KeyboardInterrupt:
        return "\x03"
    except EOFError:
        return "\x04"


def _terminal_size() -> tuple[int, int]:
    size = shutil.get_terminal_size()
    return size.columns, size.lines


def run_interactive(
    paths: Iterable[str | os.PathLike],
    config: ScanConfig,
    *,
    byte_format: ByteFormat = ByteFormat.METRIC,
    sort_key: SortKey = SortKey.SIZE,
) -> Browser:
    """Scan *paths* while showing progress, then browse until the user quits.

    Ctrl-c during the scan cancels it and continues with what was found.

    Raises:
        InvalidRootError: If a path is missing or unreadable.
    """
    width, height = _terminal_size()
    browser = Browser(width, height, sort_key=sort_key, byte_format=byte_format)
    engine = ScanEngine(config)
    engine.start(paths)

    while not engine.done:
        try:
            draw(browser.display(progress=engine.snapshot()), byte_format, width)
            time.sleep(_REDRAW_INTERVAL)
        except KeyboardInterrupt:
            browser.dispatch(CancelScan())
            engine.cancel()

    result = engine.wait()
    browser.finish_scan(result)

    while not browser.exiting:
        new_size = _terminal_size()
        if new_size != (width, height):
            width, height = new_size
            browser.dispatch(Resize(width, height))
        draw(browser.display(), byte_format, width)
        key = _read_key()
        event = key_to_event(key, browser.state.mode)
        if event is None:
            log.debug("Ignoring key %r in %s mode", key, browser.state.mode.value)
            continue
        browser.dispatch(event)

    click.clear()
    return browser
