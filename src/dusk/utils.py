"""Shared utility functions."""

from __future__ import annotations

import os
from enum import Enum
from pathlib import Path

from dusk.models.entry import EntryKind


class ByteFormat(Enum):
    """How byte counts are shown to the user."""

    METRIC = "metric"
    BINARY = "binary"
    BYTES = "bytes"

    @property
    def width(self) -> int:
        """Column width that fits any value in this format."""
        return 13 if self is ByteFormat.BYTES else 10


_METRIC_UNITS = ("B", "kB", "MB", "GB", "TB", "PB")
_BINARY_UNITS = ("B", "KiB", "MiB", "GiB", "TiB", "PiB")


def xdg_config_home() -> Path:
    """Return XDG_CONFIG_HOME, defaulting to ~/.config."""
    return Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))


def remove_path(path: str, kind: EntryKind) -> None:
    """Remove a single filesystem object without recursing.

    Directories go through ``os.rmdir`` so only an empty directory can
    ever be deleted; everything else is unlinked.  Raises ``OSError``.
    """
    if kind is EntryKind.DIRECTORY:
        os.rmdir(path)
    else:
        os.unlink(path)


def bytes_to_human(size_bytes: int, fmt: ByteFormat = ByteFormat.METRIC) -> str:
    """Convert byte count to a human-readable string."""
    if size_bytes < 0:
        return f"-{bytes_to_human(-size_bytes, fmt)}"
    if fmt is ByteFormat.BYTES:
        return f"{size_bytes:,} b"
    if size_bytes == 0:
        return "0 B"

    base, units = (1000, _METRIC_UNITS) if fmt is ByteFormat.METRIC else (1024, _BINARY_UNITS)
    value = float(size_bytes)
    for unit in units[:-1]:
        if abs(value) < base:
            return f"{value:.1f} {unit}" if unit != "B" else f"{int(value)} B"
        value /= base
    return f"{value:.1f} {units[-1]}"


def format_elapsed(seconds: float) -> str:
    """Format an elapsed time as a human-readable string."""
    if seconds < 1:
        return f"{seconds * 1000:.0f} ms"
    if seconds < 60:
        return f"{seconds:.1f}s"
    minutes = int(seconds) // 60
    secs = seconds - minutes * 60
    return f"{minutes}m {secs:.0f}s"


def format_percentage(fraction: float) -> str:
    """Format a 0..1 fraction the way the browser columns show it."""
    return f"{fraction * 100:5.1f}%"
