"""Exceptions raised by dusk."""

from __future__ import annotations


class DuskError(Exception):
    """Base class for errors that end a dusk command."""


class InvalidRootError(DuskError):
    """Raised when a path given to scan does not exist or cannot be read."""

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"{path}: {reason}")
        self.path = path
        self.reason = reason
