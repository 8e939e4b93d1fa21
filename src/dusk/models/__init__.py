"""Dusk data models."""

from dusk.models.entry import Entry, EntryKind
from dusk.models.removal_result import RemovalOutcome
from dusk.models.scan_stats import ScanIssue, ScanStats, StatsSnapshot

__all__ = [
    "Entry",
    "EntryKind",
    "RemovalOutcome",
    "ScanIssue",
    "ScanStats",
    "StatsSnapshot",
]
