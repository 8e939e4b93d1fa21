"""Per-scan hardlink registry."""

from __future__ import annotations

import threading


class Deduper:
    """Remembers which (device, inode) pairs a scan has already counted.

    One instance is created per scan and handed to every worker; it is
    never shared between scans.
    """

    def __init__(self) -> None:
        self._seen: set[tuple[int, int]] = set()
        self._lock = threading.Lock()

    def add(self, device_id: int, inode: int) -> bool:
        """Register a pair. Returns True only for the first caller."""
        key = (device_id, inode)
        with self._lock:
            if key in self._seen:
                return False
            self._seen.add(key)
            return True

    def __contains__(self, key: tuple[int, int]) -> bool:
        with self._lock:
            return key in self._seen

    def __len__(self) -> int:
        return len(self._seen)
