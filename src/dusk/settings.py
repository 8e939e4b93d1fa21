"""JSON-backed user defaults for scan and display options."""

from __future__ import annotations

import copy
import json
import logging
from pathlib import Path
from typing import Any

from dusk.core.tree import SortKey
from dusk.utils import ByteFormat, xdg_config_home

log = logging.getLogger(__name__)

_SETTINGS_DIR = "dusk"
_SETTINGS_FILE = "settings.json"

DEFAULTS: dict[str, Any] = {
    "scan": {
        "apparent_size": False,
        "count_hard_links": False,
        "follow_symlinks": False,
        "threads": 0,
    },
    "display": {
        "byte_format": "metric",
    },
    "browser": {
        "sort": "size",
        "prune_empty_dirs": False,
    },
}

_CHOICES: dict[str, tuple[str, ...]] = {
    "display.byte_format": tuple(f.value for f in ByteFormat),
    "browser.sort": tuple(k.value for k in SortKey),
}


class Settings:
    """Persistent settings backed by a JSON file.

    Uses dot-notation keys for nested access, falling back to
    :data:`DEFAULTS` for anything the file does not set:
        settings.get("scan.threads")        # reads data["scan"]["threads"]
        settings.set("display.byte_format", "binary")  # writes + saves
    """

    _instance: Settings | None = None

    def __init__(self, path: Path | None = None) -> None:
        self._path = path or (xdg_config_home() / _SETTINGS_DIR / _SETTINGS_FILE)
        self._data: dict[str, Any] = {}
        self._load()

    @classmethod
    def instance(cls) -> Settings:
        """Return the singleton settings instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @property
    def path(self) -> Path:
        return self._path

    def get(self, key: str, default: Any = None) -> Any:
        """Get a value by dot-notation key."""
        missing = object()
        value = _lookup(self._data, key, missing)
        if value is missing:
            value = _lookup(DEFAULTS, key, default)
        return copy.deepcopy(value)

    def get_checked(self, key: str) -> Any:
        """Get a leaf value, falling back to its default if the file holds a bad one."""
        value = self.get(key)
        try:
            validate(key, value)
        except ValueError as e:
            fallback = _lookup(DEFAULTS, key, None)
            log.warning("Ignoring setting in %s: %s; using %r", self._path, e, fallback)
            return fallback
        return value

    def set(self, key: str, value: Any) -> None:
        """Set a value by dot-notation key and persist to disk."""
        parts = key.split(".")
        node = self._data
        for part in parts[:-1]:
            if part not in node or not isinstance(node[part], dict):
                node[part] = {}
            node = node[part]
        node[parts[-1]] = value
        self._save()

    def _load(self) -> None:
        """Load settings from disk, gracefully handling errors."""
        if not self._path.exists():
            return
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError) as e:
            log.warning("Could not load settings from %s: %s", self._path, e)
            return
        if not isinstance(data, dict):
            log.warning("Ignoring settings in %s: top level is not an object", self._path)
            return
        self._data = data

    def _save(self) -> None:
        """Persist settings to disk."""
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(
                json.dumps(self._data, indent=2, ensure_ascii=False) + "\n",
                encoding="utf-8",
            )
        except OSError as e:
            log.warning("Could not save settings to %s: %s", self._path, e)


def _lookup(data: dict[str, Any], key: str, default: Any) -> Any:
    node: Any = data
    for part in key.split("."):
        if not isinstance(node, dict) or part not in node:
            return default
        node = node[part]
    return node


def is_known_key(key: str) -> bool:
    """True if *key* names a leaf in :data:`DEFAULTS`."""
    missing = object()
    value = _lookup(DEFAULTS, key, missing)
    return value is not missing and not isinstance(value, dict)


def validate(key: str, value: Any) -> None:
    """Check *value* against the type and range of a known key.

    Raises:
        ValueError: If the key is unknown or the value does not fit it.
    """
    if not is_known_key(key):
        raise ValueError(f"unknown setting '{key}'")
    default = _lookup(DEFAULTS, key, None)
    if isinstance(default, bool):
        if not isinstance(value, bool):
            raise ValueError(f"{key} must be true or false, got {value!r}")
    elif isinstance(default, int):
        if isinstance(value, bool) or not isinstance(value, int) or value < 0:
            raise ValueError(f"{key} must be a non-negative integer, got {value!r}")
    elif key in _CHOICES and value not in _CHOICES[key]:
        raise ValueError(f"{key} must be one of {', '.join(_CHOICES[key])}, got {value!r}")
