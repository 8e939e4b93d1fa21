"""Shared test fixtures."""

from __future__ import annotations

from pathlib import Path

import pytest

from dusk.core.scanner import ScanConfig, Scanner, ScanResult, SizeMetric
from dusk.core.tree import AggregationTree, EmptyDirPolicy
from dusk.models.entry import Entry, EntryKind
from dusk.settings import Settings


@pytest.fixture
def isolate_settings(tmp_path, monkeypatch):
    """Point the settings store at a temp directory."""
    config_home = tmp_path / "config"
    config_home.mkdir()
    monkeypatch.setenv("XDG_CONFIG_HOME", str(config_home))
    monkeypatch.setattr(Settings, "_instance", None)
    return config_home / "dusk" / "settings.json"


def build_files(root: Path, layout: dict) -> Path:
    """Create files and directories from a nested dict.

    Integer values are file sizes in bytes, dict values are directories.
    """
    root.mkdir(parents=True, exist_ok=True)
    for name, value in layout.items():
        path = root / name
        if isinstance(value, dict):
            build_files(path, value)
        else:
            path.write_bytes(b"x" * value)
    return root


@pytest.fixture
def make_files(tmp_path):
    def _make(layout: dict, name: str = "root") -> Path:
        return build_files(tmp_path / name, layout)

    return _make


@pytest.fixture
def scan():
    """Scan paths counting apparent sizes so byte totals are exact."""

    def _scan(*paths, policy: EmptyDirPolicy = EmptyDirPolicy.RETAIN, **options) -> ScanResult:
        config = ScanConfig(size_metric=SizeMetric.APPARENT, empty_dir_policy=policy, **options)
        return Scanner(config).scan(paths)

    return _scan


def build_sample_tree(policy: EmptyDirPolicy = EmptyDirPolicy.RETAIN) -> tuple[AggregationTree, dict[str, int]]:
    """/r with A (a1=10, a2=20), B (b1=5), an empty C and a 1 byte file f."""
    tree = AggregationTree(policy)
    ids = {"r": tree.add_root(Entry(name="/r", kind=EntryKind.DIRECTORY))}
    ids["A"] = tree.insert_child(ids["r"], Entry(name="A", kind=EntryKind.DIRECTORY))
    ids["a1"] = tree.insert_child(ids["A"], Entry(name="a1", kind=EntryKind.FILE, size_bytes=10))
    ids["a2"] = tree.insert_child(ids["A"], Entry(name="a2", kind=EntryKind.FILE, size_bytes=20))
    ids["B"] = tree.insert_child(ids["r"], Entry(name="B", kind=EntryKind.DIRECTORY))
    ids["b1"] = tree.insert_child(ids["B"], Entry(name="b1", kind=EntryKind.FILE, size_bytes=5))
    ids["C"] = tree.insert_child(ids["r"], Entry(name="C", kind=EntryKind.DIRECTORY))
    ids["f"] = tree.insert_child(ids["r"], Entry(name="f", kind=EntryKind.FILE, size_bytes=1))
    return tree, ids


@pytest.fixture
def sample_tree():
    return build_sample_tree()


@pytest.fixture
def make_sample_tree():
    return build_sample_tree


class RecordingRemover:
    """Stands in for the filesystem; fails for the paths it is given."""

    def __init__(self, fail: tuple[str, ...] = ()) -> None:
        self.paths: list[str] = []
        self._fail = set(fail)

    def __call__(self, path: str, kind: EntryKind) -> None:
        if path in self._fail:
            raise PermissionError(13, "Permission denied", path)
        self.paths.append(path)


@pytest.fixture
def remover():
    return RecordingRemover()


@pytest.fixture
def make_remover():
    return RecordingRemover


def _assert_consistent(tree: AggregationTree) -> None:
    for index in tree.walk():
        entry = tree[index]
        if entry.is_dir:
            children = [tree[c] for c in entry.children]
            assert entry.aggregate_size == sum(c.aggregate_size for c in children), tree.path_of(index)
            assert entry.entry_count == sum(1 + c.entry_count for c in children), tree.path_of(index)
            assert all(c.parent == index for c in children)
        else:
            assert entry.aggregate_size == entry.size_bytes, tree.path_of(index)
            assert not entry.children


@pytest.fixture
def check_tree():
    """Assert the aggregate invariants over a whole tree."""
    return _assert_consistent
