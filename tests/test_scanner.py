"""Tests for the parallel scanner."""

from __future__ import annotations

import os
import threading

import pytest

from dusk.core.scanner import ScanConfig, Scanner, SizeMetric
from dusk.core.tree import EmptyDirPolicy
from dusk.errors import InvalidRootError
from dusk.models.entry import EntryKind


def _fail_listing(monkeypatch, *denied):
    """Make ``os.scandir`` raise PermissionError for the given directories."""
    real_scandir = os.scandir
    blocked = {os.fspath(p) for p in denied}

    def _scandir(path="."):
        if os.fspath(path) in blocked:
            raise PermissionError(13, "Permission denied", os.fspath(path))
        return real_scandir(path)

    monkeypatch.setattr(os, "scandir", _scandir)


class TestScanTotals:
    def test_scenario_totals(self, make_files, scan, check_tree):
        root = make_files({"A": {"a1": 10, "a2": 20}, "B": {"b1": 5}})
        result = scan(root)
        tree = result.tree

        assert tree.total_size == 35
        assert tree[tree.find(root / "A")].aggregate_size == 30
        assert tree[tree.find(root / "B")].aggregate_size == 5
        assert not result.truncated
        check_tree(tree)

    def test_statistics(self, make_files, scan):
        root = make_files({"A": {"a1": 10, "a2": 20}, "B": {"b1": 5}})
        stats = scan(root).stats
        assert stats.files == 3
        assert stats.directories == 3
        assert stats.entries_traversed == 6
        assert stats.bytes_counted == 35
        assert stats.smallest_file_bytes == 5
        assert stats.largest_file_bytes == 20
        assert stats.elapsed >= 0

    def test_empty_directory(self, make_files, scan, check_tree):
        root = make_files({"empty": {}})
        tree = scan(root).tree
        empty = tree.find(root / "empty")
        assert tree[empty].is_dir
        assert tree[empty].aggregate_size == 0
        assert tree.children(empty) == []
        check_tree(tree)

    def test_file_root(self, make_files, scan):
        root = make_files({"only": 42})
        tree = scan(root / "only").tree
        [index] = tree.roots
        assert tree[index].kind is EntryKind.FILE
        assert tree.total_size == 42

    def test_multiple_roots(self, make_files, scan):
        first = make_files({"x": 3}, name="first")
        second = make_files({"y": 4}, name="second")
        tree = scan(first, second).tree
        assert len(tree.roots) == 2
        assert tree.total_size == 7

    def test_deep_and_wide_tree(self, make_files, scan, check_tree):
        layout: dict = {}
        level = layout
        for depth in range(12):
            for i in range(5):
                level[f"f{i}"] = depth + 1
            level[f"d{depth}"] = {}
            level = level[f"d{depth}"]
        root = make_files(layout)

        result = Scanner(ScanConfig(size_metric=SizeMetric.APPARENT, threads=3)).scan([root])

        assert result.tree.total_size == sum(5 * (d + 1) for d in range(12))
        check_tree(result.tree)

    def test_rescan_is_identical(self, make_files, scan):
        root = make_files({"A": {"a1": 10, "deep": {"d": 3}}, "B": {"b1": 5}})
        first, second = scan(root).tree, scan(root).tree
        assert first.total_size == second.total_size
        assert first.total_count == second.total_count
        assert sorted(first.path_of(i) for i in first.walk()) == sorted(second.path_of(i) for i in second.walk())

    def test_on_disk_size_counts_blocks(self, make_files):
        root = make_files({"f": 1})
        st = os.stat(root / "f")
        tree = Scanner(ScanConfig(size_metric=SizeMetric.ON_DISK)).scan([root]).tree
        expected = st.st_blocks * 512 if hasattr(st, "st_blocks") else st.st_size
        assert tree.total_size == expected

    def test_policy_is_carried_to_tree(self, make_files, scan):
        root = make_files({"f": 1})
        assert scan(root, policy=EmptyDirPolicy.PRUNE).tree.empty_dir_policy is EmptyDirPolicy.PRUNE


class TestHardLinks:
    def test_hardlink_counted_once(self, make_files, scan, check_tree):
        root = make_files({"x": {"data": 100}, "y": {}})
        os.link(root / "x" / "data", root / "y" / "data")
        result = scan(root)
        tree = result.tree

        assert tree.total_size == 100
        first = tree[tree.find(root / "x" / "data")]
        second = tree[tree.find(root / "y" / "data")]
        assert {first.duplicate_marker, second.duplicate_marker} == {True, False}
        assert sorted([first.size_bytes, second.size_bytes]) == [0, 100]
        check_tree(tree)

    def test_hardlink_counted_every_time_when_asked(self, make_files, scan):
        root = make_files({"x": {"data": 100}, "y": {}})
        os.link(root / "x" / "data", root / "y" / "data")
        tree = scan(root, count_hard_links=True).tree
        assert tree.total_size == 200

    def test_links_across_roots_share_registry(self, make_files, scan):
        first = make_files({"data": 50}, name="first")
        second = make_files({}, name="second")
        os.link(first / "data", second / "data")
        assert scan(first, second).tree.total_size == 50


class TestUnreadable:
    def test_unreadable_directory_is_marked(self, make_files, scan, monkeypatch, check_tree):
        root = make_files({"A": {"a1": 10}, "locked": {"secret": 99}})
        _fail_listing(monkeypatch, root / "locked")
        result = scan(root)
        tree = result.tree

        locked = tree[tree.find(root / "locked")]
        assert locked.error_marker == "Permission denied"
        assert locked.children == []
        assert tree.total_size == 10
        assert [e.path for e in result.stats.errors] == [os.fspath(root / "locked")]
        check_tree(tree)

    def test_stat_failure_keeps_entry(self, make_files, scan, monkeypatch):
        root = make_files({"ok": 4, "broken": 6})
        real_scandir = os.scandir

        class _Broken:
            def __init__(self, dirent):
                self._dirent = dirent
                self.name = dirent.name
                self.path = dirent.path

            def stat(self, follow_symlinks=True):
                raise PermissionError(13, "Permission denied", self.path)

            def __getattr__(self, attr):
                return getattr(self._dirent, attr)

        class _Listing:
            def __init__(self, path):
                self._it = real_scandir(path)

            def __enter__(self):
                return self

            def __exit__(self, *exc):
                self._it.close()

            def __iter__(self):
                for dirent in self._it:
                    yield _Broken(dirent) if dirent.name == "broken" else dirent

        monkeypatch.setattr(os, "scandir", _Listing)
        result = scan(root)
        tree = result.tree

        broken = tree[tree.find(root / "broken")]
        assert broken.error_marker == "Permission denied"
        assert broken.kind is EntryKind.FILE
        assert tree.total_size == 4
        assert result.stats.error_count == 1
        assert result.stats.files == 2
        assert result.stats.entries_traversed == 3

    def test_missing_root_rejected(self, tmp_path):
        with pytest.raises(InvalidRootError) as excinfo:
            Scanner().scan([tmp_path / "nope"])
        assert excinfo.value.path == os.fspath(tmp_path / "nope")

    def test_roots_validated_before_scanning(self, make_files, tmp_path):
        root = make_files({"f": 1})
        scanner = Scanner()
        with pytest.raises(InvalidRootError):
            scanner.scan([root, tmp_path / "missing"])
        assert scanner.stats.entries_traversed == 0


class TestSpecialEntries:
    def test_symlink_not_followed_by_default(self, make_files, scan):
        root = make_files({"target": 1000, "links": {}})
        os.symlink(root / "target", root / "links" / "ln")
        tree = scan(root).tree
        link = tree[tree.find(root / "links" / "ln")]
        assert link.kind is EntryKind.SYMLINK
        assert link.size_bytes == len(os.fspath(root / "target"))

    def test_symlink_to_file_followed(self, make_files, scan):
        root = make_files({"outside": {"target": 1000}, "links": {}})
        os.symlink(root / "outside" / "target", root / "links" / "ln")
        tree = scan(root / "links", follow_symlinked_files=True).tree
        assert tree.total_size == 1000

    def test_symlinked_directory_never_descended(self, make_files, scan):
        root = make_files({"real": {"big": 500}, "links": {}})
        os.symlink(root / "real", root / "links" / "dirlink")
        tree = scan(root / "links", follow_symlinked_files=True).tree
        link = tree.find(root / "links" / "dirlink")
        assert tree[link].kind is EntryKind.SYMLINK
        assert tree.children(link) == []
        assert tree.total_size < 500

    @pytest.mark.skipif(not hasattr(os, "mkfifo"), reason="needs named pipes")
    def test_named_pipe_counted_as_other(self, make_files, scan):
        root = make_files({"f": 3})
        os.mkfifo(root / "pipe")
        result = scan(root)
        pipe = result.tree[result.tree.find(root / "pipe")]
        assert pipe.kind is EntryKind.OTHER
        assert pipe.size_bytes == 0
        assert result.stats.others == 1
        assert [i.reason for i in result.stats.unsupported] == ["named pipe"]


class TestCancellation:
    def test_cancel_before_start_truncates(self, make_files, check_tree):
        root = make_files({"A": {"a1": 10}, "B": {"b1": 5}})
        event = threading.Event()
        event.set()
        result = Scanner(ScanConfig(size_metric=SizeMetric.APPARENT), cancel_event=event).scan([root])

        assert result.truncated
        assert result.tree.truncated
        assert result.tree.total_size == 0
        check_tree(result.tree)

    def test_cancel_from_progress_callback(self, make_files, check_tree):
        layout = {f"d{i}": {f"f{j}": 1 for j in range(3)} for i in range(20)}
        root = make_files(layout)
        scanner = Scanner(ScanConfig(size_metric=SizeMetric.APPARENT, threads=1))

        result = scanner.scan([root], on_progress=lambda _stats: scanner.cancel())

        assert result.truncated
        assert result.tree.total_size <= 60
        check_tree(result.tree)


class TestProgress:
    def test_progress_reported(self, make_files):
        root = make_files({"A": {"a1": 10}, "B": {"b1": 5}})
        seen: list[int] = []
        Scanner(ScanConfig(size_metric=SizeMetric.APPARENT)).scan(
            [root], on_progress=lambda stats: seen.append(stats.entries_traversed)
        )
        assert seen
        assert seen == sorted(seen)
        assert seen[-1] == 5

    def test_workers_default_to_cpu_count(self):
        assert Scanner(ScanConfig(threads=0)).workers == (os.cpu_count() or 1)
        assert Scanner(ScanConfig(threads=3)).workers == 3
