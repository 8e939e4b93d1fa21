"""Tests for the terminal front end."""

from __future__ import annotations

import click
import pytest

from dusk import tui
from dusk.browser import Browser, Mode
from dusk.browser.events import ChangeSort, ConfirmNo, ConfirmYes, Delete, Down, Quit, ToggleMark
from dusk.core.scanner import ScanConfig, ScanResult, SizeMetric
from dusk.core.tree import SortKey
from dusk.models.scan_stats import ScanStats, StatsSnapshot
from dusk.utils import ByteFormat


class TestKeys:
    def test_navigation_keys(self):
        assert tui.key_to_event("j", Mode.READY) == Down()
        assert tui.key_to_event("\x1b[B", Mode.READY) == Down()
        assert tui.key_to_event(" ", Mode.READY) == ToggleMark()
        assert tui.key_to_event("n", Mode.READY) == ChangeSort(SortKey.NAME)

    def test_confirm_keys(self):
        assert tui.key_to_event("y", Mode.CONFIRM_DELETE) == ConfirmYes()
        assert tui.key_to_event("n", Mode.CONFIRM_DELETE) == ConfirmNo()
        assert tui.key_to_event("j", Mode.CONFIRM_DELETE) is None

    def test_ctrl_c_always_quits(self):
        for mode in Mode:
            assert tui.key_to_event("\x03", mode) == Quit()

    def test_unknown_and_scanning(self):
        assert tui.key_to_event("z", Mode.READY) is None
        assert tui.key_to_event("j", Mode.SCANNING) is None


class TestRender:
    @pytest.fixture
    def browser(self, sample_tree):
        tree, _ids = sample_tree
        session = Browser(width=60, height=20)
        session.finish_scan(ScanResult(tree=tree, stats=ScanStats()))
        return session

    def test_lines(self, browser):
        lines = [click.unstyle(line) for line in tui.render_lines(browser.display(), ByteFormat.METRIC, 60)]
        assert lines[0].startswith("/r")
        assert "NAME" in lines[1]
        assert lines[2].endswith(" A/")
        assert "30 B" in lines[2]
        assert len(lines) == 2 + 4

    def test_prompt_shown(self, browser):
        browser.dispatch(Delete())
        lines = [click.unstyle(line) for line in tui.render_lines(browser.display(), ByteFormat.METRIC, 60)]
        assert lines[-1].startswith("Permanently delete /r/A")

    def test_long_lines_truncated(self, browser):
        lines = [click.unstyle(line) for line in tui.render_lines(browser.display(), ByteFormat.METRIC, 12)]
        assert all(len(line) <= 12 for line in lines)
        assert lines[0].endswith("…")

    def test_scanning_lines(self):
        model = Browser().display(StatsSnapshot(files=7))
        lines = [click.unstyle(line) for line in tui.render_lines(model, ByteFormat.METRIC, 80)]
        assert lines[0] == "Scanning…"
        assert lines[-1].startswith("7 files")


class TestRunInteractive:
    def test_delete_from_keyboard(self, make_files, monkeypatch):
        root = make_files({"big": 100, "small": 1})
        keys = iter(["x", "d", "y", "q"])
        monkeypatch.setattr(tui, "_terminal_size", lambda: (80, 24))
        monkeypatch.setattr(click, "getchar", lambda: next(keys))
        monkeypatch.setattr(click, "clear", lambda: None)

        browser = tui.run_interactive([root], ScanConfig(size_metric=SizeMetric.APPARENT))

        assert browser.exiting
        assert not (root / "big").exists()
        assert (root / "small").exists()
        assert browser.tree.total_size == 1
        assert browser.state.status.startswith("Deleted 1 entry")

    def test_ctrl_d_pages_and_ctrl_c_quits(self, make_files, monkeypatch):
        root = make_files({f"f{i:02d}": 100 - i for i in range(20)})
        cleared = []

        def _ctrl_d():
            raise EOFError

        def _ctrl_c():
            raise KeyboardInterrupt

        presses = iter([_ctrl_d, _ctrl_c])
        monkeypatch.setattr(tui, "_terminal_size", lambda: (80, 10))
        monkeypatch.setattr(click, "getchar", lambda: next(presses)())
        monkeypatch.setattr(click, "clear", lambda: cleared.append(True))

        browser = tui.run_interactive([root], ScanConfig(size_metric=SizeMetric.APPARENT))

        assert browser.exiting
        assert not browser.cancel_requested
        cursor = browser.state.selection.cursor
        assert browser.tree[cursor].name == "f06"
        assert (root / "f00").exists()
        assert cleared
