"""CLI command behavior tests.

Runs ``lazymarks.cli.main`` against a temporary project and bookmark
directory, checking printed output and the files left behind.
"""

from __future__ import annotations

import argparse
import io
import json
import os
import subprocess
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from lazymarks import cli


class CliCommandTests(unittest.TestCase):
    def setUp(self) -> None:
        tmp = tempfile.TemporaryDirectory()
        self.addCleanup(tmp.cleanup)
        self.base = Path(tmp.name).resolve()
        self.root = self.base / "proj"
        self.root.mkdir()
        self.save_path = self.base / "marks"
        self.config_path = self.base / "config.json"
        self._write_config()

    def _write_config(self, **options: object) -> None:
        self.config_path.write_text(
            json.dumps({"save_path": str(self.save_path), **options}),
            encoding="utf-8",
        )

    def _run(self, *argv: str) -> str:
        out = io.StringIO()
        with mock.patch("sys.stdout", out):
            cli.main(["--root", str(self.root), "--config", str(self.config_path), *argv])
        return out.getvalue()

    def test_add_list_and_path(self) -> None:
        self._run("add", str(self.root / "a.py"))
        self._run("add", str(self.root / "src" / "b.py"))
        self._run("add", str(self.root / "a.py"))

        self.assertEqual(self._run("list"), "  1  a.py\n  2  src/b.py\n")
        self.assertEqual(self._run("path", "2"), f"{self.root / 'src' / 'b.py'}\n")

    def test_path_out_of_range_exits_with_message(self) -> None:
        with self.assertRaises(SystemExit) as raised:
            self._run("path", "3")
        self.assertEqual(str(raised.exception), "Bookmark 3 not found.")

    def test_remove_toggle_and_clear(self) -> None:
        self._run("add", str(self.root / "a.py"))
        self._run("toggle", str(self.root / "b.py"))
        self._run("remove", str(self.root / "a.py"))
        self.assertEqual(self._run("list"), "  1  b.py\n")

        self._run("toggle", str(self.root / "b.py"))
        self._run("add", str(self.root / "c.py"))
        self._run("clear")
        self.assertEqual(self._run("list"), "")

    def test_pinned_files_survive_clear(self) -> None:
        self._write_config(separate_by_branch=True)
        self._run("add", str(self.root / "a.py"))
        self._run("pin", str(self.root / "b.py"))
        self.assertEqual(self._run("list"), "  1  a.py\n  2  b.py  (pinned)\n")

        self._run("clear")
        self.assertEqual(self._run("list"), "  1  b.py  (pinned)\n")

        self._run("unpin", str(self.root / "b.py"))
        self.assertEqual(self._run("list"), "")

    def test_mark_and_lines(self) -> None:
        source = self.root / "a.py"
        source.write_text("one\ntwo\nthree\n", encoding="utf-8")

        self._run("mark", str(source), "3", "2")
        self._run("mark", str(source), "1")
        self.assertEqual(self._run("lines", str(source)), "1:0\n3:2\n")

        self._run("mark", str(source), "3")
        self.assertEqual(self._run("lines", str(source)), "1:0\n")

    def test_edit_requires_editor(self) -> None:
        with mock.patch.dict(os.environ, {"VISUAL": "", "EDITOR": ""}):
            with self.assertRaises(SystemExit) as raised:
                self._run("edit")
        self.assertEqual(str(raised.exception), "Cannot edit: set $VISUAL or $EDITOR.")

    def test_edit_reloads_list_and_reports_changes(self) -> None:
        self._run("add", str(self.root / "a.py"))
        self._run("add", str(self.root / "b.py"))

        def _fake_editor(argv: list[str], check: bool) -> subprocess.CompletedProcess:
            self.assertEqual(argv[0], "fake-editor")
            target = Path(argv[-1])
            self.assertEqual(target.read_text(encoding="utf-8"), "a.py\nb.py\n")
            target.write_text("z.py\na.py\n", encoding="utf-8")
            return subprocess.CompletedProcess(args=argv, returncode=0)

        with mock.patch.dict(os.environ, {"VISUAL": "fake-editor"}):
            with mock.patch("lazymarks.editor.subprocess.run", side_effect=_fake_editor):
                output = self._run("edit")

        self.assertEqual(output, "+ z.py\n- b.py\n")
        self.assertEqual(self._run("list"), "  1  z.py\n  2  a.py\n")

    def test_edit_keeps_saved_list_when_editor_fails(self) -> None:
        self._run("add", str(self.root / "a.py"))

        def _failing_editor(argv: list[str], check: bool) -> subprocess.CompletedProcess:
            Path(argv[-1]).write_text("a.py\nc.py\n", encoding="utf-8")
            return subprocess.CompletedProcess(args=argv, returncode=2)

        with mock.patch.dict(os.environ, {"VISUAL": "fake-editor"}):
            with mock.patch("lazymarks.editor.subprocess.run", side_effect=_failing_editor):
                with self.assertRaises(SystemExit) as raised:
                    self._run("edit")

        self.assertEqual(str(raised.exception), "Editor exited with status 2.")
        self.assertEqual(self._run("list"), "  1  a.py\n  2  c.py\n")

    def test_missing_root_exits(self) -> None:
        with self.assertRaises(SystemExit) as raised:
            cli.main(["--root", str(self.base / "missing"), "list"])
        self.assertIn("Directory not found", str(raised.exception))

    def test_positive_int_rejects_zero(self) -> None:
        self.assertEqual(cli._positive_int("4"), 4)
        with self.assertRaises(argparse.ArgumentTypeError):
            cli._positive_int("0")
        with self.assertRaises(argparse.ArgumentTypeError):
            cli._positive_int("x")


if __name__ == "__main__":
    unittest.main()
