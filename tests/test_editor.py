from __future__ import annotations

import subprocess
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from lazymarks.editor import ListEdit, edit_list_file, editor_command


class EditorCommandTests(unittest.TestCase):
    def test_visual_wins_over_editor(self) -> None:
        self.assertEqual(editor_command({"VISUAL": "code --wait", "EDITOR": "vi"}), ["code", "--wait"])

    def test_falls_back_to_editor(self) -> None:
        self.assertEqual(editor_command({"VISUAL": "  ", "EDITOR": "nano"}), ["nano"])
        self.assertEqual(editor_command({"VISUAL": "'unterminated", "EDITOR": "vi"}), ["vi"])

    def test_nothing_configured(self) -> None:
        self.assertIsNone(editor_command({}))
        self.assertIsNone(editor_command({"VISUAL": "", "EDITOR": ""}))


class EditListFileTests(unittest.TestCase):
    def setUp(self) -> None:
        tmp = tempfile.TemporaryDirectory()
        self.addCleanup(tmp.cleanup)
        self.target = Path(tmp.name).resolve() / "lists" / "proj-main"
        self.env = {"EDITOR": "fake-editor"}

    def _editor(self, content: str, returncode: int = 0):
        def _run(argv: list[str], check: bool) -> subprocess.CompletedProcess:
            self.assertEqual(argv, ["fake-editor", str(self.target)])
            self.assertFalse(check)
            Path(argv[-1]).write_text(content, encoding="utf-8")
            return subprocess.CompletedProcess(args=argv, returncode=returncode)

        return mock.patch("lazymarks.editor.subprocess.run", side_effect=_run)

    def test_reports_added_and_removed_entries(self) -> None:
        self.target.parent.mkdir(parents=True)
        self.target.write_text("a.py\nb.py\n", encoding="utf-8")

        with self._editor("b.py\nc.py\n\n"):
            edit = edit_list_file(self.target, self.env)

        self.assertIsNone(edit.error)
        self.assertEqual(edit.before, ["a.py", "b.py"])
        self.assertEqual(edit.after, ["b.py", "c.py"])
        self.assertEqual(edit.added, ["c.py"])
        self.assertEqual(edit.removed, ["a.py"])

    def test_missing_list_is_created_before_editing(self) -> None:
        seen: list[bool] = []

        def _run(argv: list[str], check: bool) -> subprocess.CompletedProcess:
            seen.append(Path(argv[-1]).is_file())
            return subprocess.CompletedProcess(args=argv, returncode=0)

        with mock.patch("lazymarks.editor.subprocess.run", side_effect=_run):
            edit = edit_list_file(self.target, self.env)

        self.assertEqual(seen, [True])
        self.assertEqual(edit, ListEdit([], []))

    def test_non_zero_exit_still_reads_saved_entries(self) -> None:
        with self._editor("x.py\n", returncode=1):
            edit = edit_list_file(self.target, self.env)

        self.assertEqual(edit.error, "Editor exited with status 1.")
        self.assertEqual(edit.added, ["x.py"])

    def test_launch_failure_is_reported(self) -> None:
        with mock.patch("lazymarks.editor.subprocess.run", side_effect=FileNotFoundError("fake-editor")):
            edit = edit_list_file(self.target, self.env)

        self.assertTrue(edit.error.startswith("Failed to launch editor:"))
        self.assertEqual(edit.after, [])

    def test_no_editor_leaves_file_alone(self) -> None:
        with mock.patch("lazymarks.editor.subprocess.run") as run:
            edit = edit_list_file(self.target, {})

        run.assert_not_called()
        self.assertEqual(edit.error, "Cannot edit: set $VISUAL or $EDITOR.")
        self.assertFalse(self.target.exists())


if __name__ == "__main__":
    unittest.main()
