from __future__ import annotations

import tempfile
import unittest
from pathlib import Path
from unittest import mock

from lazymarks import paths


class PathHelperTests(unittest.TestCase):
    def test_normalize_collapses_separators_and_drive_colons(self) -> None:
        self.assertEqual(paths.normalize_path_to_filename("/home/u/proj"), "_home_u_proj")
        self.assertEqual(paths.normalize_path_to_filename("C:\\work\\proj"), "C__work_proj")
        self.assertEqual(paths.normalize_path_to_filename(Path("/repo-feature/x")), "_repo-feature_x")

    def test_dot_prefix_skips_whitespace_and_existing_prefix(self) -> None:
        self.assertEqual(paths.with_dot_prefix("src/a.py"), "./src/a.py")
        self.assertEqual(paths.with_dot_prefix("./src/a.py"), "./src/a.py")
        self.assertEqual(paths.with_dot_prefix("my notes.md"), "my notes.md")
        self.assertEqual(paths.comparable_entry("a.py", relative_display=True), "./a.py")
        self.assertEqual(paths.comparable_entry("a.py", relative_display=False), "a.py")

    def test_display_path_modes(self) -> None:
        root = Path("/work/proj")
        cwd = Path("/work/proj/sub")
        target = Path("/work/proj/src/a.py")

        self.assertEqual(
            paths.display_path(target, scope_root=root, working_directory=cwd, global_bookmarks=False, relative_path=False),
            "src/a.py",
        )
        self.assertEqual(
            paths.display_path(target, scope_root=root, working_directory=cwd, global_bookmarks=False, relative_path=True),
            "./src/a.py",
        )
        self.assertEqual(
            paths.display_path(target, scope_root=root, working_directory=cwd, global_bookmarks=True, relative_path=True),
            "/work/proj/src/a.py",
        )
        self.assertEqual(
            paths.display_path(
                Path("/elsewhere/b.py"),
                scope_root=root,
                working_directory=cwd,
                global_bookmarks=False,
                relative_path=False,
            ),
            "/elsewhere/b.py",
        )

    def test_resolve_entry(self) -> None:
        base = Path("/work/proj")
        self.assertEqual(paths.resolve_entry("src/a.py", base), Path("/work/proj/src/a.py"))
        self.assertEqual(paths.resolve_entry("./src/../b.py", base), Path("/work/proj/b.py"))
        self.assertEqual(paths.resolve_entry("/abs/c.py", base), Path("/abs/c.py"))


class AtomicWriteTests(unittest.TestCase):
    def test_write_creates_parents_and_leaves_no_temp_file(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            target = Path(tmp) / "a" / "b" / "list"
            paths.write_text_atomic(target, "x\n")

            self.assertEqual(target.read_text(encoding="utf-8"), "x\n")
            self.assertEqual(sorted(p.name for p in target.parent.iterdir()), ["list"])

    def test_failed_rename_keeps_previous_content(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            target = Path(tmp) / "list"
            target.write_text("old\n", encoding="utf-8")

            with mock.patch("lazymarks.paths.os.replace", side_effect=OSError("disk full")):
                with self.assertRaises(OSError):
                    paths.write_text_atomic(target, "new\n")

            self.assertEqual(target.read_text(encoding="utf-8"), "old\n")
            self.assertEqual(sorted(p.name for p in Path(tmp).iterdir()), ["list"])


if __name__ == "__main__":
    unittest.main()
