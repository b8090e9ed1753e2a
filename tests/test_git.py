from __future__ import annotations

import shutil
import subprocess
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from lazymarks import git


def _completed(stdout: str, returncode: int = 0) -> subprocess.CompletedProcess[str]:
    return subprocess.CompletedProcess(args=["git"], returncode=returncode, stdout=stdout)


class GitQueryTests(unittest.TestCase):
    @unittest.skipIf(shutil.which("git") is None, "git is required for this test")
    def test_branch_and_toplevel_for_fresh_repository(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp).resolve()
            subprocess.run(["git", "init", "-q", str(root)], check=True)
            subprocess.run(["git", "-C", str(root), "symbolic-ref", "HEAD", "refs/heads/feature/x"], check=True)
            nested = root / "src" / "pkg"
            nested.mkdir(parents=True)

            self.assertEqual(git.query_branch(nested, timeout_seconds=5.0), "feature/x")
            self.assertEqual(git.query_toplevel(nested, timeout_seconds=5.0), root)
            self.assertEqual(git.query_git_dir(nested, timeout_seconds=5.0), root / ".git")

    @unittest.skipIf(shutil.which("git") is None, "git is required for this test")
    def test_branch_is_none_outside_repository(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp).resolve()
            with mock.patch.dict("os.environ", {"GIT_CEILING_DIRECTORIES": str(root.parent)}):
                self.assertIsNone(git.query_branch(root, timeout_seconds=5.0))
                self.assertIsNone(git.query_toplevel(root, timeout_seconds=5.0))

    def test_common_dir_strips_trailing_git_component(self) -> None:
        with mock.patch("lazymarks.git._run_git", return_value=_completed("/work/repo/.git\n")):
            self.assertEqual(git.query_common_dir(Path("/work/repo/wt")), Path("/work/repo"))
        with mock.patch("lazymarks.git._run_git", return_value=_completed("/work/bare.git\n")):
            self.assertEqual(git.query_common_dir(Path("/work/wt")), Path("/work/bare.git"))

    def test_failures_resolve_to_none(self) -> None:
        with mock.patch("lazymarks.git.subprocess.run", side_effect=FileNotFoundError("git")):
            self.assertIsNone(git.query_branch(Path("/")))
        with mock.patch(
            "lazymarks.git.subprocess.run",
            side_effect=subprocess.TimeoutExpired(cmd="git", timeout=0.5),
        ):
            self.assertIsNone(git.query_toplevel(Path("/")))
        with mock.patch("lazymarks.git._run_git", return_value=_completed("", returncode=128)):
            self.assertIsNone(git.query_branch(Path("/")))
        with mock.patch("lazymarks.git._run_git", return_value=_completed("   \n")):
            self.assertIsNone(git.query_branch(Path("/")))

    def test_backend_passes_its_timeout(self) -> None:
        backend = git.GitBackend(timeout_seconds=0.25)
        with mock.patch("lazymarks.git._run_git", return_value=_completed("main\n")) as run_git:
            self.assertEqual(backend.branch(Path("/repo")), "main")
        self.assertEqual(run_git.call_args.args, (Path("/repo"), ["symbolic-ref", "--short", "HEAD"], 0.25))

    def test_find_git_marker_searches_upward_until_stop(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            base = Path(tmp).resolve()
            root = base / "repo"
            nested = root / "a" / "b"
            nested.mkdir(parents=True)
            (root / ".git").mkdir()

            self.assertEqual(git.find_git_marker(nested, stop=base), root / ".git")
            self.assertIsNone(git.find_git_marker(nested, stop=root))
            self.assertIsNone(git.find_git_marker(base, stop=base.parent))


if __name__ == "__main__":
    unittest.main()
