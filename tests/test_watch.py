from __future__ import annotations

import tempfile
import unittest
from pathlib import Path

from lazymarks.watch import build_head_signature, read_head_ref


class HeadSignatureTests(unittest.TestCase):
    def test_signature_changes_when_head_moves(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            git_dir = Path(tmp).resolve() / ".git"
            git_dir.mkdir()
            head = git_dir / "HEAD"
            head.write_text("ref: refs/heads/main\n", encoding="utf-8")

            sig_main = build_head_signature(git_dir)
            self.assertEqual(sig_main, build_head_signature(git_dir))

            head.write_text("ref: refs/heads/feature\n", encoding="utf-8")
            sig_feature = build_head_signature(git_dir)
            head.write_text("0123456789abcdef0123456789abcdef01234567\n", encoding="utf-8")
            sig_detached = build_head_signature(git_dir)

            self.assertNotEqual(sig_main, sig_feature)
            self.assertNotEqual(sig_feature, sig_detached)

    def test_missing_git_dir_has_stable_signature(self) -> None:
        self.assertEqual(build_head_signature(None), build_head_signature(None))
        with tempfile.TemporaryDirectory() as tmp:
            missing = Path(tmp).resolve() / "nope"
            self.assertNotEqual(build_head_signature(missing), build_head_signature(None))

    def test_read_head_ref(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            git_dir = Path(tmp).resolve()
            self.assertEqual(read_head_ref(git_dir), "")
            (git_dir / "HEAD").write_text("ref: refs/heads/feat/x\n", encoding="utf-8")
            self.assertEqual(read_head_ref(git_dir), "refs/heads/feat/x")
            (git_dir / "HEAD").write_text("deadbeef\n", encoding="utf-8")
            self.assertEqual(read_head_ref(git_dir), "")


if __name__ == "__main__":
    unittest.main()
