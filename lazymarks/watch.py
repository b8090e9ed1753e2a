"""Cheap signatures over git HEAD metadata for poll-based branch detection.

The coordinator compares successive signatures to notice checkouts made
outside the host (another terminal, a git GUI) without running git.
"""

from __future__ import annotations

import hashlib
from pathlib import Path


def _update_digest(digest, token: str) -> None:
    """Append a token plus separator byte to a hash digest."""
    digest.update(token.encode("utf-8", errors="surrogateescape"))
    digest.update(b"\0")


def _path_stat_signature(path: Path) -> tuple[str, int, int]:
    """Return a stable stat tuple describing ``path`` existence and metadata."""
    try:
        st = path.stat()
    except FileNotFoundError:
        return ("missing", 0, 0)
    except OSError:
        return ("error", 0, 0)
    return ("ok", st.st_mtime_ns, st.st_size)


def read_head_ref(git_dir: Path) -> str:
    """Return the symbolic ref HEAD points at, or ``""`` when detached/unreadable."""
    try:
        head_text = (git_dir / "HEAD").read_text(encoding="utf-8", errors="replace").strip()
    except OSError:
        return ""
    if head_text.startswith("ref: "):
        return head_text[5:].strip()
    return ""


def build_head_signature(git_dir: Path | None) -> str:
    """Build a digest that changes whenever HEAD moves to another branch or commit."""
    digest = hashlib.blake2b(digest_size=20)
    if git_dir is None:
        _update_digest(digest, "git:none")
        return digest.hexdigest()

    git_dir = git_dir.resolve()
    _update_digest(digest, f"git_dir:{git_dir}")
    head_path = git_dir / "HEAD"
    state, mtime_ns, size = _path_stat_signature(head_path)
    _update_digest(digest, f"head:{state}:{mtime_ns}:{size}")
    _update_digest(digest, f"head_ref:{read_head_ref(git_dir)}")
    return digest.hexdigest()


__all__ = ["build_head_signature", "read_head_ref"]
