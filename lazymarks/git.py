"""Git backend queries used for bookmark identity.

Each query is a blocking subprocess call meant to run on a scheduler worker.
Failures (missing git, non-repo directory, timeout) resolve to ``None``.
"""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_GIT_TIMEOUT_SECONDS = 0.5


def _run_git(cwd: Path, args: list[str], timeout_seconds: float) -> subprocess.CompletedProcess[str] | None:
    try:
        return subprocess.run(
            ["git", "-C", str(cwd), *args],
            stdout=subprocess.PIPE,
            stderr=subprocess.DEVNULL,
            text=True,
            encoding="utf-8",
            errors="replace",
            check=False,
            timeout=timeout_seconds,
        )
    except Exception:
        logger.debug("git %s failed in %s", " ".join(args), cwd, exc_info=True)
        return None


def _first_line(proc: subprocess.CompletedProcess[str] | None) -> str | None:
    if proc is None or proc.returncode != 0 or not proc.stdout:
        return None
    line = proc.stdout.strip().splitlines()[0].strip() if proc.stdout.strip() else ""
    return line or None


def query_branch(cwd: Path, timeout_seconds: float = DEFAULT_GIT_TIMEOUT_SECONDS) -> str | None:
    """Return the short name of the checked-out branch, ``None`` when detached or not a repo."""
    return _first_line(_run_git(cwd, ["symbolic-ref", "--short", "HEAD"], timeout_seconds))


def query_toplevel(cwd: Path, timeout_seconds: float = DEFAULT_GIT_TIMEOUT_SECONDS) -> Path | None:
    """Return the work-tree root containing ``cwd``."""
    line = _first_line(_run_git(cwd, ["rev-parse", "--show-toplevel"], timeout_seconds))
    return Path(line) if line else None


def query_common_dir(cwd: Path, timeout_seconds: float = DEFAULT_GIT_TIMEOUT_SECONDS) -> Path | None:
    """Return the directory holding the shared git dir.

    For linked worktrees of a bare checkout this is the same for every
    worktree, which makes it a stable scope root across them. A trailing
    ``.git`` component is stripped.
    """
    line = _first_line(
        _run_git(cwd, ["rev-parse", "--path-format=absolute", "--git-common-dir"], timeout_seconds)
    )
    if not line:
        return None
    path = Path(line)
    if path.name == ".git":
        path = path.parent
    return path


def query_git_dir(cwd: Path, timeout_seconds: float = DEFAULT_GIT_TIMEOUT_SECONDS) -> Path | None:
    """Return the absolute per-worktree git dir for ``cwd``."""
    line = _first_line(_run_git(cwd, ["rev-parse", "--absolute-git-dir"], timeout_seconds))
    return Path(line) if line else None


def find_git_marker(start: Path, stop: Path | None = None) -> Path | None:
    """Search upward from ``start`` for a ``.git`` entry, stopping at ``stop``.

    ``stop`` defaults to the home directory; the stop directory itself is
    not inspected.
    """
    if stop is None:
        stop = Path.home()
    try:
        current = start.resolve()
        stop = stop.resolve()
    except OSError:
        return None

    while True:
        if current == stop:
            return None
        candidate = current / ".git"
        if candidate.exists():
            return candidate
        parent = current.parent
        if parent == current:
            return None
        current = parent


class GitBackend:
    """Blocking git queries bound to a timeout; swap it out in tests."""

    def __init__(self, timeout_seconds: float = DEFAULT_GIT_TIMEOUT_SECONDS) -> None:
        self.timeout_seconds = timeout_seconds

    def branch(self, cwd: Path) -> str | None:
        return query_branch(cwd, self.timeout_seconds)

    def toplevel(self, cwd: Path) -> Path | None:
        return query_toplevel(cwd, self.timeout_seconds)

    def common_dir(self, cwd: Path) -> Path | None:
        return query_common_dir(cwd, self.timeout_seconds)

    def git_dir(self, cwd: Path) -> Path | None:
        return query_git_dir(cwd, self.timeout_seconds)

    def is_repo(self, cwd: Path) -> bool:
        return find_git_marker(cwd) is not None


__all__ = [
    "DEFAULT_GIT_TIMEOUT_SECONDS",
    "GitBackend",
    "find_git_marker",
    "query_branch",
    "query_common_dir",
    "query_git_dir",
    "query_toplevel",
]
