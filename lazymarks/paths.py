"""Path and file helpers shared by both bookmark stores.

Covers cache-file naming, the ``./`` display prefix used in relative-path
mode, mapping between stored bookmark entries and absolute paths, and the
whole-file atomic write both stores persist through.
"""

from __future__ import annotations

import contextlib
import os
import re
from pathlib import Path

_SEPARATOR_RE = re.compile(r"[/\\:]")
_WHITESPACE_RE = re.compile(r"\s")


def normalize_path_to_filename(path: str | Path) -> str:
    """Collapse path separators into ``_`` so ``path`` can name one cache file."""
    return _SEPARATOR_RE.sub("_", str(path))


def contains_whitespace(text: str) -> bool:
    return _WHITESPACE_RE.search(text) is not None


def with_dot_prefix(entry: str) -> str:
    """Return ``entry`` with a leading ``./`` unless it has one or contains whitespace."""
    if entry.startswith("./") or contains_whitespace(entry):
        return entry
    return "./" + entry


def comparable_entry(entry: str, relative_display: bool) -> str:
    """Normalize a stored or queried entry before equality checks.

    The same transform must be applied to both sides of a comparison.
    """
    return with_dot_prefix(entry) if relative_display else entry


def display_path(
    absolute: Path,
    *,
    scope_root: Path,
    working_directory: Path,
    global_bookmarks: bool,
    relative_path: bool,
) -> str:
    """Return the entry form used to store ``absolute`` in a file list.

    Global mode stores absolute paths. Otherwise paths are stored relative to
    the scope root (with ``./`` in relative-path mode) and fall back to the
    working directory, then to the absolute path.
    """
    absolute = Path(os.path.abspath(absolute))
    if global_bookmarks:
        return str(absolute)

    for base in (scope_root, working_directory):
        try:
            relative = absolute.relative_to(base)
        except ValueError:
            continue
        text = relative.as_posix()
        if relative_path:
            return with_dot_prefix(text)
        return text
    return str(absolute)


def resolve_entry(entry: str, base: Path) -> Path:
    """Map a stored entry back to an absolute path under ``base``."""
    path = Path(entry).expanduser()
    if path.is_absolute():
        return path
    return Path(os.path.normpath(base / path))


def write_text_atomic(path: Path, content: str) -> None:
    """Replace ``path`` with ``content`` via a sibling temp file and rename.

    Parent directories are created on demand.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_name(path.name + ".tmp")
    try:
        tmp.write_text(content, encoding="utf-8")
        os.replace(tmp, path)
    except BaseException:
        with contextlib.suppress(OSError):
            tmp.unlink()
        raise


__all__ = [
    "comparable_entry",
    "contains_whitespace",
    "display_path",
    "normalize_path_to_filename",
    "resolve_entry",
    "with_dot_prefix",
    "write_text_atomic",
]
