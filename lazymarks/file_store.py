"""File-level bookmarks: a branch-scoped list plus a permanent list.

Both lists are plain newline-separated text files under ``save_path``. The
branch list is named after the branch key; the permanent list after the
scope key with a ``.permanent`` suffix, and only exists while branch
separation is active. A path lives in at most one of the two lists.
"""

from __future__ import annotations

import logging
from pathlib import Path

from .config import BookmarkConfig
from .events import BOOKMARKS_UPDATED, EventHub
from .identity import PERMANENT_SUFFIX, IdentityResolver
from .paths import comparable_entry, display_path, resolve_entry, write_text_atomic

logger = logging.getLogger(__name__)


def combine_unique(branch: list[str], permanent: list[str]) -> list[str]:
    """Concatenate branch-first, dropping repeated values in first-seen order."""
    combined: list[str] = []
    seen: set[str] = set()
    for entry in [*branch, *permanent]:
        if entry in seen:
            continue
        seen.add(entry)
        combined.append(entry)
    return combined


def next_index(current: int | None, count: int) -> int:
    """1-based successor with wraparound; an absent position starts at the first entry."""
    if current is not None and current < count:
        return current + 1
    return 1


def previous_index(current: int | None, count: int) -> int:
    """1-based predecessor with wraparound; an absent position starts at the last entry."""
    if current is None or current == 1:
        return count
    return current - 1


def read_entries(path: Path | None) -> list[str]:
    """Read one entry per line; a missing or unreadable file is an empty list."""
    if path is None:
        return []
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return []
    except OSError:
        logger.debug("could not read bookmark list %s", path, exc_info=True)
        return []
    return [line.rstrip("\r") for line in text.split("\n") if line.strip()]


def write_entries(path: Path, entries: list[str]) -> None:
    write_text_atomic(path, "".join(f"{entry}\n" for entry in entries))


class FileBookmarkStore:
    """Ordered file bookmarks for the current scope and branch."""

    def __init__(self, resolver: IdentityResolver, events: EventHub) -> None:
        self.resolver = resolver
        self.events = events
        self._branch: list[str] = []
        self._permanent: list[str] = []
        self.filenames: list[str] = []
        self.permanent_lookup: set[str] = set()

    @property
    def config(self) -> BookmarkConfig:
        return self.resolver.config

    # paths
    def cache_file_path(self) -> Path:
        return self.config.save_path / self.resolver.current_branch_key()

    def permanent_cache_file_path(self) -> Path | None:
        if not self.config.branch_scoped:
            return None
        return self.config.save_path / (self.resolver.current_scope_key() + PERMANENT_SUFFIX)

    def entry_for(self, path: Path) -> str:
        """Return the stored form of an absolute document path."""
        state = self.resolver.state
        return display_path(
            path,
            scope_root=state.scope_root,
            working_directory=state.working_directory,
            global_bookmarks=self.config.global_bookmarks,
            relative_path=self.config.relative_path,
        )

    def _entry(self, path: str | Path) -> str:
        return self.entry_for(path) if isinstance(path, Path) else path

    def _find(self, entries: list[str], path: str | Path) -> int | None:
        relative = self.config.uses_relative_display
        want = comparable_entry(self._entry(path), relative)
        for index, entry in enumerate(entries, start=1):
            if comparable_entry(entry, relative) == want:
                return index
        return None

    # persistence
    def load_cache_file(self) -> None:
        """Re-read both lists and rebuild the merged view and permanent lookup."""
        self._branch = read_entries(self.cache_file_path())
        self._permanent = read_entries(self.permanent_cache_file_path())
        self.filenames = combine_unique(self._branch, self._permanent)
        self.permanent_lookup = set(self._permanent)

    def _flush(self) -> None:
        try:
            write_entries(self.cache_file_path(), self._branch)
            permanent_path = self.permanent_cache_file_path()
            if permanent_path is not None:
                write_entries(permanent_path, self._permanent)
        except OSError as exc:
            self.events.warn(f"Failed to write bookmark list: {exc}")
        self.load_cache_file()

    def cache_file(self) -> None:
        """Write both lists as they are in memory."""
        self._flush()

    def _notify(self) -> None:
        self.events.emit(BOOKMARKS_UPDATED)

    # queries
    def branch_list(self) -> list[str]:
        return list(self._branch)

    def permanent_list(self) -> list[str]:
        return list(self._permanent)

    def is_saved(self, path: str | Path) -> int | None:
        """1-based position of ``path`` in the merged view, or ``None``."""
        return self._find(self.filenames, path)

    def is_saved_permanent(self, path: str | Path) -> int | None:
        return self._find(self._permanent, path)

    def is_saved_branch(self, path: str | Path) -> int | None:
        return self._find(self._branch, path)

    # mutations
    def save(self, path: str | Path) -> None:
        """Add ``path`` to the branch list.

        A path currently held in the permanent list moves to the branch list.
        """
        entry = self._entry(path)
        permanent_index = self.is_saved_permanent(entry) if self.config.branch_scoped else None
        if permanent_index is not None:
            del self._permanent[permanent_index - 1]
            self._branch.append(entry)
            self._flush()
        elif self.is_saved(entry) is None:
            self._branch.append(entry)
            self._flush()
        self._notify()

    def remove(self, path: str | Path) -> None:
        """Remove ``path``, preferring the permanent list when it is there."""
        permanent_index = self.is_saved_permanent(path)
        if permanent_index is not None:
            del self._permanent[permanent_index - 1]
        else:
            branch_index = self.is_saved_branch(path)
            if branch_index is not None:
                del self._branch[branch_index - 1]
        self._flush()
        self._notify()

    def toggle(self, path: str | Path) -> None:
        if self.is_saved(path) is not None:
            self.remove(path)
        else:
            self.save(path)

    def save_permanent(self, path: str | Path) -> None:
        """Add ``path`` to the permanent list, taking it out of the branch list.

        Without branch separation (or in global mode) this is a plain ``save``.
        """
        if not self.config.branch_scoped:
            self.save(path)
            return
        entry = self._entry(path)
        if self.is_saved_permanent(entry) is not None:
            return
        self._permanent.append(entry)
        branch_index = self.is_saved_branch(entry)
        if branch_index is not None:
            del self._branch[branch_index - 1]
        self._flush()
        self._notify()

    def remove_permanent(self, path: str | Path) -> None:
        if not self.config.branch_scoped:
            return
        index = self.is_saved_permanent(path)
        if index is None:
            return
        del self._permanent[index - 1]
        self._flush()
        self._notify()

    def toggle_permanent(self, path: str | Path) -> None:
        if self.is_saved_permanent(path) is not None:
            self.remove_permanent(path)
        else:
            self.save_permanent(path)

    def clear(self) -> None:
        """Empty the branch list; permanent bookmarks survive."""
        self._branch = []
        self._flush()
        self._notify()

    # navigation
    def resolve_target(self, entry: str) -> Path:
        state = self.resolver.state
        base = state.working_directory if self.config.opens_from_working_directory else state.scope_root
        return resolve_entry(entry, base)

    def _open(self, entry: str, mode: str) -> Path:
        target = self.resolve_target(entry)
        self.config.open_actions.for_mode(mode)(target)
        return target

    def go_to(self, index: int, mode: str = "edit") -> Path | None:
        """Open the ``index``-th (1-based) merged entry; out of range is a no-op."""
        if index < 1 or index > len(self.filenames):
            return None
        return self._open(self.filenames[index - 1], mode)

    def next(self, current: str | Path | None) -> Path | None:
        if not self.filenames:
            return None
        position = self.is_saved(current) if current is not None else None
        return self.go_to(next_index(position, len(self.filenames)))

    def previous(self, current: str | Path | None) -> Path | None:
        if not self.filenames:
            return None
        position = self.is_saved(current) if current is not None else None
        return self.go_to(previous_index(position, len(self.filenames)))

    def _global_list(self) -> list[str]:
        # Global mode keeps a single list; treat it as the "global" one.
        if self.config.global_bookmarks:
            return self._branch
        return self._permanent

    def _navigate_scoped(self, entries: list[str], current: str | Path | None, forward: bool) -> Path | None:
        if not entries:
            return None
        position = self._find(entries, current) if current is not None else None
        if forward:
            target = entries[next_index(position, len(entries)) - 1]
        else:
            target = entries[previous_index(position, len(entries)) - 1]

        merged_index = self.is_saved(target)
        if merged_index is not None:
            return self.go_to(merged_index)
        return self._open(target, "edit")

    def next_local(self, current: str | Path | None) -> Path | None:
        return self._navigate_scoped(self._branch, current, forward=True)

    def previous_local(self, current: str | Path | None) -> Path | None:
        return self._navigate_scoped(self._branch, current, forward=False)

    def next_global(self, current: str | Path | None) -> Path | None:
        return self._navigate_scoped(self._global_list(), current, forward=True)

    def previous_global(self, current: str | Path | None) -> Path | None:
        return self._navigate_scoped(self._global_list(), current, forward=False)


__all__ = [
    "FileBookmarkStore",
    "combine_unique",
    "next_index",
    "previous_index",
    "read_entries",
    "write_entries",
]
