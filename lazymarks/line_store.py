"""Line-level bookmarks per open document.

Each document keeps an ordered list of ``{line, col}`` marks. Every mark
holds an anchor id in the document's anchor table; ``update`` adopts the
anchor rows after edits so marks follow the text they were set on.
Writes are debounced per document and skipped when nothing changed since
the last successful write.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path

from .documents import Workspace
from .events import MARKS_UPDATED, EventHub
from .identity import IdentityResolver
from .paths import normalize_path_to_filename, write_text_atomic
from .scheduler import Scheduler, TimerHandle

logger = logging.getLogger(__name__)

Snapshot = tuple[tuple[int, int], ...]


@dataclass
class LineBookmark:
    """One mark. ``anchor`` is an id into the owning document's anchor table."""

    line: int
    col: int = 0
    anchor: int | None = field(default=None, compare=False, repr=False)

    def to_record(self) -> dict[str, int]:
        return {"line": self.line, "col": self.col}


def snapshot_of(bookmarks: list[LineBookmark]) -> Snapshot:
    return tuple((bookmark.line, bookmark.col) for bookmark in bookmarks)


def encode_bookmarks(bookmarks: list[LineBookmark]) -> str:
    """Serialize to compact JSON; an empty list becomes an empty string."""
    if not bookmarks:
        return ""
    return json.dumps([bookmark.to_record() for bookmark in bookmarks], separators=(",", ":"))


def decode_bookmarks(content: str) -> list[LineBookmark]:
    """Parse stored JSON into bookmarks.

    Blank content is an empty list. Raises ``ValueError`` for content that
    is not a JSON list. Records without a positive integer ``line`` are
    dropped; a missing or invalid ``col`` becomes ``0``.
    """
    if not content.strip():
        return []
    data = json.loads(content)
    if not isinstance(data, list):
        raise ValueError("expected a JSON list of bookmark records")

    bookmarks: list[LineBookmark] = []
    for record in data:
        if not isinstance(record, dict):
            continue
        line = record.get("line")
        if isinstance(line, bool) or not isinstance(line, int) or line < 1:
            continue
        col = record.get("col", 0)
        if isinstance(col, bool) or not isinstance(col, int) or col < 0:
            col = 0
        bookmarks.append(LineBookmark(line=line, col=col))
    return bookmarks


class LineBookmarkStore:
    """In-memory line bookmarks keyed by document id, backed by JSON files."""

    def __init__(
        self,
        resolver: IdentityResolver,
        workspace: Workspace,
        scheduler: Scheduler,
        events: EventHub,
    ) -> None:
        self.resolver = resolver
        self.workspace = workspace
        self.scheduler = scheduler
        self.events = events
        self.local_bookmarks: dict[int, list[LineBookmark]] = {}
        self.last_sync_bookmarks: dict[int, Snapshot] = {}
        self._write_timers: dict[int, TimerHandle] = {}

    def _notify(self) -> None:
        self.events.emit(MARKS_UPDATED)

    def cache_file_path(self, document_path: Path) -> Path:
        """Backing file for ``document_path`` under the branch directory, if any."""
        config = self.resolver.config
        save_path = config.save_path
        if config.separate_by_branch:
            branch = self.resolver.state.branch or self.resolver.current_branch()
            if branch:
                save_path = save_path / normalize_path_to_filename(branch)
        return save_path / normalize_path_to_filename(document_path)

    def bookmarks(self, document_id: int) -> list[LineBookmark] | None:
        return self.local_bookmarks.get(document_id)

    def is_saved(self, document_id: int, line: int, col: int) -> bool:
        wanted = LineBookmark(line=line, col=col)
        return any(bookmark == wanted for bookmark in self.local_bookmarks.get(document_id) or ())

    def pending_documents(self) -> list[int]:
        return sorted(self._write_timers)

    def _unchanged_since_sync(self, document_id: int) -> bool:
        bookmarks = self.local_bookmarks.get(document_id)
        synced = self.last_sync_bookmarks.get(document_id)
        return bookmarks is not None and synced is not None and snapshot_of(bookmarks) == synced

    # anchors
    def clear_anchors(self, document_id: int) -> None:
        """Drop every live anchor of the document (its visual markers)."""
        document = self.workspace.get(document_id)
        if document is not None:
            document.anchors.clear()
        for bookmark in self.local_bookmarks.get(document_id) or ():
            bookmark.anchor = None
        self._notify()

    def place_anchors(self, document_id: int) -> None:
        """Create anchors for every bookmark that lies inside the document."""
        document = self.workspace.get(document_id)
        if document is None:
            return
        for bookmark in self.local_bookmarks.get(document_id) or ():
            if bookmark.anchor is not None:
                document.anchors.delete(bookmark.anchor)
                bookmark.anchor = None
            if 1 <= bookmark.line <= document.line_count:
                bookmark.anchor = document.anchors.create(bookmark.line - 1)

    # loading
    def invalidate_cache(self, document_id: int) -> None:
        """Forget the in-memory list and cancel its pending write."""
        self.local_bookmarks.pop(document_id, None)
        self.last_sync_bookmarks.pop(document_id, None)
        timer = self._write_timers.pop(document_id, None)
        if timer is not None:
            timer.cancel()

    def load(self, document_id: int) -> None:
        """Load bookmarks from disk unless the in-memory list is current.

        A missing file is an empty list. Undecodable content is reported as
        a warning and treated as empty; the file itself is left as is.
        """
        if document_id in self.local_bookmarks and (
            self._unchanged_since_sync(document_id) or document_id in self._write_timers
        ):
            return

        document = self.workspace.get(document_id)
        if document is None or document.absolute_path is None:
            return
        path = self.cache_file_path(document.absolute_path)

        try:
            content = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            content = ""
        except (OSError, UnicodeDecodeError) as exc:
            self._load_failed(document_id, f"Failed to read line bookmarks from {path}: {exc}")
            return

        try:
            bookmarks = decode_bookmarks(content)
        except ValueError as exc:
            self._load_failed(document_id, f"Failed to decode bookmarks for {document.absolute_path}: {exc}")
            return

        document.anchors.clear()
        self.local_bookmarks[document_id] = bookmarks
        self.last_sync_bookmarks[document_id] = snapshot_of(bookmarks)
        self.place_anchors(document_id)
        self._notify()

    def _load_failed(self, document_id: int, message: str) -> None:
        # An empty snapshot keeps reconciliation and close from rewriting the
        # unreadable file; only an explicit mutation replaces it.
        self.events.warn(message)
        self.local_bookmarks[document_id] = []
        self.last_sync_bookmarks[document_id] = ()

    # mutations
    def save(self, document_id: int, line: int, col: int) -> None:
        """Append a mark unless one with the same line and column exists."""
        if document_id not in self.local_bookmarks:
            self.load(document_id)
        bookmarks = self.local_bookmarks.setdefault(document_id, [])
        if self.is_saved(document_id, line, col):
            return

        bookmark = LineBookmark(line=line, col=col)
        document = self.workspace.get(document_id)
        if document is not None and 1 <= line <= document.line_count:
            bookmark.anchor = document.anchors.create(line - 1)
        bookmarks.append(bookmark)
        self._notify()
        self.sync(document_id)

    def remove(self, index: int, document_id: int) -> None:
        """Remove the ``index``-th (1-based) mark; out of range is a no-op."""
        bookmarks = self.local_bookmarks.get(document_id)
        if bookmarks is None or index < 1 or index > len(bookmarks):
            return
        removed = bookmarks.pop(index - 1)
        document = self.workspace.get(document_id)
        if document is not None and removed.anchor is not None:
            document.anchors.delete(removed.anchor)
        self._notify()
        self.sync(document_id)

    def clear(self, document_id: int) -> None:
        self.local_bookmarks[document_id] = []
        document = self.workspace.get(document_id)
        if document is not None:
            document.anchors.clear()
        self._notify()
        self.sync(document_id)

    def update(self, document_id: int) -> None:
        """Reconcile stored lines with anchor positions after edits.

        Marks adopt their anchor's line when it lies inside the document.
        Marks past the last line are dropped, then marks sharing a line are
        collapsed to the first one in list order. Hosts that edit a document
        directly call this afterwards; ``BookmarkSession.replace_lines`` does
        both steps.
        """
        document = self.workspace.get(document_id)
        bookmarks = self.local_bookmarks.get(document_id)
        if document is None or bookmarks is None:
            return
        line_count = document.line_count

        for bookmark in bookmarks:
            if bookmark.anchor is None:
                continue
            row = document.anchors.row(bookmark.anchor)
            if row is None:
                continue
            reported = row + 1
            if reported != bookmark.line and 1 <= reported <= line_count:
                bookmark.line = reported

        kept: list[LineBookmark] = []
        seen_lines: set[int] = set()
        for bookmark in bookmarks:
            if bookmark.line > line_count or bookmark.line in seen_lines:
                if bookmark.anchor is not None:
                    document.anchors.delete(bookmark.anchor)
                continue
            seen_lines.add(bookmark.line)
            kept.append(bookmark)

        self.local_bookmarks[document_id] = kept
        self._notify()
        self.sync(document_id)

    # persistence
    def sync(self, document_id: int) -> bool:
        """Schedule a debounced write, replacing any pending one.

        Returns ``False`` when nothing needs writing.
        """
        if self._unchanged_since_sync(document_id):
            return False
        document = self.workspace.get(document_id)
        if document is None or document.absolute_path is None:
            return False
        source_path = document.absolute_path

        previous = self._write_timers.pop(document_id, None)
        if previous is not None:
            previous.cancel()

        def _fire() -> None:
            self._write_timers.pop(document_id, None)
            current = self.workspace.get(document_id)
            if (current is None or not current.valid) and not source_path.exists():
                logger.debug("skipping write for removed document %s", source_path)
                return
            self._write(document_id, source_path)

        self._write_timers[document_id] = self.scheduler.call_later(
            self.resolver.config.write_delay_seconds,
            _fire,
        )
        return True

    def sync_immediate(self, document_id: int) -> bool:
        """Cancel any pending write and persist now."""
        timer = self._write_timers.pop(document_id, None)
        if timer is not None:
            timer.cancel()
        if self._unchanged_since_sync(document_id):
            return True
        document = self.workspace.get(document_id)
        if document is None or document.absolute_path is None:
            return False
        if not document.valid and not document.absolute_path.exists():
            return False
        return self._write(document_id, document.absolute_path)

    def _write(self, document_id: int, source_path: Path) -> bool:
        if self._unchanged_since_sync(document_id):
            return True
        bookmarks = self.local_bookmarks.get(document_id)
        if bookmarks is None:
            return False
        if self.resolver.config.sort_automatically:
            bookmarks.sort(key=lambda bookmark: bookmark.line)

        path = self.cache_file_path(source_path)
        try:
            write_text_atomic(path, encode_bookmarks(bookmarks))
        except OSError as exc:
            self.events.warn(f"Failed to write line bookmarks to {path}: {exc}")
            return False

        self.last_sync_bookmarks[document_id] = snapshot_of(bookmarks)
        self._notify()
        return True


__all__ = [
    "LineBookmark",
    "LineBookmarkStore",
    "decode_bookmarks",
    "encode_bookmarks",
    "snapshot_of",
]
