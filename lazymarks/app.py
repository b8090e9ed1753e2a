"""Application context wiring the bookmark engine for one host session.

Owns the scheduler, identity cache, event hub, workspace, both stores and
the coordinator, so nothing in the engine is a module global.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from pathlib import Path

from .config import BookmarkConfig, load_config
from .coordinator import SyncCoordinator
from .documents import TextDocument, Workspace
from .events import EventHub
from .file_store import FileBookmarkStore
from .git import GitBackend
from .identity import BranchIdentityCache, IdentityResolver, ScopeState
from .line_store import LineBookmarkStore
from .scheduler import Scheduler

logger = logging.getLogger(__name__)

DEFAULT_SETTLE_SECONDS = 5.0


class BookmarkSession:
    """Everything a host needs to drive file and line bookmarks."""

    def __init__(
        self,
        config: BookmarkConfig | None = None,
        *,
        working_directory: Path | None = None,
        backend: GitBackend | None = None,
        clock: Callable[[], float] = time.monotonic,
        workspace: Workspace | None = None,
    ) -> None:
        self.config = config if config is not None else load_config()
        cwd = Path(working_directory).resolve() if working_directory is not None else Path.cwd()
        self.scheduler = Scheduler(clock=clock)
        self.events = EventHub()
        self.workspace = workspace if workspace is not None else Workspace()
        self.state = ScopeState(working_directory=cwd, scope_root=cwd)
        self.resolver = IdentityResolver(
            self.config,
            self.state,
            self.scheduler,
            backend=backend,
            cache=BranchIdentityCache(ttl=self.config.branch_cache_ttl_seconds),
        )
        self.file_store = FileBookmarkStore(self.resolver, self.events)
        self.line_store = LineBookmarkStore(self.resolver, self.workspace, self.scheduler, self.events)
        self.coordinator = SyncCoordinator(
            resolver=self.resolver,
            file_store=self.file_store,
            line_store=self.line_store,
            workspace=self.workspace,
            scheduler=self.scheduler,
            events=self.events,
        )

    # loop
    def start(self, timeout_seconds: float = DEFAULT_SETTLE_SECONDS) -> None:
        """Load the file list, then resolve scope root and branch."""
        self.file_store.load_cache_file()
        self.coordinator.refresh_all()
        self.settle(timeout_seconds)
        logger.debug(
            "session ready: scope=%s branch=%s",
            self.resolver.current_scope_key(),
            self.state.branch,
        )

    def tick(self) -> int:
        return self.scheduler.run_pending()

    def settle(self, timeout_seconds: float = DEFAULT_SETTLE_SECONDS) -> None:
        self.scheduler.run_until_idle(timeout_seconds)

    def close(self) -> None:
        """Persist pending line writes and stop the worker pool."""
        for document_id in self.line_store.pending_documents():
            self.line_store.sync_immediate(document_id)
        self.scheduler.shutdown()

    # documents
    def open_document(self, path: Path) -> TextDocument:
        existing = self.workspace.find_by_path(path)
        if existing is not None:
            self.workspace.current_id = existing.document_id
            return existing
        document = self.workspace.open_file(path)
        self.coordinator.on_document_opened(document.document_id)
        return document

    def close_document(self, document_id: int) -> None:
        self.coordinator.on_document_closing(document_id)
        self.workspace.close(document_id)

    def _current_path(self) -> Path | None:
        document = self.workspace.current()
        return document.absolute_path if document is not None else None

    # file bookmarks for the current document
    def current_entry(self) -> str | None:
        path = self._current_path()
        return self.file_store.entry_for(path) if path is not None else None

    def toggle_current(self) -> None:
        entry = self.current_entry()
        if entry is not None:
            self.file_store.toggle(entry)

    def next_file(self) -> Path | None:
        return self.file_store.next(self.current_entry())

    def previous_file(self) -> Path | None:
        return self.file_store.previous(self.current_entry())

    # line bookmarks for the current document
    def toggle_line(self, line: int, col: int = 0) -> None:
        """Add a mark at ``line``/``col``, or remove the existing one on that line."""
        document = self.workspace.current()
        if document is None or not document.is_bookmarkable:
            return
        document_id = document.document_id
        if self.line_store.bookmarks(document_id) is None:
            self.line_store.load(document_id)
        for index, bookmark in enumerate(self.line_store.bookmarks(document_id) or (), start=1):
            if bookmark.line == line:
                self.line_store.remove(index, document_id)
                return
        self.line_store.save(document_id, line, col)

    def replace_lines(self, document_id: int, first: int, last: int, replacement: list[str]) -> None:
        """Edit a document and move its line marks along with the text."""
        document = self.workspace.get(document_id)
        if document is None:
            return
        document.replace_lines(first, last, replacement)
        if document.is_bookmarkable:
            self.line_store.update(document_id)


__all__ = ["BookmarkSession"]
