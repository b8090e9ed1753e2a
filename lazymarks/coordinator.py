"""Keeps both bookmark stores in step with the current scope and branch.

Identity changes arrive as external signals (branch switch, directory
change, manual refresh) or are detected by ``poll``. Each change starts a
generation; a resolved identity is applied only if no newer generation
has started since. When the identity really changed, pending line writes
are flushed under the old identity, the file list is reloaded, and every
open document is re-read on the next idle tick.
"""

from __future__ import annotations

import itertools
import logging
from pathlib import Path

from .documents import Workspace
from .events import BRANCH_CHANGED, DIRECTORY_CHANGED, REFRESH_COMPLETE, EventHub
from .file_store import FileBookmarkStore
from .identity import IdentityResolver, ScopeState
from .line_store import LineBookmarkStore
from .scheduler import Scheduler
from .watch import build_head_signature

logger = logging.getLogger(__name__)

STABLE = "stable"
RESOLVING = "resolving"


class SyncCoordinator:
    """Cross-store invalidation driven by identity changes."""

    def __init__(
        self,
        *,
        resolver: IdentityResolver,
        file_store: FileBookmarkStore,
        line_store: LineBookmarkStore,
        workspace: Workspace,
        scheduler: Scheduler,
        events: EventHub,
    ) -> None:
        self.resolver = resolver
        self.file_store = file_store
        self.line_store = line_store
        self.workspace = workspace
        self.scheduler = scheduler
        self.events = events
        self.status = STABLE
        self._generations = itertools.count(1)
        self._latest_generation = 0
        self._applied_generation = 0
        self._git_dir: Path | None = None
        self._git_dir_known = False
        self._git_dir_pending = False
        self._head_signature: str | None = None

    @property
    def state(self) -> ScopeState:
        return self.resolver.state

    @property
    def last_known_branch(self) -> str | None:
        return self.state.branch

    @property
    def last_known_scope_key(self) -> str:
        return self.resolver.current_scope_key()

    # generations
    def _begin(self) -> int:
        generation = next(self._generations)
        self._latest_generation = generation
        self.status = RESOLVING
        return generation

    def _accept(self, generation: int) -> bool:
        """Only the most recently started generation may apply its result."""
        if generation != self._latest_generation or generation <= self._applied_generation:
            logger.debug("discarding stale identity generation #%d", generation)
            return False
        self._applied_generation = generation
        self.status = STABLE
        return True

    def _identity_differs(self, scope_root: Path, branch: str | None) -> bool:
        if scope_root != self.state.scope_root:
            return True
        return self.resolver.config.separate_by_branch and branch != self.state.branch

    def _flush_pending_writes(self) -> None:
        for document_id in self.line_store.pending_documents():
            self.line_store.sync_immediate(document_id)

    def _apply(self, scope_root: Path, branch: str | None) -> bool:
        """Switch the stores to a new identity; return whether anything changed."""
        if not self._identity_differs(scope_root, branch):
            self.state.branch = branch
            return False
        self._flush_pending_writes()
        self.state.scope_root = scope_root
        self.state.branch = branch
        self.file_store.load_cache_file()
        return True

    def _sweep_documents(self) -> None:
        for document in self.workspace.documents():
            if not document.is_bookmarkable:
                continue
            self.line_store.invalidate_cache(document.document_id)
            self.line_store.clear_anchors(document.document_id)
            self.line_store.load(document.document_id)

    def _finish(
        self,
        generation: int,
        scope_root: Path,
        branch: str | None,
        event: str,
        *,
        emit_unchanged: bool = False,
    ) -> None:
        if not self._accept(generation):
            return
        changed = self._apply(scope_root, branch)
        if changed:
            self.scheduler.call_soon(self._sweep_documents)
        if changed or emit_unchanged:
            self.scheduler.call_soon(lambda: self.events.emit(event))

    # external signals
    def on_branch_changed(self, new_branch: str | None) -> None:
        """Apply a branch reported by an integrator (git hook, file watcher)."""
        if not self.resolver.config.separate_by_branch:
            return
        if new_branch == self.state.branch:
            return
        generation = self._begin()
        self.resolver.invalidate()
        self.resolver.record_branch(new_branch)
        self._finish(generation, self.state.scope_root, new_branch, BRANCH_CHANGED)

    def on_head_changed(self) -> None:
        """Re-fetch the branch after HEAD moved, then apply it."""
        if not self.resolver.config.separate_by_branch:
            return
        generation = self._begin()
        self.resolver.invalidate()
        scope_root = self.state.scope_root
        self.resolver.current_branch_async(
            lambda branch: self._finish(generation, scope_root, branch, BRANCH_CHANGED)
        )

    def on_directory_changed(self, new_root: Path | None = None) -> None:
        """Re-resolve scope root and branch for a new working directory."""
        self.state.working_directory = Path(new_root) if new_root is not None else Path.cwd()
        self._reset_head_watch()
        generation = self._begin()
        self.resolver.invalidate()

        def _with_root(scope_root: Path) -> None:
            self.resolver.current_branch_async(
                lambda branch: self._finish(generation, scope_root, branch, DIRECTORY_CHANGED, emit_unchanged=True)
            )

        self.resolver.resolve_scope_root_async(_with_root)

    def refresh_all(self, *, load_current_document: bool = True) -> None:
        """Re-resolve everything and reload the file list regardless of change."""
        generation = self._begin()
        self.resolver.invalidate()

        def _done(scope_root: Path, branch: str | None) -> None:
            if not self._accept(generation):
                return
            if self._apply(scope_root, branch):
                self.scheduler.call_soon(self._sweep_documents)
            else:
                self.file_store.load_cache_file()
            if load_current_document:
                current = self.workspace.current()
                if current is not None and current.is_bookmarkable:
                    self.line_store.load(current.document_id)
            self.events.emit(REFRESH_COMPLETE)

        def _with_root(scope_root: Path) -> None:
            self.resolver.current_branch_async(lambda branch: _done(scope_root, branch))

        self.resolver.resolve_scope_root_async(_with_root)

    def on_session_loaded(self) -> None:
        self.refresh_all(load_current_document=False)

    # documents
    def on_document_opened(self, document_id: int) -> None:
        """Lazily load line bookmarks for a newly visible document."""
        document = self.workspace.get(document_id)
        if document is None or not document.is_bookmarkable:
            return

        def _load() -> None:
            current = self.workspace.get(document_id)
            if current is not None and current.is_bookmarkable:
                self.line_store.load(document_id)

        self.scheduler.call_soon(_load)

    def on_document_closing(self, document_id: int) -> None:
        self.line_store.sync_immediate(document_id)
        self.line_store.invalidate_cache(document_id)

    # polling
    def _reset_head_watch(self) -> None:
        self._git_dir = None
        self._git_dir_known = False
        self._head_signature = None

    def _lookup_git_dir(self) -> None:
        self._git_dir_pending = True
        working_directory = self.state.working_directory

        def _done(task) -> None:
            self._git_dir_pending = False
            if working_directory != self.state.working_directory:
                return
            git_dir = task.result() if task.exception() is None else None
            self._git_dir = Path(git_dir) if git_dir else None
            self._git_dir_known = True
            self._head_signature = build_head_signature(self._git_dir)

        self.scheduler.submit(self.resolver.backend.git_dir, working_directory).add_done_callback(_done)

    def poll(self) -> bool:
        """Periodic check for branch switches made outside the host.

        Returns ``True`` when a re-fetch was started.
        """
        if not self.resolver.config.separate_by_branch or self.status == RESOLVING:
            return False
        if not self._git_dir_known:
            if not self._git_dir_pending:
                self._lookup_git_dir()
            return False

        signature = build_head_signature(self._git_dir)
        head_moved = signature != self._head_signature
        self._head_signature = signature
        if head_moved or not self.resolver.branch_cache_fresh():
            self.on_head_changed()
            return True
        return False


__all__ = ["RESOLVING", "STABLE", "SyncCoordinator"]
