"""Identity resolution: scope keys, branch names, and their TTL cache.

The resolver never blocks the loop. Branch lookups run on scheduler workers
and every fetch is sequenced so a completion that arrives after a newer
fetch has been applied, or after ``invalidate``, cannot overwrite fresher
state.
"""

from __future__ import annotations

import itertools
import logging
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from .config import SAVE_KEY_GIT_ROOT, SAVE_KEY_GIT_ROOT_BARE, BookmarkConfig
from .git import GitBackend
from .paths import normalize_path_to_filename
from .scheduler import Scheduler, Task

logger = logging.getLogger(__name__)

GLOBAL_KEY = "global"
PERMANENT_SUFFIX = ".permanent"

BranchCallback = Callable[[str | None], None]


@dataclass
class ScopeState:
    """Identity currently applied to the stores.

    Only the synchronization coordinator writes these fields.
    """

    working_directory: Path
    scope_root: Path
    branch: str | None = None


@dataclass
class BranchIdentityCache:
    """Cached backend answers with independent fetch timestamps."""

    ttl: float = 1.0
    branch: str | None = None
    branch_fetched_at: float | None = None
    is_repo: bool | None = None
    repo_fetched_at: float | None = None

    def branch_fresh(self, now: float) -> bool:
        return self.branch_fetched_at is not None and (now - self.branch_fetched_at) < self.ttl

    def repo_fresh(self, now: float) -> bool:
        return self.is_repo is not None and self.repo_fetched_at is not None and (now - self.repo_fetched_at) < self.ttl

    def clear(self) -> None:
        self.branch = None
        self.branch_fetched_at = None
        self.is_repo = None
        self.repo_fetched_at = None


def scope_key(config: BookmarkConfig, state: ScopeState) -> str:
    """Branch-independent key naming the permanent list and the default list."""
    if config.global_bookmarks:
        return GLOBAL_KEY
    return normalize_path_to_filename(state.scope_root)


def branch_key(config: BookmarkConfig, state: ScopeState) -> str:
    """Key for the branch-scoped list; equals ``scope_key`` without a branch."""
    if config.global_bookmarks:
        return GLOBAL_KEY
    if config.separate_by_branch and state.branch:
        return normalize_path_to_filename(f"{state.scope_root}-{state.branch}")
    return scope_key(config, state)


class IdentityResolver:
    """Cached, non-blocking access to scope root and branch identity."""

    def __init__(
        self,
        config: BookmarkConfig,
        state: ScopeState,
        scheduler: Scheduler,
        backend: GitBackend | None = None,
        cache: BranchIdentityCache | None = None,
    ) -> None:
        self.config = config
        self.state = state
        self.scheduler = scheduler
        self.backend = backend if backend is not None else GitBackend(config.git_timeout_seconds)
        self.cache = cache if cache is not None else BranchIdentityCache(ttl=config.branch_cache_ttl_seconds)
        self._sequence = itertools.count(1)
        self._applied_sequence = 0
        self._sequence_floor = 0

    def _now(self) -> float:
        return self.scheduler.clock()

    def current_scope_key(self) -> str:
        return scope_key(self.config, self.state)

    def current_branch_key(self) -> str:
        return branch_key(self.config, self.state)

    def current_branch(self) -> str | None:
        """Return the last cached branch without touching the backend."""
        return self.cache.branch

    def branch_cache_fresh(self) -> bool:
        return self.cache.branch_fresh(self._now())

    def is_repo(self) -> bool:
        now = self._now()
        if self.cache.repo_fresh(now):
            return bool(self.cache.is_repo)
        try:
            found = bool(self.backend.is_repo(self.state.working_directory))
        except Exception:
            logger.debug("repository check failed", exc_info=True)
            found = False
        self.cache.is_repo = found
        self.cache.repo_fetched_at = now
        return found

    def invalidate(self) -> None:
        """Drop every cached answer; in-flight fetches become stale."""
        self.cache.clear()
        self._sequence_floor = next(self._sequence)

    def _store_branch(self, branch: str | None) -> None:
        self.cache.branch = branch
        self.cache.branch_fetched_at = self._now()

    def record_branch(self, branch: str | None) -> None:
        """Cache a branch reported by an external signal.

        Fetches already in flight are treated as older and discarded.
        """
        self._applied_sequence = next(self._sequence)
        self._store_branch(branch)

    def current_branch_async(self, callback: BranchCallback | None = None) -> Task[str]:
        """Resolve the branch, calling ``callback`` with the effective value.

        A fresh cache answers synchronously. Otherwise a backend query is
        issued; its result is applied only if no newer fetch was applied
        first and the cache was not invalidated meanwhile. A discarded
        result still calls back with the current cache value, which is
        ``None`` after ``invalidate``; callers that started a newer lookup
        must ignore it.
        """
        if self.branch_cache_fresh():
            if callback is not None:
                callback(self.cache.branch)
            return Task.completed(self.scheduler, self.cache.branch)

        if not self.is_repo():
            self._store_branch(None)
            if callback is not None:
                callback(None)
            return Task.completed(self.scheduler, None)

        sequence = next(self._sequence)
        outcome: Task[str] = Task(self.scheduler)
        backend_task = self.scheduler.submit(self.backend.branch, self.state.working_directory)

        def _on_done(task: Task) -> None:
            branch: str | None = None
            if task.exception() is None:
                value = task.result()
                branch = value.strip() if isinstance(value, str) and value.strip() else None

            if sequence > self._applied_sequence and sequence > self._sequence_floor:
                self._applied_sequence = sequence
                self._store_branch(branch)
            else:
                logger.debug("discarding stale branch fetch #%d", sequence)

            effective = self.cache.branch
            outcome.set_result(effective)
            if callback is not None:
                callback(effective)

        backend_task.add_done_callback(_on_done)
        return outcome

    def resolve_scope_root_async(self, callback: Callable[[Path], None] | None = None) -> Task[Path]:
        """Resolve the configured scope root for the current working directory.

        ``cwd`` mode answers synchronously. Git-based modes query the backend
        and fall back to the working directory when the lookup fails.
        """
        working_directory = self.state.working_directory
        save_key = self.config.save_key
        if save_key == SAVE_KEY_GIT_ROOT:
            lookup = self.backend.toplevel
        elif save_key == SAVE_KEY_GIT_ROOT_BARE:
            lookup = self.backend.common_dir
        else:
            if callback is not None:
                callback(working_directory)
            return Task.completed(self.scheduler, working_directory)

        outcome: Task[Path] = Task(self.scheduler)

        def _on_done(task: Task) -> None:
            root = task.result() if task.exception() is None else None
            resolved = Path(root) if root else working_directory
            outcome.set_result(resolved)
            if callback is not None:
                callback(resolved)

        self.scheduler.submit(lookup, working_directory).add_done_callback(_on_done)
        return outcome


__all__ = [
    "BranchIdentityCache",
    "GLOBAL_KEY",
    "IdentityResolver",
    "PERMANENT_SUFFIX",
    "ScopeState",
    "branch_key",
    "scope_key",
]
