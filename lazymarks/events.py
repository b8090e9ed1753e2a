"""Change notifications consumed by UI collaborators.

Events carry no payload beyond an optional warning message: listeners are
told that something changed and re-read store state themselves.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Callable

logger = logging.getLogger(__name__)

BOOKMARKS_UPDATED = "bookmarks-updated"
MARKS_UPDATED = "marks-updated"
BRANCH_CHANGED = "branch-changed"
DIRECTORY_CHANGED = "directory-changed"
REFRESH_COMPLETE = "refresh-complete"
WARNING = "warning"

Listener = Callable[..., None]


class EventHub:
    """Named-event fan-out with per-event counters for diagnostics."""

    def __init__(self) -> None:
        self._listeners: dict[str, list[Listener]] = defaultdict(list)
        self.counts: dict[str, int] = defaultdict(int)

    def connect(self, name: str, listener: Listener) -> Callable[[], None]:
        """Register ``listener`` and return a disconnect function."""
        self._listeners[name].append(listener)

        def _disconnect() -> None:
            try:
                self._listeners[name].remove(listener)
            except ValueError:
                pass

        return _disconnect

    def emit(self, name: str, *args: object) -> None:
        self.counts[name] += 1
        for listener in list(self._listeners.get(name, ())):
            listener(*args)

    def warn(self, message: str) -> None:
        """Surface a non-fatal problem to the user-facing collaborator."""
        logger.warning("%s", message)
        self.emit(WARNING, message)


__all__ = [
    "BOOKMARKS_UPDATED",
    "BRANCH_CHANGED",
    "DIRECTORY_CHANGED",
    "EventHub",
    "MARKS_UPDATED",
    "REFRESH_COMPLETE",
    "WARNING",
]
