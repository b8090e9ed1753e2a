"""Open-document registry with live line anchors.

Anchors play the role of editor extmarks: each one tracks a row and moves
when lines are inserted or removed before it. Tracking is line granular and
recomputed eagerly on every ``replace_lines`` call.
"""

from __future__ import annotations

import itertools
import os
import re
from dataclasses import dataclass, field
from pathlib import Path

_URL_SCHEME_RE = re.compile(r"^\w+://")


class AnchorTable:
    """Row positions (0-based) for anchors owned by one document."""

    def __init__(self) -> None:
        self._rows: dict[int, int] = {}
        self._ids = itertools.count(1)

    def __len__(self) -> int:
        return len(self._rows)

    def create(self, row: int) -> int:
        anchor_id = next(self._ids)
        self._rows[anchor_id] = max(0, row)
        return anchor_id

    def row(self, anchor_id: int) -> int | None:
        return self._rows.get(anchor_id)

    def items(self) -> list[tuple[int, int]]:
        return sorted(self._rows.items())

    def delete(self, anchor_id: int) -> None:
        self._rows.pop(anchor_id, None)

    def clear(self) -> None:
        self._rows.clear()

    def shift(self, first: int, last: int, new_count: int) -> None:
        """Re-position anchors after rows ``[first, last)`` became ``new_count`` rows.

        Rows after the edited range move by the size delta. Rows inside a
        replaced range keep their offset while it still fits, otherwise they
        collapse onto the start of the range.
        """
        delta = new_count - (last - first)
        for anchor_id, row in self._rows.items():
            if row < first:
                continue
            if row >= last:
                self._rows[anchor_id] = row + delta
            elif row - first < new_count:
                continue
            else:
                self._rows[anchor_id] = first


@dataclass(eq=False)
class TextDocument:
    """One open document: its name, text lines, and anchor table."""

    document_id: int
    name: str
    lines: list[str] = field(default_factory=lambda: [""])
    listed: bool = True
    loaded: bool = True
    valid: bool = True
    anchors: AnchorTable = field(default_factory=AnchorTable)

    @property
    def line_count(self) -> int:
        return len(self.lines)

    @property
    def absolute_path(self) -> Path | None:
        if not self.name or _URL_SCHEME_RE.match(self.name):
            return None
        return Path(os.path.abspath(os.path.expanduser(self.name)))

    @property
    def is_bookmarkable(self) -> bool:
        """Whether line bookmarks can be loaded for this document."""
        return self.valid and self.loaded and self.listed and self.absolute_path is not None

    def replace_lines(self, first: int, last: int, replacement: list[str]) -> None:
        """Replace 0-based rows ``[first, last)`` with ``replacement`` and shift anchors."""
        first = max(0, min(first, len(self.lines)))
        last = max(first, min(last, len(self.lines)))
        self.lines[first:last] = list(replacement)
        if not self.lines:
            self.lines = [""]
        self.anchors.shift(first, last, len(replacement))

    def insert_lines(self, before_row: int, new_lines: list[str]) -> None:
        self.replace_lines(before_row, before_row, new_lines)

    def delete_lines(self, first: int, last: int) -> None:
        self.replace_lines(first, last, [])


class Workspace:
    """Registry of open documents plus the notion of a current document."""

    def __init__(self) -> None:
        self._documents: dict[int, TextDocument] = {}
        self._ids = itertools.count(1)
        self.current_id: int | None = None

    def open(self, name: str, lines: list[str] | None = None, *, listed: bool = True) -> TextDocument:
        document = TextDocument(
            document_id=next(self._ids),
            name=name,
            lines=list(lines) if lines else [""],
            listed=listed,
        )
        self._documents[document.document_id] = document
        self.current_id = document.document_id
        return document

    def open_file(self, path: Path, *, listed: bool = True) -> TextDocument:
        """Open ``path`` from disk; a missing file opens as an empty document."""
        try:
            text = path.read_text(encoding="utf-8", errors="replace")
        except OSError:
            text = ""
        return self.open(str(path), text.splitlines() or [""], listed=listed)

    def close(self, document_id: int) -> None:
        document = self._documents.pop(document_id, None)
        if document is not None:
            document.valid = False
            document.anchors.clear()
        if self.current_id == document_id:
            self.current_id = None

    def get(self, document_id: int) -> TextDocument | None:
        return self._documents.get(document_id)

    def current(self) -> TextDocument | None:
        return self._documents.get(self.current_id) if self.current_id is not None else None

    def documents(self) -> list[TextDocument]:
        return list(self._documents.values())

    def find_by_path(self, path: Path) -> TextDocument | None:
        target = Path(os.path.abspath(path))
        for document in self._documents.values():
            if document.absolute_path == target:
                return document
        return None


__all__ = ["AnchorTable", "TextDocument", "Workspace"]
