"""Hand-editing of a bookmark list file in the user's editor.

The list is read before the editor starts and again after it exits so the
caller can report added and removed entries. Problems come back as a
message on the result rather than as an exception.
"""

from __future__ import annotations

import logging
import os
import shlex
import subprocess
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from .file_store import read_entries

logger = logging.getLogger(__name__)

EDITOR_VARIABLES = ("VISUAL", "EDITOR")


def editor_command(environ: Mapping[str, str] | None = None) -> list[str] | None:
    """Return the editor argv from ``$VISUAL``, falling back to ``$EDITOR``."""
    env = os.environ if environ is None else environ
    for name in EDITOR_VARIABLES:
        value = env.get(name, "").strip()
        if not value:
            continue
        try:
            command = shlex.split(value)
        except ValueError:
            logger.debug("ignoring unparsable $%s=%r", name, value)
            continue
        if command:
            return command
    return None


@dataclass(frozen=True)
class ListEdit:
    """Entries of a bookmark list before and after one editor session."""

    before: list[str]
    after: list[str]
    error: str | None = None

    @property
    def added(self) -> list[str]:
        return [entry for entry in self.after if entry not in self.before]

    @property
    def removed(self) -> list[str]:
        return [entry for entry in self.before if entry not in self.after]


def edit_list_file(target: Path, environ: Mapping[str, str] | None = None) -> ListEdit:
    """Open ``target`` in the editor and block until it exits.

    The file is created first so the editor never starts on a missing path.
    A non-zero exit status is reported, but whatever the editor saved is
    still read back.
    """
    before = read_entries(target)
    command = editor_command(environ)
    if command is None:
        return ListEdit(before, before, "Cannot edit: set $VISUAL or $EDITOR.")

    target.parent.mkdir(parents=True, exist_ok=True)
    target.touch(exist_ok=True)
    try:
        completed = subprocess.run([*command, str(target)], check=False)
    except OSError as exc:
        return ListEdit(before, before, f"Failed to launch editor: {exc}")

    after = read_entries(target)
    if completed.returncode != 0:
        return ListEdit(before, after, f"Editor exited with status {completed.returncode}.")
    return ListEdit(before, after)


__all__ = ["EDITOR_VARIABLES", "ListEdit", "edit_list_file", "editor_command"]
