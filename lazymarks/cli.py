"""Command-line front door for lazymarks.

Parses CLI options, builds a bookmark session for the chosen directory,
and runs one bookmark command against it.
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path

from .app import BookmarkSession
from .config import load_config
from .editor import edit_list_file


def _positive_int(value: str) -> int:
    """argparse type for positive integer values."""
    try:
        parsed = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid integer value: {value!r}") from exc
    if parsed <= 0:
        raise argparse.ArgumentTypeError("value must be >= 1")
    return parsed


def _non_negative_int(value: str) -> int:
    """argparse type for zero or positive integer values."""
    try:
        parsed = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid integer value: {value!r}") from exc
    if parsed < 0:
        raise argparse.ArgumentTypeError("value must be >= 0")
    return parsed


def _absolute(value: str) -> Path:
    return Path(os.path.abspath(os.path.expanduser(value)))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="lazymarks",
        description="Manage file and line bookmarks scoped by project and git branch.",
    )
    parser.add_argument("--root", default=None, help="Working directory to scope bookmarks to (default: cwd).")
    parser.add_argument("--config", default=None, help="Path to a JSON config file.")
    parser.add_argument("--verbose", "-v", action="store_true", help="Log debug messages to stderr.")

    commands = parser.add_subparsers(dest="command", required=True)
    commands.add_parser("list", help="Print file bookmarks in navigation order.")
    for name, help_text in (
        ("add", "Bookmark a file."),
        ("remove", "Remove a file bookmark."),
        ("toggle", "Add or remove a file bookmark."),
        ("pin", "Bookmark a file for every branch."),
        ("unpin", "Remove a file from the permanent list."),
    ):
        command = commands.add_parser(name, help=help_text)
        command.add_argument("path", help="File to act on.")
    commands.add_parser("clear", help="Remove every branch bookmark; pinned files stay.")
    path_command = commands.add_parser("path", help="Print the absolute path of the N-th bookmark.")
    path_command.add_argument("index", type=_positive_int)
    lines_command = commands.add_parser("lines", help="Print the line bookmarks of a file.")
    lines_command.add_argument("path")
    mark_command = commands.add_parser("mark", help="Add or remove a line bookmark in a file.")
    mark_command.add_argument("path")
    mark_command.add_argument("line", type=_positive_int)
    mark_command.add_argument("col", nargs="?", type=_non_negative_int, default=0)
    commands.add_parser("edit", help="Open the branch bookmark list in $VISUAL or $EDITOR.")
    return parser


def _print_list(session: BookmarkSession) -> None:
    store = session.file_store
    for index, entry in enumerate(store.filenames, start=1):
        suffix = "  (pinned)" if entry in store.permanent_lookup else ""
        sys.stdout.write(f"{index:>3}  {entry}{suffix}\n")


def _print_lines(session: BookmarkSession, path: Path) -> None:
    document = session.open_document(path)
    session.settle()
    for bookmark in session.line_store.bookmarks(document.document_id) or ():
        sys.stdout.write(f"{bookmark.line}:{bookmark.col}\n")


def run_command(session: BookmarkSession, args: argparse.Namespace) -> None:
    store = session.file_store
    command = args.command
    if command == "list":
        _print_list(session)
    elif command == "add":
        store.save(_absolute(args.path))
    elif command == "remove":
        store.remove(_absolute(args.path))
    elif command == "toggle":
        store.toggle(_absolute(args.path))
    elif command == "pin":
        store.save_permanent(_absolute(args.path))
    elif command == "unpin":
        store.remove_permanent(_absolute(args.path))
    elif command == "clear":
        store.clear()
    elif command == "path":
        if args.index > len(store.filenames):
            raise SystemExit(f"Bookmark {args.index} not found.")
        sys.stdout.write(f"{store.resolve_target(store.filenames[args.index - 1])}\n")
    elif command == "lines":
        _print_lines(session, _absolute(args.path))
    elif command == "mark":
        session.open_document(_absolute(args.path))
        session.settle()
        session.toggle_line(args.line, args.col)
    elif command == "edit":
        store.cache_file()
        edit = edit_list_file(store.cache_file_path())
        store.load_cache_file()
        for entry in edit.added:
            sys.stdout.write(f"+ {entry}\n")
        for entry in edit.removed:
            sys.stdout.write(f"- {entry}\n")
        if edit.error is not None:
            raise SystemExit(edit.error)


def main(argv: list[str] | None = None) -> None:
    """Parse CLI arguments and run one bookmark command.

    ``argv`` is primarily for tests; when omitted ``sys.argv`` is used.
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    root = _absolute(args.root) if args.root is not None else Path.cwd()
    if not root.is_dir():
        raise SystemExit(f"Directory not found: {root}")
    config = load_config(Path(args.config).expanduser() if args.config else None)

    session = BookmarkSession(config, working_directory=root)
    try:
        session.start()
        run_command(session, args)
    finally:
        session.close()


if __name__ == "__main__":
    main()
