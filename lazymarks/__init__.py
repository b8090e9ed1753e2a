"""Public package surface for lazymarks.

``main`` runs the CLI; ``lazymarks.app.BookmarkSession`` is the entry point
for hosts embedding the engine.
"""

from __future__ import annotations


def main(*args, **kwargs):
    """Import the CLI on first use so ``import lazymarks`` stays cheap."""
    from .cli import main as _main

    return _main(*args, **kwargs)

__all__ = ["main"]
