"""Pytest bootstrap for local source imports.

Makes ``import lazymarks`` resolve to the package in this checkout even when
the ``pytest`` console script starts with the repository root off sys.path.
"""

from __future__ import annotations

import sys
from pathlib import Path


REPO_ROOT = Path(__file__).resolve().parent.parent

if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))
