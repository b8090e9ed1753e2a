"""Typed bookmark settings and persisted JSON overrides.

``BookmarkConfig`` is the single source of option values for the engine.
Overrides live in a JSON file; malformed or missing config falls back to
defaults field by field.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from dataclasses import dataclass, field, fields
from pathlib import Path

from platformdirs import user_cache_dir, user_config_dir

logger = logging.getLogger(__name__)

APP_NAME = "lazymarks"
CONFIG_FILENAME = "config.json"
CONFIG_PATH = Path(user_config_dir(APP_NAME, appauthor=False)) / CONFIG_FILENAME
DEFAULT_SAVE_PATH = Path(user_cache_dir(APP_NAME, appauthor=False)) / "bookmarks"

SAVE_KEY_CWD = "cwd"
SAVE_KEY_GIT_ROOT = "git_root"
SAVE_KEY_GIT_ROOT_BARE = "git_root_bare"
SAVE_KEYS = (SAVE_KEY_CWD, SAVE_KEY_GIT_ROOT, SAVE_KEY_GIT_ROOT_BARE)

OpenAction = Callable[[Path], None]


def _noop_open(_path: Path) -> None:
    return None


@dataclass(frozen=True)
class OpenActions:
    """Pluggable ways of displaying a resolved bookmark target."""

    edit: OpenAction = _noop_open
    vertical: OpenAction = _noop_open
    horizontal: OpenAction = _noop_open

    def for_mode(self, mode: str) -> OpenAction:
        if mode == "vertical":
            return self.vertical
        if mode == "horizontal":
            return self.horizontal
        return self.edit


@dataclass(frozen=True)
class BookmarkConfig:
    """Engine options with documented defaults.

    ``save_key`` picks the scope root: the working directory (``cwd``), the
    repository work tree (``git_root``) or the shared git dir of a bare
    checkout (``git_root_bare``). ``global_bookmarks`` disables scoping
    entirely and stores absolute paths in one list.
    """

    save_path: Path = DEFAULT_SAVE_PATH
    save_key: str = SAVE_KEY_CWD
    separate_by_branch: bool = False
    global_bookmarks: bool = False
    relative_path: bool = False
    sort_automatically: bool = True
    write_delay_seconds: float = 0.1
    branch_cache_ttl_seconds: float = 1.0
    git_timeout_seconds: float = 0.5
    open_actions: OpenActions = field(default_factory=OpenActions)

    def __post_init__(self) -> None:
        if self.save_key not in SAVE_KEYS:
            raise ValueError(f"unknown save_key {self.save_key!r}; expected one of {', '.join(SAVE_KEYS)}")
        if self.write_delay_seconds < 0:
            raise ValueError("write_delay_seconds must be >= 0")
        if self.branch_cache_ttl_seconds < 0:
            raise ValueError("branch_cache_ttl_seconds must be >= 0")
        object.__setattr__(self, "save_path", Path(self.save_path).expanduser())

    @property
    def branch_scoped(self) -> bool:
        """Whether a permanent list exists beside the branch list."""
        return self.separate_by_branch and not self.global_bookmarks

    @property
    def uses_relative_display(self) -> bool:
        return self.relative_path and not self.global_bookmarks

    @property
    def opens_from_working_directory(self) -> bool:
        """Whether stored relative paths resolve against the working directory."""
        return self.global_bookmarks or self.save_key in (SAVE_KEY_CWD, SAVE_KEY_GIT_ROOT_BARE)


_BOOL_FIELDS = ("separate_by_branch", "global_bookmarks", "relative_path", "sort_automatically")
_FLOAT_FIELDS = ("write_delay_seconds", "branch_cache_ttl_seconds", "git_timeout_seconds")


def load_config_data(config_path: Path | None = None) -> dict[str, object]:
    """Load the persisted JSON object.

    Returns an empty dict when the file is missing, unreadable, malformed, or
    does not decode to a top-level JSON object.
    """
    path = config_path or CONFIG_PATH
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return {}
    except Exception:
        logger.debug("ignoring unreadable config at %s", path, exc_info=True)
        return {}
    return data if isinstance(data, dict) else {}


def _coerce_overrides(data: dict[str, object]) -> dict[str, object]:
    """Keep only well-typed option values from raw JSON."""
    overrides: dict[str, object] = {}
    for key in _BOOL_FIELDS:
        value = data.get(key)
        if isinstance(value, bool):
            overrides[key] = value
    for key in _FLOAT_FIELDS:
        value = data.get(key)
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            continue
        if value >= 0:
            overrides[key] = float(value)
    save_key = data.get("save_key")
    if isinstance(save_key, str) and save_key in SAVE_KEYS:
        overrides["save_key"] = save_key
    save_path = data.get("save_path")
    if isinstance(save_path, str) and save_path.strip():
        overrides["save_path"] = Path(save_path.strip()).expanduser()
    return overrides


def load_config(config_path: Path | None = None, **overrides: object) -> BookmarkConfig:
    """Build a config from persisted JSON, then apply keyword overrides."""
    values = _coerce_overrides(load_config_data(config_path))
    values.update(overrides)
    return BookmarkConfig(**values)  # type: ignore[arg-type]


def save_config(config: BookmarkConfig, config_path: Path | None = None) -> None:
    """Persist the JSON-representable options of ``config``.

    Filesystem errors are logged and ignored so a read-only config directory
    never breaks the session.
    """
    path = config_path or CONFIG_PATH
    data: dict[str, object] = {}
    for item in fields(config):
        if item.name == "open_actions":
            continue
        value = getattr(config, item.name)
        data[item.name] = str(value) if isinstance(value, Path) else value
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(data, indent=2) + "\n", encoding="utf-8")
    except OSError:
        logger.debug("could not write config to %s", path, exc_info=True)


__all__ = [
    "APP_NAME",
    "BookmarkConfig",
    "CONFIG_PATH",
    "DEFAULT_SAVE_PATH",
    "OpenActions",
    "SAVE_KEYS",
    "SAVE_KEY_CWD",
    "SAVE_KEY_GIT_ROOT",
    "SAVE_KEY_GIT_ROOT_BARE",
    "load_config",
    "load_config_data",
    "save_config",
]
