from __future__ import annotations

import os
from pathlib import Path

APP_NAME = "meshcore-gateway"


def xdg_state_home() -> Path:
    """Return XDG_STATE_HOME or default ~/.local/state"""
    return Path(os.environ.get("XDG_STATE_HOME", Path.home() / ".local" / "state"))


def state_dir() -> Path:
    """Return the app state directory (XDG_STATE_HOME/meshcore-gateway)"""
    return xdg_state_home() / APP_NAME


def db_path(name: str | None = None) -> Path:
    """Return the path to the SQLite database.

    *name* may be absolute; a relative name is placed in the state directory.
    """
    if not name:
        return state_dir() / "gateway.db"
    path = Path(name).expanduser()
    return path if path.is_absolute() else state_dir() / path


def log_dir() -> Path:
    return state_dir()
