from __future__ import annotations

import os
import sys
from pathlib import Path

APP_DIR_NAME = "jobtrack"
STATE_DIR_ENV = "JOBTRACK_STATE_DIR"


def _platform_data_root() -> Path:
    if sys.platform.startswith("win"):
        return Path(os.environ.get("LOCALAPPDATA") or os.environ.get("APPDATA") or Path.home())
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support"
    return Path(os.environ.get("XDG_STATE_HOME") or Path.home() / ".local" / "state")


def get_app_state_dir() -> Path:
    """Directory for log files, created on first use.

    ``JOBTRACK_STATE_DIR`` wins; otherwise the per-user state directory of the
    platform.
    """
    override = os.environ.get(STATE_DIR_ENV)
    path = Path(override).expanduser() if override else _platform_data_root() / APP_DIR_NAME
    path = path.resolve()
    path.mkdir(parents=True, exist_ok=True)
    return path
