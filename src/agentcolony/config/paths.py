"""Config file locations.

- User: $XDG_CONFIG_HOME/agentcolony/, ~/.config/agentcolony/, or ~/.colony/
  (%APPDATA%\\agentcolony\\ on Windows)
- Project: $project_dir/.colony/config.yaml
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

CONFIG_FILENAME = "config.yaml"
APP_NAME = "agentcolony"
SHORT_NAME = ".colony"


def get_user_config_path() -> Path | None:
    """Get user-level config path (the file may not exist)."""
    if sys.platform == "win32":
        app_data = os.environ.get("APPDATA")
        if app_data:
            return Path(app_data) / APP_NAME / CONFIG_FILENAME
        return None

    xdg_config = os.environ.get("XDG_CONFIG_HOME")
    if xdg_config:
        return Path(xdg_config) / APP_NAME / CONFIG_FILENAME

    home = Path.home()
    xdg_default = home / ".config"
    if xdg_default.exists():
        return xdg_default / APP_NAME / CONFIG_FILENAME
    return home / SHORT_NAME / CONFIG_FILENAME


def get_project_config_path(project_dir: str | Path) -> Path:
    return Path(project_dir) / SHORT_NAME / CONFIG_FILENAME


def get_config_paths(project_dir: str | Path | None = None) -> list[Path]:
    """Config paths in priority order, lowest first."""
    paths: list[Path] = []

    user_path = get_user_config_path()
    if user_path:
        paths.append(user_path)

    if project_dir:
        paths.append(get_project_config_path(project_dir))

    return paths
