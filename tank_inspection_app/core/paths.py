from __future__ import annotations
import os
from pathlib import Path

APP_NAME = "TankInspectionToolbox"
HOME_ENV = "TANK_INSPECTION_HOME"


def _base_dir() -> Path:
    override = os.environ.get(HOME_ENV)
    if override:
        return Path(override)
    base = os.environ.get("LOCALAPPDATA") or os.environ.get("APPDATA") or os.environ.get("XDG_DATA_HOME")
    if base:
        return Path(base) / APP_NAME
    return Path.home() / f".{APP_NAME.lower()}"


def user_data_dir() -> Path:
    """
    Writable root for logs, run folders and settings.json (created on first use).

    TANK_INSPECTION_HOME wins when set; otherwise %LOCALAPPDATA%\\TankInspectionToolbox
    on Windows, $XDG_DATA_HOME/TankInspectionToolbox or ~/.tankinspectiontoolbox elsewhere.
    """
    p = _base_dir()
    p.mkdir(parents=True, exist_ok=True)
    return p


def logs_dir() -> Path:
    p = user_data_dir() / "logs"
    p.mkdir(parents=True, exist_ok=True)
    return p


def runs_dir(tool_id: str) -> Path:
    """<user data>/<tool_id>/runs, one timestamped folder per calculation run."""
    p = user_data_dir() / tool_id / "runs"
    p.mkdir(parents=True, exist_ok=True)
    return p


def settings_path() -> Path:
    return user_data_dir() / "settings.json"
