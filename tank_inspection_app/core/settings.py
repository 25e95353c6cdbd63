from __future__ import annotations

import json
from typing import Any, Dict, Mapping

from loguru import logger

from tank_inspection_app.core.paths import settings_path


def load_settings() -> Dict[str, Any]:
    """The whole settings.json as a dict; missing or unreadable files give {}."""
    p = settings_path()
    if not p.exists():
        return {}
    try:
        data = json.loads(p.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        logger.warning(f"Ignoring unreadable settings file {p}: {e}")
        return {}
    if not isinstance(data, dict):
        logger.warning(f"Ignoring settings file {p}: top level is not an object")
        return {}
    return data


def save_settings(data: Mapping[str, Any]) -> None:
    p = settings_path()
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(json.dumps(dict(data), indent=2, sort_keys=True), encoding="utf-8")


def load_section(name: str) -> Dict[str, Any]:
    section = load_settings().get(name) or {}
    return dict(section) if isinstance(section, dict) else {}


def save_section(name: str, values: Mapping[str, Any]) -> None:
    """Replace one top-level section, leaving the others untouched."""
    data = load_settings()
    data[name] = dict(values)
    save_settings(data)
    logger.info(f"Saved settings section {name!r} to {settings_path()}")
