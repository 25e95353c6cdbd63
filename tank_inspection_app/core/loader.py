from __future__ import annotations
import importlib
import pkgutil
from typing import Dict, List
from loguru import logger
from .tool_base import ToolBase

TOOLS_PKG = "tank_inspection_app.tools"


def discover_tools() -> List[ToolBase]:
    """
    Import every package under tank_inspection_app.tools and collect its `TOOL` export.

    A tool package re-exports its instance from __init__.py:
      from .tool import TOOL
    Packages without TOOL, or that fail to import, are logged and left out.
    """
    found: Dict[str, ToolBase] = {}
    pkg = importlib.import_module(TOOLS_PKG)
    for info in pkgutil.iter_modules(pkg.__path__):
        if not info.ispkg:
            continue
        mod_name = f"{TOOLS_PKG}.{info.name}"
        try:
            mod = importlib.import_module(mod_name)
        except Exception as e:
            logger.exception(f"Failed loading tool package {mod_name}: {e}")
            continue
        tool = getattr(mod, "TOOL", None)
        if tool is None:
            logger.warning(f"{mod_name} exports no TOOL; skipped")
            continue
        if tool.meta.id in found:
            logger.warning(f"Duplicate tool id {tool.meta.id!r} in {mod_name}; keeping the first")
            continue
        found[tool.meta.id] = tool
    logger.debug(f"Discovered {len(found)} tool(s): {', '.join(sorted(found))}")
    return sorted(found.values(), key=lambda t: (t.meta.category.lower(), t.meta.name.lower()))


def find_tool(tool_id: str) -> ToolBase:
    for t in discover_tools():
        if t.meta.id == tool_id:
            return t
    raise KeyError(tool_id)
