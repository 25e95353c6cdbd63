from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict, Optional, Protocol, Type

from pydantic import BaseModel


@dataclass(frozen=True)
class ToolMeta:
    id: str
    name: str
    category: str
    version: str
    description: str
    code_basis: Optional[str] = None


class ToolBase(Protocol):
    """
    Contract every inspection tool implements.

    `InputModel` is the pydantic model for the tool's inputs; `default_inputs()` is a
    JSON-ready dict of it. `run_batch` computes and writes the calc package into a
    fresh run directory, returning {"ok": True, "run_dir": ..., ...} or
    {"ok": False, "error": ..., "fields": [...]}. Neither entry point raises.
    """
    meta: ToolMeta
    InputModel: Optional[Type[BaseModel]]

    def default_inputs(self) -> Dict[str, Any]:
        ...

    def run_batch(self, inputs: Dict[str, Any]) -> Dict[str, Any]:
        ...

    def run(self, inputs: Dict[str, Any]) -> Dict[str, Any]:
        ...
