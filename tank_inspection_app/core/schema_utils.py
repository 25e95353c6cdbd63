from __future__ import annotations
from typing import Any, Dict, List, Optional, Tuple, Type

from pydantic import BaseModel, ValidationError


def _path(loc: Tuple[Any, ...]) -> str:
    out = ""
    for part in loc:
        if isinstance(part, int):
            out += f"[{part}]"
        else:
            out += f".{part}" if out else str(part)
    return out


def error_fields(exc: ValidationError) -> List[str]:
    """Field paths named by a ValidationError, written like 'courses[1].joint_efficiency'."""
    return [_path(err["loc"]) for err in exc.errors()]


def format_validation_error(exc: ValidationError) -> str:
    return "\n".join(f"{_path(err['loc']) or '(inputs)'}: {err['msg']}" for err in exc.errors())


def validate_inputs(model: Optional[Type[BaseModel]], raw: Dict[str, Any]) -> Tuple[Dict[str, Any], Optional[str]]:
    """
    Returns (validated inputs as JSON-ready dict, error text). The error text has one
    'field: message' line per problem; it is None when the inputs are valid.
    """
    if model is None:
        return raw, None
    try:
        return model.model_validate(raw).model_dump(mode="json"), None
    except ValidationError as e:
        return {}, format_validation_error(e)
