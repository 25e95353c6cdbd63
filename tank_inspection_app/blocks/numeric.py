from __future__ import annotations

import math
import re
from typing import Any, Optional

from .errors import InvalidInputError

# Trailing unit tokens accepted on free-text form fields ("0.500 in", "40 ft", "1.5 mpy").
_UNIT_SUFFIX = re.compile(r"\s*(in\.?|inch(es)?|\"|ft\.?|feet|'|psi|psf|mpy|yrs?|years?|%)$", re.IGNORECASE)


def parse_number(value: Any, field: str, default: Optional[float] = None) -> float:
    """Parse a free-text numeric form field.

    Blank / None returns `default` when one is given, otherwise the field is required.
    Thousands separators and a trailing unit token are tolerated.
    Raises InvalidInputError naming `field` for anything else.
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        if default is None:
            raise InvalidInputError(field, "is required")
        return float(default)
    if isinstance(value, bool):
        raise InvalidInputError(field, "must be numeric, got a boolean", value)
    if isinstance(value, (int, float)):
        x = float(value)
    else:
        text = _UNIT_SUFFIX.sub("", str(value).strip().replace(",", ""))
        try:
            x = float(text)
        except ValueError:
            raise InvalidInputError(field, f"is not a number: {value!r}", value) from None
    if not math.isfinite(x):
        raise InvalidInputError(field, "must be a finite number", value)
    return x


def parse_optional_number(value: Any, field: str) -> Optional[float]:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    return parse_number(value, field)


def require_positive(field: str, value: float) -> float:
    if value is None or not math.isfinite(value) or value <= 0.0:
        raise InvalidInputError(field, f"must be > 0 (got {value})", value)
    return float(value)


def require_non_negative(field: str, value: float) -> float:
    if value is None or not math.isfinite(value) or value < 0.0:
        raise InvalidInputError(field, f"must be >= 0 (got {value})", value)
    return float(value)


def require_efficiency(field: str, value: float) -> float:
    if value is None or not math.isfinite(value) or not (0.0 < value <= 1.0):
        raise InvalidInputError(field, f"must satisfy 0 < E <= 1 (got {value})", value)
    return float(value)


# --------- unit conversions ---------
def ft_to_in(ft: float) -> float:
    return 12.0 * ft


def in_to_mils(inch: float) -> float:
    return 1000.0 * inch


def mils_to_in(mils: float) -> float:
    return mils / 1000.0


def round_to(x: float, decimals: int) -> float:
    """Round to fixed decimals; non-finite values pass through unchanged."""
    if not math.isfinite(x):
        return x
    return round(float(x), int(decimals))


def display_remaining_life(years: float, ceiling: float = 999.0) -> int:
    """Whole years for report tables: unbounded -> ceiling, clamped to [0, ceiling]."""
    if math.isnan(years):
        return 0
    if math.isinf(years):
        return int(ceiling) if years > 0 else 0
    return int(max(0.0, min(float(ceiling), round(years))))


# --------- report formatting ---------
def format_thickness(value: Optional[float]) -> str:
    if value is None:
        return ""
    return f"{value:.3f}"


def format_corrosion_rate(value: Optional[float]) -> str:
    if value is None:
        return ""
    return f"{value:.2f}"


def format_remaining_life(value: Optional[float]) -> str:
    if value is None:
        return ""
    if math.isinf(value):
        return "∞"
    return f"{value:.1f}"


def remaining_life_severity(years: float, good_above: float = 15.0, monitor_above: float = 5.0) -> str:
    """'good' | 'monitor' | 'critical' banding used to colour report tables."""
    if math.isinf(years) or years > good_above:
        return "good"
    if years > monitor_above:
        return "monitor"
    return "critical"


def json_safe(v: Any) -> Any:
    """Replace non-finite floats ("inf"/"-inf", NaN -> None) so the output is strict JSON."""
    if isinstance(v, float) and not math.isfinite(v):
        return "inf" if v > 0 else ("-inf" if v < 0 else None)
    if isinstance(v, dict):
        return {k: json_safe(x) for k, x in v.items()}
    if isinstance(v, (list, tuple)):
        return [json_safe(x) for x in v]
    return v
