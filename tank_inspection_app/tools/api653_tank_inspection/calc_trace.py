from __future__ import annotations

import math
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from .paths import compute_input_hash


@dataclass(frozen=True)
class TraceMeta:
    tool_id: str
    tool_version: str
    report_version: str
    timestamp: str
    units_system: str
    input_hash: str
    code_basis: Optional[str] = None


@dataclass(frozen=True)
class TraceInput:
    id: str
    label: str
    value: Any
    units: str
    source: str  # user | settings


@dataclass(frozen=True)
class Assumption:
    id: str
    text: str


@dataclass(frozen=True)
class CalcVar:
    symbol: str
    description: str
    value: Any
    units: str
    source: str


@dataclass(frozen=True)
class CalcResult:
    value: float
    units: str


@dataclass(frozen=True)
class Reference:
    type: str  # "code" | "table" | "note" | "derived"
    ref: str


@dataclass(frozen=True)
class CheckResult:
    label: str
    demand: float
    capacity: float
    ratio: float
    pass_fail: str


@dataclass
class CalcStep:
    id: str
    section: str
    title: str
    output_symbol: str
    output_description: str
    equation_latex: str
    substitution_latex: str
    variables: List[CalcVar]
    result_unrounded: CalcResult
    decimals: int
    result_rounded: CalcResult
    references: List[Reference]
    checks: List[CheckResult] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


@dataclass
class CalcTrace:
    """Reproducible record of one inspection calculation.

    Every export (HTML/PDF/Excel/JSON) is rendered from this object.
    """

    meta: TraceMeta
    inputs: List[TraceInput] = field(default_factory=list)
    assumptions: List[Assumption] = field(default_factory=list)
    steps: List[CalcStep] = field(default_factory=list)
    tables: Dict[str, Any] = field(default_factory=dict)
    summary: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def new(
        cls,
        *,
        tool_id: str,
        tool_version: str,
        inputs: Dict[str, Any],
        units_system: str = "US customary",
        report_version: str = "1.0",
        input_hash: Optional[str] = None,
        code_basis: Optional[str] = None,
        input_sources: Optional[Dict[str, str]] = None,
    ) -> "CalcTrace":
        """Create a trace listing every scalar input (nested inputs are flattened to dotted ids)."""

        if input_hash is None:
            input_hash = compute_input_hash(inputs)

        meta = TraceMeta(
            tool_id=str(tool_id),
            tool_version=str(tool_version),
            report_version=str(report_version),
            timestamp=datetime.now().isoformat(timespec="seconds"),
            units_system=str(units_system),
            input_hash=str(input_hash),
            code_basis=code_basis,
        )

        src = input_sources or {}
        flat = flatten_inputs(inputs)
        trace_inputs = [
            TraceInput(
                id=k,
                label=_default_label(k),
                value=flat[k],
                units=_infer_units(k),
                source=str(src.get(k.split(".", 1)[0], "user")),
            )
            for k in sorted(flat)
        ]
        return cls(meta=meta, inputs=trace_inputs)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def flatten_inputs(inputs: Dict[str, Any], prefix: str = "") -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for k, v in inputs.items():
        key = f"{prefix}{k}"
        if isinstance(v, dict):
            out.update(flatten_inputs(v, f"{key}."))
        elif isinstance(v, list) and v and all(isinstance(i, dict) for i in v):
            for n, item in enumerate(v):
                out.update(flatten_inputs(item, f"{key}.{n}."))
        else:
            out[key] = v
    return out


def _default_label(key: str) -> str:
    return key.rsplit(".", 1)[-1].replace("_", " ")


def _infer_units(key: str) -> str:
    key = key.rsplit(".", 1)[-1]
    for suffix, units in (
        ("_ft", "ft"),
        ("_in", "in"),
        ("_psi", "psi"),
        ("_psf", "psf"),
        ("_mpy", "mpy"),
        ("_years", "yr"),
        ("_deg", "deg"),
        ("_percent", "%"),
    ):
        if key.endswith(suffix):
            return units
    return "-"


def _format_value_units(value: Any, units: str) -> str:
    if isinstance(value, float) and math.isinf(value):
        value = r"\infty"
    elif isinstance(value, (int, float)):
        return f"{value:g}\\,\\mathrm{{{units}}}" if units and units != "-" else f"{value:g}"
    return f"{value}\\,\\mathrm{{{units}}}" if units and units != "-" else str(value)


def _round(x: float, decimals: int) -> float:
    return x if not math.isfinite(x) else round(float(x), int(decimals))


def compute_step(
    trace: CalcTrace,
    *,
    id: str,
    section: str,
    title: str,
    output_symbol: str,
    output_description: str,
    equation_latex: str,
    variables: List[Dict[str, Any]],
    compute_fn: Callable[[], float],
    units: str,
    decimals: int,
    references: List[Dict[str, Any]],
    checks_builder: Optional[Callable[[float], List[Dict[str, Any]]]] = None,
    warnings: Optional[List[str]] = None,
) -> float:
    """Compute one step and append it to the trace, enforcing completeness."""

    if not id or not section or not title:
        raise ValueError("compute_step requires non-empty id/section/title.")

    var_objs: List[CalcVar] = []
    for v in variables:
        for req in ("symbol", "description", "value", "units", "source"):
            if req not in v:
                raise ValueError(f"Variable missing '{req}' in step {id}.")
        var_objs.append(
            CalcVar(
                symbol=str(v["symbol"]),
                description=str(v["description"]),
                value=v["value"],
                units=str(v["units"]),
                source=str(v["source"]),
            )
        )

    unrounded = float(compute_fn())
    rounded = _round(unrounded, decimals)

    substitution = equation_latex
    for v in var_objs:
        substitution = substitution.replace(v.symbol, _format_value_units(v.value, v.units))

    ref_objs: List[Reference] = []
    for r in references:
        if "type" not in r or "ref" not in r:
            raise ValueError(f"Reference missing type/ref in step {id}.")
        ref_objs.append(Reference(type=str(r["type"]), ref=str(r["ref"])))

    checks: List[CheckResult] = []
    if checks_builder:
        for c in checks_builder(unrounded):
            checks.append(
                CheckResult(
                    label=str(c["label"]),
                    demand=float(c["demand"]),
                    capacity=float(c["capacity"]),
                    ratio=float(c["ratio"]),
                    pass_fail=str(c["pass_fail"]),
                )
            )

    trace.steps.append(
        CalcStep(
            id=id,
            section=section,
            title=title,
            output_symbol=output_symbol,
            output_description=output_description,
            equation_latex=equation_latex,
            substitution_latex=substitution,
            variables=var_objs,
            result_unrounded=CalcResult(value=unrounded, units=units),
            decimals=int(decimals),
            result_rounded=CalcResult(value=rounded, units=units),
            references=ref_objs,
            checks=checks,
            warnings=list(warnings or []),
        )
    )

    return rounded
