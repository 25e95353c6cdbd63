"""Report engine: every calculator over one InspectionReportInputs.

evaluate_fast(...)       -> ReportResults
evaluate_with_trace(...) -> ReportResults, recording each step into a CalcTrace
"""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from tank_inspection_app.blocks.corrosion import CorrosionResult, elapsed_years_between
from tank_inspection_app.blocks.numeric import remaining_life_severity
from tank_inspection_app.blocks.statistics import CorrosionStatistics, corrosion_statistics

from .calc_trace import Assumption, CalcTrace, compute_step
from .cml import (
    ComponentCMLResult,
    ElevationBand,
    NozzleResult,
    assess_component_cml,
    assess_nozzle,
    elevation_band_summary,
)
from .models import InspectionReportInputs
from .roof_floor import FloorResult, RoofResult, calculate_floor, calculate_roof
from .settlement import SettlementResult, analyze_settlement
from .shell import ShellCourseResult, calculate_shell

# Reported decimal places: thickness, corrosion rate, remaining life.
_DECIMALS_T = 3
_DECIMALS_CR = 2
_DECIMALS_RL = 1
_API653 = "API 653"


@dataclass(frozen=True)
class ReportResults:
    shell: Tuple[ShellCourseResult, ...]
    roof: Optional[RoofResult]
    floor: Optional[FloorResult]
    component_cmls: Tuple[ComponentCMLResult, ...]
    nozzles: Tuple[NozzleResult, ...]
    nozzle_bands: Tuple[ElevationBand, ...]
    settlement: Optional[SettlementResult]
    statistics: Dict[str, CorrosionStatistics] = field(default_factory=dict)

    def governing(self) -> Tuple[str, float]:
        """(label, remaining life) of the component with the shortest remaining life."""
        items = list(_labelled_corrosion(self))
        if not items:
            return "", math.inf
        label, c = min(items, key=lambda kv: kv[1].remaining_life_years)
        return label, c.remaining_life_years

    @property
    def all_above_tmin(self) -> bool:
        return not any(c.below_tmin for _, c in _labelled_corrosion(self))


def _labelled_corrosion(results: ReportResults):
    for s in results.shell:
        yield f"Shell course {s.course_number}", s.corrosion
    if results.roof is not None:
        for plate in (results.roof.deck, results.roof.roof):
            if plate is not None:
                yield plate.label, plate.corrosion
    if results.floor is not None:
        for scan in results.floor.scans:
            yield f"Floor scan {scan.location}".strip(), scan.corrosion
        if results.floor.current is not None:
            yield "Floor", results.floor.current
    for c in results.component_cmls:
        yield f"CML {c.cml_id}", c.corrosion
    for n in results.nozzles:
        yield f"Nozzle {n.nozzle_id}", n.corrosion


def report_elapsed_years(inputs: InspectionReportInputs) -> float:
    """Default CML interval: explicit service years, else the span between inspection dates."""
    if inputs.service_years is not None:
        return inputs.service_years
    return elapsed_years_between(inputs.previous_inspection_date, inputs.inspection_date)


def nozzle_elapsed_years(inputs: InspectionReportInputs) -> float:
    if inputs.previous_inspection_date is not None and inputs.inspection_date is not None:
        return elapsed_years_between(inputs.previous_inspection_date, inputs.inspection_date)
    return inputs.service_years or 0.0


def _rates(corrosions: List[CorrosionResult]) -> List[float]:
    return [c.corrosion_rate_mpy for c in corrosions if c.rate_defined]


def evaluate_fast(inputs: InspectionReportInputs) -> ReportResults:
    cfg = inputs.config
    shell = tuple(calculate_shell(inputs.tank, inputs.fluid, inputs.courses, cfg))
    roof = calculate_roof(inputs.roof, cfg) if inputs.roof is not None else None
    floor = calculate_floor(inputs.floor, cfg) if inputs.floor is not None else None

    default_elapsed = report_elapsed_years(inputs)
    cmls = tuple(assess_component_cml(r, default_elapsed, inputs.practical_tmins, cfg) for r in inputs.component_cmls)

    n_elapsed = nozzle_elapsed_years(inputs)
    nozzles = tuple(assess_nozzle(r, n_elapsed, inputs.inspection_date, cfg) for r in inputs.nozzle_cmls)
    bands = tuple(elevation_band_summary(nozzles)) if nozzles else ()

    settlement = (
        analyze_settlement(inputs.elevation_points, inputs.tank.diameter_ft, cfg) if inputs.elevation_points else None
    )

    shell_rates = _rates([s.corrosion for s in shell])
    cml_rates = _rates([c.corrosion for c in cmls])
    nozzle_rates = _rates([n.corrosion for n in nozzles])
    stats = {
        "shell": corrosion_statistics(shell_rates),
        "cml": corrosion_statistics(cml_rates),
        "nozzle": corrosion_statistics(nozzle_rates),
        "all": corrosion_statistics(shell_rates + cml_rates + nozzle_rates),
    }

    return ReportResults(
        shell=shell,
        roof=roof,
        floor=floor,
        component_cmls=cmls,
        nozzles=nozzles,
        nozzle_bands=bands,
        settlement=settlement,
        statistics=stats,
    )


# --------- traced evaluation ---------
def _thickness_check(label: str, actual: float, tmin: float) -> Dict[str, Any]:
    ratio = tmin / actual if actual > 0.0 else math.inf
    return {
        "label": label,
        "demand": tmin,
        "capacity": actual,
        "ratio": ratio,
        "pass_fail": "PASS" if actual >= tmin else "FAIL",
    }


def _trace_corrosion(
    trace: CalcTrace,
    *,
    step_prefix: str,
    section: str,
    subject: str,
    previous_label: str,
    corrosion: CorrosionResult,
    previous_source: str,
    current_source: str,
    age_source: str,
    tmin_source: str,
) -> None:
    c = corrosion
    warnings = []
    if not c.rate_defined:
        warnings.append("Elapsed time is zero; corrosion rate taken as 0.")
    if c.negative_rate:
        warnings.append("Current reading exceeds previous reading; negative rate reported as measured.")

    compute_step(
        trace,
        id=f"{step_prefix}.CR",
        section=section,
        title=f"{subject}: corrosion rate",
        output_symbol="CR",
        output_description="Corrosion rate",
        equation_latex=r"CR = \frac{t_{prev} - t_{act}}{Y}\cdot 1000",
        variables=[
            {"symbol": "t_{prev}", "description": previous_label, "value": c.previous_thickness_in, "units": "in", "source": previous_source},
            {"symbol": "t_{act}", "description": "Current thickness", "value": c.current_thickness_in, "units": "in", "source": current_source},
            {"symbol": "Y", "description": "Elapsed time", "value": c.elapsed_years, "units": "yr", "source": age_source},
        ],
        compute_fn=lambda: c.corrosion_rate_mpy,
        units="mpy",
        decimals=_DECIMALS_CR,
        references=[{"type": "code", "ref": f"{_API653} 4.3.3 / 4.4"}],
        warnings=warnings,
    )

    rl_warnings = []
    if c.remaining_life_unbounded:
        rl_warnings.append("Corrosion rate <= 0; remaining life unbounded.")
    compute_step(
        trace,
        id=f"{step_prefix}.RL",
        section=section,
        title=f"{subject}: remaining life",
        output_symbol="RL",
        output_description="Remaining life",
        equation_latex=r"RL = \frac{t_{act} - t_{min}}{CR/1000}",
        variables=[
            {"symbol": "t_{act}", "description": "Current thickness", "value": c.current_thickness_in, "units": "in", "source": current_source},
            {"symbol": "t_{min}", "description": "Minimum thickness", "value": c.tmin_in, "units": "in", "source": tmin_source},
            {"symbol": "CR", "description": "Corrosion rate", "value": c.corrosion_rate_mpy, "units": "mpy", "source": f"step:{step_prefix}.CR"},
        ],
        compute_fn=lambda: c.remaining_life_years,
        units="yr",
        decimals=_DECIMALS_RL,
        references=[{"type": "code", "ref": f"{_API653} 4.3.3"}],
        checks_builder=lambda _x: [_thickness_check(f"{subject} thickness >= t_min", c.current_thickness_in, c.tmin_in)],
        warnings=rl_warnings,
    )


def _trace_shell(trace: CalcTrace, inputs: InspectionReportInputs, shell: Tuple[ShellCourseResult, ...]) -> None:
    cfg = inputs.config
    G = inputs.fluid.specific_gravity
    for i, (course, r) in enumerate(zip(inputs.courses, shell)):
        sid = f"S{r.course_number}"
        section = f"Shell course {r.course_number}"
        src = f"input:courses.{i}"

        compute_step(
            trace,
            id=f"{sid}.H",
            section=section,
            title="Liquid head at bottom of course",
            output_symbol="H",
            output_description="Design liquid head",
            equation_latex=r"H = \max(0,\; H_{fill} - \Sigma h_{below})",
            variables=[
                {"symbol": r"H_{fill}", "description": "Fill height", "value": inputs.fluid.fill_height_ft, "units": "ft", "source": "input:fluid.fill_height_ft"},
                {"symbol": r"\Sigma h_{below}", "description": "Height of courses below", "value": sum(c.course_height_ft for c in inputs.courses[:i]), "units": "ft", "source": "input:courses"},
            ],
            compute_fn=lambda r=r: r.liquid_head_ft,
            units="ft",
            decimals=_DECIMALS_T,
            references=[{"type": "code", "ref": f"{_API653} 4.3.3.1"}],
        )
        compute_step(
            trace,
            id=f"{sid}.P",
            section=section,
            title="Hydrostatic pressure",
            output_symbol="P",
            output_description="Hydrostatic pressure",
            equation_latex=r"P = 0.433\,G\,H",
            variables=[
                {"symbol": "G", "description": "Specific gravity", "value": G, "units": "-", "source": "input:fluid.specific_gravity"},
                {"symbol": "H", "description": "Liquid head", "value": r.liquid_head_ft, "units": "ft", "source": f"step:{sid}.H"},
            ],
            compute_fn=lambda r=r: r.pressure_psi,
            units="psi",
            decimals=_DECIMALS_CR,
            references=[{"type": "derived", "ref": "shell.hydrostatic_pressure_psi"}],
        )
        compute_step(
            trace,
            id=f"{sid}.treq",
            section=section,
            title="Required thickness (one-foot method)",
            output_symbol=r"t_{req}",
            output_description="Required shell thickness",
            equation_latex=r"t_{req} = \frac{P\,R}{S\,E - 0.6\,P}",
            variables=[
                {"symbol": "P", "description": "Hydrostatic pressure", "value": r.pressure_psi, "units": "psi", "source": f"step:{sid}.P"},
                {"symbol": "R", "description": "Shell radius", "value": r.radius_in, "units": "in", "source": "input:tank.diameter_ft"},
                {"symbol": "S", "description": "Allowable stress", "value": course.allowable_stress_psi, "units": "psi", "source": f"{src}.allowable_stress_psi"},
                {"symbol": "E", "description": "Joint efficiency", "value": course.joint_efficiency, "units": "-", "source": f"{src}.joint_efficiency"},
            ],
            compute_fn=lambda r=r: r.t_req_in,
            units="in",
            decimals=_DECIMALS_T,
            references=[{"type": "code", "ref": f"{_API653} 4.3.3.1"}],
        )
        compute_step(
            trace,
            id=f"{sid}.tmin",
            section=section,
            title="Minimum acceptable thickness",
            output_symbol=r"t_{min}",
            output_description="Minimum shell thickness",
            equation_latex=r"t_{min} = \max(t_{req} + CA,\; t_{floor})",
            variables=[
                {"symbol": r"t_{req}", "description": "Required thickness", "value": r.t_req_in, "units": "in", "source": f"step:{sid}.treq"},
                {"symbol": "CA", "description": f"Corrosion allowance ({cfg.corrosion_allowance_convention})", "value": r.allowance_in, "units": "in", "source": "config:corrosion_allowance_convention"},
                {"symbol": r"t_{floor}", "description": "Shell minimum", "value": cfg.shell_minimum_thickness_in, "units": "in", "source": "config:shell_minimum_thickness_in"},
            ],
            compute_fn=lambda r=r: r.tmin_in,
            units="in",
            decimals=_DECIMALS_T,
            references=[{"type": "code", "ref": f"{_API653} 4.3.3.1"}],
        )
        _trace_corrosion(
            trace,
            step_prefix=sid,
            section=section,
            subject=section,
            previous_label="Original thickness",
            corrosion=r.corrosion,
            previous_source=f"{src}.original_thickness_in",
            current_source=f"{src}.actual_thickness_in",
            age_source=f"{src}.age_years",
            tmin_source=f"step:{sid}.tmin",
        )

    trace.tables["shell_courses"] = [
        {
            "course": r.course_number,
            "material": c.material,
            "H_ft": r.liquid_head_ft,
            "P_psi": r.pressure_psi,
            "t_req_in": r.t_req_in,
            "t_min_in": r.tmin_in,
            "original_in": c.original_thickness_in,
            "actual_in": c.actual_thickness_in,
            "CR_mpy": r.corrosion_rate_mpy,
            "RL_years": r.remaining_life_years,
            "RL_display": r.remaining_life_display,
            "status": "OK" if r.acceptable else "BELOW t_min",
        }
        for c, r in zip(inputs.courses, shell)
    ]


def _trace_roof(trace: CalcTrace, inputs: InspectionReportInputs, roof: RoofResult) -> None:
    cfg = inputs.config
    ri = inputs.roof
    if ri.supported_by_rafters:
        compute_step(
            trace,
            id="R1",
            section="Roof",
            title="Deck plate minimum thickness (rafter supported)",
            output_symbol=r"t_{deck}",
            output_description="Deck plate minimum thickness",
            equation_latex=r"t_{deck} = \max\left(\sqrt{\frac{w\,(12\,s)^{2}}{K}},\; t_{code}\right)",
            variables=[
                {"symbol": "w", "description": "Live + snow load", "value": roof.total_load_psf, "units": "psf", "source": "input:roof.live_load_psf+snow_load_psf"},
                {"symbol": "s", "description": "Rafter spacing", "value": ri.rafter_spacing_ft, "units": "ft", "source": "input:roof.rafter_spacing_ft"},
                {"symbol": "K", "description": "Bending constant", "value": cfg.roof_bending_constant, "units": "psi", "source": "config:roof_bending_constant"},
                {"symbol": r"t_{code}", "description": "Roof code minimum", "value": cfg.code_minimum_roof_thickness_in, "units": "in", "source": "config:code_minimum_roof_thickness_in"},
            ],
            compute_fn=lambda: roof.deck_tmin_in,
            units="in",
            decimals=_DECIMALS_T,
            references=[{"type": "code", "ref": f"{_API653} 4.2.1"}],
        )
    else:
        compute_step(
            trace,
            id="R1",
            section="Roof",
            title="Deck plate minimum thickness (self supporting)",
            output_symbol=r"t_{deck}",
            output_description="Deck plate minimum thickness",
            equation_latex=r"t_{deck} = t_{code}",
            variables=[
                {"symbol": r"t_{code}", "description": "Roof code minimum", "value": cfg.code_minimum_roof_thickness_in, "units": "in", "source": "config:code_minimum_roof_thickness_in"},
            ],
            compute_fn=lambda: roof.deck_tmin_in,
            units="in",
            decimals=_DECIMALS_T,
            references=[{"type": "code", "ref": f"{_API653} 4.2.1"}],
        )
    for tag, plate in (("R2", roof.deck), ("R3", roof.roof)):
        if plate is None:
            continue
        key = "deck_plate" if plate is roof.deck else "roof_plate"
        _trace_corrosion(
            trace,
            step_prefix=tag,
            section="Roof",
            subject=plate.label,
            previous_label="Nominal thickness",
            corrosion=plate.corrosion,
            previous_source=f"input:roof.{key}_nominal_in",
            current_source=f"input:roof.{key}_actual_in",
            age_source="input:roof.age_years",
            tmin_source="step:R1" if plate is roof.deck else "config:code_minimum_roof_thickness_in",
        )


def _trace_floor(trace: CalcTrace, inputs: InspectionReportInputs, floor: FloorResult) -> None:
    fi = inputs.floor
    if floor.scans:
        n = len(floor.scans)
        compute_step(
            trace,
            id="F1",
            section="Floor",
            title="Average scan thickness",
            output_symbol=r"\bar{t}",
            output_description="Average remaining floor thickness",
            equation_latex=r"\bar{t} = \frac{\Sigma t_i}{n}",
            variables=[
                {"symbol": "n", "description": "Scan readings", "value": n, "units": "-", "source": "input:floor.scans"},
            ],
            compute_fn=lambda: floor.average_thickness_in,
            units="in",
            decimals=_DECIMALS_T,
            references=[{"type": "derived", "ref": "roof_floor.calculate_floor"}],
        )
        compute_step(
            trace,
            id="F2",
            section="Floor",
            title="Average corrosion rate",
            output_symbol=r"\bar{CR}",
            output_description="Corrosion rate at average thickness",
            equation_latex=r"\bar{CR} = \frac{t_0 - \bar{t}}{Y}\cdot 1000",
            variables=[
                {"symbol": "t_0", "description": "Original thickness", "value": fi.original_thickness_in, "units": "in", "source": "input:floor.original_thickness_in"},
                {"symbol": r"\bar{t}", "description": "Average thickness", "value": floor.average_thickness_in, "units": "in", "source": "step:F1"},
                {"symbol": "Y", "description": "Floor age", "value": fi.age_years, "units": "yr", "source": "input:floor.age_years"},
            ],
            compute_fn=lambda: floor.average_corrosion_rate_mpy,
            units="mpy",
            decimals=_DECIMALS_CR,
            references=[{"type": "code", "ref": f"{_API653} 4.4.5"}],
        )
        compute_step(
            trace,
            id="F3",
            section="Floor",
            title="Governing remaining life",
            output_symbol=r"RL_{min}",
            output_description="Remaining life at the thinnest reading and highest rate",
            equation_latex=r"RL_{min} = \frac{t_{min,meas} - t_{min}}{CR_{max}/1000}",
            variables=[
                {"symbol": r"t_{min,meas}", "description": "Thinnest scan reading", "value": floor.minimum_thickness_in, "units": "in", "source": "input:floor.scans"},
                {"symbol": r"t_{min}", "description": "Floor minimum thickness", "value": floor.tmin_in, "units": "in", "source": "input:floor.minimum_thickness_in|config"},
                {"symbol": r"CR_{max}", "description": "Highest scan corrosion rate", "value": floor.maximum_corrosion_rate_mpy, "units": "mpy", "source": "derived:floor.scans"},
            ],
            compute_fn=lambda: floor.minimum_remaining_life_years,
            units="yr",
            decimals=_DECIMALS_RL,
            references=[{"type": "code", "ref": f"{_API653} 4.4.7"}],
            checks_builder=lambda _x: [_thickness_check("Floor thickness >= t_min", floor.minimum_thickness_in, floor.tmin_in)],
        )
        trace.tables["floor_scans"] = [
            {
                "location": s.location,
                "scan_type": s.scan_type,
                "thickness_in": s.thickness_in,
                "CR_mpy": s.corrosion.corrosion_rate_mpy,
                "RL_years": s.corrosion.remaining_life_years,
                "RL_display": s.corrosion.remaining_life_display,
            }
            for s in floor.scans
        ]
    elif floor.current is not None:
        _trace_corrosion(
            trace,
            step_prefix="F",
            section="Floor",
            subject="Floor plate",
            previous_label="Original thickness",
            corrosion=floor.current,
            previous_source="input:floor.original_thickness_in",
            current_source="input:floor.current_thickness_in",
            age_source="input:floor.age_years",
            tmin_source="input:floor.minimum_thickness_in|config",
        )


def _trace_settlement(trace: CalcTrace, inputs: InspectionReportInputs, st: SettlementResult) -> None:
    compute_step(
        trace,
        id="T1",
        section="Settlement",
        title="Differential settlement",
        output_symbol=r"\Delta",
        output_description="Maximum minus minimum settlement",
        equation_latex=r"\Delta = s_{max} - s_{min}",
        variables=[
            {"symbol": r"s_{max}", "description": "Maximum settlement", "value": st.max_settlement_ft, "units": "ft", "source": "input:elevation_points"},
            {"symbol": r"s_{min}", "description": "Minimum settlement", "value": st.min_settlement_ft, "units": "ft", "source": "input:elevation_points"},
        ],
        compute_fn=lambda: st.differential_settlement_ft,
        units="ft",
        decimals=4,
        references=[{"type": "code", "ref": f"{_API653} Annex B"}],
    )
    compute_step(
        trace,
        id="T2",
        section="Settlement",
        title="Tilt as percent of diameter",
        output_symbol=r"\tau",
        output_description="Differential settlement / diameter",
        equation_latex=r"\tau = \frac{\Delta}{D}\cdot 100",
        variables=[
            {"symbol": r"\Delta", "description": "Differential settlement", "value": st.differential_settlement_ft, "units": "ft", "source": "step:T1"},
            {"symbol": "D", "description": "Tank diameter", "value": inputs.tank.diameter_ft, "units": "ft", "source": "input:tank.diameter_ft"},
        ],
        compute_fn=lambda: st.tilt_percent,
        units="%",
        decimals=3,
        references=[{"type": "code", "ref": f"{_API653} Annex B"}],
        checks_builder=lambda _x: [
            {
                "label": "Tilt within threshold",
                "demand": st.tilt_percent,
                "capacity": st.threshold_percent,
                "ratio": st.tilt_percent / st.threshold_percent,
                "pass_fail": "PASS" if st.compliant else "FAIL",
            }
        ],
    )
    if st.planar_fit_defined:
        compute_step(
            trace,
            id="T3",
            section="Settlement",
            title="Planar tilt angle",
            output_symbol=r"\phi",
            output_description="Tilt of the best-fit settlement plane",
            equation_latex=r"\phi = \arctan\sqrt{a^{2} + b^{2}}",
            variables=[
                {"symbol": "n", "description": "Survey points", "value": st.point_count, "units": "-", "source": "input:elevation_points"},
            ],
            compute_fn=lambda: st.planar_tilt_deg,
            units="deg",
            decimals=4,
            references=[{"type": "derived", "ref": "settlement.fit_plane (least squares on cos/sin)"}],
        )
    else:
        trace.assumptions.append(
            Assumption(id="T3", text=f"Planar tilt not computed: {st.point_count} survey points do not define a plane.")
        )
    trace.tables["settlement_points"] = [
        {
            "angle_deg": p.angle_deg,
            "previous_ft": p.previous_elevation_ft,
            "current_ft": p.current_elevation_ft,
            "settlement_ft": p.settlement_ft,
        }
        for p in inputs.elevation_points
    ]


def _cml_tables(trace: CalcTrace, results: ReportResults, inputs: InspectionReportInputs) -> None:
    cfg = inputs.config
    sev = dict(good_above=cfg.remaining_life_good_years, monitor_above=cfg.remaining_life_monitor_years)
    trace.tables["component_cmls"] = [
        {
            "cml_id": c.cml_id,
            "component": c.component,
            "location": c.location,
            "previous_in": c.corrosion.previous_thickness_in,
            "current_in": c.current_thickness_in,
            "t_min_in": c.tmin_in,
            "t_min_source": c.tmin_source,
            "CR_mpy": c.corrosion.corrosion_rate_mpy,
            "RL_years": c.corrosion.remaining_life_years,
            "RL_display": c.corrosion.remaining_life_display,
            "severity": remaining_life_severity(c.corrosion.remaining_life_years, **sev),
        }
        for c in results.component_cmls
    ]
    trace.tables["nozzles"] = [
        {
            "nozzle_id": n.nozzle_id,
            "description": n.description,
            "size_in": n.size_in,
            "schedule": n.schedule,
            "elevation_ft": n.elevation_ft,
            "current_in": n.current_thickness_in,
            "t_min_in": n.tmin_in,
            "CR_mpy": n.corrosion.corrosion_rate_mpy,
            "RL_years": n.corrosion.remaining_life_years,
            "RL_display": n.corrosion.remaining_life_display,
            "next_inspection": n.next_inspection_date.isoformat() if n.next_inspection_date else f"+{n.next_inspection_years} yr",
            "severity": remaining_life_severity(n.corrosion.remaining_life_years, **sev),
        }
        for n in results.nozzles
    ]
    trace.tables["nozzle_elevation_bands"] = [
        {
            "band": b.label,
            "count": b.count,
            "avg_CR_mpy": b.average_corrosion_rate_mpy,
            "min_RL_years": b.minimum_remaining_life_years,
        }
        for b in results.nozzle_bands
    ]
    trace.tables["corrosion_statistics"] = [
        {"group": k, "count": s.count, "average_mpy": s.average, "maximum_mpy": s.maximum, "p95_mpy": s.percentile95}
        for k, s in results.statistics.items()
    ]


def evaluate_with_trace(trace: CalcTrace, inputs: InspectionReportInputs) -> ReportResults:
    results = evaluate_fast(inputs)
    cfg = inputs.config

    trace.assumptions.extend(
        [
            Assumption(id="A1", text="Shell courses evaluated by the one-foot method, bottom course first."),
            Assumption(id="A2", text=f"Corrosion allowance convention: {cfg.corrosion_allowance_convention}."),
            Assumption(id="A3", text="Zero elapsed time gives a zero corrosion rate; a rate <= 0 gives unbounded remaining life."),
            Assumption(id="A4", text=f"Displayed remaining life is clamped to 0..{cfg.remaining_life_display_ceiling_years:g} years."),
        ]
    )

    _trace_shell(trace, inputs, results.shell)
    if results.roof is not None:
        _trace_roof(trace, inputs, results.roof)
    if results.floor is not None:
        _trace_floor(trace, inputs, results.floor)
    if results.settlement is not None:
        _trace_settlement(trace, inputs, results.settlement)
    _cml_tables(trace, results, inputs)

    label, life = results.governing()
    trace.summary.update(
        {
            "report_number": inputs.report_number,
            "tank_id": inputs.tank_id,
            "inspection_date": inputs.inspection_date.isoformat() if inputs.inspection_date else "",
            "governing_component": label,
            "governing_remaining_life_years": life,
            "all_above_tmin": results.all_above_tmin,
            "settlement_compliant": results.settlement.compliant if results.settlement else None,
            "corrosion_rate_avg_mpy": results.statistics["all"].average,
            "corrosion_rate_max_mpy": results.statistics["all"].maximum,
            "corrosion_rate_p95_mpy": results.statistics["all"].percentile95,
        }
    )
    return results
