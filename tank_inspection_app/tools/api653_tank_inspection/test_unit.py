from __future__ import annotations

import math
from datetime import date

import pytest
from pydantic import ValidationError

from tank_inspection_app.blocks.code_tables import InspectionConfig, auto_tmin
from tank_inspection_app.blocks.corrosion import assess, elapsed_years_between
from tank_inspection_app.blocks.errors import InvalidInputError
from tank_inspection_app.blocks.numeric import (
    display_remaining_life,
    format_remaining_life,
    parse_number,
    remaining_life_severity,
)
from tank_inspection_app.blocks.statistics import corrosion_statistics
from tank_inspection_app.core.paths import APP_NAME, HOME_ENV, settings_path
from tank_inspection_app.core.schema_utils import error_fields, validate_inputs
from tank_inspection_app.core.settings import load_settings, save_section, save_settings

from .calc_trace import CalcTrace, TraceMeta, compute_step
from .cml import (
    assess_component_cml,
    assess_measurement,
    assess_nozzle,
    elevation_band_summary,
    nozzle_tmin,
)
from .engine import evaluate_fast, evaluate_with_trace
from .models import (
    ComponentCML,
    CorrosionMeasurement,
    FloorInputs,
    FloorScan,
    FluidColumn,
    InspectionReportInputs,
    NozzleCML,
    PracticalTmin,
    RoofInputs,
    ShellCourse,
    TankGeometry,
)
from .paths import compute_input_hash
from .roof_floor import calculate_floor, calculate_roof, minimum_deck_thickness
from .shell import calculate_shell, calculate_shell_course


def _trace() -> CalcTrace:
    meta = TraceMeta(
        tool_id="api653_tank_inspection",
        tool_version="test",
        report_version="test",
        timestamp="2000-01-01T00:00:00",
        units_system="US customary",
        input_hash="testhash",
    )
    return CalcTrace(meta=meta)


def _course(**kw) -> ShellCourse:
    base = dict(
        course_number=1,
        course_height_ft=8.0,
        joint_efficiency=0.85,
        allowable_stress_psi=26700.0,
        original_thickness_in=0.500,
        actual_thickness_in=0.485,
        age_years=10.0,
    )
    base.update(kw)
    return ShellCourse(**base)


# --------- shell ---------
def test_shell_known_value() -> None:
    r = calculate_shell_course(0, [_course()], TankGeometry(diameter_ft=120.0), FluidColumn(fill_height_ft=40.0))
    assert r.pressure_psi == pytest.approx(17.32)
    assert r.radius_in == pytest.approx(720.0)
    assert r.t_req_in == pytest.approx(0.5497, abs=1e-4)
    assert r.tmin_in == pytest.approx(0.550)
    assert r.corrosion_rate_mpy == pytest.approx(1.5)
    # actual 0.485 < t_min: no life left
    assert r.corrosion.below_tmin
    assert r.remaining_life_years == 0.0
    assert r.remaining_life_display == 0


def test_shell_flat_allowance_convention() -> None:
    cfg = InspectionConfig(corrosion_allowance_convention="flat_allowance")
    r = calculate_shell_course(0, [_course()], TankGeometry(diameter_ft=120.0), FluidColumn(fill_height_ft=40.0), cfg)
    assert r.tmin_in == pytest.approx(0.650)
    assert r.allowance_in == pytest.approx(0.100)


def test_shell_zero_age_gives_unbounded_life() -> None:
    r = calculate_shell_course(
        0,
        [_course(age_years=0.0, actual_thickness_in=0.600, original_thickness_in=0.625)],
        TankGeometry(diameter_ft=120.0),
        FluidColumn(fill_height_ft=40.0),
    )
    assert r.corrosion_rate_mpy == 0.0
    assert math.isinf(r.remaining_life_years)
    assert r.remaining_life_display == 999


def test_shell_course_above_liquid_uses_floor() -> None:
    courses = [_course(course_number=1), _course(course_number=2, original_thickness_in=0.25, actual_thickness_in=0.25)]
    results = calculate_shell(TankGeometry(diameter_ft=60.0), FluidColumn(fill_height_ft=8.0), courses)
    assert results[1].liquid_head_ft == 0.0
    assert results[1].t_req_in == 0.0
    assert results[1].tmin_in == pytest.approx(0.050)


def test_shell_is_deterministic() -> None:
    courses = [_course(course_number=i) for i in (1, 2, 3)]
    a = calculate_shell(TankGeometry(), FluidColumn(), courses)
    b = calculate_shell(TankGeometry(), FluidColumn(), courses)
    assert a == b


def test_shell_denominator_rejected_with_field() -> None:
    with pytest.raises(InvalidInputError) as ei:
        calculate_shell_course(
            0,
            [_course(allowable_stress_psi=1.0, joint_efficiency=1.0)],
            TankGeometry(diameter_ft=120.0),
            FluidColumn(fill_height_ft=40.0),
        )
    assert ei.value.field == "courses[0].allowable_stress_psi"


def test_shell_invalid_diameter_names_field() -> None:
    with pytest.raises(InvalidInputError) as ei:
        calculate_shell_course(0, [_course()], TankGeometry.model_construct(diameter_ft=0.0), FluidColumn())
    assert ei.value.field == "tank.diameter_ft"
    assert isinstance(ei.value, ValueError)


def test_model_validation_names_field() -> None:
    with pytest.raises(ValidationError) as ei:
        _course(joint_efficiency=1.5)
    assert "joint_efficiency" in error_fields(ei.value)

    _, err = validate_inputs(InspectionReportInputs, {"tank": {"diameter_ft": -1}})
    assert err is not None and "tank.diameter_ft:" in err

    with pytest.raises(ValidationError) as ei:
        InspectionReportInputs(courses=[{**_course().model_dump(), "joint_efficiency": 0.0}])
    assert error_fields(ei.value) == ["courses[0].joint_efficiency"]


def test_courses_must_increase() -> None:
    with pytest.raises(ValidationError):
        InspectionReportInputs(courses=[_course(course_number=2), _course(course_number=1)])


# --------- roof / floor ---------
def test_deck_thickness_rafter_supported() -> None:
    assert minimum_deck_thickness(25.0, 0.0, 5.0, True) == pytest.approx(0.791)
    assert minimum_deck_thickness(0.0, 0.0, 5.0, True) == pytest.approx(0.094)
    assert minimum_deck_thickness(25.0, 0.0, 5.0, False) == pytest.approx(0.094)


def test_roof_plates() -> None:
    r = calculate_roof(RoofInputs(roof_plate_actual_in=0.200, deck_plate_actual_in=None, age_years=25.0))
    assert r.deck is None
    assert r.roof.tmin_in == pytest.approx(0.094)
    assert r.roof.corrosion_rate_mpy == pytest.approx(2.0)
    assert r.roof.remaining_life_years == pytest.approx(53.0)


def test_floor_scan_aggregates() -> None:
    inputs = FloorInputs(
        original_thickness_in=0.250,
        age_years=10.0,
        soil_side_rate_mpy=1.2,
        scans=[FloorScan(thickness_in=t) for t in (0.20, 0.22, 0.24)],
    )
    r = calculate_floor(inputs)
    assert r.tmin_in == pytest.approx(0.100)
    assert r.average_thickness_in == pytest.approx(0.22)
    assert r.minimum_thickness_in == pytest.approx(0.20)
    assert r.average_corrosion_rate_mpy == pytest.approx(3.0)
    assert r.maximum_corrosion_rate_mpy == pytest.approx(5.0)
    assert r.average_remaining_life_years == pytest.approx(40.0)
    assert r.minimum_remaining_life_years == pytest.approx(20.0)
    assert r.governing_remaining_life_years == pytest.approx(20.0)
    assert r.soil_side_rate_mpy == 1.2


def test_floor_without_scans_uses_current_reading() -> None:
    r = calculate_floor(FloorInputs(current_thickness_in=0.230, minimum_thickness_in=0.050, age_years=20.0))
    assert r.scans == ()
    assert r.tmin_in == pytest.approx(0.050)
    assert r.current.corrosion_rate_mpy == pytest.approx(1.0)
    assert r.governing_remaining_life_years == pytest.approx(180.0)


def test_floor_minimum_override_used_even_when_zero() -> None:
    inputs = FloorInputs(current_thickness_in=0.230, age_years=20.0).model_copy(update={"minimum_thickness_in": 0.0})
    assert calculate_floor(inputs).tmin_in == 0.0
    assert calculate_floor(FloorInputs(current_thickness_in=0.230)).tmin_in == pytest.approx(0.100)


# --------- corrosion model ---------
def test_negative_rate_flagged_not_clamped() -> None:
    c = assess(0.500, 0.520, 5.0, 0.100)
    assert c.corrosion_rate_mpy == pytest.approx(-4.0)
    assert c.negative_rate
    assert c.remaining_life_unbounded


def test_assess_measurement() -> None:
    m = CorrosionMeasurement(previous_thickness_in=0.375, current_thickness_in=0.335, elapsed_years=8.0, minimum_thickness_in=0.100)
    c = assess_measurement(m)
    assert c.metal_loss_in == pytest.approx(0.040)
    assert c.corrosion_rate_mpy == pytest.approx(5.0)
    assert c.remaining_metal_in == pytest.approx(0.235)
    assert c.remaining_life_years == pytest.approx(47.0)


def test_elapsed_years_between_dates() -> None:
    assert elapsed_years_between(date(2020, 1, 1), date(2024, 1, 1)) == pytest.approx(4.0)
    assert elapsed_years_between(date(2024, 1, 1), date(2020, 1, 1)) == 0.0
    assert elapsed_years_between(None, date(2020, 1, 1)) == 0.0


# --------- CML / nozzle ---------
def test_component_cml_governing_reading_and_auto_tmin() -> None:
    rec = ComponentCML(cml_id="C1", component="Shell Course", previous_thickness_in=0.32, readings_in=[0.30, 0.28, 0.29])
    r = assess_component_cml(rec, default_elapsed_years=4.0)
    assert r.current_thickness_in == pytest.approx(0.28)
    assert r.tmin_in == pytest.approx(0.100)
    assert r.tmin_source == "auto"
    assert r.corrosion.corrosion_rate_mpy == pytest.approx(10.0)
    assert r.corrosion.remaining_life_years == pytest.approx(18.0)


def test_component_cml_practical_table() -> None:
    rec = ComponentCML(cml_id="N1", component="Shell Nozzle", size_in=6.0, previous_thickness_in=0.28, current_thickness_in=0.27)
    table = [PracticalTmin(component="shell nozzle", size='6"', practical_tmin_in=0.200)]
    r = assess_component_cml(rec, 2.0, table)
    assert r.tmin_in == pytest.approx(0.200)
    assert r.tmin_source == "practical_table"


def test_cml_reading_limits() -> None:
    with pytest.raises(ValidationError):
        ComponentCML(cml_id="C1", component="Roof", previous_thickness_in=0.2, readings_in=[0.2] * 7)
    with pytest.raises(ValidationError):
        NozzleCML(nozzle_id="N1", size_in=4.0, previous_thickness_in=0.2, readings_in=[0.2] * 5)
    with pytest.raises(ValidationError):
        ComponentCML(cml_id="C1", component="Roof", previous_thickness_in=0.2)


def test_auto_tmin_size_bumps() -> None:
    cfg = InspectionConfig()
    assert auto_tmin("Shell Nozzle", 6.0, cfg) == pytest.approx(0.125)
    assert auto_tmin("Shell Nozzle", 12.0, cfg) == pytest.approx(0.188)
    assert auto_tmin("Shell Nozzle", 24.0, cfg) == pytest.approx(0.313)
    assert auto_tmin("Unlisted", None, cfg) == pytest.approx(0.125)


def test_nozzle_tmin_schedules() -> None:
    assert nozzle_tmin(6.0, "Sch 80") == pytest.approx(0.750)
    assert nozzle_tmin(4.0, "STD") == pytest.approx(0.380)
    with pytest.raises(InvalidInputError) as ei:
        nozzle_tmin(4.0, "55")
    assert ei.value.field == "schedule"


def test_nozzle_next_inspection() -> None:
    rec = NozzleCML(nozzle_id="N1", size_in=4.0, previous_thickness_in=0.50, current_thickness_in=0.45, tmin_in=0.25)
    r = assess_nozzle(rec, 5.0, date(2024, 2, 29))
    assert r.corrosion.remaining_life_years == pytest.approx(20.0)
    assert r.next_inspection_years == 10
    assert r.next_inspection_date == date(2034, 2, 28)

    short = NozzleCML(nozzle_id="N2", size_in=4.0, previous_thickness_in=0.50, current_thickness_in=0.32, tmin_in=0.25)
    r2 = assess_nozzle(short, 5.0, date(2024, 6, 1))
    assert r2.corrosion.remaining_life_years == pytest.approx(1.944, abs=1e-3)
    assert r2.next_inspection_years == 0
    assert r2.next_inspection_date == date(2024, 6, 1)


def test_elevation_bands() -> None:
    recs = [
        NozzleCML(nozzle_id=f"N{i}", size_in=4.0, elevation_ft=e, previous_thickness_in=0.40, current_thickness_in=c, tmin_in=0.2)
        for i, (e, c) in enumerate(((2.0, 0.38), (8.0, 0.36), (15.0, 0.40)))
    ]
    bands = elevation_band_summary([assess_nozzle(r, 4.0) for r in recs])
    assert [b.label for b in bands] == ["0-10 ft", "10-20 ft"]
    assert bands[0].count == 2
    assert bands[0].average_corrosion_rate_mpy == pytest.approx(7.5)
    assert bands[0].minimum_remaining_life_years == pytest.approx(16.0)
    # zero rate in the upper band: unbounded life reported as None
    assert bands[1].minimum_remaining_life_years is None


# --------- statistics / numeric ---------
def test_statistics() -> None:
    s = corrosion_statistics([1.0, 2.0, 3.0, 4.0])
    assert s.average == pytest.approx(2.5)
    assert s.maximum == 4.0
    assert s.percentile95 == 4.0
    s20 = corrosion_statistics(float(i) for i in range(1, 21))
    assert s20.percentile95 == 20.0
    assert s20.average <= s20.percentile95 <= s20.maximum
    empty = corrosion_statistics([])
    assert (empty.count, empty.average, empty.maximum, empty.percentile95) == (0, 0.0, 0.0, 0.0)


def test_parse_number() -> None:
    assert parse_number("0.500 in", "t") == pytest.approx(0.5)
    assert parse_number("1,250", "x") == pytest.approx(1250.0)
    assert parse_number("", "x", default=0.125) == pytest.approx(0.125)
    with pytest.raises(InvalidInputError) as ei:
        parse_number("thin", "Current Reading")
    assert ei.value.field == "Current Reading"
    with pytest.raises(InvalidInputError):
        parse_number("", "x")
    with pytest.raises(InvalidInputError):
        parse_number(True, "x")


def test_remaining_life_display_and_format() -> None:
    assert display_remaining_life(math.inf) == 999
    assert display_remaining_life(-3.0) == 0
    assert display_remaining_life(12.6) == 13
    assert display_remaining_life(5000.0) == 999
    assert format_remaining_life(math.inf) == "∞"
    assert format_remaining_life(12.345) == "12.3"
    assert remaining_life_severity(math.inf) == "good"
    assert remaining_life_severity(10.0) == "monitor"
    assert remaining_life_severity(5.0) == "critical"


# --------- configuration ---------
def test_config_from_settings_dict() -> None:
    cfg = InspectionConfig.from_settings({"api653": {"corrosion_allowance_convention": "flat_allowance", "schedule_factors": {"sch 40": 0.1}}})
    assert cfg.corrosion_allowance_convention == "flat_allowance"
    assert cfg.schedule_factors == {"40": 0.1}
    assert InspectionConfig.from_settings({}) == InspectionConfig()


def test_config_from_settings_file(tmp_path, monkeypatch) -> None:
    monkeypatch.setenv(HOME_ENV, str(tmp_path))
    save_settings({"api653": {"settlement_compliance_threshold_percent": 0.5}})
    assert InspectionConfig.from_settings().settlement_compliance_threshold_percent == 0.5

    save_settings({"ui": {"theme": "dark"}})
    save_section("api653", {"max_inspection_interval_years": 5.0})
    assert load_settings()["ui"] == {"theme": "dark"}
    assert InspectionConfig.from_settings().max_inspection_interval_years == 5.0


def test_config_rejects_unknown_keys() -> None:
    with pytest.raises(ValidationError):
        InspectionConfig.from_settings({"api653": {"no_such_constant": 1}})


# --------- engine / trace ---------
def test_input_hash_deterministic() -> None:
    a = {"b": 2.0, "a": {"y": [1.0, 2.0], "x": 0.1 + 0.2}}
    b = {"a": {"x": 0.30000000000000004, "y": [1.0, 2.0]}, "b": 2.0}
    assert compute_input_hash(a) == compute_input_hash(b)


def test_traced_matches_fast() -> None:
    inputs = InspectionReportInputs(
        floor=FloorInputs(scans=[FloorScan(thickness_in=0.2)]),
        roof=RoofInputs(roof_plate_actual_in=0.23),
        component_cmls=[ComponentCML(cml_id="C1", component="Roof", previous_thickness_in=0.25, current_thickness_in=0.24)],
        service_years=5.0,
    )
    tr = _trace()
    traced = evaluate_with_trace(tr, inputs)
    assert traced == evaluate_fast(inputs)
    ids = [s.id for s in tr.steps]
    assert "S1.treq" in ids and "R1" in ids and "F3" in ids and "T2" in ids
    assert tr.summary["governing_component"]
    assert len(tr.tables["component_cmls"]) == 1
    assert traced.statistics["all"].count == len(inputs.courses) + 1


def test_step_rounds_to_decimals_and_keeps_unbounded_values() -> None:
    tr = _trace()
    common = dict(
        section="Test",
        output_symbol="x",
        output_description="value",
        equation_latex="x = a",
        variables=[{"symbol": "a", "description": "input", "value": 1.0, "units": "in", "source": "user"}],
        units="in",
        references=[{"type": "derived", "ref": "test"}],
    )
    assert compute_step(tr, id="X1", title="finite", compute_fn=lambda: 0.123456, decimals=3, **common) == pytest.approx(0.123)
    assert math.isinf(compute_step(tr, id="X2", title="unbounded", compute_fn=lambda: math.inf, decimals=1, **common))
    assert [s.decimals for s in tr.steps] == [3, 1]
    assert tr.steps[0].result_unrounded.value == pytest.approx(0.123456)


def test_user_data_dir_resolution(tmp_path, monkeypatch) -> None:
    monkeypatch.delenv(HOME_ENV, raising=False)
    monkeypatch.setenv("LOCALAPPDATA", str(tmp_path / "local"))
    assert settings_path() == tmp_path / "local" / APP_NAME / "settings.json"

    monkeypatch.setenv(HOME_ENV, str(tmp_path / "override"))
    assert settings_path() == tmp_path / "override" / "settings.json"
