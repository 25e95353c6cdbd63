from __future__ import annotations

import json
from pathlib import Path

import pytest

from tank_inspection_app.core.loader import discover_tools, find_tool
from tank_inspection_app.core.paths import HOME_ENV

from .tool import TOOL


@pytest.fixture(autouse=True)
def _user_data(tmp_path, monkeypatch):
    monkeypatch.setenv(HOME_ENV, str(tmp_path))


def _assert_exists(p: Path) -> None:
    assert p.exists(), f"Missing: {p}"


def _check_outputs(run_dir: Path) -> None:
    _assert_exists(run_dir / "report.html")
    _assert_exists(run_dir / "report.pdf")
    _assert_exists(run_dir / "calc_trace.json")
    _assert_exists(run_dir / "results.json")
    _assert_exists(run_dir / "results.xlsx")
    _assert_exists(run_dir / "run.log")


def test_tool_discovered():
    ids = [t.meta.id for t in discover_tools()]
    assert TOOL.meta.id in ids
    assert find_tool(TOOL.meta.id) is TOOL
    with pytest.raises(KeyError):
        find_tool("no_such_tool")


def test_smoke_case_1():
    inputs = TOOL.default_inputs()
    # no config section: code constants come from the (empty) settings file
    inputs.pop("config")
    res = TOOL.run_batch(inputs)
    assert res["ok"] is True, res.get("error")
    run_dir = Path(res["run_dir"])
    _check_outputs(run_dir)
    assert len(res["shell_courses"]) == 5
    assert res["settlement"]["compliant"] is True
    json.loads((run_dir / "results.json").read_text(encoding="utf-8"))
    assert "Starting API 653 batch run" in (run_dir / "run.log").read_text(encoding="utf-8")


def test_smoke_case_2():
    inputs = TOOL.default_inputs()
    inputs.update(
        {
            "report_number": "R-2024-017",
            "tank_id": "TK-101",
            "inspection_date": "2024-05-01",
            "previous_inspection_date": "2019-05-01",
            "roof": {"roof_plate_actual_in": 0.215, "deck_plate_actual_in": 0.400, "snow_load_psf": 10.0},
            "floor": {
                "scans": [
                    {"location": "P1", "thickness_in": 0.21},
                    {"location": "P7", "thickness_in": 0.18},
                ],
                "soil_side_rate_mpy": 2.0,
            },
            "component_cmls": [
                {"cml_id": "C-01", "component": "Shell Course", "location": "Crs 1", "previous_thickness_in": 0.50, "readings_in": [0.49, 0.48]},
            ],
            "nozzle_cmls": [
                {"nozzle_id": "N1", "size_in": 6.0, "schedule": "80", "elevation_ft": 2.0, "previous_thickness_in": 0.85, "current_thickness_in": 0.82},
                {"nozzle_id": "N2", "size_in": 4.0, "elevation_ft": 14.0, "previous_thickness_in": 0.45, "current_thickness_in": 0.44},
            ],
            "practical_tmins": [{"component": "Shell Course", "practical_tmin_in": 0.3}],
            "elevation_points": [
                {"angle_deg": a, "previous_elevation_ft": 100.0, "current_elevation_ft": 100.0 - s}
                for a, s in zip(range(0, 360, 45), (0.0, 0.01, 0.03, 0.02, 0.0, -0.01, 0.0, 0.005))
            ],
            "config": {"corrosion_allowance_convention": "flat_allowance"},
        }
    )
    res = TOOL.run_batch(inputs)
    assert res["ok"] is True, res.get("error")
    run_dir = Path(res["run_dir"])
    _check_outputs(run_dir)
    assert res["nozzle_count"] == 2
    assert res["statistics"]["all"]["count"] == 5 + 1 + 2
    trace = json.loads((run_dir / "calc_trace.json").read_text(encoding="utf-8"))
    assert trace["summary"]["tank_id"] == "TK-101"
    assert len(trace["tables"]["nozzle_elevation_bands"]) == 2


def test_invalid_inputs_return_fields():
    inputs = TOOL.default_inputs()
    inputs["tank"]["diameter_ft"] = 0
    res = TOOL.run_batch(inputs)
    assert res["ok"] is False
    assert "tank.diameter_ft" in res["fields"]


def test_overstressed_course_reported_not_raised():
    inputs = TOOL.default_inputs()
    inputs["courses"][0]["allowable_stress_psi"] = 5.0
    res = TOOL.run_batch(inputs)
    assert res["ok"] is False
    assert res["fields"] == ["courses[0].allowable_stress_psi"]


def _reject_constant(name):
    raise ValueError(f"non-standard JSON constant {name}")


def test_cli_run_prints_strict_json(tmp_path, capsys):
    from loguru import logger

    from tank_inspection_app.__main__ import main

    inputs = TOOL.default_inputs()
    inputs["courses"][0]["age_years"] = 0.0
    f = tmp_path / "inputs.json"
    f.write_text(json.dumps(inputs), encoding="utf-8")
    try:
        code = main(["--log-level", "WARNING", "run", TOOL.meta.id, str(f)])
    finally:
        logger.remove()
    assert code == 0
    res = json.loads(capsys.readouterr().out, parse_constant=_reject_constant)
    assert res["ok"] is True
    assert res["shell_courses"][0]["remaining_life_years"] == "inf"
    assert res["shell_courses"][0]["remaining_life_display"] == 999
