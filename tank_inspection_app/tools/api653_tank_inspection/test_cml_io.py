from __future__ import annotations

import pytest
from openpyxl import Workbook, load_workbook

from tank_inspection_app.blocks.errors import InvalidInputError

from .cml import assess_component_cml, assess_nozzle
from .cml_io import (
    COMPONENT_HEADERS,
    NOZZLE_HEADERS,
    read_component_cmls,
    read_nozzle_cmls,
    write_component_cmls,
    write_nozzle_cmls,
)
from .models import ComponentCML, NozzleCML

SHORT_COMPONENT_HEADERS = ["CML ID", "Component", "Location", "Previous Reading", "Current Reading", "Notes"]


def _sheet(path, headers, rows):
    wb = Workbook()
    ws = wb.active
    ws.append(headers)
    for r in rows:
        ws.append(r)
    wb.save(path)
    return path


def _col(header: str, headers=COMPONENT_HEADERS) -> int:
    return headers.index(header) + 1


def test_component_export_then_import(tmp_path) -> None:
    recs = [
        ComponentCML(cml_id="C-01", component="Shell Course", location="Crs 1 @ 0 deg", previous_thickness_in=0.500, current_thickness_in=0.480),
        ComponentCML(cml_id="C-02", component="Roof", location="Center", previous_thickness_in=0.250, current_thickness_in=0.250, notes="no loss"),
    ]
    results = [assess_component_cml(r, 10.0) for r in recs]
    p = write_component_cmls(tmp_path / "out" / "component.xlsx", recs, results)

    ws = load_workbook(p).active
    assert [c.value for c in ws[1]] == COMPONENT_HEADERS
    assert ws.cell(row=2, column=_col("Applied tMin")).value == pytest.approx(0.100)
    assert ws.cell(row=2, column=_col("Practical tMin")).value is None
    assert ws.cell(row=2, column=_col("Corrosion Rate")).value == pytest.approx(2.0)
    assert ws.cell(row=3, column=_col("Remaining Life")).value == "∞"

    back = read_component_cmls(p)
    assert [r.cml_id for r in back] == ["C-01", "C-02"]
    assert back[0].current_thickness_in == pytest.approx(0.480)
    assert back[0].practical_tmin_in is None
    assert back[1].notes == "no loss"


def test_component_records_survive_a_written_sheet(tmp_path) -> None:
    recs = [
        ComponentCML(
            cml_id="C-01",
            component="Shell Nozzle",
            location="N3 neck",
            size_in=12.0,
            previous_thickness_in=0.500,
            readings_in=[0.48, 0.47],
            elapsed_years=5.0,
            practical_tmin_in=0.200,
        ),
        ComponentCML(cml_id="C-02", component="Roof", location="Center", previous_thickness_in=0.250, current_thickness_in=0.240),
    ]
    results = [assess_component_cml(r, 10.0) for r in recs]

    back = read_component_cmls(write_component_cmls(tmp_path / "plain.xlsx", recs))
    assert [r.model_dump() for r in back] == [r.model_dump() for r in recs]

    back = read_component_cmls(write_component_cmls(tmp_path / "with_results.xlsx", recs, results))
    assert [r.model_dump() for r in back] == [r.model_dump() for r in recs]
    assert back[0].elapsed_years == pytest.approx(5.0)
    assert assess_component_cml(back[0], 10.0) == results[0]


def test_component_import_skips_incomplete_rows_and_numbers_ids(tmp_path) -> None:
    p = _sheet(
        tmp_path / "cml.xlsx",
        SHORT_COMPONENT_HEADERS,
        [
            [None, "Bottom Plate", "Sketch A", "0.250 in", "0.210", None],
            ["X", "Roof", None, 0.25, 0.24, None],
            [None, None, None, None, None, None],
        ],
    )
    recs = read_component_cmls(p)
    assert len(recs) == 1
    assert recs[0].cml_id == "CML-001"
    assert recs[0].previous_thickness_in == pytest.approx(0.250)
    assert recs[0].practical_tmin_in is None
    assert recs[0].readings_in == []


def test_component_import_names_bad_cell(tmp_path) -> None:
    p = _sheet(tmp_path / "bad.xlsx", SHORT_COMPONENT_HEADERS, [["C1", "Roof", "Center", "n/a", 0.2, None]])
    with pytest.raises(InvalidInputError) as ei:
        read_component_cmls(p)
    assert ei.value.field == "Previous Reading (row 2)"


def test_component_import_requires_current_without_readings(tmp_path) -> None:
    p = _sheet(tmp_path / "blank.xlsx", SHORT_COMPONENT_HEADERS, [["C1", "Roof", "Center", 0.25, None, None]])
    with pytest.raises(InvalidInputError) as ei:
        read_component_cmls(p)
    assert ei.value.field == "Current Reading (row 2)"


def test_nozzle_import_with_unit_headers(tmp_path) -> None:
    headers = ["ID", "Description", "Size", "Schedule", "Service", "Orientation (°)", "Elevation (ft)",
               "Previous Thickness", "Current Thickness", "Nominal Thickness", "tMin", "Method"]
    p = _sheet(
        tmp_path / "noz.xlsx",
        headers,
        [["N1", "Inlet", '6"', "80", "Crude", 90, "3.5", 0.43, 0.41, 0.432, None, None]],
    )
    recs = read_nozzle_cmls(p)
    assert len(recs) == 1
    n = recs[0]
    assert n.nozzle_id == "N1"
    assert n.size_in == pytest.approx(6.0)
    assert n.orientation_deg == pytest.approx(90.0)
    assert n.elevation_ft == pytest.approx(3.5)
    assert n.tmin_in is None
    assert n.inspection_method == "UT"


def test_nozzle_export_headers(tmp_path) -> None:
    rec = NozzleCML(nozzle_id="N1", size_in=4.0, schedule="40", previous_thickness_in=0.500, current_thickness_in=0.490)
    res = assess_nozzle(rec, 5.0)
    p = write_nozzle_cmls(tmp_path / "noz_out.xlsx", [rec], [res])
    ws = load_workbook(p).active
    assert [c.value for c in ws[1]] == NOZZLE_HEADERS
    assert ws.cell(row=2, column=_col("tMin", NOZZLE_HEADERS)).value is None
    assert ws.cell(row=2, column=_col("Applied tMin", NOZZLE_HEADERS)).value == pytest.approx(0.380)
    assert ws.cell(row=2, column=_col("Next Inspection", NOZZLE_HEADERS)).value == "+10 yr"


def test_nozzle_readings_survive_a_written_sheet(tmp_path) -> None:
    recs = [
        NozzleCML(nozzle_id="N1", description="Inlet", size_in=6.0, schedule="80", elevation_ft=2.0,
                  previous_thickness_in=0.85, readings_in=[0.83, 0.82, 0.84, 0.81]),
        NozzleCML(nozzle_id="N2", size_in=4.0, previous_thickness_in=0.45, current_thickness_in=0.44, tmin_in=0.3),
    ]
    results = [assess_nozzle(r, 5.0) for r in recs]
    back = read_nozzle_cmls(write_nozzle_cmls(tmp_path / "noz.xlsx", recs, results))
    assert [r.model_dump() for r in back] == [r.model_dump() for r in recs]
    assert back[0].current_thickness_in is None
    assert assess_nozzle(back[0], 5.0).current_thickness_in == pytest.approx(0.81)
