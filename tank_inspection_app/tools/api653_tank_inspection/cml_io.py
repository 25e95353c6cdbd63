"""Import / export of component and nozzle CML records as Excel workbooks.

Column headings match the inspection forms field crews already fill in; a written sheet
reads back to the same records (the result columns are ignored on import). Import reads
the first worksheet; a header may carry a unit suffix in parentheses
("Elevation (ft)"), which is ignored when matching.
"""
from __future__ import annotations

import math
import re
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

from loguru import logger
from openpyxl import Workbook, load_workbook
from openpyxl.styles import Font

from tank_inspection_app.blocks.numeric import parse_number, parse_optional_number, round_to

from .cml import ComponentCMLResult, NozzleResult
from .models import ComponentCML, NozzleCML

COMPONENT_READINGS = 6
NOZZLE_READINGS = 4

COMPONENT_HEADERS = [
    "CML ID",
    "Component",
    "Location",
    "Size",
    "Previous Reading",
    "Current Reading",
    *[f"Reading {i}" for i in range(1, COMPONENT_READINGS + 1)],
    "Elapsed Years",
    "Practical tMin",
    "Applied tMin",
    "Corrosion Rate",
    "Remaining Life",
    "Notes",
]

NOZZLE_HEADERS = [
    "Nozzle ID",
    "Description",
    "Size",
    "Schedule",
    "Service",
    "Orientation",
    "Elevation",
    "Previous Thickness",
    "Current Thickness",
    *[f"Reading {i}" for i in range(1, NOZZLE_READINGS + 1)],
    "Nominal Thickness",
    "tMin",
    "Applied tMin",
    "Corrosion Rate",
    "Remaining Life",
    "Next Inspection",
    "Method",
    "Notes",
]

_UNIT_PAREN = re.compile(r"\s*\([^)]*\)\s*$")


def _key(header: Any) -> str:
    return _UNIT_PAREN.sub("", str(header or "")).strip().lower()


def _text(v: Any) -> str:
    return "" if v is None else str(v).strip()


def _rows(path: Path) -> Iterator[Tuple[int, Dict[str, Any]]]:
    wb = load_workbook(filename=str(path), read_only=True, data_only=True)
    try:
        ws = wb.worksheets[0]
        it = ws.iter_rows(values_only=True)
        header = next(it, None)
        if header is None:
            return
        keys = [_key(h) for h in header]
        for n, values in enumerate(it, start=2):
            if values is None or all(v is None or _text(v) == "" for v in values):
                continue
            yield n, {k: v for k, v in zip(keys, values) if k}
    finally:
        wb.close()


def _readings(row: Dict[str, Any], count: int, where: str) -> List[float]:
    out = []
    for i in range(1, count + 1):
        v = parse_optional_number(row.get(f"reading {i}"), f"Reading {i} ({where})")
        if v is not None:
            out.append(v)
    return out


def _current(row: Dict[str, Any], header: str, readings: List[float], where: str) -> Optional[float]:
    """A blank current cell is allowed only when point readings are present."""
    if readings:
        return parse_optional_number(row.get(header.lower()), f"{header} ({where})")
    return parse_number(row.get(header.lower()), f"{header} ({where})")


def read_component_cmls(path: Path) -> List[ComponentCML]:
    """Rows without both a component and a location are skipped; blank CML IDs are numbered."""
    records: List[ComponentCML] = []
    for n, row in _rows(Path(path)):
        component = _text(row.get("component"))
        location = _text(row.get("location"))
        if not component or not location:
            logger.debug(f"{Path(path).name} row {n}: no component/location, skipped")
            continue
        where = f"row {n}"
        readings = _readings(row, COMPONENT_READINGS, where)
        records.append(
            ComponentCML(
                cml_id=_text(row.get("cml id")) or f"CML-{len(records) + 1:03d}",
                component=component,
                location=location,
                size_in=parse_optional_number(row.get("size"), f"Size ({where})"),
                previous_thickness_in=parse_number(row.get("previous reading"), f"Previous Reading ({where})"),
                current_thickness_in=_current(row, "Current Reading", readings, where),
                readings_in=readings,
                elapsed_years=parse_optional_number(row.get("elapsed years"), f"Elapsed Years ({where})"),
                practical_tmin_in=parse_optional_number(row.get("practical tmin"), f"Practical tMin ({where})"),
                notes=_text(row.get("notes")),
            )
        )
    logger.info(f"Imported {len(records)} component CML records from {Path(path).name}")
    return records


def read_nozzle_cmls(path: Path) -> List[NozzleCML]:
    records: List[NozzleCML] = []
    for n, row in _rows(Path(path)):
        nozzle_id = _text(row.get("nozzle id") or row.get("id"))
        if not nozzle_id:
            logger.debug(f"{Path(path).name} row {n}: no nozzle id, skipped")
            continue
        where = f"row {n}"
        readings = _readings(row, NOZZLE_READINGS, where)
        records.append(
            NozzleCML(
                nozzle_id=nozzle_id,
                description=_text(row.get("description")),
                size_in=parse_number(row.get("size"), f"Size ({where})"),
                schedule=_text(row.get("schedule")) or "40",
                service=_text(row.get("service")),
                orientation_deg=parse_number(row.get("orientation"), f"Orientation ({where})", default=0.0),
                elevation_ft=parse_number(row.get("elevation"), f"Elevation ({where})", default=0.0),
                previous_thickness_in=parse_number(row.get("previous thickness"), f"Previous Thickness ({where})"),
                current_thickness_in=_current(row, "Current Thickness", readings, where),
                readings_in=readings,
                nominal_thickness_in=parse_optional_number(row.get("nominal thickness"), f"Nominal Thickness ({where})"),
                tmin_in=parse_optional_number(row.get("tmin"), f"tMin ({where})"),
                inspection_method=_text(row.get("method")) or "UT",
                notes=_text(row.get("notes")),
            )
        )
    logger.info(f"Imported {len(records)} nozzle CML records from {Path(path).name}")
    return records


def _life(years: float) -> Any:
    return "∞" if math.isinf(years) else round_to(years, 1)


def _reading_cells(readings: Sequence[float], count: int) -> List[Optional[float]]:
    return list(readings) + [None] * (count - len(readings))


def _write(path: Path, title: str, headers: List[str], rows: List[List[Any]]) -> Path:
    wb = Workbook()
    ws = wb.active
    ws.title = title
    ws.append(headers)
    for cell in ws[1]:
        cell.font = Font(bold=True)
    for r in rows:
        ws.append(r)
    for i, h in enumerate(headers, start=1):
        width = max([len(h)] + [len(str(r[i - 1])) for r in rows if r[i - 1] is not None])
        ws.column_dimensions[ws.cell(row=1, column=i).column_letter].width = min(60, width + 2)
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    wb.save(path)
    return path


def write_component_cmls(
    path: Path,
    records: Sequence[ComponentCML],
    results: Optional[Sequence[ComponentCMLResult]] = None,
) -> Path:
    by_id = {r.cml_id: r for r in (results or [])}
    rows = []
    for rec in records:
        res = by_id.get(rec.cml_id)
        rows.append([
            rec.cml_id,
            rec.component,
            rec.location,
            rec.size_in,
            rec.previous_thickness_in,
            rec.current_thickness_in,
            *_reading_cells(rec.readings_in, COMPONENT_READINGS),
            rec.elapsed_years,
            rec.practical_tmin_in,
            res.tmin_in if res else None,
            round_to(res.corrosion.corrosion_rate_mpy, 2) if res else None,
            _life(res.corrosion.remaining_life_years) if res else None,
            rec.notes,
        ])
    return _write(path, "Component CML Records", COMPONENT_HEADERS, rows)


def write_nozzle_cmls(
    path: Path,
    records: Sequence[NozzleCML],
    results: Optional[Sequence[NozzleResult]] = None,
) -> Path:
    by_id = {r.nozzle_id: r for r in (results or [])}
    rows = []
    for rec in records:
        res = by_id.get(rec.nozzle_id)
        nxt = None
        if res is not None:
            nxt = res.next_inspection_date.isoformat() if res.next_inspection_date else f"+{res.next_inspection_years} yr"
        rows.append([
            rec.nozzle_id,
            rec.description,
            rec.size_in,
            rec.schedule,
            rec.service,
            rec.orientation_deg,
            rec.elevation_ft,
            rec.previous_thickness_in,
            rec.current_thickness_in,
            *_reading_cells(rec.readings_in, NOZZLE_READINGS),
            rec.nominal_thickness_in,
            rec.tmin_in,
            res.tmin_in if res else None,
            round_to(res.corrosion.corrosion_rate_mpy, 2) if res else None,
            _life(res.corrosion.remaining_life_years) if res else None,
            nxt,
            rec.inspection_method,
            rec.notes,
        ])
    return _write(path, "Nozzle CML Records", NOZZLE_HEADERS, rows)
