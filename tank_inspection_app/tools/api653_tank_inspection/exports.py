from __future__ import annotations

import json
import math
from pathlib import Path
from typing import Any, Dict

from openpyxl import Workbook
from openpyxl.styles import Font, PatternFill
from openpyxl.utils import get_column_letter
from reportlab.lib.pagesizes import letter
from reportlab.pdfgen import canvas

from tank_inspection_app.blocks.numeric import format_corrosion_rate, format_thickness, json_safe

from .calc_trace import CalcTrace
from .report_renderer import render_report_html

_HEADER_FONT = Font(bold=True)
_FILLS = {
    "good": PatternFill("solid", fgColor="EEF8F0"),
    "monitor": PatternFill("solid", fgColor="FFF7E0"),
    "critical": PatternFill("solid", fgColor="FBE9E9"),
}


def _cell(v: Any) -> Any:
    if isinstance(v, float) and not math.isfinite(v):
        return "∞" if v > 0 else ""
    if isinstance(v, (dict, list)):
        return json.dumps(json_safe(v), ensure_ascii=False)
    return v


def _autosize(ws):
    for col in ws.columns:
        max_len = 0
        col_letter = get_column_letter(col[0].column)
        for cell in col:
            val = "" if cell.value is None else str(cell.value)
            max_len = max(max_len, len(val))
        ws.column_dimensions[col_letter].width = min(80, max(10, max_len + 2))


def _header(ws, names):
    ws.append(list(names))
    for cell in ws[ws.max_row]:
        cell.font = _HEADER_FONT


def export_html(trace: CalcTrace, out_dir: Path) -> Path:
    html = render_report_html(trace)
    p = out_dir / "report.html"
    p.write_text(html, encoding="utf-8")
    return p


def export_pdf(trace: CalcTrace, out_dir: Path) -> Path:
    """
    Summary PDF: report identity, key outputs and shell course table. Full detail is in report.html.
    """
    p = out_dir / "report.pdf"
    c = canvas.Canvas(str(p), pagesize=letter)
    w, h = letter
    y = h - 72

    def _line(text: str, font: str = "Helvetica", size: int = 9, indent: int = 72, step: int = 12) -> None:
        nonlocal y
        if y < 72:
            c.showPage()
            y = h - 72
        c.setFont(font, size)
        c.drawString(indent, y, text)
        y -= step

    _line("API 653 Tank Inspection - Calculation Package (Summary)", "Helvetica-Bold", 14, step=24)
    _line(f"Tool: {trace.meta.tool_id} v{trace.meta.tool_version}", size=10, step=14)
    _line(f"Input hash: {trace.meta.input_hash}", size=10, step=14)
    _line(f"Generated: {trace.meta.timestamp}", size=10, step=22)
    _line("Note: Full step-by-step calcs are provided in report.html (offline).", step=18)

    _line("Key outputs:", "Helvetica-Bold", 10, step=14)
    for k, v in (trace.summary or {}).items():
        _line(f"{k}: {_cell(v)}", indent=84)

    courses = trace.tables.get("shell_courses") or []
    if courses:
        y -= 8
        _line("Shell courses:", "Helvetica-Bold", 10, step=14)
        _line("Course   t_min (in)   actual (in)   CR (mpy)   RL (yr)   Status", "Courier", 8, indent=84)
        for r in courses:
            _line(
                f"{r['course']:>6}   {format_thickness(r['t_min_in']):>10}   {format_thickness(r['actual_in']):>11}   "
                f"{format_corrosion_rate(r['CR_mpy']):>8}   {r['RL_display']:>7}   {r['status']}",
                "Courier",
                8,
                indent=84,
            )
    c.showPage()
    c.save()
    return p


def export_excel(trace: CalcTrace, out_dir: Path, results: Dict[str, Any]) -> Path:
    wb = Workbook()

    ws = wb.active
    ws.title = "Inputs"
    _header(ws, ["id", "label", "value", "units", "source"])
    for i in trace.inputs:
        ws.append([i.id, i.label, _cell(i.value), i.units, i.source])
    _autosize(ws)

    ws2 = wb.create_sheet("Assumptions")
    _header(ws2, ["id", "text"])
    for a in trace.assumptions:
        ws2.append([a.id, a.text])
    _autosize(ws2)

    ws3 = wb.create_sheet("Calcs")
    _header(ws3, ["id", "section", "title", "reference", "equation", "substitution", "result_rounded", "units", "warnings"])
    for s in trace.steps:
        ref = "; ".join([f"{r.type}:{r.ref}" for r in s.references])
        ws3.append([
            s.id, s.section, s.title, ref, s.equation_latex, s.substitution_latex,
            _cell(s.result_rounded.value), s.result_rounded.units, "; ".join(s.warnings),
        ])
    _autosize(ws3)

    # One sheet per record table
    for name, rows in trace.tables.items():
        wst = wb.create_sheet(name.replace("_", " ").title()[:31])
        if not rows:
            wst.append(["(no records)"])
            continue
        cols = list(rows[0].keys())
        _header(wst, cols)
        for row in rows:
            wst.append([_cell(row.get(col)) for col in cols])
            fill = _FILLS.get(row.get("severity", ""))
            if fill is not None:
                for cell in wst[wst.max_row]:
                    cell.fill = fill
        _autosize(wst)

    ws5 = wb.create_sheet("Results")
    _header(ws5, ["key", "value"])
    for k, v in results.items():
        ws5.append([k, _cell(v)])
    _autosize(ws5)

    p = out_dir / "results.xlsx"
    wb.save(p)
    return p


def export_json(trace: CalcTrace, out_dir: Path, results: Dict[str, Any]) -> Dict[str, Path]:
    p1 = out_dir / "calc_trace.json"
    p1.write_text(json.dumps(json_safe(trace.to_dict()), indent=2, ensure_ascii=True, default=str), encoding="utf-8")

    p2 = out_dir / "results.json"
    p2.write_text(json.dumps(json_safe(results), indent=2, ensure_ascii=True, default=str), encoding="utf-8")
    return {"calc_trace": p1, "results": p2}


def export_all(trace: CalcTrace, out_dir: Path, results: Dict[str, Any]) -> Dict[str, Path]:
    outputs: Dict[str, Path] = {}
    outputs["html"] = export_html(trace, out_dir)
    outputs["pdf"] = export_pdf(trace, out_dir)
    outputs.update(export_json(trace, out_dir, results))
    outputs["excel"] = export_excel(trace, out_dir, results)
    return outputs
