from __future__ import annotations

import html
import math
from typing import Any, Dict, List

from .calc_trace import CalcTrace


def _h(s: Any) -> str:
    return html.escape(_fmt(s))


def _fmt(v: Any) -> str:
    if isinstance(v, float):
        if math.isinf(v):
            return "∞" if v > 0 else "-∞"
        if math.isnan(v):
            return "-"
        return f"{v:.6g}"
    if v is None:
        return ""
    return str(v)


def _severity_class(row: Dict[str, Any]) -> str:
    sev = row.get("severity") or ""
    if not sev and "status" in row:
        sev = "good" if row["status"] == "OK" else "critical"
    return f" class='{sev}'" if sev else ""


def _render_table(name: str, rows: List[Dict[str, Any]]) -> str:
    if not rows:
        return f"<h3>{_h(name.replace('_', ' ').title())}</h3><div class='box'>No records.</div>"
    cols = list(rows[0].keys())
    parts = [f"<h3>{_h(name.replace('_', ' ').title())}</h3><table><tr>"]
    parts.extend(f"<th>{_h(c)}</th>" for c in cols)
    parts.append("</tr>")
    for row in rows:
        parts.append(f"<tr{_severity_class(row)}>")
        parts.extend(f"<td>{_h(row.get(c))}</td>" for c in cols)
        parts.append("</tr>")
    parts.append("</table>")
    return "".join(parts)


def render_report_html(trace: CalcTrace) -> str:
    meta = trace.meta
    ts = meta.timestamp
    summary = trace.summary or {}

    css = """
    @page { size: letter; margin: 0.6in; }
    body { font-family: Arial, Helvetica, sans-serif; font-size: 10.5pt; color: #111; }
    h1 { font-size: 16pt; margin: 0 0 6px 0; }
    h2 { font-size: 12.5pt; margin: 16px 0 6px 0; border-bottom: 1px solid #ccc; padding-bottom: 2px; }
    h3 { font-size: 11pt; margin: 12px 0 4px 0; }
    .meta { font-size: 9pt; color: #333; }
    .box { border: 1px solid #999; padding: 8px; margin: 6px 0; }
    .eq { font-family: "Courier New", monospace; background: #f7f7f7; padding: 6px; white-space: pre-wrap; }
    .warn { color: #a60; }
    table { border-collapse: collapse; width: 100%; margin: 6px 0 10px 0; }
    th, td { border: 1px solid #bbb; padding: 4px 6px; vertical-align: top; }
    th { background: #f1f1f1; text-align: left; }
    tr.good td { background: #eef8f0; }
    tr.monitor td { background: #fff7e0; }
    tr.critical td { background: #fbe9e9; }
    .pass { color: #0a6; font-weight: bold; }
    .fail { color: #b00; font-weight: bold; }
    .footer { position: fixed; bottom: 0; left: 0; right: 0; font-size: 8pt; color: #444; }
    .footer .inner { border-top: 1px solid #ccc; padding-top: 4px; }
    """

    title = "API 653 Tank Inspection Calculations"
    tank = summary.get("tank_id") or ""

    html_parts = []
    html_parts.append("<!doctype html><html><head><meta charset='utf-8'>")
    html_parts.append(f"<title>{_h(title)} - {_h(tank or meta.input_hash)}</title>")
    html_parts.append(f"<style>{css}</style></head><body>")
    html_parts.append("<div class='footer'><div class='inner'>"
                      f"Tool: {_h(meta.tool_id)} v{_h(meta.tool_version)} | Input hash: {_h(meta.input_hash)} | Generated: {_h(ts)}"
                      "</div></div>")

    html_parts.append(f"<h1>{_h(title)}</h1>")
    html_parts.append("<div class='meta'>"
                      f"<div><b>Tank:</b> {_h(tank)}</div>"
                      f"<div><b>Report No.:</b> {_h(summary.get('report_number', ''))}</div>"
                      f"<div><b>Inspection Date:</b> {_h(summary.get('inspection_date', ''))}</div>"
                      f"<div><b>Code Basis:</b> {_h(meta.code_basis or '')}</div>"
                      f"<div><b>Tool Version:</b> {_h(meta.tool_version)}</div>"
                      f"<div><b>Timestamp:</b> {_h(ts)}</div>"
                      f"<div><b>Units System:</b> {_h(meta.units_system)}</div>"
                      f"<div><b>Input Hash:</b> {_h(meta.input_hash)}</div>"
                      "</div>")

    # Summary
    html_parts.append("<h2>Summary</h2>")
    if summary:
        html_parts.append("<table><tr><th>Item</th><th>Value</th></tr>")
        for k, v in summary.items():
            html_parts.append(f"<tr><td>{_h(k.replace('_', ' '))}</td><td>{_h(v)}</td></tr>")
        html_parts.append("</table>")
    else:
        html_parts.append("<div class='box'>No summary provided.</div>")

    # Inputs
    html_parts.append("<h2>Inputs</h2>")
    html_parts.append("<table><tr><th>ID</th><th>Label</th><th>Value</th><th>Units</th><th>Source</th></tr>")
    for i in trace.inputs:
        html_parts.append(
            f"<tr><td>{_h(i.id)}</td><td>{_h(i.label)}</td><td>{_h(i.value)}</td><td>{_h(i.units)}</td><td>{_h(i.source)}</td></tr>"
        )
    html_parts.append("</table>")

    # Assumptions
    html_parts.append("<h2>Assumptions &amp; Limitations</h2>")
    if trace.assumptions:
        html_parts.append("<ul>")
        for a in trace.assumptions:
            html_parts.append(f"<li><b>{_h(a.id)}</b>: {_h(a.text)}</li>")
        html_parts.append("</ul>")
    else:
        html_parts.append("<div class='box'>None.</div>")

    # Steps, grouped by section
    html_parts.append("<h2>Calculations</h2>")
    section = None
    for s in trace.steps:
        if s.section != section:
            section = s.section
            html_parts.append(f"<h3>{_h(section)}</h3>")
        html_parts.append("<div class='box'>")
        html_parts.append(f"<div><b>{_h(s.id)}: {_h(s.title)}</b></div>")
        html_parts.append(f"<div>Output: {_h(s.output_symbol)} ({_h(s.output_description)})</div>")
        html_parts.append("<div class='eq'><b>Equation</b>\n" + _h(s.equation_latex) + "</div>")
        html_parts.append("<div class='eq'><b>Substitution</b>\n" + _h(s.substitution_latex) + "</div>")

        html_parts.append("<table><tr><th>Symbol</th><th>Description</th><th>Value</th><th>Units</th><th>Source</th></tr>")
        for v in s.variables:
            html_parts.append(
                f"<tr><td>{_h(v.symbol)}</td><td>{_h(v.description)}</td><td>{_h(v.value)}</td><td>{_h(v.units)}</td><td>{_h(v.source)}</td></tr>"
            )
        html_parts.append("</table>")

        html_parts.append(
            f"<div><b>Result:</b> {_h(s.result_rounded.value)} {_h(s.result_rounded.units)}"
            f" <span class='meta'>(unrounded {_h(s.result_unrounded.value)}; rounded to {_h(s.decimals)} dp)</span></div>"
        )

        for w in s.warnings:
            html_parts.append(f"<div class='warn'>Note: {_h(w)}</div>")

        if s.checks:
            html_parts.append("<table><tr><th>Check</th><th>Demand</th><th>Capacity</th><th>Ratio</th><th>Status</th></tr>")
            for c in s.checks:
                cls = "pass" if c.pass_fail.upper() == "PASS" else "fail"
                html_parts.append(
                    f"<tr><td>{_h(c.label)}</td><td>{_h(c.demand)}</td><td>{_h(c.capacity)}</td><td>{_h(c.ratio)}</td><td class='{cls}'>{_h(c.pass_fail)}</td></tr>"
                )
            html_parts.append("</table>")

        if s.references:
            html_parts.append("<div style='margin-top:6px;'><b>References</b>: " +
                              ", ".join([_h(f"{r.type}: {r.ref}") for r in s.references]) + "</div>")

        html_parts.append("</div>")

    # Record tables
    if trace.tables:
        html_parts.append("<h2>Records</h2>")
        for name, rows in trace.tables.items():
            html_parts.append(_render_table(name, rows))

    html_parts.append("</body></html>")
    return "".join(html_parts)
