"""Headless host: list tools, print default inputs, or run a tool on a JSON input file.

    python -m tank_inspection_app list
    python -m tank_inspection_app defaults api653_tank_inspection > inputs.json
    python -m tank_inspection_app run api653_tank_inspection inputs.json
"""
from __future__ import annotations

import argparse
import json
from pathlib import Path
from typing import List, Optional

from tank_inspection_app.blocks.numeric import json_safe
from tank_inspection_app.core.loader import discover_tools, find_tool
from tank_inspection_app.core.logging import configure_logging


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(prog="tank-inspection", description=__doc__.splitlines()[0])
    parser.add_argument("--log-level", default="INFO")
    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("list", help="List discovered tools")
    p_def = sub.add_parser("defaults", help="Print a tool's default inputs as JSON")
    p_def.add_argument("tool_id")
    p_run = sub.add_parser("run", help="Run a tool and print its results as JSON")
    p_run.add_argument("tool_id")
    p_run.add_argument("inputs", nargs="?", help="JSON input file (defaults when omitted)")
    args = parser.parse_args(argv)

    configure_logging(args.log_level)

    if args.command == "list":
        for t in discover_tools():
            print(f"{t.meta.id:32} {t.meta.name} ({t.meta.category}) v{t.meta.version}")
        return 0

    try:
        tool = find_tool(args.tool_id)
    except KeyError:
        parser.error(f"unknown tool: {args.tool_id}")
    if args.command == "defaults":
        print(json.dumps(tool.default_inputs(), indent=2))
        return 0

    inputs = tool.default_inputs()
    if args.inputs:
        inputs = json.loads(Path(args.inputs).read_text(encoding="utf-8"))
    res = tool.run(inputs)
    print(json.dumps(json_safe(res), indent=2, allow_nan=False, default=str))
    return 0 if res.get("ok") else 2


if __name__ == "__main__":
    raise SystemExit(main())
