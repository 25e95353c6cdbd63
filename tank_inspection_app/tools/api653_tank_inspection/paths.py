from __future__ import annotations

import hashlib
import json
import os
import time
from datetime import datetime
from pathlib import Path
from typing import Any, Dict

from tank_inspection_app.core.paths import runs_dir

TOOL_ID = "api653_tank_inspection"


def create_run_dir(tool_id: str = TOOL_ID, input_hash: str | None = None) -> Path:
    """Per-run output directory.

    Location:
      <user data dir>/<tool_id>/runs/YYYYMMDD_HHMMSS_<hash[:6]><rand[:2]>/

    Always under the user data directory, never the code directory.
    """
    root = runs_dir(tool_id)
    root.mkdir(parents=True, exist_ok=True)

    ts = datetime.now().strftime("%Y%m%d_%H%M%S")

    seed = f"{ts}:{os.getpid()}:{time.time_ns()}"
    rand = hashlib.sha256(seed.encode("utf-8")).hexdigest()[:8]

    if input_hash:
        short = f"{str(input_hash)[:6]}{rand[:2]}"
    else:
        short = rand

    run_dir = root / f"{ts}_{short}"
    run_dir.mkdir(parents=True, exist_ok=False)
    return run_dir


def _normalize(v: Any) -> Any:
    if isinstance(v, float):
        # stable float repr keeps hashes identical across platforms
        return float(f"{v:.12g}")
    if isinstance(v, dict):
        return {str(k): _normalize(v[k]) for k in sorted(v)}
    if isinstance(v, (list, tuple)):
        return [_normalize(i) for i in v]
    return v


def compute_input_hash(inputs: Dict[str, Any]) -> str:
    """Deterministic input hash computed from normalized, sorted keys (nested inputs included)."""
    payload = json.dumps(_normalize(inputs), sort_keys=True, separators=(",", ":"), ensure_ascii=True, default=str)
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()[:12]
