from __future__ import annotations

from pathlib import Path
from typing import Any, Optional, Tuple

from loguru import logger


def get_run_logger(run_dir: Path, tool_id: str, input_hash: Optional[str] = None) -> Tuple[Any, int]:
    """Bind a run-scoped logger and add a sink writing to <run_dir>/run.log.

    The host configures loguru once (core.logging); this adds a run-only sink that
    accepts records carrying this run's tool_id/run_dir in `extra`. Calculator
    modules log through the global logger, so callers wrap the run in
    `logger.contextualize(tool_id=..., run_dir=...)` to route their records here.

    Returns:
      (bound_logger, sink_id)
    """
    run_dir.mkdir(parents=True, exist_ok=True)
    log_path = run_dir / "run.log"

    bound = logger.bind(tool_id=tool_id, run_dir=str(run_dir), input_hash=input_hash or "")
    sink_id = logger.add(
        str(log_path),
        level="DEBUG",
        enqueue=False,
        backtrace=True,
        diagnose=False,
        format="{time:YYYY-MM-DD HH:mm:ss.SSS} | {level:<8} | {extra[tool_id]} | {message}",
        filter=lambda r: r["extra"].get("tool_id") == tool_id and r["extra"].get("run_dir") == str(run_dir),
    )
    return bound, int(sink_id)


def remove_run_logger_sink(sink_id: Optional[int]) -> None:
    """Remove a sink created by get_run_logger (no-op for None or an already removed sink)."""
    if sink_id is None:
        return
    try:
        logger.remove(sink_id)
    except ValueError:
        pass
