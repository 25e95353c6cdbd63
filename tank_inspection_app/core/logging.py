from __future__ import annotations
import sys
from pathlib import Path
from loguru import logger
from .paths import logs_dir

LOG_FILE = "tank_inspection.log"
CONSOLE_FORMAT = "<level>{level: <8}</level> | {message}"


def configure_logging(console_level: str = "INFO") -> Path:
    """Route loguru to a rotating host log (DEBUG and up) and to stderr; returns the log path."""
    logger.remove()
    log_path = logs_dir() / LOG_FILE
    logger.add(str(log_path), level="DEBUG", rotation="5 MB", retention=10, enqueue=True, backtrace=False, diagnose=False)
    logger.add(sys.stderr, level=console_level.upper(), format=CONSOLE_FORMAT)
    logger.debug(f"Logging to {log_path}")
    return log_path
