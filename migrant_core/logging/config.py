# =============================================================================
# migrant_core/logging/config.py
# Logging Configuration for the Migrant Health client
# =============================================================================
"""
Wires the ``migrant_core`` loggers to stdout and a dated file.

The sync core runs on background threads (NetworkMonitor, SyncTimer) as
well as the Streamlit script thread, so the thread name is part of every
line.
"""

import logging
import os
import sys
import time
from datetime import datetime
from pathlib import Path
from typing import Optional, Union


LOG_FORMAT = "%(asctime)s | %(threadName)s | %(name)s | %(levelname)s | %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

DEFAULT_LOG_DIR = Path("logs")
LOG_LEVEL_ENV = "MIGRANT_LOG_LEVEL"

# HTTP client chatter; the connectors and the speed probe log their own outcome
QUIET_LOGGERS = ("urllib3", "requests", "watchdog")


def _resolve_level(level: Optional[Union[int, str]]) -> int:
    if level is None:
        level = os.getenv(LOG_LEVEL_ENV, "INFO")
    if isinstance(level, str):
        # getLevelName maps known names to their number and echoes unknown ones back
        value = logging.getLevelName(level.upper())
        return value if isinstance(value, int) else logging.INFO
    return level


def setup_logging(
    level: Optional[Union[int, str]] = None,
    log_to_file: bool = True,
    log_dir: Path = DEFAULT_LOG_DIR,
    log_filename: Optional[str] = None,
) -> Optional[Path]:
    """
    Configure application-wide logging.

    Args:
        level: Level or level name; defaults to $MIGRANT_LOG_LEVEL, then INFO
        log_to_file: Also write to a file under log_dir
        log_dir: Directory for log files
        log_filename: File name (default: migrant_YYYY-MM-DD.log)

    Returns:
        Path of the log file, or None when logging to stdout only
    """
    handlers = [logging.StreamHandler(sys.stdout)]
    log_path = None

    if log_to_file:
        log_dir = Path(log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)
        log_path = log_dir / (log_filename or f"migrant_{datetime.now():%Y-%m-%d}.log")
        handlers.append(logging.FileHandler(log_path, encoding="utf-8"))

    resolved = _resolve_level(level)
    logging.basicConfig(
        level=resolved,
        format=LOG_FORMAT,
        datefmt=LOG_DATE_FORMAT,
        handlers=handlers,
        force=True,
    )

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger("migrant_core").info(
        f"Logging initialized at {logging.getLevelName(resolved)}"
        + (f", writing to {log_path}" if log_path else "")
    )
    return log_path


class LogContext:
    """
    Logs the start, duration and outcome of one operation.

    Usage:
        with LogContext(logger, "Sync cycle (timer)") as ctx:
            run_tasks()
        ctx.elapsed  # seconds
    """

    def __init__(self, logger: logging.Logger, operation: str):
        self.logger = logger
        self.operation = operation
        self.elapsed: Optional[float] = None
        self._started: Optional[float] = None

    def __enter__(self) -> "LogContext":
        self._started = time.monotonic()
        self.logger.info(f"{self.operation}... started")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        self.elapsed = time.monotonic() - self._started

        if exc_type is None:
            self.logger.info(f"{self.operation}... completed ({self.elapsed:.2f}s)")
        else:
            self.logger.error(
                f"{self.operation}... failed after {self.elapsed:.2f}s: {exc_val}",
                exc_info=(exc_type, exc_val, exc_tb),
            )
        return False
