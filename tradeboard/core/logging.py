from __future__ import annotations

import os
import sys
from pathlib import Path

from loguru import logger as _logger


def _env_flag(name: str) -> bool:
    return str(os.getenv(name, "0")).lower() in {"1", "true", "yes"}


def setup_logging(log_dir: str = "logs", level: str = "INFO") -> None:
    Path(log_dir).mkdir(parents=True, exist_ok=True)

    # Allow env override for log level (e.g., DEBUG)
    level = str(os.getenv("TRADEBOARD_LOG_LEVEL", level)).upper()

    _logger.remove()
    _logger.configure(extra={"component": "app"})
    if not _env_flag("TRADEBOARD_DISABLE_CONSOLE_LOG"):
        _logger.add(
            sink=lambda msg: print(msg, end="", file=sys.stderr),
            level=level,
            colorize=True,
            backtrace=False,
            diagnose=False,
        )
    _logger.add(
        Path(log_dir) / "tradeboard.log",
        rotation="10 MB",
        retention=10,
        level=level,
        enqueue=True,
        backtrace=False,
        diagnose=False,
        format="{time:YYYY-MM-DD HH:mm:ss} | {level} | {extra[component]} | {message}",
    )


def get_logger() -> _logger.__class__:
    return _logger


def get_engine_logger() -> _logger.__class__:
    """Return a logger bound for the pure computation modules (sanitize, positions, timeline...)."""
    return _logger.bind(component="engine")
