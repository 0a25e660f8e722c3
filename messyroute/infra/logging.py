# messyroute/infra/logging.py
# -*- coding: utf-8 -*-

"""
Logging setup for messy-route.

Library modules only call `get_logger(__name__)`. The script entry point calls
`init_logging()` once; MESSYROUTE_LOG_LEVEL, when set, wins over the level it
passes.

Records look like:

    [2026-01-18 17:47:09][WARNING][messyroute.detour.synthesizer] pair #3 ...
"""

from __future__ import annotations

import logging
import os
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

_ENV_LEVEL = "MESSYROUTE_LOG_LEVEL"
_LOGS_DIR = Path("logs")
_FORMAT = "[{asctime}][{levelname}][{name}] {message}"
_DATEFMT = "%Y-%m-%d %H:%M:%S"

_current_log_file: Optional[Path] = None


# ────────────────────────────────────────────────────────────────────────────────
# Internals
# ────────────────────────────────────────────────────────────────────────────────

def _effective_level(level: str) -> int:
    name = os.getenv(_ENV_LEVEL) or level
    return getattr(logging, str(name).upper(), logging.INFO)


def _run_log_path(logs_dir: Optional[Path]) -> Path:
    """logs/<script>__<YYYYmmdd-HHMMSS>.log"""
    base = Path(logs_dir) if logs_dir is not None else _LOGS_DIR
    stem = Path(sys.argv[0] or "").stem
    if stem in {"", "-m", "-c"}:
        stem = "messyroute"
    return base / f"{stem}__{datetime.now():%Y%m%d-%H%M%S}.log"


# ────────────────────────────────────────────────────────────────────────────────
# Public API
# ────────────────────────────────────────────────────────────────────────────────

def init_logging(
      level: str = "INFO"
    , *
    , force: bool = True
    , write_output: bool = False
    , log_file: Optional[Path] = None
    , logs_dir: Optional[Path] = None
) -> None:
    """
    Configure the root logger: stdout always, plus a file when asked.

    Parameters
    ----------
    level : str
        Level name; overridden by MESSYROUTE_LOG_LEVEL.
    force : bool
        Drop handlers already installed on the root logger.
    write_output : bool
        Write a per-run file under `logs_dir` (default ``logs/``).
    log_file : Optional[Path]
        Explicit file to write; implies `write_output`.
    """
    global _current_log_file

    numeric_level = _effective_level(level)
    root = logging.getLogger()
    if force:
        for handler in list(root.handlers):
            root.removeHandler(handler)
    root.setLevel(numeric_level)

    formatter = logging.Formatter(fmt=_FORMAT, datefmt=_DATEFMT, style="{")
    handlers: list[logging.Handler] = [logging.StreamHandler(stream=sys.stdout)]

    _current_log_file = None
    if write_output or log_file is not None:
        path = Path(log_file) if log_file is not None else _run_log_path(logs_dir)
        path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(path, encoding="utf-8"))
        _current_log_file = path.resolve()

    for handler in handlers:
        handler.setFormatter(formatter)
        root.addHandler(handler)

    get_logger(__name__).debug(
        "logging ready: level=%s file=%s",
        logging.getLevelName(numeric_level), _current_log_file,
    )


def get_current_log_path() -> Optional[Path]:
    """File written by the last `init_logging()` call, or None."""
    return _current_log_file


def log_banner(log: logging.Logger, msg: str, *, char: str = "=", width: int = 60) -> None:
    bar = char * width
    for line in (bar, msg, bar):
        log.info(line)


def get_logger(name: Optional[str] = None) -> logging.Logger:
    return logging.getLogger(name or "messyroute")
