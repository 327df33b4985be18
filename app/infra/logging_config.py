"""Process-wide logging setup.

configure_logging() is called once from app.main before settings are read,
so configuration errors are logged too. LOG_LEVEL and LOG_FILE come from the
environment.
"""

from __future__ import annotations

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

_MAX_BYTES = 5 * 1024 * 1024  # 5 MB
_BACKUP_COUNT = 3
_FORMATTER = logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s", datefmt="%Y-%m-%d %H:%M:%S")

# PTB and httpx log every getUpdates poll; fpdf/fontTools log every glyph subset.
_QUIET_LOGGERS = ("httpx", "httpcore", "telegram", "telegram.ext", "fpdf", "fontTools")


def level_from_env() -> int:
    level = logging.getLevelName(os.environ.get("LOG_LEVEL", "INFO").strip().upper())
    return level if isinstance(level, int) else logging.INFO


def _attach(root: logging.Logger, handler: logging.Handler, level: int) -> None:
    handler.setLevel(level)
    handler.setFormatter(_FORMATTER)
    root.addHandler(handler)


def configure_logging(*, level: int | None = None, log_file: str | None = None) -> None:
    """Configure the root logger.

    Args:
        level: Log level. Taken from LOG_LEVEL when None.
        log_file: Rotating log file path. Taken from LOG_FILE when None.
    """
    level = level_from_env() if level is None else level
    log_file = (os.environ.get("LOG_FILE", "").strip() or None) if log_file is None else log_file

    root = logging.getLogger()
    root.setLevel(level)
    for handler in root.handlers[:]:
        root.removeHandler(handler)
    _attach(root, logging.StreamHandler(sys.stderr), level)

    if log_file:
        try:
            Path(log_file).parent.mkdir(parents=True, exist_ok=True)
            rotating = RotatingFileHandler(log_file, maxBytes=_MAX_BYTES, backupCount=_BACKUP_COUNT, encoding="utf-8")
        except OSError as exc:
            root.warning("Could not open log file %s: %s; logging to stderr only", log_file, exc)
        else:
            _attach(root, rotating, level)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
