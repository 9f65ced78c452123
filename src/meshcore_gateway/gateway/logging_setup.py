"""Logging configuration for meshcore-gateway.

The root logger gets a stderr handler at the configured level and a rotating
file handler that always records DEBUG, so a bug report can include the full
history of a session even when the console was kept quiet.
"""

from __future__ import annotations

import logging
import os
import shutil
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

from .paths import log_dir

LOG_DIR = log_dir()
LOG_FILE = LOG_DIR / "gateway.log"
LOG_FORMAT = "[%(name)s] %(message)s"
FILE_LOG_FORMAT = "%(asctime)s %(levelname)-8s [%(name)s] %(message)s"
MAX_BYTES = 1_000_000
BACKUP_COUNT = 3

VALID_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

# Third-party loggers that are chatty below WARNING
QUIET_LOGGERS = ("aiohttp.access", "meshcore")

_stderr_handler: logging.StreamHandler | None = None
_configured = False


def _resolve_level(console_level: str | None) -> str:
    env_level = os.environ.get("LOG_LEVEL", "").upper()
    if env_level in VALID_LEVELS:
        return env_level
    if console_level and console_level.upper() in VALID_LEVELS:
        return console_level.upper()
    return "INFO"


def configure_logging(console_level: str | None = None, *, file_logging: bool = True) -> None:
    """Install the stderr and rotating file handlers on the root logger.

    ``LOG_LEVEL`` wins over *console_level*; INFO is the fallback.  A second
    call is a no-op.
    """
    global _stderr_handler, _configured  # noqa: PLW0603

    if _configured:
        return

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)

    _stderr_handler = logging.StreamHandler(sys.stderr)
    _stderr_handler.setLevel(getattr(logging, _resolve_level(console_level)))
    _stderr_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(_stderr_handler)

    if file_logging:
        LOG_DIR.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            LOG_FILE, maxBytes=MAX_BYTES, backupCount=BACKUP_COUNT, encoding="utf-8"
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(FILE_LOG_FORMAT))
        root.addHandler(file_handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    _configured = True


def set_stderr_level(level_name: str) -> None:
    if _stderr_handler is None:
        return
    upper = level_name.upper()
    if upper in VALID_LEVELS:
        _stderr_handler.setLevel(getattr(logging, upper))


def get_log_files_chronological() -> list[Path]:
    """Return the log file and its backups, oldest first."""
    backups = [LOG_FILE.with_suffix(f".log.{i}") for i in range(BACKUP_COUNT, 0, -1)]
    return [p for p in [*backups, LOG_FILE] if p.exists()]


def export_logs_to_path(dest: str | Path) -> Path:
    dest = Path(dest)
    with dest.open("w", encoding="utf-8") as out:
        _copy_logs(out)
    return dest


def export_logs_to_stdout() -> None:
    _copy_logs(sys.stdout)


def _copy_logs(out) -> None:
    for log_file in get_log_files_chronological():
        with log_file.open(encoding="utf-8") as f:
            shutil.copyfileobj(f, out)
