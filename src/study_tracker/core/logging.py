"""Log files for study-tracker commands.

Every command writes JSON lines to ``logs/<name>.log`` in the workspace.
``--verbose`` adds a Rich handler on stderr and drops the file threshold
to DEBUG.
"""

from __future__ import annotations

import json
import logging
import tempfile
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

from rich.console import Console
from rich.logging import RichHandler

__all__ = [
    "FILE_HANDLER",
    "CONSOLE_HANDLER",
    "JsonLogFormatter",
    "configure_logger",
    "close_logger",
    "fallback_log_dir",
]

FILE_HANDLER = "study_tracker.file"
CONSOLE_HANDLER = "study_tracker.console"

# Attributes every LogRecord carries; anything else came in through ``extra``.
_RECORD_FIELDS = frozenset(vars(logging.makeLogRecord({}))) | {
    "message",
    "asctime",
    "taskName",
}


class JsonLogFormatter(logging.Formatter):
    """One JSON object per record; ``extra`` fields nest under ``extra``."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(
                record.created, tz=timezone.utc
            ).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        extra = {
            key: _jsonable(value)
            for key, value in vars(record).items()
            if key not in _RECORD_FIELDS
        }
        if extra:
            entry["extra"] = extra
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=True)


def configure_logger(
    name: str,
    *,
    log_dir: Path,
    level: str = "INFO",
    verbose: bool = False,
    max_bytes: int = 5 * 1024 * 1024,
    backup_count: int = 3,
    filename: str | None = None,
) -> tuple[logging.Logger, Path]:
    """Point ``name`` at a rotating JSON log file and return its path.

    Child loggers such as ``study_tracker.quiz`` propagate into it. Calling
    this again replaces the handlers from the previous call.
    """

    logger = logging.getLogger(name)
    logger.setLevel(logging.DEBUG)
    logger.propagate = False
    close_logger(logger)

    filename = filename or f"{name.rsplit('.', 1)[-1]}.log"
    path = _open_log_path(log_dir, filename)
    file_handler = RotatingFileHandler(
        path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
    )
    file_handler.set_name(FILE_HANDLER)
    file_handler.setLevel(logging.DEBUG if verbose else _level(level))
    file_handler.setFormatter(JsonLogFormatter())
    logger.addHandler(file_handler)

    if verbose:
        mirror = RichHandler(
            console=Console(stderr=True), show_path=False, markup=False
        )
        mirror.set_name(CONSOLE_HANDLER)
        mirror.setLevel(logging.DEBUG)
        logger.addHandler(mirror)
    return logger, path


def close_logger(logger: logging.Logger) -> None:
    """Remove and close the handlers :func:`configure_logger` installed."""

    for handler in list(logger.handlers):
        if handler.get_name() in (FILE_HANDLER, CONSOLE_HANDLER):
            logger.removeHandler(handler)
            handler.close()


def fallback_log_dir() -> Path:
    return Path(tempfile.gettempdir()) / "study-tracker-logs"


def _open_log_path(log_dir: Path, filename: str) -> Path:
    """Create ``log_dir/filename``, or the same file under the temp dir."""

    try:
        log_dir.mkdir(parents=True, exist_ok=True)
        path = log_dir / filename
        path.touch(exist_ok=True)
    except PermissionError:
        fallback = fallback_log_dir()
        fallback.mkdir(parents=True, exist_ok=True)
        path = fallback / filename
        path.touch(exist_ok=True)
    return path


def _level(name: str) -> int:
    return logging.getLevelNamesMapping().get(name.upper(), logging.INFO)


def _jsonable(value: Any) -> Any:
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, Path):
        return str(value)
    if isinstance(value, dict):
        return {str(key): _jsonable(item) for key, item in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_jsonable(item) for item in value]
    return repr(value)
