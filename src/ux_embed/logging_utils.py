"""Logging helpers.

Log files hold one JSON object per line. Records logged with
``extra={"event": ...}`` carry the event name at the top level so the file can
be filtered by event without parsing ``context``.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path

LOG_FILE_NAME = "ux-embed.log"
CONSOLE_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"

# Attributes every LogRecord has; anything else arrived through ``extra=``.
_RECORD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime"}


class JsonLogFormatter(logging.Formatter):
    """Structured JSON formatter for log file output."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, object] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc)
            .isoformat()
            .replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        context = {
            key: _json_safe(value)
            for key, value in vars(record).items()
            if key not in _RECORD_ATTRS and not key.startswith("_")
        }
        event = context.pop("event", None)
        if event is not None:
            payload["event"] = event
        if context:
            payload["context"] = context
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=True)


def _json_safe(value: object) -> object:
    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_json_safe(item) for item in value]
    if isinstance(value, dict):
        return {str(key): _json_safe(val) for key, val in value.items()}
    return repr(value)


def _coerce_level(level: str | int) -> int:
    if isinstance(level, int):
        return level
    numeric = logging.getLevelName(level.upper())
    return numeric if isinstance(numeric, int) else logging.INFO


def _file_handler(path: Path, max_bytes: int, backup_count: int) -> logging.Handler:
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(
        path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
    )
    handler.setFormatter(JsonLogFormatter())
    return handler


def setup_logging(
    log_dir: Path,
    level: str | int = "INFO",
    max_bytes: int = 1_000_000,
    backup_count: int = 3,
    log_file: Path | None = None,
    console: bool = True,
) -> None:
    """Install the rotating JSON file handler plus an optional console handler.

    The Textual player passes ``console=False``: stderr output would corrupt
    the terminal UI.
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(_coerce_level(level))
    root_logger.handlers.clear()
    root_logger.addHandler(
        _file_handler(log_file or log_dir / LOG_FILE_NAME, max_bytes, backup_count)
    )
    if console:
        stream_handler = logging.StreamHandler()
        stream_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT))
        root_logger.addHandler(stream_handler)
    # Request lines from the HTTP stack are noise next to structured events.
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
