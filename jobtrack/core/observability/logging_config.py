"""Root logging setup for the CLI and embedding hosts.

stdlib logging only. Job-related log calls pass ``extra={"job_id": ...}`` and
friends; the JSON formatter lifts those into top-level fields.
"""

from __future__ import annotations

import json
import logging
import os
import sys
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path

from jobtrack.core.paths import get_app_state_dir

LOG_FILE_NAME = "jobtrack.log"
_TEXT_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
_EXTRA_KEYS = ("event", "job_id", "kind", "status", "connected", "count")
# Transport libraries log every packet at INFO.
_QUIET_LOGGERS = ("socketio", "engineio", "httpx", "httpcore")


def _env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _resolve_level(level: str | int | None) -> int:
    if level is None:
        level = os.getenv("LOG_LEVEL", "INFO")
    if isinstance(level, int):
        return level
    value = logging.getLevelName(level.strip().upper())
    return value if isinstance(value, int) else logging.INFO


class _JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, object] = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat(timespec="milliseconds"),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        payload.update({k: getattr(record, k) for k in _EXTRA_KEYS if hasattr(record, k)})
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


def _file_handler(state_dir: Path | None) -> logging.Handler | None:
    try:
        logs_dir = (state_dir or get_app_state_dir()) / "logs"
        logs_dir.mkdir(parents=True, exist_ok=True)
        handler = RotatingFileHandler(
            logs_dir / LOG_FILE_NAME, maxBytes=2 * 1024 * 1024, backupCount=3, encoding="utf-8"
        )
    except OSError:
        logging.getLogger(__name__).warning("File logging disabled", exc_info=True)
        return None
    # Plain text on disk; easier to attach to a bug report.
    handler.setFormatter(logging.Formatter(_TEXT_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    return handler


def setup_logging(
    *,
    level: str | int | None = None,
    json_logs: bool | None = None,
    log_to_file: bool | None = None,
    state_dir: Path | None = None,
) -> None:
    """Replace the root handlers.

    - level: name or int; env ``LOG_LEVEL``, default INFO
    - json_logs: JSON lines on stdout; env ``LOG_JSON``, default off
    - log_to_file: rotating ``logs/jobtrack.log`` under the state dir; env
      ``LOG_FILE``, default off
    """
    if json_logs is None:
        json_logs = _env_flag("LOG_JSON", False)
    if log_to_file is None:
        log_to_file = _env_flag("LOG_FILE", False)

    console = logging.StreamHandler(stream=sys.stdout)
    console.setFormatter(_JsonFormatter() if json_logs else logging.Formatter(_TEXT_FORMAT, datefmt="%H:%M:%S"))
    handlers: list[logging.Handler] = [console]
    if log_to_file:
        fh = _file_handler(state_dir)
        if fh is not None:
            handlers.append(fh)

    root = logging.getLogger()
    root.handlers.clear()
    for h in handlers:
        root.addHandler(h)
    root.setLevel(_resolve_level(level))

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
