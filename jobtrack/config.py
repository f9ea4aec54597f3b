"""Runtime configuration and defaults.

Defaults live as module constants. ``Settings.from_env`` overlays ``JOBTRACK_*``
environment variables and ``load_settings`` overlays a YAML file on top of that.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any

import yaml

from jobtrack.core.errors import ValidationError

# Backend
DEFAULT_BACKEND_URL = "http://localhost:5000"
DEFAULT_HTTP_TIMEOUT_SEC = 30.0

# Socket.IO transport
DEFAULT_SOCKETIO_PATH = "socket.io"
DEFAULT_TRANSPORTS = ("polling", "websocket")  # polling first, then upgrade
KNOWN_TRANSPORTS = frozenset(DEFAULT_TRANSPORTS)
DEFAULT_CONNECT_TIMEOUT_SEC = 10.0
DEFAULT_RECONNECT_ATTEMPTS = 0  # 0 = keep retrying
DEFAULT_RECONNECT_BACKOFF_SEC = 1.0
DEFAULT_RECONNECT_BACKOFF_MAX_SEC = 30.0
DEFAULT_CONNECT_WARNING_SEC = 5.0

_ENV_PREFIX = "JOBTRACK_"


def _as_bool(raw: str) -> bool:
    return raw.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True, slots=True)
class Settings:
    backend_url: str = DEFAULT_BACKEND_URL
    http_timeout_sec: float = DEFAULT_HTTP_TIMEOUT_SEC
    socketio_path: str = DEFAULT_SOCKETIO_PATH
    transports: tuple[str, ...] = DEFAULT_TRANSPORTS
    connect_timeout_sec: float = DEFAULT_CONNECT_TIMEOUT_SEC
    reconnect_attempts: int = DEFAULT_RECONNECT_ATTEMPTS
    reconnect_backoff_sec: float = DEFAULT_RECONNECT_BACKOFF_SEC
    reconnect_backoff_max_sec: float = DEFAULT_RECONNECT_BACKOFF_MAX_SEC
    connect_warning_sec: float = DEFAULT_CONNECT_WARNING_SEC
    user_id: str | None = None
    verify_tls: bool = True

    def __post_init__(self) -> None:
        if not self.backend_url.startswith(("http://", "https://")):
            raise ValidationError(f"backend_url must be http(s): {self.backend_url!r}")
        if self.http_timeout_sec <= 0 or self.connect_timeout_sec <= 0:
            raise ValidationError("timeouts must be positive")
        if self.reconnect_backoff_sec < 0 or self.reconnect_backoff_max_sec < self.reconnect_backoff_sec:
            raise ValidationError("reconnect backoff must satisfy 0 <= base <= max")
        if not self.transports:
            raise ValidationError("at least one transport is required")
        unknown = sorted(set(self.transports) - KNOWN_TRANSPORTS)
        if unknown:
            raise ValidationError(f"Unknown transports: {', '.join(unknown)}")

    @property
    def base_url(self) -> str:
        return self.backend_url.rstrip("/")

    def with_overrides(self, values: dict[str, Any]) -> Settings:
        """Return a copy with ``values`` applied, coercing to the field types."""
        known = {f.name: f for f in fields(self)}
        unknown = sorted(set(values) - set(known))
        if unknown:
            raise ValidationError(f"Unknown settings: {', '.join(unknown)}")
        coerced: dict[str, Any] = {}
        try:
            for key, value in values.items():
                current = getattr(self, key)
                if value is None:
                    coerced[key] = None
                elif isinstance(current, bool):
                    coerced[key] = _as_bool(value) if isinstance(value, str) else bool(value)
                elif isinstance(current, tuple):
                    items = value.split(",") if isinstance(value, str) else list(value)
                    coerced[key] = tuple(str(v).strip() for v in items if str(v).strip())
                elif isinstance(current, float):
                    coerced[key] = float(value)
                elif isinstance(current, int):
                    coerced[key] = int(value)
                else:
                    coerced[key] = str(value)
            return replace(self, **coerced)
        except (TypeError, ValueError) as e:
            raise ValidationError(f"Invalid settings: {e}", cause=e) from e

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> Settings:
        env = os.environ if environ is None else environ
        values: dict[str, Any] = {}
        for f in fields(cls):
            raw = env.get(_ENV_PREFIX + f.name.upper())
            if raw is not None and raw != "":
                values[f.name] = raw
        # NEXT_PUBLIC_BACKEND_URL is what the web frontend is configured with.
        if "backend_url" not in values and env.get("NEXT_PUBLIC_BACKEND_URL"):
            values["backend_url"] = env["NEXT_PUBLIC_BACKEND_URL"]
        return cls().with_overrides(values)


def load_settings(path: Path | None = None, environ: dict[str, str] | None = None) -> Settings:
    """Settings from env, then the YAML file at ``path`` (if given) on top."""
    settings = Settings.from_env(environ)
    if path is None:
        return settings
    try:
        with path.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ValidationError(f"Cannot read settings file {path}", cause=e) from e
    if not isinstance(data, dict):
        raise ValidationError(f"Settings file {path} must contain a mapping")
    section = data.get("jobtrack", data)
    if not isinstance(section, dict):
        raise ValidationError(f"'jobtrack' section in {path} must be a mapping")
    return settings.with_overrides(section)
