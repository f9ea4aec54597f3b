from __future__ import annotations

from pathlib import Path

import pytest

from jobtrack.config import DEFAULT_BACKEND_URL, Settings, load_settings
from jobtrack.core.errors import ValidationError


def test_defaults() -> None:
    s = Settings()

    assert s.base_url == DEFAULT_BACKEND_URL
    assert s.transports == ("polling", "websocket")
    assert s.reconnect_attempts == 0
    assert s.user_id is None


def test_from_env_reads_prefixed_variables() -> None:
    s = Settings.from_env(
        {
            "JOBTRACK_BACKEND_URL": "https://api.example.com/",
            "JOBTRACK_CONNECT_TIMEOUT_SEC": "3.5",
            "JOBTRACK_RECONNECT_ATTEMPTS": "4",
            "JOBTRACK_TRANSPORTS": "websocket",
            "JOBTRACK_VERIFY_TLS": "false",
            "JOBTRACK_USER_ID": "u-42",
        }
    )

    assert s.base_url == "https://api.example.com"
    assert s.connect_timeout_sec == 3.5
    assert s.reconnect_attempts == 4
    assert s.transports == ("websocket",)
    assert s.verify_tls is False
    assert s.user_id == "u-42"


def test_frontend_backend_url_is_a_fallback() -> None:
    assert Settings.from_env({"NEXT_PUBLIC_BACKEND_URL": "http://api:8000"}).backend_url == "http://api:8000"
    s = Settings.from_env(
        {"NEXT_PUBLIC_BACKEND_URL": "http://api:8000", "JOBTRACK_BACKEND_URL": "http://other:9000"}
    )
    assert s.backend_url == "http://other:9000"


def test_yaml_file_overrides_env(tmp_path: Path) -> None:
    path = tmp_path / "settings.yaml"
    path.write_text(
        "jobtrack:\n  backend_url: http://yaml:5000\n  transports: [websocket]\n  connect_warning_sec: 2\n",
        encoding="utf-8",
    )

    s = load_settings(path, {"JOBTRACK_BACKEND_URL": "http://env:5000", "JOBTRACK_USER_ID": "u1"})

    assert s.backend_url == "http://yaml:5000"
    assert s.transports == ("websocket",)
    assert s.connect_warning_sec == 2.0
    assert s.user_id == "u1"


def test_unknown_keys_and_bad_values_are_rejected(tmp_path: Path) -> None:
    with pytest.raises(ValidationError):
        Settings().with_overrides({"backend_uri": "http://x"})
    with pytest.raises(ValidationError):
        Settings().with_overrides({"connect_timeout_sec": "soon"})
    with pytest.raises(ValidationError):
        Settings(backend_url="ftp://files")
    with pytest.raises(ValidationError):
        Settings(reconnect_backoff_sec=10.0, reconnect_backoff_max_sec=1.0)

    bad = tmp_path / "list.yaml"
    bad.write_text("- 1\n- 2\n", encoding="utf-8")
    with pytest.raises(ValidationError):
        load_settings(bad, {})
    with pytest.raises(ValidationError):
        load_settings(tmp_path / "missing.yaml", {})


def test_unknown_transport_names_are_rejected() -> None:
    with pytest.raises(ValidationError):
        Settings(transports=("bogus",))
    with pytest.raises(ValidationError):
        Settings.from_env({"JOBTRACK_TRANSPORTS": "websocket,carrier-pigeon"})

    assert Settings(transports=("websocket",)).transports == ("websocket",)
