from __future__ import annotations

import json
import logging
from collections.abc import Iterator
from pathlib import Path

import pytest

from jobtrack.core.observability.logging_config import _JsonFormatter, setup_logging


@pytest.fixture
def restore_root_logger() -> Iterator[None]:
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for h in root.handlers:
        if h not in handlers:
            h.close()
    root.handlers[:] = handlers
    root.setLevel(level)


def test_json_formatter_includes_job_fields() -> None:
    record = logging.LogRecord("jobtrack.test", logging.INFO, __file__, 1, "Job %s done", ("j1",), None)
    record.job_id = "j1"
    record.status = "completed"

    payload = json.loads(_JsonFormatter().format(record))

    assert payload["msg"] == "Job j1 done"
    assert payload["level"] == "INFO"
    assert payload["job_id"] == "j1"
    assert payload["status"] == "completed"
    assert "count" not in payload


def test_setup_logging_writes_rotating_file(tmp_path: Path, restore_root_logger: None) -> None:
    setup_logging(level="DEBUG", json_logs=True, log_to_file=True, state_dir=tmp_path)

    logging.getLogger("jobtrack.test").info("hello", extra={"job_id": "j9"})
    for h in logging.getLogger().handlers:
        h.flush()

    assert logging.getLogger().level == logging.DEBUG
    assert logging.getLogger("socketio").level == logging.WARNING
    text = (tmp_path / "logs" / "jobtrack.log").read_text(encoding="utf-8")
    assert "hello" in text
