from __future__ import annotations

import logging
import math
from collections.abc import Mapping
from typing import Any

from jobtrack.core.jobs.job_registry import JobRegistry
from jobtrack.core.jobs.models import ApplyOutcome, EventKind, JobUpdate

logger = logging.getLogger(__name__)

_KINDS = {k.value: k for k in EventKind}


def _clamp_progress(value: Any) -> int | None:
    if isinstance(value, bool) or value is None:
        return None
    try:
        p = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(p):
        return None
    return int(round(min(100.0, max(0.0, p))))


def _opt_str(value: Any) -> str | None:
    if value is None:
        return None
    s = str(value)
    return s if s else None


def parse_task_update(payload: Any) -> JobUpdate | None:
    """Turn a raw ``task_update`` payload into a ``JobUpdate``.

    Accepts the ``job_id``/``kind`` field names as well as the backend's older
    ``task_id``/``type``. Returns ``None`` for anything that cannot be
    classified.
    """
    if not isinstance(payload, Mapping):
        return None
    job_id = payload.get("job_id") or payload.get("task_id")
    if not isinstance(job_id, str) or not job_id:
        return None
    kind = _KINDS.get(str(payload.get("kind") or payload.get("type") or ""))
    if kind is None:
        return None

    progress = _clamp_progress(payload.get("progress"))
    if kind is EventKind.COMPLETE:
        progress = 100
    timestamp = payload.get("timestamp")
    if isinstance(timestamp, bool) or not isinstance(timestamp, (int, float)):
        timestamp = None
    error = payload.get("error")
    return JobUpdate(
        job_id=job_id,
        kind=kind,
        progress=progress,
        stage=_opt_str(payload.get("stage")),
        message=_opt_str(payload.get("message")),
        result=payload.get("result"),
        error=_opt_str(error) if error else None,
        timestamp=None if timestamp is None else float(timestamp),
        raw=dict(payload),
    )


class EventReconciler:
    """Applies inbound job events to the registry.

    The transport gives no ordering or delivery guarantee, so this never
    raises on bad input: unknown jobs and malformed payloads are dropped with
    a log line. Merge rules are enforced by ``JobRegistry.apply_update``.
    """

    def __init__(self, registry: JobRegistry) -> None:
        self._registry = registry
        self.discarded = 0

    def handle(self, payload: Any) -> ApplyOutcome | None:
        update = parse_task_update(payload)
        if update is None:
            self.discarded += 1
            logger.warning("Dropped malformed job event: %r", payload)
            return None
        outcome = self._registry.apply_update(update)
        if outcome is None:
            self.discarded += 1
            logger.debug(
                "Dropped event for untracked job %s",
                update.job_id,
                extra={"job_id": update.job_id, "kind": update.kind.value},
            )
        return outcome

    def fail_locally(self, job_id: str, error: str) -> ApplyOutcome | None:
        """Mark a job failed from the client side (e.g. after a cancel)."""
        return self.handle({"job_id": job_id, "kind": EventKind.ERROR.value, "error": error})
