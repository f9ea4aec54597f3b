from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import datetime
from threading import RLock

from jobtrack.core.errors import DuplicateJobError
from jobtrack.core.events import EventBus
from jobtrack.core.events.job_events import (
    JobsSeeded,
    JobStatusChanged,
    JobUpdated,
    RegistryChanged,
    RegistryCleared,
)
from jobtrack.core.jobs.models import ApplyOutcome, EventKind, JobRecord, JobStatus, JobUpdate, utcnow

logger = logging.getLogger(__name__)


class JobRegistry:
    """In-memory source of truth for the jobs tracked in this session.

    Writers are the batch submission (``create``/``create_many``) and the event
    reconciler (``apply_update``). Everything handed out is a copy. Every
    committed mutation is announced on the bus, followed by one
    ``RegistryChanged``.

    ``apply_update`` enforces the record invariants no matter what the caller
    computed:

    - terminal statuses are sticky; later events only reach ``updates``
    - progress never decreases, and is 100 once completed
    - ``result`` and ``error`` are written once
    """

    def __init__(self, event_bus: EventBus) -> None:
        self._bus = event_bus
        self._jobs: dict[str, JobRecord] = {}
        self._lock = RLock()
        self._revision = 0

    @property
    def revision(self) -> int:
        return self._revision

    def __len__(self) -> int:
        with self._lock:
            return len(self._jobs)

    def __contains__(self, job_id: object) -> bool:
        with self._lock:
            return job_id in self._jobs

    def create(self, job_id: str, display_name: str) -> JobRecord:
        return self.create_many([(job_id, display_name)])[0]

    def create_many(self, jobs: Iterable[tuple[str, str]]) -> list[JobRecord]:
        """Insert pending records; all or nothing.

        Raises ``DuplicateJobError`` if any id is already tracked or repeated in
        ``jobs``. Ids are server generated, so this is a logic error.
        """
        pairs = list(jobs)
        with self._lock:
            seen: set[str] = set()
            for job_id, _name in pairs:
                if not job_id:
                    raise DuplicateJobError("Job id must be a non-empty string")
                if job_id in self._jobs or job_id in seen:
                    raise DuplicateJobError(f"Job {job_id!r} is already tracked")
                seen.add(job_id)
            created = []
            for job_id, name in pairs:
                rec = JobRecord(job_id=job_id, display_name=name)
                self._jobs[job_id] = rec
                created.append(rec.copy())
            if not created:
                return created
            revision = self._bump()
        ids = tuple(r.job_id for r in created)
        logger.debug("Seeded %d job(s)", len(ids))
        self._bus.publish(JobsSeeded(job_ids=ids))
        self._bus.publish(RegistryChanged(revision=revision, job_ids=ids))
        return created

    def get(self, job_id: str) -> JobRecord | None:
        with self._lock:
            rec = self._jobs.get(job_id)
            return None if rec is None else rec.copy()

    def snapshot(self) -> list[JobRecord]:
        """All records in insertion order."""
        with self._lock:
            return [rec.copy() for rec in self._jobs.values()]

    def is_active(self, job_id: str) -> bool:
        """True if the job is tracked and not yet terminal."""
        with self._lock:
            rec = self._jobs.get(job_id)
            return rec is not None and not rec.is_terminal

    def clear(self) -> list[str]:
        """Forget every tracked job locally. Returns the dropped ids."""
        with self._lock:
            dropped = list(self._jobs)
            self._jobs.clear()
            revision = self._bump()
        logger.info("Cleared %d tracked job(s)", len(dropped))
        self._bus.publish(RegistryCleared(revision=revision, job_ids=tuple(dropped)))
        return dropped

    def apply_update(self, update: JobUpdate) -> ApplyOutcome | None:
        """Merge one candidate update into its record.

        Returns ``None`` when the job is not tracked.
        """
        with self._lock:
            rec = self._jobs.get(update.job_id)
            if rec is None:
                return None
            previous = rec.status
            rec.updates.append(dict(update.raw))
            now = utcnow()

            if previous.is_terminal:
                outcome = ApplyOutcome(
                    job_id=rec.job_id,
                    applied=False,
                    previous_status=previous,
                    status=previous,
                    progress=rec.progress,
                    reason=f"job already {previous.value}",
                )
            else:
                self._merge(rec, update, now)
                outcome = ApplyOutcome(
                    job_id=rec.job_id,
                    applied=True,
                    previous_status=previous,
                    status=rec.status,
                    progress=rec.progress,
                )
            rec.updated_at = now
            copy = rec.copy()
            revision = self._bump()

        if not outcome.applied:
            logger.debug(
                "Ignored %s for terminal job",
                update.kind.value,
                extra={"job_id": update.job_id, "kind": update.kind.value},
            )
        self._bus.publish(JobUpdated(job_id=copy.job_id, record=copy))
        if outcome.transitioned:
            logger.info(
                "Job %s: %s -> %s",
                copy.job_id,
                outcome.previous_status.value,
                outcome.status.value,
                extra={"job_id": copy.job_id, "status": outcome.status.value},
            )
            self._bus.publish(
                JobStatusChanged(
                    job_id=copy.job_id,
                    display_name=copy.display_name,
                    previous=outcome.previous_status,
                    status=outcome.status,
                )
            )
        self._bus.publish(RegistryChanged(revision=revision, job_ids=(copy.job_id,)))
        return outcome

    def _merge(self, rec: JobRecord, update: JobUpdate, now: datetime) -> None:
        rec.status = update.status
        if update.progress is not None and update.progress > rec.progress:
            rec.progress = update.progress
        if rec.status is JobStatus.COMPLETED:
            rec.progress = 100
        if update.stage is not None:
            rec.stage = update.stage
        if update.message is not None:
            rec.message = update.message
        if rec.result is None and update.result is not None:
            rec.result = update.result
        if update.kind is EventKind.ERROR and rec.error is None:
            rec.error = update.error or update.message or "Processing failed"
        if rec.status.is_terminal:
            rec.finished_at = now

    def _bump(self) -> int:
        self._revision += 1
        return self._revision
