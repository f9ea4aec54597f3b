"""Read-only views over registry records.

The functions are pure; ``BatchTracker`` keeps one batch's view current by
listening to registry change events.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence

from jobtrack.core.events import EventBus, Subscription
from jobtrack.core.events.job_events import RegistryChanged, RegistryCleared
from jobtrack.core.jobs.job_registry import JobRegistry
from jobtrack.core.jobs.models import JobRecord, JobStatus

logger = logging.getLogger(__name__)


def batch_progress(records: Sequence[JobRecord]) -> float:
    """Arithmetic mean of ``progress``; 0.0 for an empty batch."""
    if not records:
        return 0.0
    return sum(r.progress for r in records) / len(records)


def all_complete(records: Sequence[JobRecord]) -> bool:
    """True iff the batch is non-empty and every job is terminal."""
    return bool(records) and all(r.is_terminal for r in records)


def status_counts(records: Iterable[JobRecord]) -> dict[JobStatus, int]:
    counts = {status: 0 for status in JobStatus}
    for r in records:
        counts[r.status] += 1
    return counts


class BatchTracker:
    """Live aggregate for the jobs of one submission."""

    def __init__(self, registry: JobRegistry, event_bus: EventBus, job_ids: Sequence[str]) -> None:
        self._registry = registry
        self._bus = event_bus
        self._job_ids = tuple(job_ids)
        self._ids = frozenset(self._job_ids)
        self._records: list[JobRecord] = []
        self._subscriptions: list[Subscription] = [
            event_bus.subscribe(RegistryChanged, self._on_changed),
            event_bus.subscribe(RegistryCleared, self._on_cleared),
        ]
        self.refresh()

    @property
    def job_ids(self) -> tuple[str, ...]:
        return self._job_ids

    @property
    def records(self) -> list[JobRecord]:
        return list(self._records)

    @property
    def progress(self) -> float:
        return batch_progress(self._records)

    @property
    def all_complete(self) -> bool:
        # A job dropped from the registry is no longer observable; treat the
        # batch as incomplete rather than silently shrinking it.
        return len(self._records) == len(self._job_ids) and all_complete(self._records)

    @property
    def counts(self) -> dict[JobStatus, int]:
        return status_counts(self._records)

    def refresh(self) -> None:
        records = []
        for job_id in self._job_ids:
            rec = self._registry.get(job_id)
            if rec is not None:
                records.append(rec)
        self._records = records

    def close(self) -> None:
        for sub in self._subscriptions:
            self._bus.unsubscribe(sub)
        self._subscriptions.clear()

    def _on_changed(self, e: RegistryChanged) -> None:
        if self._ids.intersection(e.job_ids):
            self.refresh()

    def _on_cleared(self, _e: RegistryCleared) -> None:
        self.refresh()
