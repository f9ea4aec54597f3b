"""Job state: records, the registry and the event reconciler."""

from .models import ApplyOutcome, EventKind, JobRecord, JobStatus, JobUpdate
from .job_registry import JobRegistry
from .reconciler import EventReconciler, parse_task_update
from .aggregates import BatchTracker, all_complete, batch_progress, status_counts

__all__ = [
    "ApplyOutcome",
    "BatchTracker",
    "EventKind",
    "EventReconciler",
    "JobRecord",
    "JobRegistry",
    "JobStatus",
    "JobUpdate",
    "all_complete",
    "batch_progress",
    "parse_task_update",
    "status_counts",
]
