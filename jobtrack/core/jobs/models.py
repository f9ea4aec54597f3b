from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class JobStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)


class EventKind(str, Enum):
    """Discriminant of an inbound ``task_update`` payload."""

    STAGE_START = "stage_start"
    PROGRESS = "progress"
    COMPLETE = "complete"
    ERROR = "error"

    @property
    def target_status(self) -> JobStatus:
        if self is EventKind.COMPLETE:
            return JobStatus.COMPLETED
        if self is EventKind.ERROR:
            return JobStatus.FAILED
        return JobStatus.PROCESSING


@dataclass(slots=True)
class JobRecord:
    job_id: str
    display_name: str
    status: JobStatus = JobStatus.PENDING
    progress: int = 0
    stage: str | None = None
    message: str | None = None
    result: Any = None
    error: str | None = None
    updates: list[dict[str, Any]] = field(default_factory=list)
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime | None = None
    finished_at: datetime | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def copy(self) -> JobRecord:
        return replace(self, updates=[dict(u) for u in self.updates])


@dataclass(frozen=True, slots=True)
class JobUpdate:
    """Candidate mutation computed from one inbound event.

    ``progress`` is already clamped to 0..100; ``None`` means the event did not
    carry a usable value.
    """

    job_id: str
    kind: EventKind
    progress: int | None = None
    stage: str | None = None
    message: str | None = None
    result: Any = None
    error: str | None = None
    timestamp: float | None = None
    raw: dict[str, Any] = field(default_factory=dict)

    @property
    def status(self) -> JobStatus:
        return self.kind.target_status


@dataclass(frozen=True, slots=True)
class ApplyOutcome:
    job_id: str
    applied: bool
    previous_status: JobStatus
    status: JobStatus
    progress: int
    reason: str | None = None

    @property
    def transitioned(self) -> bool:
        return self.previous_status is not self.status
