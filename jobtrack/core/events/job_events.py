from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from jobtrack.core.jobs.models import JobRecord, JobStatus


@dataclass(frozen=True, slots=True)
class JobsSeeded:
    """New pending jobs were inserted by a batch submission."""

    job_ids: tuple[str, ...]


@dataclass(frozen=True, slots=True)
class JobUpdated:
    """A job's record changed (or gained an audit entry).

    ``record`` is a copy; mutating it does not touch the registry.
    """

    job_id: str
    record: JobRecord


@dataclass(frozen=True, slots=True)
class JobStatusChanged:
    job_id: str
    display_name: str
    previous: JobStatus
    status: JobStatus

    @property
    def became_terminal(self) -> bool:
        return self.status.is_terminal and not self.previous.is_terminal


@dataclass(frozen=True, slots=True)
class RegistryChanged:
    """Published once after every committed registry mutation."""

    revision: int
    job_ids: tuple[str, ...]


@dataclass(frozen=True, slots=True)
class RegistryCleared:
    revision: int
    job_ids: tuple[str, ...]


@dataclass(frozen=True, slots=True)
class BatchSubmitted:
    job_ids: tuple[str, ...]
    display_names: tuple[str, ...]


@dataclass(frozen=True, slots=True)
class JobNotification:
    """A job finished or failed; for toast-style consumers.

    ``tracked`` tells whether the job lives in the local registry or was only
    announced on the user notification channel.
    """

    job_id: str
    display_name: str
    status: JobStatus
    error: str | None = None
    tracked: bool = True
