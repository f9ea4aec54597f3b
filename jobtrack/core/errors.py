"""Exception types raised by jobtrack.

Submission and configuration problems are raised; transport drops and per-job
failures are not (they show up as state instead).
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(eq=False)
class AppError(Exception):
    """Root of every error raised on purpose by this package."""

    message: str
    cause: Exception | None = None

    def __str__(self) -> str:
        return self.message if self.cause is None else f"{self.message} (cause: {self.cause})"


class DomainError(AppError):
    """Job state rule broken by the caller."""


class DuplicateJobError(DomainError):
    """A job id was seeded twice into the same registry."""


class ValidationError(AppError):
    """Bad batch input or configuration value."""


class IntegrationError(AppError):
    """The backend or the event stream did not cooperate."""


@dataclass(eq=False)
class BackendError(IntegrationError):
    """HTTP call to the processing backend failed.

    ``status_code`` is None when no response arrived at all.
    """

    status_code: int | None = None


class NotConnectedError(IntegrationError):
    """The event stream is not connected, so job progress could not be observed."""


class SubmissionError(IntegrationError):
    """The backend rejected or garbled a batch submission."""
