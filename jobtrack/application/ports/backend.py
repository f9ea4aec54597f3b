"""Application port for the processing backend's HTTP API.

Use cases depend on this protocol; ``jobtrack.services.backend_client`` is the
httpx implementation.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Protocol

from jobtrack.core.errors import ValidationError


class ModelProvider(str, Enum):
    OPENAI = "openai"
    ANTHROPIC = "anthropic"


@dataclass(frozen=True, slots=True)
class BatchItem:
    """An item already uploaded to object storage."""

    source_ref: str
    display_name: str

    def __post_init__(self) -> None:
        if not self.source_ref:
            raise ValidationError("source_ref is required")
        if not self.display_name:
            raise ValidationError("display_name is required")


@dataclass(frozen=True, slots=True)
class ProcessingOptions:
    """Options shared by every item of one batch.

    - auto_save: persist extracted invoices without human review
    - confidence_threshold: minimum extraction confidence for auto_save to apply
    - model_provider: extraction backend
    - human_in_loop: force manual review regardless of confidence
    - cleanup: let the backend delete the uploaded source once processed
    """

    auto_save: bool = False
    confidence_threshold: float = 0.8
    model_provider: ModelProvider = ModelProvider.OPENAI
    human_in_loop: bool = True
    cleanup: bool = True

    def __post_init__(self) -> None:
        if isinstance(self.confidence_threshold, bool) or not isinstance(
            self.confidence_threshold, (int, float)
        ):
            raise ValidationError("confidence_threshold must be a number")
        if not 0.0 <= float(self.confidence_threshold) <= 1.0:
            raise ValidationError(
                f"confidence_threshold must be within 0..1, got {self.confidence_threshold}"
            )
        if not isinstance(self.model_provider, ModelProvider):
            try:
                object.__setattr__(self, "model_provider", ModelProvider(self.model_provider))
            except ValueError as e:
                raise ValidationError(f"Unknown model provider: {self.model_provider!r}", cause=e) from e

    def to_payload(self) -> dict[str, Any]:
        data = asdict(self)
        data["model_provider"] = self.model_provider.value
        data["confidence_threshold"] = float(self.confidence_threshold)
        return data


class BackendPort(Protocol):
    async def create_jobs(
        self, items: Sequence[BatchItem], options: ProcessingOptions
    ) -> list[str]:
        """Create one job per item; ids in item order."""

    async def get_unread_count(self) -> int:
        """Server-tracked count of finished jobs the user has not looked at."""

    async def mark_as_read(self, job_id: str | None = None) -> dict[str, Any]:
        """Mark one job (or all when ``job_id`` is None) as read."""

    async def cancel_job(self, job_id: str) -> None:
        """Ask the backend to stop a job."""
