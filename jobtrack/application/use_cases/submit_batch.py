"""Use case: turn "process these N uploaded items" into N tracked jobs.

One backend round-trip creates every job. Only after it succeeds are the jobs
seeded into the registry and their channels subscribed, so a failed call
leaves no trace locally.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from jobtrack.application.ports.backend import BackendPort, BatchItem, ProcessingOptions
from jobtrack.application.ports.transport import TransportPort
from jobtrack.core.errors import (
    AppError,
    IntegrationError,
    NotConnectedError,
    SubmissionError,
    ValidationError,
)
from jobtrack.core.events import EventBus
from jobtrack.core.events.job_events import BatchSubmitted
from jobtrack.core.jobs import JobRegistry

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class BatchSubmissionResult:
    """Job ids of one submission, in input order. Not stored in the registry."""

    job_ids: tuple[str, ...]
    display_names: tuple[str, ...]

    def __len__(self) -> int:
        return len(self.job_ids)

    def pairs(self) -> list[tuple[str, str]]:
        return list(zip(self.job_ids, self.display_names))


class SubmitBatchUseCase:
    def __init__(
        self,
        backend: BackendPort,
        registry: JobRegistry,
        transport: Callable[[], TransportPort | None],
        *,
        event_bus: EventBus | None = None,
    ) -> None:
        self._backend = backend
        self._registry = registry
        self._transport = transport
        self._bus = event_bus

    async def execute(
        self, items: Sequence[BatchItem], options: ProcessingOptions | None = None
    ) -> BatchSubmissionResult:
        items = list(items)
        if not items:
            raise ValidationError("Nothing to process: the batch is empty")
        options = options or ProcessingOptions()

        transport = self._transport()
        if transport is None or not transport.connected:
            # Without a live stream the caller could never observe progress.
            raise NotConnectedError("Event stream not connected. Please try again.")

        logger.info("Submitting %d item(s) for processing", len(items))
        try:
            job_ids = await self._backend.create_jobs(items, options)
        except IntegrationError as e:
            raise SubmissionError(f"Failed to start batch processing: {e.message}", cause=e) from e

        if len(job_ids) != len(items):
            raise SubmissionError(
                f"Backend returned {len(job_ids)} job id(s) for {len(items)} item(s)"
            )
        names = [item.display_name for item in items]
        try:
            self._registry.create_many(zip(job_ids, names))
        except AppError as e:
            raise SubmissionError("Backend returned job ids that are already tracked", cause=e) from e

        # The stream may have been torn down while the HTTP call was in flight.
        # Seeded jobs stay active and are rejoined by the next session.
        transport = self._transport()
        try:
            if transport is None:
                raise NotConnectedError("Event stream released during submission")
            for job_id in job_ids:
                await transport.subscribe(job_id)
        except NotConnectedError as e:
            logger.warning("Jobs will be joined when the event stream reopens: %s", e.message)

        result = BatchSubmissionResult(job_ids=tuple(job_ids), display_names=tuple(names))
        if self._bus is not None:
            self._bus.publish(BatchSubmitted(job_ids=result.job_ids, display_names=result.display_names))
        return result
