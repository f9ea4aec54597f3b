from __future__ import annotations

import logging
from collections.abc import Callable

from jobtrack.application.ports.backend import BackendPort
from jobtrack.application.ports.transport import TransportPort
from jobtrack.core.jobs import ApplyOutcome, EventReconciler

logger = logging.getLogger(__name__)

CANCELLED_MESSAGE = "Cancelled by user"


class CancelJobUseCase:
    """Ask the backend to stop a job, then mark it failed locally.

    The local failure goes through the reconciler like any backend event, so a
    job that already finished keeps its result.
    """

    def __init__(
        self,
        backend: BackendPort,
        reconciler: EventReconciler,
        transport: Callable[[], TransportPort | None],
    ) -> None:
        self._backend = backend
        self._reconciler = reconciler
        self._transport = transport

    async def execute(self, job_id: str) -> ApplyOutcome | None:
        # BackendError propagates: nothing changes locally if the cancel failed.
        await self._backend.cancel_job(job_id)
        outcome = self._reconciler.fail_locally(job_id, CANCELLED_MESSAGE)
        transport = self._transport()
        if transport is not None:
            await transport.unsubscribe(job_id)
        logger.info("Job cancelled", extra={"job_id": job_id})
        return outcome
