"""Composition root / DI container.

Consumers should not build the registry, session or backend client
themselves. This container wires one of each per process and hands out the
use cases that operate on them.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence

from jobtrack.application.notifications import UnreadCounter
from jobtrack.application.ports.backend import BackendPort
from jobtrack.application.use_cases.cancel_job import CancelJobUseCase
from jobtrack.application.use_cases.submit_batch import SubmitBatchUseCase
from jobtrack.config import Settings
from jobtrack.core.events import EventBus
from jobtrack.core.jobs import BatchTracker, EventReconciler, JobRegistry, status_counts
from jobtrack.core.jobs.models import JobStatus
from jobtrack.services.backend_client import BackendClient
from jobtrack.services.connection_manager import ConnectionManager
from jobtrack.services.transport_session import (
    ClientFactory,
    TransportSession,
    default_client_factory,
)

logger = logging.getLogger(__name__)


class Container:
    """Resolves application services. Single place to swap implementations if needed."""

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        backend: BackendPort | None = None,
        client_factory: ClientFactory = default_client_factory,
        headers: Mapping[str, str] | None = None,
        cookies: Mapping[str, str] | None = None,
    ) -> None:
        self.settings = settings or Settings.from_env()
        self._backend: BackendPort | None = backend
        self._owns_backend = backend is None
        self._client_factory = client_factory
        self._headers = dict(headers or {})
        self._cookies = dict(cookies or {})
        self._event_bus: EventBus | None = None
        self._job_registry: JobRegistry | None = None
        self._reconciler: EventReconciler | None = None
        self._connections: ConnectionManager | None = None
        self._unread: UnreadCounter | None = None
        self._submit_batch_uc: SubmitBatchUseCase | None = None
        self._cancel_job_uc: CancelJobUseCase | None = None

    @property
    def event_bus(self) -> EventBus:
        if self._event_bus is None:
            self._event_bus = EventBus()
        return self._event_bus

    @property
    def job_registry(self) -> JobRegistry:
        if self._job_registry is None:
            self._job_registry = JobRegistry(self.event_bus)
        return self._job_registry

    @property
    def reconciler(self) -> EventReconciler:
        if self._reconciler is None:
            self._reconciler = EventReconciler(self.job_registry)
        return self._reconciler

    @property
    def backend(self) -> BackendPort:
        if self._backend is None:
            self._backend = BackendClient(
                self.settings.base_url,
                timeout=self.settings.http_timeout_sec,
                headers=self._auth_headers(),
                verify=self.settings.verify_tls,
            )
        return self._backend

    @property
    def unread(self) -> UnreadCounter:
        # Must exist before the first status transition, or it is missed.
        if self._unread is None:
            self._unread = UnreadCounter(self.backend, self.job_registry, self.event_bus)
        return self._unread

    @property
    def connections(self) -> ConnectionManager:
        if self._connections is None:
            self._connections = ConnectionManager(self._create_session)
        return self._connections

    @property
    def session(self) -> TransportSession | None:
        return self.connections.session

    def _auth_headers(self) -> dict[str, str]:
        # The backend authenticates by session cookie on both HTTP and Socket.IO.
        headers = dict(self._headers)
        if self._cookies:
            headers.setdefault("Cookie", "; ".join(f"{k}={v}" for k, v in self._cookies.items()))
        return headers

    def _create_session(self) -> TransportSession:
        session = TransportSession(
            self.settings,
            self.event_bus,
            keep_subscription=self.job_registry.is_active,
            client_factory=self._client_factory,
            headers=self._auth_headers(),
            # Jobs still running from an earlier session are rejoined on connect.
            subscriptions=[r.job_id for r in self.job_registry.snapshot() if not r.is_terminal],
        )
        session.on_event(self.reconciler.handle)
        session.on_notification(self.unread.handle_user_notification)
        return session

    @property
    def submit_batch_use_case(self) -> SubmitBatchUseCase:
        if self._submit_batch_uc is None:
            self._submit_batch_uc = SubmitBatchUseCase(
                self.backend,
                self.job_registry,
                lambda: self.session,
                event_bus=self.event_bus,
            )
        return self._submit_batch_uc

    @property
    def cancel_job_use_case(self) -> CancelJobUseCase:
        if self._cancel_job_uc is None:
            self._cancel_job_uc = CancelJobUseCase(self.backend, self.reconciler, lambda: self.session)
        return self._cancel_job_uc

    # --- lifecycle ---
    async def start(self) -> TransportSession:
        """Acquire the shared event stream (one per ``start``) and sync the badge."""
        unread = self.unread
        session = await self.connections.acquire()
        await unread.try_refresh()
        return session

    async def stop(self) -> None:
        """Release the event stream. Registry state is kept."""
        await self.connections.release()

    async def aclose(self) -> None:
        while self.connections.ref_count:
            await self.connections.release()
        if self._unread is not None:
            self._unread.close()
        if self._owns_backend and isinstance(self._backend, BackendClient):
            await self._backend.aclose()

    # --- views ---
    def track_batch(self, job_ids: Sequence[str]) -> BatchTracker:
        return BatchTracker(self.job_registry, self.event_bus, job_ids)

    def status_counts(self) -> dict[JobStatus, int]:
        return status_counts(self.job_registry.snapshot())

    async def dismiss_all(self) -> list[str]:
        """Stop tracking every job locally; backend records are untouched."""
        dropped = self.job_registry.clear()
        session = self.session
        if session is not None:
            for job_id in dropped:
                await session.unsubscribe(job_id)
        return dropped

