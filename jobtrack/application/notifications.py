"""Unread-notification count shared by every view that shows a badge.

The count is server-tracked. Locally it moves by one whenever a job reaches a
terminal status, and is replaced by the backend's value on every refresh, so
on disagreement the backend wins.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from jobtrack.application.ports.backend import BackendPort
from jobtrack.core.errors import IntegrationError
from jobtrack.core.events import EventBus, Subscription
from jobtrack.core.events.events import UnreadCountChanged
from jobtrack.core.events.job_events import JobNotification, JobStatusChanged, RegistryCleared
from jobtrack.core.jobs import JobRegistry, JobStatus

logger = logging.getLogger(__name__)

_NOTIFICATION_STATUS = {
    "job_completed": JobStatus.COMPLETED,
    "job_failed": JobStatus.FAILED,
}


class UnreadCounter:
    def __init__(self, backend: BackendPort, registry: JobRegistry, event_bus: EventBus) -> None:
        self._backend = backend
        self._registry = registry
        self._bus = event_bus
        self._count = 0
        self._counted: set[str] = set()
        self._subscriptions: list[Subscription] = [
            event_bus.subscribe(JobStatusChanged, self._on_status_changed),
            event_bus.subscribe(RegistryCleared, self._on_registry_cleared),
        ]

    @property
    def count(self) -> int:
        return self._count

    def close(self) -> None:
        for sub in self._subscriptions:
            self._bus.unsubscribe(sub)
        self._subscriptions.clear()

    def _set(self, value: int, *, confirmed: bool = False) -> None:
        value = max(0, int(value))
        changed = value != self._count
        self._count = value
        if changed or confirmed:
            logger.debug("Unread count is %d", value, extra={"count": value})
            self._bus.publish(UnreadCountChanged(count=value, confirmed=confirmed))

    def _on_registry_cleared(self, e: RegistryCleared) -> None:
        self._counted.difference_update(e.job_ids)

    def _on_status_changed(self, e: JobStatusChanged) -> None:
        if not e.became_terminal or e.job_id in self._counted:
            return
        self._counted.add(e.job_id)
        self._set(self._count + 1)
        rec = self._registry.get(e.job_id)
        self._bus.publish(
            JobNotification(
                job_id=e.job_id,
                display_name=e.display_name,
                status=e.status,
                error=None if rec is None else rec.error,
                tracked=True,
            )
        )

    def handle_user_notification(self, payload: Any) -> None:
        """Consume a ``user_notification`` payload from the user channel.

        Jobs tracked in the registry are counted from their status transition
        instead, so each job moves the count at most once.
        """
        if not isinstance(payload, Mapping):
            logger.warning("Dropped malformed user notification: %r", payload)
            return
        status = _NOTIFICATION_STATUS.get(str(payload.get("type", "")))
        job_id = payload.get("job_id")
        if status is None or not isinstance(job_id, str) or not job_id:
            logger.debug("Ignored user notification: %r", payload)
            return
        if job_id in self._registry or job_id in self._counted:
            return
        self._counted.add(job_id)
        self._set(self._count + 1)
        error = payload.get("error")
        self._bus.publish(
            JobNotification(
                job_id=job_id,
                display_name=str(payload.get("filename") or "your file"),
                status=status,
                error=None if error is None else str(error),
                tracked=False,
            )
        )

    async def refresh(self) -> int:
        """Replace the local count with the backend's. Raises ``IntegrationError``."""
        value = await self._backend.get_unread_count()
        self._set(value, confirmed=True)
        return self._count

    async def mark_all_read(self) -> bool:
        """Zero the count now, then confirm with the backend.

        Returns False if the backend could not be reached or refused; the next
        successful refresh decides the count.
        """
        self._set(0)
        try:
            await self._backend.mark_as_read()
        except IntegrationError as e:
            logger.warning("Failed to mark notifications as read: %s", e)
            await self.try_refresh()
            return False
        return await self.try_refresh()

    async def mark_job_read(self, job_id: str) -> bool:
        try:
            await self._backend.mark_as_read(job_id)
        except IntegrationError as e:
            logger.warning("Failed to mark job as read: %s", e, extra={"job_id": job_id})
            return False
        return await self.try_refresh()

    async def try_refresh(self) -> bool:
        try:
            await self.refresh()
        except IntegrationError as e:
            logger.warning("Could not refresh unread count: %s", e)
            return False
        return True
