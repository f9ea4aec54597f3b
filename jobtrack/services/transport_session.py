"""Socket.IO session carrying job events from the processing backend."""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Callable, Iterable, Mapping
from typing import Any

import socketio

from jobtrack.application.ports.transport import ConnectionState, EventHandler
from jobtrack.config import Settings
from jobtrack.core.errors import NotConnectedError
from jobtrack.core.events import EventBus
from jobtrack.core.events.events import ConnectionChanged, ConnectionWarning

logger = logging.getLogger(__name__)

# Socket.IO event names used by the backend.
JOIN_TASK = "join_task"
LEAVE_TASK = "leave_task"
TASK_UPDATE = "task_update"
JOINED_TASK = "joined_task"
JOIN_USER_NOTIFICATIONS = "join_user_notifications"
JOINED_NOTIFICATIONS = "joined_notifications"
USER_NOTIFICATION = "user_notification"

ClientFactory = Callable[[Settings], Any]


def default_client_factory(settings: Settings) -> socketio.AsyncClient:
    # reconnection_attempts=0 means "retry forever" for python-socketio.
    return socketio.AsyncClient(
        reconnection=True,
        reconnection_attempts=settings.reconnect_attempts,
        reconnection_delay=settings.reconnect_backoff_sec,
        reconnection_delay_max=settings.reconnect_backoff_max_sec,
        randomization_factor=0.5,
        logger=False,
        engineio_logger=False,
        ssl_verify=settings.verify_tls,
    )


def backoff_delay(attempt: int, base: float, cap: float, jitter: float = 0.3) -> float:
    """Exponential backoff with bounded jitter for 1-based ``attempt``."""
    delay = min(cap, base * (1.6 ** (max(1, attempt) - 1)))
    j = 0.0 if jitter <= 0 else min(0.9, float(jitter))
    if j:
        delay *= 1.0 + random.uniform(-j, j)
    return max(0.0, delay)


class TransportSession:
    """One long-lived connection to the backend's event service.

    - ``connect()`` is idempotent and returns immediately; the connection comes
      up in the background and ``connected`` flips when it does.
    - Job channels asked for with ``subscribe()`` are remembered and joined
      again after every (re)connect, as long as ``keep_subscription(job_id)``
      still holds. Joined channels do not survive a disconnect by themselves.
    - Payloads are not interpreted here; ``task_update`` goes to the handler
      set with ``on_event`` and ``user_notification`` to ``on_notification``.
    - Transport failures are logged and reflected in ``connected``; nothing
      here raises to the caller except ``NotConnectedError`` after ``close()``.
    - ``subscriptions`` seeds the wished-for channels of a fresh session; they
      are joined on the first connect.
    """

    def __init__(
        self,
        settings: Settings,
        event_bus: EventBus,
        *,
        keep_subscription: Callable[[str], bool] | None = None,
        client_factory: ClientFactory = default_client_factory,
        headers: Mapping[str, str] | None = None,
        auth: Any = None,
        subscriptions: Iterable[str] = (),
    ) -> None:
        self._settings = settings
        self._bus = event_bus
        self._keep = keep_subscription or (lambda _job_id: True)
        self._headers = dict(headers or {})
        self._auth = auth
        self._client = client_factory(settings)
        self._connected = False
        self._connected_evt = asyncio.Event()
        self._closed = False
        self._wanted: dict[str, None] = dict.fromkeys(subscriptions)
        self._joined: set[str] = set()
        self._event_handler: EventHandler | None = None
        self._notification_handler: EventHandler | None = None
        self._connect_task: asyncio.Task[None] | None = None
        self._warning_task: asyncio.Task[None] | None = None
        self._register_handlers()

    def _register_handlers(self) -> None:
        self._client.on("connect", self._on_connect)
        self._client.on("disconnect", self._on_disconnect)
        self._client.on("connect_error", self._on_connect_error)
        self._client.on(TASK_UPDATE, self._on_task_update)
        self._client.on(USER_NOTIFICATION, self._on_user_notification)
        self._client.on(JOINED_TASK, self._on_ack)
        self._client.on(JOINED_NOTIFICATIONS, self._on_ack)

    # ------------------------------------------------------------------
    # state
    # ------------------------------------------------------------------
    @property
    def connected(self) -> bool:
        return self._connected

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def state(self) -> ConnectionState:
        return ConnectionState(connected=self._connected, subscriptions=frozenset(self._wanted))

    @property
    def joined(self) -> frozenset[str]:
        return frozenset(self._joined)

    def on_event(self, handler: EventHandler) -> None:
        if self._event_handler is not None and self._event_handler is not handler:
            logger.warning("Replacing the job event handler")
        self._event_handler = handler

    def on_notification(self, handler: EventHandler) -> None:
        self._notification_handler = handler

    # ------------------------------------------------------------------
    # lifecycle
    # ------------------------------------------------------------------
    async def connect(self) -> None:
        if self._closed:
            raise NotConnectedError("Event stream session is closed")
        if self._connected or (self._connect_task is not None and not self._connect_task.done()):
            return
        self._connect_task = asyncio.create_task(self._connect_loop())
        if self._settings.connect_warning_sec > 0:
            self._warning_task = asyncio.create_task(self._warn_if_slow())

    async def wait_connected(self, timeout: float | None = None) -> bool:
        try:
            await asyncio.wait_for(self._connected_evt.wait(), timeout)
        except asyncio.TimeoutError:
            return False
        return True

    async def close(self) -> None:
        """Disconnect and drop all subscriptions. Never raises."""
        if self._closed:
            return
        self._closed = True
        for task in (self._connect_task, self._warning_task):
            if task is not None and not task.done():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
        try:
            await self._client.disconnect()
        except (socketio.exceptions.SocketIOError, OSError):
            logger.warning("Error while disconnecting", exc_info=True)
        self._wanted.clear()
        self._joined.clear()
        self._set_connected(False)

    async def _connect_loop(self) -> None:
        s = self._settings
        attempt = 0
        while not self._closed and not self._client.connected:
            attempt += 1
            try:
                await self._client.connect(
                    s.base_url,
                    headers=self._headers,
                    auth=self._auth,
                    transports=list(s.transports),
                    socketio_path=s.socketio_path,
                    wait_timeout=s.connect_timeout_sec,
                )
                return
            except (socketio.exceptions.ConnectionError, OSError, asyncio.TimeoutError) as e:
                delay = backoff_delay(attempt, s.reconnect_backoff_sec, s.reconnect_backoff_max_sec)
                logger.warning(
                    "Connect attempt %d to %s failed (%s); retrying in %.1fs",
                    attempt,
                    s.base_url,
                    e,
                    delay,
                )
                await asyncio.sleep(delay)
            except Exception:
                # Misconfiguration such as an unknown transport; no retry.
                logger.exception("Giving up on connecting to %s", s.base_url)
                return

    async def _warn_if_slow(self) -> None:
        await asyncio.sleep(self._settings.connect_warning_sec)
        if not self._connected and not self._closed:
            msg = "Backend connection failed. Please ensure the API server is running."
            logger.warning(msg)
            self._bus.publish(ConnectionWarning(message=msg))

    def _set_connected(self, value: bool) -> None:
        if value == self._connected:
            return
        self._connected = value
        if value:
            self._connected_evt.set()
        else:
            self._connected_evt.clear()
        logger.info("Event stream %s", "connected" if value else "disconnected", extra={"connected": value})
        self._bus.publish(ConnectionChanged(connected=value))

    # ------------------------------------------------------------------
    # subscriptions
    # ------------------------------------------------------------------
    async def subscribe(self, job_id: str) -> None:
        if self._closed:
            raise NotConnectedError("Event stream session is closed")
        self._wanted[job_id] = None
        if self._connected:
            await self._join(job_id)
        else:
            logger.debug("Queued subscription until connected", extra={"job_id": job_id})

    async def unsubscribe(self, job_id: str) -> None:
        self._wanted.pop(job_id, None)
        was_joined = job_id in self._joined
        self._joined.discard(job_id)
        if not (self._connected and was_joined):
            return
        try:
            await self._client.emit(LEAVE_TASK, {"task_id": job_id, "job_id": job_id})
        except socketio.exceptions.SocketIOError:
            logger.debug("leave_task not sent", exc_info=True, extra={"job_id": job_id})

    async def _join(self, job_id: str) -> None:
        try:
            await self._client.emit(JOIN_TASK, {"task_id": job_id, "job_id": job_id})
        except socketio.exceptions.SocketIOError:
            # Stays wanted; re-issued on the next connect.
            logger.warning("join_task not sent", exc_info=True, extra={"job_id": job_id})
            return
        self._joined.add(job_id)

    async def _resubscribe(self) -> None:
        for job_id in list(self._wanted):
            if not self._keep(job_id):
                self._wanted.pop(job_id, None)
                continue
            await self._join(job_id)
        user_id = self._settings.user_id
        if user_id:
            try:
                await self._client.emit(JOIN_USER_NOTIFICATIONS, {"user_id": user_id})
            except socketio.exceptions.SocketIOError:
                logger.warning("join_user_notifications not sent", exc_info=True)

    # ------------------------------------------------------------------
    # socket.io handlers
    # ------------------------------------------------------------------
    async def _on_connect(self) -> None:
        self._joined.clear()
        self._set_connected(True)
        await self._resubscribe()

    def _on_disconnect(self, *_reason: Any) -> None:
        self._joined.clear()
        self._set_connected(False)

    def _on_connect_error(self, data: Any = None) -> None:
        logger.warning("Event stream connection error: %s", data)
        self._set_connected(False)

    def _on_ack(self, data: Any = None) -> None:
        logger.debug("Backend acknowledged: %r", data)

    def _on_task_update(self, data: Any) -> None:
        self._dispatch(self._event_handler, data, TASK_UPDATE)

    def _on_user_notification(self, data: Any) -> None:
        self._dispatch(self._notification_handler, data, USER_NOTIFICATION)

    @staticmethod
    def _dispatch(handler: EventHandler | None, data: Any, event: str) -> None:
        if handler is None:
            logger.debug("No handler for %s", event)
            return
        try:
            handler(data)
        except Exception:
            logger.exception("Handler for %s failed", event, extra={"event": event})
