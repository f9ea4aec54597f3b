from __future__ import annotations

import logging
from collections.abc import Callable

from jobtrack.services.transport_session import TransportSession

logger = logging.getLogger(__name__)


class ConnectionManager:
    """Reference-counted owner of the process-wide ``TransportSession``.

    Every consumer that needs live job events calls ``acquire()`` and later
    ``release()``. The first acquire creates and connects a session; the last
    release closes it. A later acquire builds a fresh session, so subscriptions
    never leak from one session to the next.
    """

    def __init__(self, session_factory: Callable[[], TransportSession]) -> None:
        self._factory = session_factory
        self._session: TransportSession | None = None
        self._refs = 0

    @property
    def ref_count(self) -> int:
        return self._refs

    @property
    def session(self) -> TransportSession | None:
        return self._session

    async def acquire(self) -> TransportSession:
        self._refs += 1
        if self._session is None:
            logger.debug("Opening event stream session")
            self._session = self._factory()
        session = self._session
        await session.connect()
        return session

    async def release(self) -> None:
        if self._refs == 0:
            logger.warning("release() called without a matching acquire()")
            return
        self._refs -= 1
        if self._refs > 0 or self._session is None:
            return
        session, self._session = self._session, None
        logger.debug("Closing event stream session")
        await session.close()
