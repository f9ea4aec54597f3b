"""Application port for the job event stream."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Protocol

EventHandler = Callable[[Any], None]


@dataclass(frozen=True, slots=True)
class ConnectionState:
    """Snapshot of the event stream.

    ``subscriptions`` are the job channels asked for, whether or not they are
    currently joined.
    """

    connected: bool = False
    subscriptions: frozenset[str] = field(default_factory=frozenset)


class TransportPort(Protocol):
    @property
    def connected(self) -> bool:
        ...

    async def subscribe(self, job_id: str) -> None:
        """Join a job's channel now, or as soon as the stream is connected."""

    async def unsubscribe(self, job_id: str) -> None:
        """Leave a job's channel (best effort; never cancels backend work)."""
