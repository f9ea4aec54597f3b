from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class ConnectionChanged:
    connected: bool


@dataclass(frozen=True, slots=True)
class ConnectionWarning:
    """The event stream did not come up within the configured delay."""

    message: str


@dataclass(frozen=True, slots=True)
class UnreadCountChanged:
    count: int
    confirmed: bool = False  # True when the value came from the backend
