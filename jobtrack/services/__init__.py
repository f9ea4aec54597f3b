"""Adapters to the processing backend: REST client and Socket.IO session."""

from .backend_client import BackendClient
from .connection_manager import ConnectionManager
from .transport_session import TransportSession, backoff_delay, default_client_factory

__all__ = [
    "BackendClient",
    "ConnectionManager",
    "TransportSession",
    "backoff_delay",
    "default_client_factory",
]
