from .backend import BackendPort, BatchItem, ModelProvider, ProcessingOptions
from .transport import ConnectionState, EventHandler, TransportPort

__all__ = [
    "BackendPort",
    "BatchItem",
    "ConnectionState",
    "EventHandler",
    "ModelProvider",
    "ProcessingOptions",
    "TransportPort",
]
