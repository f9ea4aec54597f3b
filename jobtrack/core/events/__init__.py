"""Lightweight in-process event bus.

The registry, transport and notification counter publish here; any number of
independent consumers subscribe.
"""

from .event_bus import EventBus, Subscription
from .events import ConnectionChanged, ConnectionWarning, UnreadCountChanged
from .job_events import (
    BatchSubmitted,
    JobNotification,
    JobsSeeded,
    JobStatusChanged,
    JobUpdated,
    RegistryChanged,
    RegistryCleared,
)

__all__ = [
    "EventBus",
    "Subscription",
    "BatchSubmitted",
    "ConnectionChanged",
    "ConnectionWarning",
    "JobNotification",
    "JobsSeeded",
    "JobStatusChanged",
    "JobUpdated",
    "RegistryChanged",
    "RegistryCleared",
    "UnreadCountChanged",
]
