from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from threading import RLock
from typing import Any, TypeVar, cast
from weakref import WeakMethod

logger = logging.getLogger(__name__)

TEvent = TypeVar("TEvent")
Handler = Callable[[Any], None]


@dataclass(eq=False, slots=True)
class Subscription:
    """Handle returned by ``subscribe``; pass it back to ``unsubscribe``."""

    event_type: type[object]
    handler: Handler | None
    weak: WeakMethod | None = field(default=None, repr=False)

    def resolve(self) -> Handler | None:
        return self.handler if self.weak is None else self.weak()


class EventBus:
    """Synchronous in-process event bus.

    - Handlers run in the publisher's thread (or event-loop callback), in
      subscription order.
    - Delivery follows the event's MRO, so subscribing to a base event class
      receives every subclass as well.
    - A failing handler is logged and does not stop delivery to the others.
    """

    def __init__(self) -> None:
        self._lock = RLock()
        self._subs: dict[type[object], list[Subscription]] = {}

    def _add(self, sub: Subscription) -> Subscription:
        with self._lock:
            self._subs.setdefault(sub.event_type, []).append(sub)
        return sub

    def subscribe(self, event_type: type[TEvent], handler: Callable[[TEvent], None]) -> Subscription:
        return self._add(Subscription(event_type, cast(Handler, handler)))

    def subscribe_weak(self, event_type: type[TEvent], handler: Callable[[TEvent], None]) -> Subscription:
        """Subscribe a bound method without keeping its owner alive.

        The subscription is dropped on the first publish after the owner is
        collected. Plain functions get a normal subscription.
        """
        try:
            weak = WeakMethod(cast(Any, handler))
        except TypeError:
            return self.subscribe(event_type, handler)
        return self._add(Subscription(event_type, None, weak=weak))

    def unsubscribe(self, subscription: Subscription) -> None:
        with self._lock:
            subs = self._subs.get(subscription.event_type)
            if subs and subscription in subs:
                subs.remove(subscription)
                if not subs:
                    del self._subs[subscription.event_type]

    def publish(self, event: object) -> int:
        """Deliver ``event``; returns how many handlers ran."""
        with self._lock:
            targets = [s for cls in type(event).__mro__ for s in self._subs.get(cls, ())]
        delivered = 0
        for sub in targets:
            handler = sub.resolve()
            if handler is None:
                self.unsubscribe(sub)
                continue
            try:
                handler(event)
            except Exception:
                logger.exception("Event handler failed", extra={"event": type(event).__name__})
            delivered += 1
        return delivered

    def has_subscribers(self, event_type: type[object]) -> bool:
        with self._lock:
            return bool(self._subs.get(event_type))

    def clear(self) -> None:
        with self._lock:
            self._subs.clear()
