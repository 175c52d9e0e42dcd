"""In-process event stream with explicit subscriptions."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable

from voice_journal.utils.time import utc_now

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class Event:
    kind: str
    payload: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=utc_now)


EventCallback = Callable[[Event], None]


class Subscription:
    """Handle returned by ``EventStream.subscribe``; cancel to stop delivery."""

    def __init__(self, stream: "EventStream", callback: EventCallback, kinds: frozenset[str] | None) -> None:
        self._stream = stream
        self.callback = callback
        self.kinds = kinds
        self.active = True

    def wants(self, kind: str) -> bool:
        return self.active and (self.kinds is None or kind in self.kinds)

    def cancel(self) -> None:
        if self.active:
            self.active = False
            self._stream._remove(self)

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.cancel()


class EventStream:
    """Synchronous publish/subscribe channel.

    Subscribers live until they cancel their ``Subscription``; a failing
    callback is logged and does not stop delivery to the others.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self._subscriptions: list[Subscription] = []
        self._lock = threading.Lock()

    def subscribe(self, callback: EventCallback, kinds: set[str] | None = None) -> Subscription:
        subscription = Subscription(self, callback, frozenset(kinds) if kinds else None)
        with self._lock:
            self._subscriptions.append(subscription)
        return subscription

    def publish(self, kind: str, **payload: Any) -> Event:
        event = Event(kind=kind, payload=payload)
        with self._lock:
            targets = [sub for sub in self._subscriptions if sub.wants(kind)]
        for subscription in targets:
            try:
                subscription.callback(event)
            except Exception:  # noqa: BLE001
                logger.exception("Subscriber to %s failed on %s", self.name, kind)
        return event

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscriptions)

    def _remove(self, subscription: Subscription) -> None:
        with self._lock:
            if subscription in self._subscriptions:
                self._subscriptions.remove(subscription)


__all__ = ["Event", "EventStream", "Subscription"]
