from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Union

from speaker_queue.clock import Clock
from speaker_queue.events import Event, EventType

logger = logging.getLogger(__name__)


class EventSink(ABC):
    """
    Consumer of structured events.
    The queue must be able to run with no sink attached (no subscribers).
    """

    @abstractmethod
    def publish(self, event: Event) -> None: ...


@dataclass
class InMemoryEventSink(EventSink):
    """
    Simple sink for tests/demos.
    """

    events: list[Event] = field(default_factory=list)

    def publish(self, event: Event) -> None:
        self.events.append(event)

    def of_type(self, *types: EventType) -> list[Event]:
        return [e for e in self.events if e.type in types]


Subscriber = Union[EventSink, Callable[[Event], None]]


class EventEmitter:
    """
    Numbers events and fans them out to subscribers.

    Events are staged while a command runs and delivered by flush() once the
    command has released the queue lock. Delivery never blocks on a subscriber
    and is never retried: a subscriber that raises is logged and skipped.
    """

    def __init__(self, clock: Clock):
        self._clock = clock
        self._seq = 0
        self._subscribers: list[Callable[[Event], None]] = []
        self._outbox: list[Event] = []
        self._outbox_lock = threading.Lock()
        self._delivery_lock = threading.Lock()
        self._local = threading.local()

    def subscribe(self, subscriber: Subscriber) -> Callable[[], None]:
        """Register a subscriber; returns a callable that unsubscribes it."""
        callback = subscriber.publish if isinstance(subscriber, EventSink) else subscriber
        self._subscribers.append(callback)

        def _unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return _unsubscribe

    def stage(self, event_type: EventType, participant_id: str | None = None, **data: Any) -> Event:
        with self._outbox_lock:
            self._seq += 1
            event = Event(
                seq=self._seq,
                at=float(self._clock.now()),
                type=event_type,
                participant_id=participant_id,
                data=dict(data),
            )
            self._outbox.append(event)
        return event

    def flush(self) -> None:
        # A subscriber that issues a command lands here again on the same thread;
        # the outer loop picks up its events, keeping delivery in seq order.
        if getattr(self._local, "delivering", False):
            return
        with self._delivery_lock:
            self._local.delivering = True
            try:
                while True:
                    with self._outbox_lock:
                        if not self._outbox:
                            return
                        event = self._outbox.pop(0)
                    self._deliver(event)
            finally:
                self._local.delivering = False

    def _deliver(self, event: Event) -> None:
        for callback in list(self._subscribers):
            try:
                callback(event)
            except Exception:
                logger.exception("Subscriber %r failed on %s", callback, event.type.value)
