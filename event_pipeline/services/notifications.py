"""Notification fan-out – downstream side of the consumer.

NotificationService forwards each decoded event to every registered sink.
BroadcastHub is the in-process stand-in for websocket clients: one bounded
queue per subscriber, filled without blocking.
"""
from __future__ import annotations

import json
import logging
import queue
import threading
from typing import Dict, Iterable, List, Optional

from event_pipeline.domain.events import DomainEvent
from event_pipeline.ports.event_sink import EventSink

logger = logging.getLogger(__name__)


def event_to_json(event: DomainEvent) -> str:
    return json.dumps(
        {
            "id": event.entity_id,
            "type": event.event_type,
            "message": event.message,
            "created_at": event.occurred_at.isoformat(),
        },
        separators=(",", ":"),
    )


class NotificationService(EventSink):
    """SRP: fan-out. A failing sink is logged; the others still receive the event."""

    def __init__(self, sinks: Optional[Iterable[EventSink]] = None) -> None:
        self._sinks: List[EventSink] = list(sinks or [])

    def register(self, sink: EventSink) -> None:
        self._sinks.append(sink)

    def publish(self, event: DomainEvent) -> bool:
        logger.info("Processing notification id=%s type=%s", event.entity_id, event.event_type)
        ok = True
        for sink in self._sinks:
            try:
                sink.publish(event)
            except Exception:
                ok = False
                logger.exception(
                    "Sink %s failed for notification id=%s", type(sink).__name__, event.entity_id
                )
        return ok


class Subscription:
    """One connected client. Reads block; writes never do."""

    def __init__(self, name: str, maxsize: int) -> None:
        self.name = name
        self._queue: "queue.Queue[str]" = queue.Queue(maxsize=maxsize)
        self.dropped = 0

    def offer(self, payload: str) -> bool:
        try:
            self._queue.put_nowait(payload)
            return True
        except queue.Full:
            self.dropped += 1
            return False

    def get(self, timeout: Optional[float] = None) -> str:
        return self._queue.get(timeout=timeout)

    def pending(self) -> int:
        return self._queue.qsize()


class BroadcastHub(EventSink):
    def __init__(self, max_pending: int = 100) -> None:
        self._max_pending = max_pending
        self._subs: Dict[str, Subscription] = {}
        self._lock = threading.Lock()
        self._seq = 0

    def subscribe(self, name: Optional[str] = None) -> Subscription:
        with self._lock:
            if name is None:
                self._seq += 1
                while f"sub-{self._seq}" in self._subs:
                    self._seq += 1
                name = f"sub-{self._seq}"
            elif name in self._subs:
                raise ValueError(f"subscriber {name!r} is already connected")
            sub = Subscription(name, self._max_pending)
            self._subs[sub.name] = sub
        logger.info("Subscriber added name=%s", sub.name)
        return sub

    def unsubscribe(self, sub: Subscription) -> None:
        with self._lock:
            self._subs.pop(sub.name, None)
        logger.info("Subscriber removed name=%s", sub.name)

    def __len__(self) -> int:
        with self._lock:
            return len(self._subs)

    def publish(self, event: DomainEvent) -> int:
        payload = event_to_json(event)
        with self._lock:
            subs = list(self._subs.values())
        delivered = 0
        for sub in subs:
            if sub.offer(payload):
                delivered += 1
            else:
                logger.warning("Subscriber %s is full; dropped notification id=%s", sub.name, event.entity_id)
        logger.debug("Broadcast id=%s to %d/%d subscribers", event.entity_id, delivered, len(subs))
        return delivered


class LoggingSink(EventSink):
    def publish(self, event: DomainEvent) -> None:
        logger.info(
            "notification id=%s type=%s message=%r at=%s",
            event.entity_id,
            event.event_type,
            event.message,
            event.occurred_at.isoformat(),
        )
