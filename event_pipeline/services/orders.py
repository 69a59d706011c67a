"""Orders Service – SRP: announce completed order actions.

Called after the primary write has committed. Publishing is best-effort:
a failure is logged and reported, never rolled back against the write.
"""
from __future__ import annotations

import logging
from typing import Optional

from event_pipeline.domain.clock import Clock, SystemClock
from event_pipeline.domain.errors import PublishError
from event_pipeline.domain.events import DomainEvent
from event_pipeline.ports.event_publisher import EventPublisher

logger = logging.getLogger(__name__)


class OrderEventService:
    def __init__(self, publisher: EventPublisher, clock: Optional[Clock] = None) -> None:
        self.publisher = publisher
        self.clock = clock or SystemClock()

    def emit(self, order_id: str, event_type: str, message: str = "") -> bool:
        event = DomainEvent.create(order_id, event_type, message, clock=self.clock)
        try:
            self.publisher.send(event)
        except PublishError as exc:
            logger.error("Failed to publish %s for order %s: %s", event_type, order_id, exc)
            return False
        return True

    def order_created(self, order_id: str, message: str = "") -> bool:
        return self.emit(order_id, "CREATED", message)

    def order_completed(self, order_id: str, message: str = "") -> bool:
        return self.emit(order_id, "COMPLETED", message)
