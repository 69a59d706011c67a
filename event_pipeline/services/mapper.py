"""Event Mapper – SRP: generic Avro records <-> DomainEvent.

Upstream producers name their fields differently across schema versions;
the candidate tables below are tried in order and the first usable value wins.
"""
from __future__ import annotations

from typing import Any, Callable, Dict, Mapping, Optional, Sequence

from event_pipeline.domain.clock import Clock, SystemClock
from event_pipeline.domain.errors import MissingFieldsError
from event_pipeline.domain.events import DomainEvent, from_millis, to_millis

# None and "" both count as absent, so an empty "id" falls through to "order_id".
ID_FIELDS = ("id", "order_id", "user_id")
TYPE_FIELDS = ("type", "event_type")
MESSAGE_FIELDS = ("message",)
TIMESTAMP_FIELDS = ("timestamp", "ts", "created_at")


def first_present(record: Mapping[str, Any], candidates: Sequence[str]) -> Optional[Any]:
    for name in candidates:
        value = record.get(name)
        if value is not None and value != "":
            return value
    return None


def to_record(event: DomainEvent) -> Dict[str, Any]:
    """Native record for the DomainEvent schema."""
    return {
        "id": event.entity_id,
        "type": event.event_type,
        "message": event.message,
        "timestamp": event.timestamp_ms,
    }


def to_order_record(event: DomainEvent) -> Dict[str, Any]:
    """Native record for the order-service OrderEvent schema."""
    return {
        "order_id": event.entity_id,
        "event_type": event.event_type,
        "message": event.message,
        "timestamp": event.timestamp_ms,
    }


RECORD_BUILDERS: Dict[str, Callable[[DomainEvent], Dict[str, Any]]] = {
    "domain_event": to_record,
    "order_event": to_order_record,
}


class EventMapper:
    def __init__(self, clock: Optional[Clock] = None) -> None:
        self.clock = clock or SystemClock()

    def to_domain_event(self, record: Mapping[str, Any]) -> DomainEvent:
        entity_id = first_present(record, ID_FIELDS)
        event_type = first_present(record, TYPE_FIELDS)
        missing = []
        if entity_id is None:
            missing.append("/".join(ID_FIELDS))
        if event_type is None:
            missing.append("/".join(TYPE_FIELDS))
        if missing:
            raise MissingFieldsError(missing)

        message = first_present(record, MESSAGE_FIELDS)
        ts = first_present(record, TIMESTAMP_FIELDS)
        try:
            occurred_at = from_millis(to_millis(ts)) if ts is not None else self.clock.now()
        except (TypeError, ValueError, OverflowError):
            occurred_at = self.clock.now()

        return DomainEvent(
            entity_id=str(entity_id),
            event_type=str(event_type),
            occurred_at=occurred_at,
            message="" if message is None else str(message),
        )
