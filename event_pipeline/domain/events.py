"""Domain events – the facts the services communicate.

Independent of wire format. Timestamps are UTC with millisecond precision.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from event_pipeline.domain.clock import Clock, SystemClock

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_ONE_MS = timedelta(milliseconds=1)


def to_millis(value: Any) -> int:
    """Normalize a timestamp to epoch milliseconds.

    Registry clients hand timestamps back as ints, floats or datetimes;
    naive datetimes are read as UTC.
    """
    if isinstance(value, bool):
        raise TypeError("bool is not a timestamp")
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return (value - EPOCH) // _ONE_MS
    raise TypeError(f"unsupported timestamp type: {type(value).__name__}")


def from_millis(ms: int) -> datetime:
    return EPOCH + timedelta(milliseconds=ms)


def _truncate_ms(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).replace(microsecond=dt.microsecond // 1000 * 1000)


@dataclass(frozen=True)
class DomainEvent:
    """An action that completed: order created, user registered, notification raised."""

    entity_id: str
    event_type: str
    occurred_at: datetime
    message: str = ""

    @classmethod
    def create(
        cls,
        entity_id: str,
        event_type: str,
        message: str = "",
        clock: Optional[Clock] = None,
    ) -> "DomainEvent":
        clock = clock or SystemClock()
        return cls(
            entity_id=entity_id,
            event_type=event_type,
            occurred_at=_truncate_ms(clock.now()),
            message=message,
        )

    @property
    def timestamp_ms(self) -> int:
        return to_millis(self.occurred_at)


@dataclass(frozen=True)
class DeliveryReport:
    """Where the broker stored a published message."""

    topic: str
    partition: int
    offset: int
