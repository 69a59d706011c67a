"""In-memory stand-ins for the broker and the schema registry."""
from __future__ import annotations

import threading
import time
import zlib
from collections import defaultdict
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional

import pytest
from confluent_kafka import TopicPartition
from confluent_kafka.schema_registry.error import SchemaRegistryError

from event_pipeline.adapters.kafka.consumer import ConsumerGroupRunner
from event_pipeline.adapters.kafka.schemas import DOMAIN_EVENT_SCHEMA, ORDER_EVENT_SCHEMA
from event_pipeline.adapters.kafka.serializers import AvroWireCodec
from event_pipeline.domain.clock import FixedClock

T0 = datetime(2024, 5, 1, 12, 30, 15, 123000, tzinfo=timezone.utc)
T0_MS = 1714566615123


class FakeMessage:
    def __init__(self, value, key=None, topic="events", partition=0, offset=0, error=None):
        self._value = value
        self._key = key
        self._topic = topic
        self._partition = partition
        self._offset = offset
        self._error = error

    def value(self):
        return self._value

    def key(self):
        return self._key

    def topic(self):
        return self._topic

    def partition(self):
        return self._partition

    def offset(self):
        return self._offset

    def error(self):
        return self._error


class FakeLog:
    """A partitioned append-only topic."""

    def __init__(self, topic: str = "events", partitions: int = 3) -> None:
        self.topic = topic
        self.partitions: Dict[int, List[FakeMessage]] = {p: [] for p in range(partitions)}

    def partition_for(self, key: str) -> int:
        return zlib.crc32(key.encode("utf-8")) % len(self.partitions)

    def append(self, key: str, value: bytes) -> FakeMessage:
        partition = self.partition_for(key)
        msg = FakeMessage(
            value,
            key=key.encode("utf-8"),
            topic=self.topic,
            partition=partition,
            offset=len(self.partitions[partition]),
        )
        self.partitions[partition].append(msg)
        return msg

    def messages(self) -> List[FakeMessage]:
        """Partition by partition, each in offset order."""
        return [m for p in sorted(self.partitions) for m in self.partitions[p]]


class FakeProducer:
    def __init__(self, log: Optional[FakeLog] = None, *, delivery_error=None, buffer_errors: int = 0, deliver: bool = True):
        self.log = log or FakeLog()
        self.delivery_error = delivery_error
        self.buffer_errors = buffer_errors
        self.deliver = deliver
        self.produced: List[dict] = []
        self.flushes = 0
        self.polls = 0
        self._pending = []

    def produce(self, topic, value=None, key=None, on_delivery=None, **_kwargs):
        if self.buffer_errors:
            self.buffer_errors -= 1
            raise BufferError("Local: Queue full")
        self.produced.append({"topic": topic, "key": key, "value": value})
        self._pending.append((key, value, on_delivery))

    def poll(self, timeout=0):
        self.polls += 1
        return 0

    def flush(self, timeout=None):
        self.flushes += 1
        if not self.deliver:
            return len(self._pending)
        pending, self._pending = self._pending, []
        for key, value, cb in pending:
            if self.delivery_error is not None:
                cb(self.delivery_error, None)
                continue
            msg = self.log.append(key, value)
            cb(None, msg)
        return 0


class FakeConsumer:
    """Delivers a fixed list of messages, then reports empty polls."""

    def __init__(
        self,
        messages: List[FakeMessage],
        *,
        on_empty: Optional[Callable[[], None]] = None,
        poll_errors: Optional[List[Exception]] = None,
    ) -> None:
        self._messages = list(messages)
        self._on_empty = on_empty
        self._poll_errors = list(poll_errors or [])
        self.subscriptions = 0
        self.stored: List[tuple] = []
        self.closes = 0
        self._assigned = False
        self._callbacks = {}

    def subscribe(self, topics, on_assign=None, on_revoke=None):
        self.subscriptions += 1
        self.topics = list(topics)
        self._callbacks = {"assign": on_assign, "revoke": on_revoke}
        self._assigned = False

    def poll(self, timeout=None):
        if self._poll_errors:
            raise self._poll_errors.pop(0)
        if not self._assigned and self._callbacks.get("assign"):
            self._assigned = True
            partitions = sorted({m.partition() for m in self._messages}) or [0]
            self._callbacks["assign"](self, [TopicPartition(self.topics[0], p) for p in partitions])
        if self._messages:
            return self._messages.pop(0)
        if self._on_empty is not None:
            self._on_empty()
        time.sleep(0.005)
        return None

    def store_offsets(self, message=None, offsets=None):
        self.stored.append((message.partition(), message.offset()))

    def close(self):
        self.closes += 1


class FakeSchema:
    def __init__(self, schema_str: str) -> None:
        self.schema_str = schema_str


class FakeRegistryClient:
    """Ids are global per schema text, like a real registry."""

    def __init__(self, *, down: bool = False) -> None:
        self.down = down
        self.schemas: Dict[int, str] = {}
        self.subjects: Dict[str, List[int]] = defaultdict(list)
        self.register_calls = 0
        self.get_calls = 0

    def _check(self):
        if self.down:
            raise ConnectionError("connection refused")

    def register_schema(self, subject_name, schema, normalize_schemas=False):
        self.register_calls += 1
        self._check()
        for schema_id, text in self.schemas.items():
            if text == schema.schema_str:
                break
        else:
            schema_id = len(self.schemas) + 1
            self.schemas[schema_id] = schema.schema_str
        if schema_id not in self.subjects[subject_name]:
            self.subjects[subject_name].append(schema_id)
        return schema_id

    def get_schema(self, schema_id, *args, **kwargs):
        self.get_calls += 1
        self._check()
        if schema_id not in self.schemas:
            raise SchemaRegistryError(404, 40403, "Schema not found")
        return FakeSchema(self.schemas[schema_id])

    def get_subjects(self):
        self._check()
        return list(self.subjects)


class RecordingSink:
    def __init__(self, fail_on: Optional[set] = None) -> None:
        self.events = []
        self.fail_on = fail_on or set()

    def publish(self, event):
        self.events.append(event)
        if event.entity_id in self.fail_on:
            raise RuntimeError(f"sink rejected {event.entity_id}")


def run_to_end(runner: ConsumerGroupRunner, consumer: FakeConsumer, cancel: threading.Event) -> None:
    """Start the runner on this thread; it stops once the consumer runs dry."""
    consumer._on_empty = cancel.set
    runner.start(cancel)


@pytest.fixture
def codec():
    return AvroWireCodec()


@pytest.fixture
def registry_client():
    return FakeRegistryClient()


@pytest.fixture
def clock():
    return FixedClock(T0)


@pytest.fixture
def schemas():
    return {"domain_event": DOMAIN_EVENT_SCHEMA, "order_event": ORDER_EVENT_SCHEMA}
