"""Kafka Publisher – DIP adapter for EventPublisher.

Synchronous keyed publish: one event per call, delivery report awaited.
"""
from __future__ import annotations

import logging
from time import monotonic
from typing import Any, Callable, Dict

from confluent_kafka import KafkaException, Producer

from event_pipeline.domain.errors import PublishError
from event_pipeline.domain.events import DeliveryReport, DomainEvent
from event_pipeline.ports.event_publisher import EventPublisher
from event_pipeline.ports.schema_encoder import SchemaEncoder
from event_pipeline.ports.schema_resolver import SchemaResolver
from event_pipeline.services.mapper import to_record

logger = logging.getLogger(__name__)


class KafkaEventProducer(EventPublisher):
    """SRP: only concern is delivery to Kafka.

    The schema is registered (or reused) once at construction; a registry
    failure propagates so the service never starts without a schema id.
    """

    def __init__(
        self,
        producer: Producer,
        resolver: SchemaResolver,
        encoder: SchemaEncoder,
        *,
        topic: str,
        subject: str,
        schema_str: str,
        record_builder: Callable[[DomainEvent], Dict[str, Any]] = to_record,
        delivery_timeout: float = 10.0,
    ) -> None:
        self.schema_id = resolver.register_or_reuse(subject, schema_str)
        self._producer = producer
        self._encoder = encoder
        self._topic = topic
        self._subject = subject
        self._schema_str = schema_str
        self._build = record_builder
        self._delivery_timeout = delivery_timeout
        self._closed = False
        logger.info("Producer ready topic=%s subject=%s schema_id=%s", topic, subject, self.schema_id)

    @property
    def topic(self) -> str:
        return self._topic

    def send(self, event: DomainEvent) -> DeliveryReport:
        if self._closed:
            raise PublishError("producer is closed")
        value = self._encoder.encode(self._schema_str, self.schema_id, self._build(event))

        outcome: Dict[str, Any] = {}

        def _on_delivery(err, msg) -> None:
            outcome["err"] = err
            outcome["msg"] = msg

        deadline = monotonic() + self._delivery_timeout
        while True:
            try:
                self._producer.produce(
                    topic=self._topic,
                    key=event.entity_id,
                    value=value,
                    on_delivery=_on_delivery,
                )
                break
            except BufferError:
                if monotonic() > deadline:
                    raise PublishError(f"local queue full for {self._delivery_timeout}s") from None
                self._producer.poll(0.05)
            except KafkaException as exc:
                raise PublishError(f"produce to {self._topic} failed: {exc}") from exc

        remaining = self._producer.flush(max(deadline - monotonic(), 0.0))
        if "err" not in outcome:
            raise PublishError(
                f"delivery to {self._topic} not confirmed within {self._delivery_timeout}s ({remaining} queued)"
            )
        if outcome["err"] is not None:
            raise PublishError(f"delivery to {self._topic} failed: {outcome['err']}")

        msg = outcome["msg"]
        report = DeliveryReport(topic=msg.topic(), partition=msg.partition(), offset=msg.offset())
        logger.info(
            "Delivered key=%s type=%s to %s [%s] @ offset %s",
            event.entity_id,
            event.event_type,
            report.topic,
            report.partition,
            report.offset,
        )
        return report

    def close(self, timeout: float = 15.0) -> None:
        if self._closed:
            return
        self._closed = True
        remaining = self._producer.flush(timeout)
        if remaining:
            logger.warning("Producer closed with %s undelivered messages", remaining)
        logger.info("Producer closed topic=%s", self._topic)
