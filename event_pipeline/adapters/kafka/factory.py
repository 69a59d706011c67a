"""Kafka Factory – SRP: build producer, consumer runner and resolver.

DIP: callers receive ports, not concrete libs.
"""
from __future__ import annotations

from typing import Optional

from confluent_kafka import Consumer, Producer

from event_pipeline.config import Config
from event_pipeline.domain.clock import Clock
from event_pipeline.ports.event_sink import EventSink
from event_pipeline.adapters.kafka.consumer import ConsumerGroupRunner
from event_pipeline.adapters.kafka.publisher import KafkaEventProducer
from event_pipeline.adapters.kafka.registry import RegistrySchemaResolver
from event_pipeline.adapters.kafka.schemas import load_schema
from event_pipeline.adapters.kafka.serializers import AvroWireCodec
from event_pipeline.services.mapper import RECORD_BUILDERS, EventMapper


def producer_conf(config: Config) -> dict:
    return {
        "bootstrap.servers": config.bootstrap,
        "enable.idempotence": True,
        "acks": "all",
        "linger.ms": 5,
        "compression.type": "lz4",
        "message.timeout.ms": int(config.delivery_timeout * 1000),
    }


def consumer_conf(config: Config) -> dict:
    return {
        "bootstrap.servers": config.bootstrap,
        "group.id": config.group_id,
        "auto.offset.reset": "earliest",
        "partition.assignment.strategy": "roundrobin",
        # offsets are stored per message by the runner and committed in the background
        "enable.auto.commit": True,
        "enable.auto.offset.store": False,
    }


def build_resolver(config: Config) -> RegistrySchemaResolver:
    return RegistrySchemaResolver.from_url(config.schema_registry)


def build_producer(config: Config, resolver: Optional[RegistrySchemaResolver] = None) -> KafkaEventProducer:
    resolver = resolver or build_resolver(config)
    schema_str = load_schema(config.event_schema, config.schema_path)
    return KafkaEventProducer(
        Producer(producer_conf(config)),
        resolver,
        AvroWireCodec(),
        topic=config.topic,
        subject=config.value_subject,
        schema_str=schema_str,
        record_builder=RECORD_BUILDERS.get(config.event_schema, RECORD_BUILDERS["domain_event"]),
        delivery_timeout=config.delivery_timeout,
    )


def build_consumer(
    config: Config,
    sink: EventSink,
    *,
    resolver: Optional[RegistrySchemaResolver] = None,
    clock: Optional[Clock] = None,
) -> ConsumerGroupRunner:
    return ConsumerGroupRunner(
        lambda: Consumer(consumer_conf(config)),
        config.topic,
        resolver or build_resolver(config),
        sink,
        mapper=EventMapper(clock),
        poll_timeout=config.poll_timeout,
        rejoin_cooldown=config.rejoin_cooldown,
    )
