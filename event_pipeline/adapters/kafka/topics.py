"""Kafka Topics – SRP: make sure the pipeline topic exists.

Kept as an adapter to avoid leaking AdminClient into services.
"""
from __future__ import annotations

import logging
from typing import Optional

from confluent_kafka import KafkaError, KafkaException
from confluent_kafka.admin import AdminClient, NewTopic

from event_pipeline.config import Config

logger = logging.getLogger(__name__)


def ensure_topic(config: Config, admin: Optional[AdminClient] = None, *, replication_factor: int = 1) -> bool:
    """Create the topic if missing. Returns True when it was created."""
    admin = admin or AdminClient({"bootstrap.servers": config.bootstrap})
    new_topic = NewTopic(
        config.topic, num_partitions=config.topic_partitions, replication_factor=replication_factor
    )
    futures = admin.create_topics([new_topic], operation_timeout=10)
    for name, future in futures.items():
        try:
            future.result()
        except KafkaException as exc:
            err = exc.args[0] if exc.args else None
            if isinstance(err, KafkaError) and err.code() == KafkaError.TOPIC_ALREADY_EXISTS:
                logger.info("Topic %s already exists", name)
                return False
            raise
        logger.info("Created topic %s partitions=%s", name, config.topic_partitions)
    return True
