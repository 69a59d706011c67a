"""SRP: one place to parse and hold configuration.

Keep it simple; no side effects beyond reading environment.
"""
from __future__ import annotations

import os
from dataclasses import dataclass
from typing import List, Optional


@dataclass(frozen=True)
class Config:
    """DIP: adapters consume Config, not raw env.

    Defaults match the docker-compose development stack.
    """

    # Kafka
    bootstrap: str = os.getenv("KAFKA_BOOTSTRAP", "kafka:9092")
    schema_registry: str = os.getenv("SCHEMA_REGISTRY_URL", "http://schema-registry:8081")
    topic: str = os.getenv("TOPIC_EVENTS", "notifications.v1")
    group_id: str = os.getenv("KAFKA_GROUP_ID", "notification-service")
    topic_partitions: int = int(os.getenv("TOPIC_PARTITIONS", "3"))

    # Schema
    subject: Optional[str] = os.getenv("SCHEMA_SUBJECT") or None
    schema_path: Optional[str] = os.getenv("SCHEMA_PATH") or None
    event_schema: str = os.getenv("EVENT_SCHEMA", "domain_event")  # "domain_event" | "order_event"

    # Timings (seconds)
    poll_timeout: float = float(os.getenv("POLL_TIMEOUT_S", "1.0"))
    rejoin_cooldown: float = float(os.getenv("REJOIN_COOLDOWN_S", "2.0"))
    delivery_timeout: float = float(os.getenv("DELIVERY_TIMEOUT_S", "10.0"))
    registry_wait: float = float(os.getenv("REGISTRY_WAIT_S", "60"))

    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    @property
    def brokers(self) -> List[str]:
        return [b.strip() for b in self.bootstrap.split(",") if b.strip()]

    @property
    def value_subject(self) -> str:
        """Subject name under the TopicNameStrategy unless overridden."""
        return self.subject or f"{self.topic}-value"
