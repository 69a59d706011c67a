"""Event Pipeline CLI

Wires the Kafka adapters to the services and runs one of:
- consume: join the consumer group and fan notifications out to sinks
- publish: send a single domain event (order id + type) and print its offset
- create-topic: create the pipeline topic if it does not exist

SRP: this module only wires and runs the app; logic lives in services.
DIP: relies on ports and adapters, not concrete libs.
"""
from __future__ import annotations

import argparse
import logging
import sys
from typing import List, Optional

from event_pipeline.config import Config
from event_pipeline.domain.errors import PipelineError
from event_pipeline.domain.events import DomainEvent
from event_pipeline.adapters.kafka.factory import build_consumer, build_producer, build_resolver
from event_pipeline.adapters.kafka.topics import ensure_topic
from event_pipeline.services.notifications import BroadcastHub, LoggingSink, NotificationService

logger = logging.getLogger("event_pipeline")


class App:
    """SRP: orchestrate lifecycle. No business logic here."""

    def __init__(self, cfg: Config) -> None:
        self.cfg = cfg
        self.hub = BroadcastHub()
        self.notifications = NotificationService([LoggingSink(), self.hub])

    def consume(self) -> None:
        resolver = build_resolver(self.cfg)
        logger.info("Waiting for Schema Registry at %s", self.cfg.schema_registry)
        resolver.wait_until_ready(self.cfg.registry_wait)
        runner = build_consumer(self.cfg, self.notifications, resolver=resolver)
        logger.info("Starting consumer topic=%s group=%s", self.cfg.topic, self.cfg.group_id)
        runner.start()

    def publish(self, entity_id: str, event_type: str, message: str = "") -> None:
        resolver = build_resolver(self.cfg)
        resolver.wait_until_ready(self.cfg.registry_wait)
        producer = build_producer(self.cfg, resolver)
        try:
            report = producer.send(DomainEvent.create(entity_id, event_type, message))
            print(f"{report.topic} [{report.partition}] @ {report.offset}")
        finally:
            producer.close()


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="event-pipeline", description="Avro event pipeline over Kafka")
    parser.add_argument("--topic", help="Override TOPIC_EVENTS")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("consume", help="Run the notification consumer group")

    pub = sub.add_parser("publish", help="Publish one event")
    pub.add_argument("--id", required=True, dest="entity_id", help="Stable entity id (partition key)")
    pub.add_argument("--type", required=True, dest="event_type", help="Event type tag")
    pub.add_argument("--message", default="", help="Optional message body")

    sub.add_parser("create-topic", help="Create the pipeline topic if missing")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    cfg = Config(topic=args.topic) if args.topic else Config()
    logging.basicConfig(
        level=cfg.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    app = App(cfg)
    try:
        if args.command == "consume":
            app.consume()
        elif args.command == "publish":
            app.publish(args.entity_id, args.event_type, args.message)
        elif args.command == "create-topic":
            ensure_topic(cfg)
    except PipelineError as exc:
        logger.error("%s failed: %s", args.command, exc)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
