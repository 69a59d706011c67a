"""Embedded Avro schemas for the pipeline topic.

A file given by SCHEMA_PATH replaces the embedded text.
"""
from __future__ import annotations

from pathlib import Path
from typing import Optional

from event_pipeline.domain.errors import ConfigurationError

DOMAIN_EVENT_SCHEMA = '{"type":"record","name":"DomainEvent","namespace":"events","fields":[{"name":"id","type":"string"},{"name":"type","type":"string"},{"name":"message","type":"string","default":""},{"name":"timestamp","type":{"type":"long","logicalType":"timestamp-millis"}}]}'
ORDER_EVENT_SCHEMA = '{"type":"record","name":"OrderEvent","namespace":"orders","fields":[{"name":"order_id","type":"string"},{"name":"event_type","type":"string"},{"name":"message","type":"string","default":""},{"name":"timestamp","type":{"type":"long","logicalType":"timestamp-millis"}}]}'

EMBEDDED = {
    "domain_event": DOMAIN_EVENT_SCHEMA,
    "order_event": ORDER_EVENT_SCHEMA,
}


def load_schema(name: str, path: Optional[str] = None) -> str:
    if path:
        try:
            return Path(path).read_text(encoding="utf-8")
        except OSError as exc:
            raise ConfigurationError(f"Cannot read schema file {path}: {exc}") from exc
    try:
        return EMBEDDED[name]
    except KeyError:
        raise ConfigurationError(
            f"Unknown event schema {name!r}; expected one of {sorted(EMBEDDED)}"
        ) from None
