"""Schema Registry resolver – DIP adapter for SchemaResolver.

Wraps SchemaRegistryClient: POST /subjects/{subject}/versions on the write
side, GET /schemas/ids/{id} on the read side. Ids are immutable once issued,
so the read cache never expires.
"""
from __future__ import annotations

import logging
import threading
from time import monotonic, sleep
from typing import Callable, Dict, Tuple

from confluent_kafka.schema_registry import Schema, SchemaRegistryClient
from confluent_kafka.schema_registry.error import SchemaRegistryError

from event_pipeline.domain.errors import RegistryUnavailableError, UnknownSchemaError
from event_pipeline.ports.schema_resolver import SchemaResolver

logger = logging.getLogger(__name__)

_NOT_FOUND = 404


class RegistrySchemaResolver(SchemaResolver):
    """SRP: talk to the registry, remember the answers."""

    def __init__(self, client: SchemaRegistryClient, schema_type: str = "AVRO") -> None:
        self._client = client
        self._schema_type = schema_type
        self._ids: Dict[Tuple[str, str], int] = {}
        self._schemas: Dict[int, str] = {}
        self._lock = threading.Lock()

    @classmethod
    def from_url(cls, url: str) -> "RegistrySchemaResolver":
        return cls(SchemaRegistryClient({"url": url}))

    def register_or_reuse(self, subject: str, schema_str: str) -> int:
        key = (subject, schema_str)
        with self._lock:
            if key in self._ids:
                return self._ids[key]
        try:
            schema_id = self._client.register_schema(subject, Schema(schema_str, self._schema_type))
        except SchemaRegistryError as exc:
            raise RegistryUnavailableError(
                f"registry rejected schema for subject {subject}: {exc}"
            ) from exc
        except Exception as exc:
            raise RegistryUnavailableError(f"registry unreachable while registering {subject}: {exc}") from exc
        with self._lock:
            self._ids.setdefault(key, schema_id)
            self._schemas.setdefault(schema_id, schema_str)
        logger.info("Schema registered subject=%s id=%s", subject, schema_id)
        return schema_id

    def resolve(self, schema_id: int) -> str:
        with self._lock:
            cached = self._schemas.get(schema_id)
        if cached is not None:
            return cached
        try:
            schema = self._client.get_schema(schema_id)
        except SchemaRegistryError as exc:
            if exc.http_status_code == _NOT_FOUND:
                raise UnknownSchemaError(schema_id) from exc
            raise RegistryUnavailableError(f"registry error resolving id {schema_id}: {exc}") from exc
        except Exception as exc:
            raise RegistryUnavailableError(f"registry unreachable resolving id {schema_id}: {exc}") from exc
        with self._lock:
            schema_str = self._schemas.setdefault(schema_id, schema.schema_str)
        logger.debug("Schema resolved id=%s", schema_id)
        return schema_str

    def wait_until_ready(
        self,
        max_wait_s: float = 60.0,
        *,
        interval_s: float = 1.0,
        sleeper: Callable[[float], None] = sleep,
    ) -> None:
        start = monotonic()
        while True:
            try:
                self._client.get_subjects()
                return
            except Exception as exc:
                if monotonic() - start > max_wait_s:
                    raise RegistryUnavailableError(
                        f"schema registry not reachable after {max_wait_s:.0f}s: {exc}"
                    ) from exc
                logger.info("Waiting for schema registry: %s", exc)
                sleeper(interval_s)
