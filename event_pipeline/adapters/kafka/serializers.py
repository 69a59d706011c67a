"""Confluent wire codec – DIP adapter for SchemaEncoder.

Format: [magic byte 0x00][4-byte big-endian schema id][schemaless Avro payload].
The schema itself never travels with the message; readers resolve the id.
"""
from __future__ import annotations

import io
import json
import struct
import threading
from datetime import datetime
from typing import Any, Dict, Mapping, Tuple

from fastavro import parse_schema, schemaless_reader, schemaless_writer
from fastavro.validation import ValidationError, validate

from event_pipeline.domain.errors import DecodingError, EncodingError, MalformedEnvelopeError
from event_pipeline.domain.events import to_millis
from event_pipeline.ports.schema_encoder import SchemaEncoder
from event_pipeline.ports.schema_resolver import SchemaResolver

MAGIC_BYTE = 0
HEADER = struct.Struct(">BI")
HEADER_SIZE = HEADER.size  # 5


class AvroWireCodec(SchemaEncoder):
    """SRP: bytes <-> dicts. Knows nothing about Kafka or the registry transport."""

    def __init__(self) -> None:
        self._parsed: Dict[str, Any] = {}
        self._lock = threading.Lock()

    def _parse(self, schema_str: str) -> Any:
        with self._lock:
            parsed = self._parsed.get(schema_str)
        if parsed is not None:
            return parsed
        parsed = parse_schema(json.loads(schema_str))
        with self._lock:
            self._parsed.setdefault(schema_str, parsed)
        return parsed

    def encode(self, schema_str: str, schema_id: int, record: Mapping[str, Any]) -> bytes:
        if not 0 <= schema_id <= 0xFFFFFFFF:
            raise EncodingError(f"schema id {schema_id} does not fit in 4 bytes")
        try:
            schema = self._parse(schema_str)
        except Exception as exc:
            raise EncodingError(f"invalid schema for id {schema_id}: {exc}") from exc
        buf = io.BytesIO()
        buf.write(HEADER.pack(MAGIC_BYTE, schema_id))
        try:
            validate(record, schema, raise_errors=True)
            schemaless_writer(buf, schema, record)
        except (ValidationError, ValueError, TypeError, AttributeError, KeyError) as exc:
            raise EncodingError(f"record does not match schema {schema_id}: {exc}") from exc
        return buf.getvalue()

    def decode(self, data: bytes) -> Tuple[int, bytes]:
        """Split an envelope into (schema_id, payload). Shape check only."""
        if data is None:
            raise MalformedEnvelopeError("empty message value")
        if len(data) < HEADER_SIZE:
            raise MalformedEnvelopeError(f"message too short: {len(data)} bytes")
        magic, schema_id = HEADER.unpack_from(bytes(data[:HEADER_SIZE]))
        if magic != MAGIC_BYTE:
            raise MalformedEnvelopeError(f"unknown magic byte: {magic}")
        return schema_id, bytes(data[HEADER_SIZE:])

    def decode_payload(self, schema_str: str, payload: bytes, schema_id: int = -1) -> dict:
        try:
            schema = self._parse(schema_str)
            record = schemaless_reader(io.BytesIO(payload), schema)
        except Exception as exc:
            raise DecodingError(f"payload does not parse against schema {schema_id}: {exc}") from exc
        if not isinstance(record, dict):
            raise DecodingError(f"schema {schema_id} does not describe a record")
        return {k: to_millis(v) if isinstance(v, datetime) else v for k, v in record.items()}

    def decode_message(self, data: bytes, resolver: SchemaResolver) -> Tuple[int, dict]:
        """Full read path: envelope -> registry lookup -> record."""
        schema_id, payload = self.decode(data)
        schema_str = resolver.resolve(schema_id)
        return schema_id, self.decode_payload(schema_str, payload, schema_id)
