"""DIP Port – SchemaEncoder.

Decouple producers and consumers from Avro specifics.
"""
from typing import Any, Mapping, Tuple


class SchemaEncoder:
    """ISP: just enough to move dicts to and from wire bytes."""

    def encode(self, schema_str: str, schema_id: int, record: Mapping[str, Any]) -> bytes:  # pragma: no cover - interface only
        raise NotImplementedError

    def decode(self, data: bytes) -> Tuple[int, bytes]:  # pragma: no cover - interface only
        raise NotImplementedError

    def decode_payload(self, schema_str: str, payload: bytes, schema_id: int = -1) -> dict:  # pragma: no cover - interface only
        raise NotImplementedError
