"""Error taxonomy for the event pipeline.

Construction-time errors are fatal; per-message errors are logged and skipped
by the consumer; publish errors are surfaced to the caller.
"""
from __future__ import annotations

from typing import Sequence


class PipelineError(Exception):
    """Base class for every error raised by the pipeline."""


class RegistryUnavailableError(PipelineError):
    """The schema registry could not be reached or answered with a server error."""


class UnknownSchemaError(PipelineError):
    def __init__(self, schema_id: int) -> None:
        super().__init__(f"schema id {schema_id} is not known to the registry")
        self.schema_id = schema_id


class MalformedEnvelopeError(PipelineError):
    """Bytes do not carry the magic byte + 4-byte schema id header."""


class EncodingError(PipelineError):
    """A record does not conform to the schema it is encoded with."""


class DecodingError(PipelineError):
    """Payload bytes do not parse against the resolved schema."""


class PublishError(PipelineError):
    """The broker did not acknowledge a message."""


class MissingFieldsError(PipelineError):
    def __init__(self, missing: Sequence[str]) -> None:
        super().__init__(f"missing required fields: {', '.join(missing)}")
        self.missing = tuple(missing)


class ConfigurationError(PipelineError, ValueError):
    """Settings name something the pipeline does not have."""
