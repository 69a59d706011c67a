"""DIP Port – SchemaResolver.

Write side registers, read side resolves ids. Implementations cache.
"""


class SchemaResolver:
    def register_or_reuse(self, subject: str, schema_str: str) -> int:  # pragma: no cover - interface only
        raise NotImplementedError

    def resolve(self, schema_id: int) -> str:  # pragma: no cover - interface only
        raise NotImplementedError
