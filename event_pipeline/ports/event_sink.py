"""DIP Port – EventSink.

Collaborators (use cases, broadcast hubs) implement this to receive decoded events.
Raising signals failure; the consumer logs it and moves on.
"""
from event_pipeline.domain.events import DomainEvent


class EventSink:
    def publish(self, event: DomainEvent) -> None:  # pragma: no cover - interface only
        raise NotImplementedError
