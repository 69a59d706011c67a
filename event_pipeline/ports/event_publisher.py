"""DIP Port – EventPublisher.

Speak in the language of the domain. The infrastructure implements.
"""
from event_pipeline.domain.events import DeliveryReport, DomainEvent


class EventPublisher:
    """ISP: a narrow interface sufficient for use cases.

    send: publish one event keyed by its entity id; raise PublishError on failure.
    """

    def send(self, event: DomainEvent) -> DeliveryReport:  # pragma: no cover - interface only
        raise NotImplementedError

    def close(self) -> None:  # pragma: no cover - interface only
        raise NotImplementedError
