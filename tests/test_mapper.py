"""Tests for record <-> DomainEvent mapping."""
from datetime import datetime, timezone

import pytest

from event_pipeline.domain.errors import MissingFieldsError
from event_pipeline.domain.events import DomainEvent
from event_pipeline.services.mapper import EventMapper, first_present, to_order_record, to_record

from conftest import T0, T0_MS


@pytest.fixture
def mapper(clock):
    return EventMapper(clock)


class TestToDomainEvent:
    def test_primary_fields(self, mapper):
        event = mapper.to_domain_event({"id": "o1", "type": "CREATED", "message": "hi", "timestamp": T0_MS})

        assert event == DomainEvent(entity_id="o1", event_type="CREATED", occurred_at=T0, message="hi")

    def test_fallback_fields_give_same_event(self, mapper):
        primary = mapper.to_domain_event({"id": "o1", "type": "CREATED", "timestamp": T0_MS})
        fallback = mapper.to_domain_event({"order_id": "o1", "event_type": "CREATED", "timestamp": T0_MS})

        assert fallback == primary

    def test_user_id_is_last_resort(self, mapper):
        event = mapper.to_domain_event({"user_id": "u5", "event_type": "REGISTERED"})

        assert event.entity_id == "u5"

    def test_id_wins_over_order_id(self, mapper):
        event = mapper.to_domain_event({"id": "n1", "order_id": "o1", "type": "X"})

        assert event.entity_id == "n1"

    def test_empty_values_fall_through(self, mapper):
        event = mapper.to_domain_event({"id": "", "order_id": "o3", "type": None, "event_type": "PAID"})

        assert (event.entity_id, event.event_type) == ("o3", "PAID")

    def test_non_string_values_are_stringified(self, mapper):
        event = mapper.to_domain_event({"id": 42, "type": "CREATED"})

        assert event.entity_id == "42"

    def test_missing_id(self, mapper):
        with pytest.raises(MissingFieldsError) as info:
            mapper.to_domain_event({"type": "CREATED"})

        assert info.value.missing == ("id/order_id/user_id",)

    def test_missing_both(self, mapper):
        with pytest.raises(MissingFieldsError) as info:
            mapper.to_domain_event({"message": "orphan"})

        assert len(info.value.missing) == 2

    def test_missing_message_is_empty(self, mapper):
        assert mapper.to_domain_event({"id": "o1", "type": "CREATED"}).message == ""

    @pytest.mark.parametrize("ts", [T0_MS, float(T0_MS), T0])
    def test_timestamp_representations(self, mapper, ts):
        assert mapper.to_domain_event({"id": "o1", "type": "T", "timestamp": ts}).occurred_at == T0

    def test_missing_timestamp_uses_clock(self, mapper):
        assert mapper.to_domain_event({"id": "o1", "type": "T"}).occurred_at == T0

    def test_unusable_timestamp_uses_clock(self, mapper):
        assert mapper.to_domain_event({"id": "o1", "type": "T", "timestamp": "soon"}).occurred_at == T0


class TestRecordBuilders:
    def test_to_record(self, clock):
        event = DomainEvent.create("o1", "CREATED", "m", clock=clock)

        assert to_record(event) == {"id": "o1", "type": "CREATED", "message": "m", "timestamp": T0_MS}

    def test_to_order_record(self, clock):
        event = DomainEvent.create("o1", "CREATED", clock=clock)

        assert to_order_record(event) == {
            "order_id": "o1",
            "event_type": "CREATED",
            "message": "",
            "timestamp": T0_MS,
        }

    def test_create_truncates_to_millis(self):
        from event_pipeline.domain.clock import FixedClock

        event = DomainEvent.create("o1", "T", clock=FixedClock(datetime(2024, 1, 1, 0, 0, 0, 123456, tzinfo=timezone.utc)))

        assert event.occurred_at.microsecond == 123000


def test_first_present_order():
    assert first_present({"b": 2, "a": 1}, ("a", "b")) == 1
    assert first_present({}, ("a",)) is None


def test_system_clock_is_utc():
    from event_pipeline.domain.clock import SystemClock

    assert SystemClock().now().utcoffset().total_seconds() == 0
