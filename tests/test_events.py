"""
Tests for status-change events and event type suggestions.
"""

import json
from datetime import datetime, timedelta, timezone

import pytest

from communication_lifecycle.lifecycle import Communication, EventTypes, StatusChangedEvent
from communication_lifecycle.lifecycle.events import suggest_event_type

CREATED = datetime(2026, 5, 4, 8, 30, tzinfo=timezone.utc)


@pytest.fixture
def communication() -> Communication:
    return Communication(
        id=7,
        title="Member card",
        type_code="ID_CARD",
        current_status="Printed",
        created_utc=CREATED,
        last_updated_utc=CREATED + timedelta(hours=2),
    )


class TestSuggestEventType:
    """Tests for suggest_event_type."""

    @pytest.mark.parametrize(
        "type_code,status,expected",
        [
            ("ID_CARD", "Printed", "IdCardPrinted"),
            ("ID_CARD", "Shipped", "IdCardShipped"),
            ("EOB", "Shipped", "EOBMailed"),
            ("EOB", "Delivered", "EOBDelivered"),
            ("EOP", "Printed", "EOPPrinted"),
            ("EOB", "Failed", "EOBProcessingFailed"),
            ("WELCOME_PACKET", "Cancelled", "WELCOME_PACKETCancelled"),
            ("EOP", "Returned", "EOPReturned"),
            ("CLAIM_STATEMENT", "Archived", "CLAIM_STATEMENTArchived"),
        ],
    )
    def test_suggestions(self, type_code, status, expected):
        """Test specific labels first, then the type-prefixed fallback."""
        assert suggest_event_type(type_code, status) == expected

    def test_common_event_types(self):
        """Test the simulator's event type list."""
        common = EventTypes.common()
        assert common[0] == "IdCardPrinted"
        assert common[-1] == "CustomEvent"
        assert len(common) == 11


class TestStatusChangedEvent:
    """Tests for StatusChangedEvent construction and wire format."""

    def test_for_creation(self, communication):
        """Test the creation event fields."""
        event = StatusChangedEvent.for_creation(communication)

        assert event.event_type == EventTypes.COMMUNICATION_CREATED
        assert event.communication_id == 7
        assert event.old_status is None
        assert event.new_status == "Printed"
        assert event.notes == "Communication created"
        assert event.timestamp_utc == CREATED

    def test_for_change(self, communication):
        """Test the change event carries the transition and change time."""
        event = StatusChangedEvent.for_change(
            communication, old_status="ReadyForRelease", event_type="IdCardPrinted", notes="batch 7"
        )

        assert event.old_status == "ReadyForRelease"
        assert event.new_status == "Printed"
        assert event.event_type == "IdCardPrinted"
        assert event.notes == "batch 7"
        assert event.timestamp_utc == communication.last_updated_utc

    def test_for_change_defaults_to_status_changed(self, communication):
        """Test the default event type."""
        event = StatusChangedEvent.for_change(communication, old_status="Released")
        assert event.event_type == "StatusChanged"

    def test_wire_format(self, communication):
        """Test the JSON body uses snake_case keys and UTC timestamps."""
        event = StatusChangedEvent.for_change(communication, old_status="Released")

        body = json.loads(event.to_json().decode("utf-8"))

        assert set(body) == {
            "event_id",
            "communication_id",
            "old_status",
            "new_status",
            "event_type",
            "notes",
            "timestamp_utc",
        }
        assert body["communication_id"] == 7
        assert body["event_id"] == str(event.event_id)
        assert StatusChangedEvent.from_json(event.to_json()) == event

    def test_naive_timestamp_is_treated_as_utc(self):
        """Test that naive timestamps are normalized to UTC."""
        event = StatusChangedEvent(
            communication_id=1,
            new_status="Printed",
            timestamp_utc=datetime(2026, 1, 1, 12, 0),
        )
        assert event.timestamp_utc.tzinfo is not None
        assert event.timestamp_utc.utcoffset() == timedelta(0)

    def test_event_ids_are_unique(self, communication):
        """Test that each event gets its own id."""
        first = StatusChangedEvent.for_creation(communication)
        second = StatusChangedEvent.for_creation(communication)
        assert first.event_id != second.event_id
