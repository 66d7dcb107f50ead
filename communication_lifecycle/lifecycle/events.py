"""
Status-change events broadcast to downstream consumers.

The wire format is the JSON serialization of StatusChangedEvent. ``event_id``
doubles as the broker message id; delivery is at-least-once, so consumers
de-duplicate on it.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .models import Communication, as_utc


class EventTypes:
    """Event type labels used by the engine and the simulator."""

    STATUS_CHANGED = "StatusChanged"
    COMMUNICATION_CREATED = "CommunicationCreated"

    # Domain labels offered by the event simulator
    ID_CARD_PRINTED = "IdCardPrinted"
    ID_CARD_SHIPPED = "IdCardShipped"
    ID_CARD_DELIVERED = "IdCardDelivered"
    EOB_GENERATED = "EOBGenerated"
    EOB_PRINTED = "EOBPrinted"
    EOB_MAILED = "EOBMailed"
    EOP_PROCESSED = "EOPProcessed"
    DOCUMENT_FAILED = "DocumentFailed"
    DOCUMENT_CANCELLED = "DocumentCancelled"
    PACKAGE_RETURNED = "PackageReturned"
    CUSTOM_EVENT = "CustomEvent"

    @classmethod
    def common(cls) -> List[str]:
        """Event types offered to simulator users."""
        return [
            cls.ID_CARD_PRINTED,
            cls.ID_CARD_SHIPPED,
            cls.ID_CARD_DELIVERED,
            cls.EOB_GENERATED,
            cls.EOB_PRINTED,
            cls.EOB_MAILED,
            cls.EOP_PROCESSED,
            cls.DOCUMENT_FAILED,
            cls.DOCUMENT_CANCELLED,
            cls.PACKAGE_RETURNED,
            cls.CUSTOM_EVENT,
        ]


# (type code, status) -> event type
_SPECIFIC_EVENT_TYPES = {
    ("ID_CARD", "Printed"): "IdCardPrinted",
    ("ID_CARD", "Shipped"): "IdCardShipped",
    ("ID_CARD", "Delivered"): "IdCardDelivered",
    ("EOB", "Printed"): "EOBPrinted",
    ("EOB", "Shipped"): "EOBMailed",
    ("EOB", "Delivered"): "EOBDelivered",
    ("EOP", "Printed"): "EOPPrinted",
}

_STATUS_SUFFIXES = {
    "Failed": "ProcessingFailed",
    "Cancelled": "Cancelled",
    "Returned": "Returned",
}


def suggest_event_type(type_code: str, status: str) -> str:
    """Suggest a domain event type for entering ``status`` on a ``type_code``."""
    specific = _SPECIFIC_EVENT_TYPES.get((type_code, status))
    if specific:
        return specific
    return f"{type_code}{_STATUS_SUFFIXES.get(status, status)}"


class StatusChangedEvent(BaseModel):
    """Notification that a communication entered a new status."""

    model_config = ConfigDict(frozen=True)

    event_id: uuid.UUID = Field(default_factory=uuid.uuid4)
    communication_id: int
    old_status: Optional[str] = None
    new_status: str
    event_type: str = EventTypes.STATUS_CHANGED
    notes: Optional[str] = None
    timestamp_utc: datetime

    @field_validator("timestamp_utc")
    @classmethod
    def _normalize_timestamp(cls, value: datetime) -> datetime:
        return as_utc(value)

    @classmethod
    def for_creation(
        cls,
        communication: Communication,
        event_id: Optional[uuid.UUID] = None,
    ) -> "StatusChangedEvent":
        """Event announcing a newly created communication."""
        return cls(
            event_id=event_id or uuid.uuid4(),
            communication_id=communication.id,
            new_status=communication.current_status,
            event_type=EventTypes.COMMUNICATION_CREATED,
            notes="Communication created",
            timestamp_utc=communication.created_utc,
        )

    @classmethod
    def for_change(
        cls,
        communication: Communication,
        old_status: str,
        event_type: Optional[str] = None,
        notes: Optional[str] = None,
        event_id: Optional[uuid.UUID] = None,
    ) -> "StatusChangedEvent":
        """Event announcing a status change already applied to ``communication``."""
        return cls(
            event_id=event_id or uuid.uuid4(),
            communication_id=communication.id,
            old_status=old_status,
            new_status=communication.current_status,
            event_type=event_type or EventTypes.STATUS_CHANGED,
            notes=notes,
            timestamp_utc=communication.last_updated_utc,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-ready dictionary."""
        return self.model_dump(mode="json")

    def to_json(self) -> bytes:
        """Serialize to the UTF-8 JSON message body."""
        return self.model_dump_json().encode("utf-8")

    @classmethod
    def from_json(cls, body: bytes) -> "StatusChangedEvent":
        """Parse a message body produced by ``to_json``."""
        return cls.model_validate_json(body)
