"""
Domain models returned by the lifecycle store.

Both are frozen snapshots: a caller never mutates a Communication in place, it
asks the store for a change and receives a new snapshot.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, field_validator


def utc_now() -> datetime:
    """Return current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Return ``value`` as an aware UTC datetime, treating naive values as UTC."""
    # SQLite hands back naive datetimes for DateTime(timezone=True) columns
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class Communication(BaseModel):
    """A trackable outbound artifact and its current lifecycle status."""

    model_config = ConfigDict(frozen=True, from_attributes=True)

    id: int
    title: str
    type_code: str
    current_status: str
    created_utc: datetime
    last_updated_utc: datetime
    description: Optional[str] = None
    source_file_url: Optional[str] = None

    @field_validator("created_utc", "last_updated_utc")
    @classmethod
    def _normalize_timestamps(cls, value: datetime) -> datetime:
        return as_utc(value)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-ready dictionary."""
        return self.model_dump(mode="json")


class StatusHistoryEntry(BaseModel):
    """One status a communication held. Entries are never modified."""

    model_config = ConfigDict(frozen=True, from_attributes=True)

    id: int
    communication_id: int
    status_code: str
    occurred_utc: datetime
    notes: Optional[str] = None

    @field_validator("occurred_utc")
    @classmethod
    def _normalize_timestamp(cls, value: datetime) -> datetime:
        return as_utc(value)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-ready dictionary."""
        return self.model_dump(mode="json")
