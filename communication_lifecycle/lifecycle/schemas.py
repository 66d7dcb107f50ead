"""
Request and response models for the HTTP API.
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, constr

from ..catalog.statuses import CodeStr
from .models import Communication, StatusHistoryEntry


class CreateCommunicationRequest(BaseModel):
    """Create a communication in its initial status."""

    title: constr(strip_whitespace=True, min_length=1, max_length=200)
    type_code: CodeStr
    current_status: CodeStr = Field(description="Initial status; must be valid for the type")
    description: Optional[constr(max_length=500)] = None
    source_file_url: Optional[constr(max_length=200)] = None

    model_config = {
        "json_schema_extra": {
            "example": {
                "title": "Member ID card 2026",
                "type_code": "ID_CARD",
                "current_status": "ReadyForRelease",
                "description": "Replacement card",
                "source_file_url": "s3://cards/2026/123.pdf",
            }
        }
    }


class UpdateStatusRequest(BaseModel):
    """Move a communication to another valid status of its type."""

    new_status: CodeStr
    notes: Optional[constr(max_length=500)] = None
    event_type: Optional[CodeStr] = Field(
        default=None, description="Event label, 'StatusChanged' when omitted"
    )


class CommunicationListResponse(BaseModel):
    communications: List[Communication]
    page: int
    page_size: int
    total_count: int
    total_pages: int


class CommunicationWithHistory(Communication):
    """A communication and its status history, most recent entry first."""

    status_history: List[StatusHistoryEntry] = Field(default_factory=list)


class CommunicationTypeResponse(BaseModel):
    type_code: str
    display_name: str
    description: Optional[str] = None
    is_active: bool
    valid_statuses: List[str]


class CreateCommunicationTypeRequest(BaseModel):
    type_code: CodeStr
    display_name: constr(strip_whitespace=True, min_length=1, max_length=100)
    description: Optional[constr(max_length=500)] = None
    is_active: bool = True
    statuses: List[CodeStr] = Field(default_factory=list)


class UpdateCommunicationTypeRequest(BaseModel):
    display_name: constr(strip_whitespace=True, min_length=1, max_length=100)
    description: Optional[constr(max_length=500)] = None
    is_active: bool = True


class ReplaceStatusesRequest(BaseModel):
    statuses: List[CodeStr] = Field(description="Ordered list of valid status codes")


class StatusInfo(BaseModel):
    code: str
    description: str


class AvailableStatusesResponse(BaseModel):
    statuses: List[StatusInfo]


class CommunicationSummary(BaseModel):
    id: int
    title: str
    type_code: str
    current_status: str
    last_updated_utc: datetime


class EventOption(BaseModel):
    event_type: str
    new_status: str
    description: str


class AvailableEventsResponse(BaseModel):
    communication_id: int
    current_status: str
    available_events: List[EventOption]


class SimulateEventRequest(BaseModel):
    communication_id: int
    event_type: CodeStr
    new_status: CodeStr
    notes: Optional[constr(max_length=500)] = None


class SimulateEventResponse(BaseModel):
    success: bool
    message: str
    old_status: Optional[str] = None
    new_status: str
    timestamp_utc: datetime
