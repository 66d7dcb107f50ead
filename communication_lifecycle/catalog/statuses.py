"""
Well-known status codes, communication types and the default catalog.

Status codes are open strings: the constants below are the codes the default
catalog uses, not a closed set. Whether a status is acceptable for a
communication is decided by the catalog entry of its type.
"""

from __future__ import annotations

from typing import Annotated, Dict, List, Tuple

from pydantic import StringConstraints

CODE_PATTERN = r"^[A-Za-z0-9_.\-]+$"
MAX_CODE_LENGTH = 50

# Boundary validation for status and type codes
CodeStr = Annotated[
    str,
    StringConstraints(
        strip_whitespace=True,
        min_length=1,
        max_length=MAX_CODE_LENGTH,
        pattern=CODE_PATTERN,
    ),
]


class CommunicationStatus:
    """Status codes used by the default catalog."""

    # Creation phase
    READY_FOR_RELEASE = "ReadyForRelease"
    RELEASED = "Released"

    # Production phase
    QUEUED_FOR_PRINTING = "QueuedForPrinting"
    PRINTED = "Printed"
    INSERTED = "Inserted"
    WAREHOUSE_READY = "WarehouseReady"

    # Logistics phase
    SHIPPED = "Shipped"
    IN_TRANSIT = "InTransit"
    DELIVERED = "Delivered"
    RETURNED = "Returned"

    # Other
    FAILED = "Failed"
    CANCELLED = "Cancelled"
    EXPIRED = "Expired"
    ARCHIVED = "Archived"


STATUS_DESCRIPTIONS: Dict[str, str] = {
    CommunicationStatus.READY_FOR_RELEASE: "Communication is ready to be released",
    CommunicationStatus.RELEASED: "Communication has been released",
    CommunicationStatus.QUEUED_FOR_PRINTING: "Communication is queued for printing",
    CommunicationStatus.PRINTED: "Communication has been printed",
    CommunicationStatus.INSERTED: "Communication has been inserted into envelope/package",
    CommunicationStatus.WAREHOUSE_READY: "Communication is ready at warehouse",
    CommunicationStatus.SHIPPED: "Communication has been shipped",
    CommunicationStatus.IN_TRANSIT: "Communication is in transit",
    CommunicationStatus.DELIVERED: "Communication has been delivered",
    CommunicationStatus.RETURNED: "Communication was returned",
    CommunicationStatus.FAILED: "Communication processing failed",
    CommunicationStatus.CANCELLED: "Communication was cancelled",
    CommunicationStatus.EXPIRED: "Communication has expired",
    CommunicationStatus.ARCHIVED: "Communication has been archived",
}


def describe_status(status: str) -> str:
    """Human-readable description of a status code, falling back to the code."""
    return STATUS_DESCRIPTIONS.get(status, status)


def known_statuses() -> List[Tuple[str, str]]:
    """All well-known status codes with their descriptions, in lifecycle order."""
    return list(STATUS_DESCRIPTIONS.items())


class CommunicationTypes:
    """Type codes used by the default catalog."""

    EOB = "EOB"
    EOP = "EOP"
    ID_CARD = "ID_CARD"
    WELCOME_PACKET = "WELCOME_PACKET"
    CLAIM_STATEMENT = "CLAIM_STATEMENT"
    PROVIDER_STATEMENT = "PROVIDER_STATEMENT"


_S = CommunicationStatus

_STATEMENT_STATUSES = (
    _S.READY_FOR_RELEASE,
    _S.RELEASED,
    _S.QUEUED_FOR_PRINTING,
    _S.PRINTED,
    _S.INSERTED,
    _S.WAREHOUSE_READY,
    _S.SHIPPED,
    _S.IN_TRANSIT,
    _S.DELIVERED,
    _S.RETURNED,
    _S.FAILED,
    _S.CANCELLED,
    _S.ARCHIVED,
)

_ID_CARD_STATUSES = (
    _S.READY_FOR_RELEASE,
    _S.RELEASED,
    _S.QUEUED_FOR_PRINTING,
    _S.PRINTED,
    _S.WAREHOUSE_READY,
    _S.SHIPPED,
    _S.IN_TRANSIT,
    _S.DELIVERED,
    _S.RETURNED,
    _S.FAILED,
    _S.CANCELLED,
    _S.EXPIRED,
    _S.ARCHIVED,
)

_BASIC_STATUSES = (
    _S.READY_FOR_RELEASE,
    _S.RELEASED,
    _S.PRINTED,
    _S.SHIPPED,
    _S.DELIVERED,
    _S.FAILED,
    _S.CANCELLED,
    _S.ARCHIVED,
)

# (code, display name, description, valid statuses)
DEFAULT_TYPE_DEFINITIONS: Tuple[Tuple[str, str, str, Tuple[str, ...]], ...] = (
    (CommunicationTypes.EOB, "Explanation of Benefits", "Explanation of Benefits documents", _STATEMENT_STATUSES),
    (CommunicationTypes.EOP, "Explanation of Payment", "Explanation of Payment documents", _STATEMENT_STATUSES),
    (CommunicationTypes.ID_CARD, "Member ID Card", "Member identification cards", _ID_CARD_STATUSES),
    (CommunicationTypes.WELCOME_PACKET, "Welcome Packet", "New member welcome packets", _BASIC_STATUSES),
    (CommunicationTypes.CLAIM_STATEMENT, "Claim Statement", "Claim statements", _BASIC_STATUSES),
    (CommunicationTypes.PROVIDER_STATEMENT, "Provider Statement", "Provider statements", _BASIC_STATUSES),
)
