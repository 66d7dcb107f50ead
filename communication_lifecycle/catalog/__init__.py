"""
Communication type catalog.
"""

from .catalog import CommunicationType, TypeCatalog
from .repository import CatalogRepository
from .statuses import (
    DEFAULT_TYPE_DEFINITIONS,
    CodeStr,
    CommunicationStatus,
    CommunicationTypes,
    describe_status,
    known_statuses,
)

__all__ = [
    "CatalogRepository",
    "CodeStr",
    "CommunicationStatus",
    "CommunicationType",
    "CommunicationTypes",
    "DEFAULT_TYPE_DEFINITIONS",
    "TypeCatalog",
    "describe_status",
    "known_statuses",
]
