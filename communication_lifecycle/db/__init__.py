"""
Database package for the Communication Lifecycle service.
"""

from .base import Base, get_db, get_engine, get_session_local, init_database
from .models import (
    CommunicationModel,
    CommunicationTypeModel,
    CommunicationTypeStatusModel,
    OutboxEventModel,
    StatusHistoryModel,
)

__all__ = [
    "Base",
    "get_db",
    "get_engine",
    "get_session_local",
    "init_database",
    "CommunicationModel",
    "CommunicationTypeModel",
    "CommunicationTypeStatusModel",
    "OutboxEventModel",
    "StatusHistoryModel",
]
