"""
Communication lifecycle: domain models, events, validation, storage and the
engine that ties them together.
"""

from .models import Communication, StatusHistoryEntry, utc_now
from .events import EventTypes, StatusChangedEvent, suggest_event_type
from .validator import TransitionValidator
from .store import InMemoryLifecycleStore, LifecycleStore, SqlAlchemyLifecycleStore
from .engine import LifecycleEngine

__all__ = [
    "Communication",
    "EventTypes",
    "InMemoryLifecycleStore",
    "LifecycleEngine",
    "LifecycleStore",
    "SqlAlchemyLifecycleStore",
    "StatusChangedEvent",
    "StatusHistoryEntry",
    "TransitionValidator",
    "suggest_event_type",
    "utc_now",
]
