"""
Communication Lifecycle

Tracks outbound member communications through their per-type statuses and
broadcasts every status change as a durable event.
"""

import importlib.metadata

__version__ = importlib.metadata.version("communication-lifecycle")

from .catalog import CommunicationType, TypeCatalog
from .errors import (
    ConflictError,
    InvalidTransitionError,
    LifecycleError,
    NotFoundError,
    PublishFailedError,
    StoreFailureError,
)
from .lifecycle import (
    Communication,
    LifecycleEngine,
    StatusChangedEvent,
    StatusHistoryEntry,
    TransitionValidator,
)

__all__ = [
    "Communication",
    "CommunicationType",
    "ConflictError",
    "InvalidTransitionError",
    "LifecycleEngine",
    "LifecycleError",
    "NotFoundError",
    "PublishFailedError",
    "StatusChangedEvent",
    "StatusHistoryEntry",
    "StoreFailureError",
    "TransitionValidator",
    "TypeCatalog",
]
