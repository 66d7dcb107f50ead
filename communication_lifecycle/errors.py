"""
Error taxonomy for the lifecycle engine.

NotFoundError, InvalidTransitionError and ConflictError are expected outcomes
that callers surface as-is. PublishFailedError and StoreFailureError are
operational faults.
"""

from typing import Any, Dict, Optional


class LifecycleError(Exception):
    """
    Base class for lifecycle errors.

    Attributes:
        code: Stable error code for programmatic handling
        message: Human-readable error description
    """

    code = "lifecycle_error"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for JSON serialization."""
        return {"error": self.code, "message": self.message}


class NotFoundError(LifecycleError):
    """Raised when a communication or communication type does not exist."""

    code = "not_found"

    def __init__(self, resource: str, resource_id: Any):
        self.resource = resource
        self.resource_id = resource_id
        super().__init__(f"{resource} '{resource_id}' not found")


class InvalidTransitionError(LifecycleError):
    """Raised when a status is not acceptable for a communication type."""

    code = "invalid_transition"

    def __init__(self, type_code: str, status: str, reason: str):
        self.type_code = type_code
        self.status = status
        self.reason = reason
        super().__init__(reason)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": self.code,
            "type_code": self.type_code,
            "status": self.status,
            "message": self.message,
        }


class ConflictError(LifecycleError):
    """Raised when creating an entity whose key already exists."""

    code = "conflict"


class PublishFailedError(LifecycleError):
    """Raised when an event could not be handed to the broker."""

    code = "publish_failed"

    def __init__(self, message: str, communication_id: Optional[int] = None):
        self.communication_id = communication_id
        super().__init__(message)


class StoreFailureError(LifecycleError):
    """Raised when the underlying persistence layer fails."""

    code = "store_failure"
