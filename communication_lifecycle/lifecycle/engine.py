"""
Lifecycle engine.

Orchestrates a status change: validate against the type catalog, persist the
new status together with its history entry and outbox row, then publish the
event. The commit always happens before the publish, so a consumer reacting to
an event can read at least the state the event describes.
"""

from __future__ import annotations

import uuid
from typing import Any, Dict, List, Optional, Tuple

import structlog

from ..errors import LifecycleError, PublishFailedError, StoreFailureError
from ..messaging.publisher import EventPublisher
from .events import StatusChangedEvent, suggest_event_type
from .models import Communication, utc_now
from .store import LifecycleStore
from .validator import TransitionValidator

logger = structlog.get_logger(__name__)

SIMULATED_NOTE = "Event simulated via Event Simulator: {event_type}"


class LifecycleEngine:
    """
    Validate, persist and announce communication status changes.

    The engine holds no communication state between calls. The store and
    publisher it is given must be safe for the caller's concurrency model;
    SqlAlchemyLifecycleStore is per-session, the publisher is shared.
    """

    def __init__(
        self,
        store: LifecycleStore,
        validator: TransitionValidator,
        publisher: EventPublisher,
    ):
        self.store = store
        self.validator = validator
        self.publisher = publisher

    def create_communication(
        self,
        title: str,
        type_code: str,
        initial_status: str,
        description: Optional[str] = None,
        source_file_url: Optional[str] = None,
    ) -> Communication:
        """Create a communication and announce it.

        Raises:
            InvalidTransitionError: Unknown or inactive type, or a status the
                type does not list
            StoreFailureError: The write failed; nothing was published
            PublishFailedError: Stored, but the announcement did not reach
                the broker (the outbox keeps it)
        """
        self.validator.validate(type_code, initial_status, require_active=True)

        event_id = uuid.uuid4()
        try:
            communication = self.store.create(
                title=title,
                type_code=type_code,
                status=initial_status,
                description=description,
                source_file_url=source_file_url,
                announce=lambda c: StatusChangedEvent.for_creation(c, event_id=event_id),
            )
        except StoreFailureError:
            logger.error(
                "communication_create_failed",
                type_code=type_code,
                status=initial_status,
                timestamp_utc=utc_now().isoformat(),
            )
            raise

        logger.info(
            "communication_created",
            communication_id=communication.id,
            type_code=type_code,
            status=initial_status,
        )
        self._publish(StatusChangedEvent.for_creation(communication, event_id=event_id))
        return communication

    def change_status(
        self,
        communication_id: int,
        requested_status: str,
        note: Optional[str] = None,
        event_type: Optional[str] = None,
    ) -> Communication:
        """
        Move a communication to ``requested_status``.

        Args:
            communication_id: Communication to change
            requested_status: Any valid status of the communication's type
            note: Caller note. Carried on the event as-is; the history entry
                falls back to "Status changed from {old} to {new}"
            event_type: Event label, "StatusChanged" when omitted

        Returns:
            The updated communication

        Raises:
            NotFoundError: No such communication; nothing is published
            InvalidTransitionError: Status not valid for the type; nothing
                is written or published
            StoreFailureError: The write failed; nothing was published
            PublishFailedError: The change is committed but the event did not
                reach the broker; the outbox keeps it for redelivery
        """
        communication, _ = self._transition(communication_id, requested_status, note, event_type)
        return communication

    def simulate_event(
        self,
        communication_id: int,
        new_status: str,
        event_type: str,
        note: Optional[str] = None,
    ) -> StatusChangedEvent:
        """Apply a status change on behalf of the event simulator.

        Same path as ``change_status``; returns the event so callers can
        report the old and new status.
        """
        note = note or SIMULATED_NOTE.format(event_type=event_type)
        _, event = self._transition(communication_id, new_status, note, event_type, history_note=note)
        return event

    def available_events(self, communication_id: int) -> Dict[str, Any]:
        """Status changes a communication can make, with a suggested event type for each."""
        communication = self.store.get_by_id(communication_id)
        statuses = self.validator.catalog.valid_statuses(communication.type_code)
        events: List[Dict[str, str]] = [
            {
                "event_type": suggest_event_type(communication.type_code, status),
                "new_status": status,
                "description": f"{communication.type_code} status changed to {status}",
            }
            for status in statuses
            if status != communication.current_status
        ]
        return {
            "communication_id": communication.id,
            "current_status": communication.current_status,
            "available_events": events,
        }

    def _transition(
        self,
        communication_id: int,
        requested_status: str,
        note: Optional[str],
        event_type: Optional[str],
        history_note: Optional[str] = None,
    ) -> Tuple[Communication, StatusChangedEvent]:
        current = self.store.get_by_id(communication_id)
        old_status = current.current_status

        try:
            self.validator.validate(current.type_code, requested_status)
        except LifecycleError:
            logger.info(
                "status_change_rejected",
                communication_id=communication_id,
                type_code=current.type_code,
                status=requested_status,
            )
            raise

        event_id = uuid.uuid4()

        def announce(communication: Communication) -> StatusChangedEvent:
            return StatusChangedEvent.for_change(
                communication,
                old_status=old_status,
                event_type=event_type,
                notes=note,
                event_id=event_id,
            )

        try:
            updated = self.store.apply_status_change(
                communication_id,
                requested_status,
                note=history_note or note or f"Status changed from {old_status} to {requested_status}",
                announce=announce,
            )
        except StoreFailureError:
            logger.error(
                "status_change_persist_failed",
                communication_id=communication_id,
                status=requested_status,
                timestamp_utc=utc_now().isoformat(),
            )
            raise

        logger.info(
            "status_changed",
            communication_id=communication_id,
            old_status=old_status,
            status=requested_status,
        )

        event = announce(updated)
        self._publish(event)
        return updated, event

    def _publish(self, event: StatusChangedEvent) -> None:
        try:
            self.publisher.publish(event)
        except PublishFailedError as e:
            logger.error(
                "event_publish_failed",
                communication_id=event.communication_id,
                event_id=str(event.event_id),
                status=event.new_status,
                timestamp_utc=event.timestamp_utc.isoformat(),
                error=e.message,
            )
            raise PublishFailedError(
                f"Status of communication {event.communication_id} was saved but the "
                f"event could not be published",
                communication_id=event.communication_id,
            ) from e

        try:
            self.store.mark_event_delivered(event.event_id)
        except LifecycleError as e:
            # The dispatcher will publish it again; consumers de-duplicate on event_id
            logger.warning(
                "outbox_mark_delivered_failed",
                event_id=str(event.event_id),
                communication_id=event.communication_id,
                error=e.message,
            )
