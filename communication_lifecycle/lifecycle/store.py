"""
Lifecycle store: durable storage for communications, their append-only status
history and the event outbox.

Every status change is a single atomic unit: the communication row, its new
history row and (when requested) the outbox row commit together or not at all.
"""

from __future__ import annotations

import itertools
import threading
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Callable, Dict, List, Optional, Tuple, Union
from uuid import UUID

import structlog
from sqlalchemy import desc, func, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..db.models import CommunicationModel, OutboxEventModel, StatusHistoryModel
from ..errors import NotFoundError, StoreFailureError
from .events import StatusChangedEvent
from .models import Communication, StatusHistoryEntry, utc_now

logger = structlog.get_logger(__name__)

INITIAL_STATUS_NOTE = "Initial status"

# Builds the outbox event for a communication snapshot; must be pure
Announce = Callable[[Communication], StatusChangedEvent]


def _check_page(page: int, page_size: int) -> None:
    if page < 1:
        raise ValueError("page must be >= 1")
    if page_size < 1:
        raise ValueError("page_size must be >= 1")


class LifecycleStore(ABC):
    """Abstract persistence boundary for communications."""

    @abstractmethod
    def create(
        self,
        title: str,
        type_code: str,
        status: str,
        description: Optional[str] = None,
        source_file_url: Optional[str] = None,
        now: Optional[datetime] = None,
        announce: Optional[Announce] = None,
    ) -> Communication:
        """Store a new communication and seed its history with the initial status."""

    @abstractmethod
    def get_by_id(self, communication_id: int) -> Communication:
        """Get a communication. Raises NotFoundError."""

    @abstractmethod
    def get_with_history(
        self, communication_id: int
    ) -> Tuple[Communication, List[StatusHistoryEntry]]:
        """Get a communication and its history, most recent entry first."""

    @abstractmethod
    def list_by_type(self, type_code: str) -> List[Communication]:
        """Communications of a type, last updated first."""

    @abstractmethod
    def list_by_status(self, status: str) -> List[Communication]:
        """Communications in a status, last updated first."""

    @abstractmethod
    def list_by_type_and_status(self, type_code: str, status: str) -> List[Communication]:
        """Communications of a type in a status, last updated first."""

    @abstractmethod
    def list_paged(self, page: int, page_size: int) -> List[Communication]:
        """One page of all communications, last updated first. Pages start at 1."""

    @abstractmethod
    def count(self, type_code: Optional[str] = None, status: Optional[str] = None) -> int:
        """Number of communications matching the optional filters."""

    @abstractmethod
    def apply_status_change(
        self,
        communication_id: int,
        new_status: str,
        note: Optional[str] = None,
        now: Optional[datetime] = None,
        announce: Optional[Announce] = None,
    ) -> Communication:
        """Set the current status and append a history entry, atomically."""

    @abstractmethod
    def delete(self, communication_id: int) -> None:
        """Delete a communication and its history."""

    @abstractmethod
    def pending_events(self, limit: int = 100) -> List[StatusChangedEvent]:
        """Undelivered outbox events, oldest first."""

    @abstractmethod
    def mark_event_delivered(self, event_id: Union[UUID, str]) -> None:
        """Mark an outbox event as handed to the broker."""

    @abstractmethod
    def record_delivery_failure(self, event_id: Union[UUID, str], error: str) -> None:
        """Count a failed delivery attempt for an outbox event."""


class SqlAlchemyLifecycleStore(LifecycleStore):
    """Lifecycle store backed by a SQLAlchemy session.

    One instance per session; sessions are not shared between threads.
    """

    def __init__(self, db: Session):
        self.db = db

    def _fail(self, operation: str, error: SQLAlchemyError, **context) -> StoreFailureError:
        self.db.rollback()
        logger.error("store_operation_failed", operation=operation, error=str(error), **context)
        return StoreFailureError(f"Store operation '{operation}' failed")

    def _get_model(self, communication_id: int) -> CommunicationModel:
        model = self.db.get(CommunicationModel, communication_id)
        if model is None:
            raise NotFoundError("Communication", communication_id)
        return model

    def _ordered(self, query):
        return query.order_by(
            desc(CommunicationModel.last_updated_utc), desc(CommunicationModel.id)
        )

    def _add_outbox(self, event: StatusChangedEvent) -> None:
        self.db.add(
            OutboxEventModel(
                event_id=str(event.event_id),
                communication_id=event.communication_id,
                event_type=event.event_type,
                payload=event.to_dict(),
                created_utc=utc_now(),
                attempts=0,
            )
        )

    def create(
        self,
        title: str,
        type_code: str,
        status: str,
        description: Optional[str] = None,
        source_file_url: Optional[str] = None,
        now: Optional[datetime] = None,
        announce: Optional[Announce] = None,
    ) -> Communication:
        now = now or utc_now()
        model = CommunicationModel(
            title=title,
            type_code=type_code,
            current_status=status,
            created_utc=now,
            last_updated_utc=now,
            description=description,
            source_file_url=source_file_url,
        )
        model.status_history.append(
            StatusHistoryModel(status_code=status, occurred_utc=now, notes=INITIAL_STATUS_NOTE)
        )

        try:
            self.db.add(model)
            self.db.flush()
            communication = Communication.model_validate(model)
            if announce is not None:
                self._add_outbox(announce(communication))
            self.db.commit()
        except SQLAlchemyError as e:
            raise self._fail("create", e, type_code=type_code, status=status) from e

        return communication

    def get_by_id(self, communication_id: int) -> Communication:
        return Communication.model_validate(self._get_model(communication_id))

    def get_with_history(
        self, communication_id: int
    ) -> Tuple[Communication, List[StatusHistoryEntry]]:
        communication = self.get_by_id(communication_id)
        rows = (
            self.db.query(StatusHistoryModel)
            .filter(StatusHistoryModel.communication_id == communication_id)
            .order_by(desc(StatusHistoryModel.occurred_utc), desc(StatusHistoryModel.id))
            .all()
        )
        return communication, [StatusHistoryEntry.model_validate(r) for r in rows]

    def list_by_type(self, type_code: str) -> List[Communication]:
        query = self.db.query(CommunicationModel).filter(CommunicationModel.type_code == type_code)
        return [Communication.model_validate(m) for m in self._ordered(query).all()]

    def list_by_status(self, status: str) -> List[Communication]:
        query = self.db.query(CommunicationModel).filter(
            CommunicationModel.current_status == status
        )
        return [Communication.model_validate(m) for m in self._ordered(query).all()]

    def list_by_type_and_status(self, type_code: str, status: str) -> List[Communication]:
        query = self.db.query(CommunicationModel).filter(
            CommunicationModel.type_code == type_code,
            CommunicationModel.current_status == status,
        )
        return [Communication.model_validate(m) for m in self._ordered(query).all()]

    def list_paged(self, page: int, page_size: int) -> List[Communication]:
        _check_page(page, page_size)
        query = self._ordered(self.db.query(CommunicationModel))
        rows = query.offset((page - 1) * page_size).limit(page_size).all()
        return [Communication.model_validate(m) for m in rows]

    def count(self, type_code: Optional[str] = None, status: Optional[str] = None) -> int:
        query = self.db.query(func.count(CommunicationModel.id))
        if type_code:
            query = query.filter(CommunicationModel.type_code == type_code)
        if status:
            query = query.filter(CommunicationModel.current_status == status)
        return int(query.scalar() or 0)

    def apply_status_change(
        self,
        communication_id: int,
        new_status: str,
        note: Optional[str] = None,
        now: Optional[datetime] = None,
        announce: Optional[Announce] = None,
    ) -> Communication:
        try:
            # The UPDATE takes the row's write lock; stamping after it keeps
            # history time order equal to commit order
            result = self.db.execute(
                update(CommunicationModel)
                .where(CommunicationModel.id == communication_id)
                .values(current_status=new_status)
            )
            if result.rowcount == 0:
                self.db.rollback()
                raise NotFoundError("Communication", communication_id)

            now = now or utc_now()
            self.db.execute(
                update(CommunicationModel)
                .where(CommunicationModel.id == communication_id)
                .values(last_updated_utc=now)
            )

            self.db.add(
                StatusHistoryModel(
                    communication_id=communication_id,
                    status_code=new_status,
                    occurred_utc=now,
                    notes=note or f"Status changed to {new_status}",
                )
            )
            self.db.flush()

            model = self.db.get(CommunicationModel, communication_id, populate_existing=True)
            communication = Communication.model_validate(model)
            if announce is not None:
                self._add_outbox(announce(communication))
            self.db.commit()
        except SQLAlchemyError as e:
            raise self._fail(
                "apply_status_change",
                e,
                communication_id=communication_id,
                status=new_status,
                timestamp_utc=utc_now().isoformat(),
            ) from e

        return communication

    def delete(self, communication_id: int) -> None:
        model = self._get_model(communication_id)
        try:
            self.db.delete(model)
            self.db.commit()
        except SQLAlchemyError as e:
            raise self._fail("delete", e, communication_id=communication_id) from e

    def pending_events(self, limit: int = 100) -> List[StatusChangedEvent]:
        rows = (
            self.db.query(OutboxEventModel)
            .filter(OutboxEventModel.delivered_utc.is_(None))
            .order_by(OutboxEventModel.created_utc)
            .limit(limit)
            .all()
        )
        return [StatusChangedEvent.model_validate(r.payload) for r in rows]

    def _update_outbox(self, operation: str, event_id: Union[UUID, str], **values) -> None:
        try:
            result = self.db.execute(
                update(OutboxEventModel)
                .where(OutboxEventModel.event_id == str(event_id))
                .values(attempts=OutboxEventModel.attempts + 1, **values)
            )
            if result.rowcount == 0:
                self.db.rollback()
                raise NotFoundError("OutboxEvent", str(event_id))
            self.db.commit()
        except SQLAlchemyError as e:
            raise self._fail(operation, e, event_id=str(event_id)) from e

    def mark_event_delivered(self, event_id: Union[UUID, str]) -> None:
        self._update_outbox("mark_event_delivered", event_id, delivered_utc=utc_now(), last_error=None)

    def record_delivery_failure(self, event_id: Union[UUID, str], error: str) -> None:
        self._update_outbox("record_delivery_failure", event_id, last_error=error)


class _OutboxRecord:
    __slots__ = ("event", "delivered_utc", "attempts", "last_error")

    def __init__(self, event: StatusChangedEvent):
        self.event = event
        self.delivered_utc: Optional[datetime] = None
        self.attempts = 0
        self.last_error: Optional[str] = None


class InMemoryLifecycleStore(LifecycleStore):
    """Reference implementation kept entirely in process memory.

    A single lock makes each operation atomic, which gives the same
    guarantees as the database transaction in SqlAlchemyLifecycleStore.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._communications: Dict[int, Communication] = {}
        self._history: Dict[int, List[StatusHistoryEntry]] = {}
        self._outbox: Dict[str, _OutboxRecord] = {}
        self._ids = itertools.count(1)
        self._history_ids = itertools.count(1)

    def _require(self, communication_id: int) -> Communication:
        communication = self._communications.get(communication_id)
        if communication is None:
            raise NotFoundError("Communication", communication_id)
        return communication

    def _append_history(
        self, communication_id: int, status: str, occurred: datetime, note: Optional[str]
    ) -> None:
        self._history.setdefault(communication_id, []).append(
            StatusHistoryEntry(
                id=next(self._history_ids),
                communication_id=communication_id,
                status_code=status,
                occurred_utc=occurred,
                notes=note,
            )
        )

    @staticmethod
    def _ordered(communications: List[Communication]) -> List[Communication]:
        return sorted(
            communications, key=lambda c: (c.last_updated_utc, c.id), reverse=True
        )

    def _select(self, predicate: Callable[[Communication], bool]) -> List[Communication]:
        with self._lock:
            return self._ordered([c for c in self._communications.values() if predicate(c)])

    def create(
        self,
        title: str,
        type_code: str,
        status: str,
        description: Optional[str] = None,
        source_file_url: Optional[str] = None,
        now: Optional[datetime] = None,
        announce: Optional[Announce] = None,
    ) -> Communication:
        now = now or utc_now()
        with self._lock:
            communication = Communication(
                id=next(self._ids),
                title=title,
                type_code=type_code,
                current_status=status,
                created_utc=now,
                last_updated_utc=now,
                description=description,
                source_file_url=source_file_url,
            )
            event = announce(communication) if announce is not None else None

            self._communications[communication.id] = communication
            self._append_history(communication.id, status, now, INITIAL_STATUS_NOTE)
            if event is not None:
                self._outbox[str(event.event_id)] = _OutboxRecord(event)
        return communication

    def get_by_id(self, communication_id: int) -> Communication:
        with self._lock:
            return self._require(communication_id)

    def get_with_history(
        self, communication_id: int
    ) -> Tuple[Communication, List[StatusHistoryEntry]]:
        with self._lock:
            communication = self._require(communication_id)
            history = sorted(
                self._history.get(communication_id, []),
                key=lambda h: (h.occurred_utc, h.id),
                reverse=True,
            )
        return communication, history

    def list_by_type(self, type_code: str) -> List[Communication]:
        return self._select(lambda c: c.type_code == type_code)

    def list_by_status(self, status: str) -> List[Communication]:
        return self._select(lambda c: c.current_status == status)

    def list_by_type_and_status(self, type_code: str, status: str) -> List[Communication]:
        return self._select(lambda c: c.type_code == type_code and c.current_status == status)

    def list_paged(self, page: int, page_size: int) -> List[Communication]:
        _check_page(page, page_size)
        start = (page - 1) * page_size
        return self._select(lambda c: True)[start:start + page_size]

    def count(self, type_code: Optional[str] = None, status: Optional[str] = None) -> int:
        return len(
            self._select(
                lambda c: (not type_code or c.type_code == type_code)
                and (not status or c.current_status == status)
            )
        )

    def apply_status_change(
        self,
        communication_id: int,
        new_status: str,
        note: Optional[str] = None,
        now: Optional[datetime] = None,
        announce: Optional[Announce] = None,
    ) -> Communication:
        with self._lock:
            current = self._require(communication_id)
            now = now or utc_now()
            updated = current.model_copy(
                update={"current_status": new_status, "last_updated_utc": now}
            )
            event = announce(updated) if announce is not None else None

            self._communications[communication_id] = updated
            self._append_history(
                communication_id, new_status, now, note or f"Status changed to {new_status}"
            )
            if event is not None:
                self._outbox[str(event.event_id)] = _OutboxRecord(event)
        return updated

    def delete(self, communication_id: int) -> None:
        with self._lock:
            self._require(communication_id)
            del self._communications[communication_id]
            self._history.pop(communication_id, None)

    def pending_events(self, limit: int = 100) -> List[StatusChangedEvent]:
        with self._lock:
            pending = [r.event for r in self._outbox.values() if r.delivered_utc is None]
        return pending[:limit]

    def _outbox_record(self, event_id: Union[UUID, str]) -> _OutboxRecord:
        record = self._outbox.get(str(event_id))
        if record is None:
            raise NotFoundError("OutboxEvent", str(event_id))
        return record

    def mark_event_delivered(self, event_id: Union[UUID, str]) -> None:
        with self._lock:
            record = self._outbox_record(event_id)
            record.attempts += 1
            record.delivered_utc = utc_now()
            record.last_error = None

    def record_delivery_failure(self, event_id: Union[UUID, str], error: str) -> None:
        with self._lock:
            record = self._outbox_record(event_id)
            record.attempts += 1
            record.last_error = error

    def outbox_attempts(self, event_id: Union[UUID, str]) -> int:
        """Delivery attempts recorded for an outbox event."""
        with self._lock:
            return self._outbox_record(event_id).attempts
