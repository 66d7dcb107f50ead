"""
SQLAlchemy models for the Communication Lifecycle service.
"""

from typing import Any, Dict

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from .base import Base


class CommunicationTypeModel(Base):
    """SQLAlchemy model for communication types."""

    __tablename__ = "communication_types"

    type_code = Column(String(50), primary_key=True)
    display_name = Column(String(100), nullable=False)
    description = Column(String(500), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)

    statuses = relationship(
        "CommunicationTypeStatusModel",
        back_populates="communication_type",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="CommunicationTypeStatusModel.display_order",
    )

    def to_dict(self) -> Dict[str, Any]:
        """Convert model to dictionary."""
        return {
            "type_code": self.type_code,
            "display_name": self.display_name,
            "description": self.description,
            "is_active": self.is_active,
            "statuses": [s.status_code for s in self.statuses],
        }


class CommunicationTypeStatusModel(Base):
    """A status that is valid for a communication type."""

    __tablename__ = "communication_type_statuses"

    type_code = Column(
        String(50),
        ForeignKey("communication_types.type_code", ondelete="CASCADE"),
        primary_key=True,
    )
    status_code = Column(String(50), primary_key=True)
    description = Column(String(500), nullable=True)
    display_order = Column(Integer, nullable=False)

    communication_type = relationship("CommunicationTypeModel", back_populates="statuses")


class CommunicationModel(Base):
    """SQLAlchemy model for communications."""

    __tablename__ = "communications"

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(String(200), nullable=False)
    type_code = Column(String(50), nullable=False, index=True)
    current_status = Column(String(50), nullable=False, index=True)

    # Timestamps (UTC)
    created_utc = Column(DateTime(timezone=True), nullable=False)
    last_updated_utc = Column(DateTime(timezone=True), nullable=False, index=True)

    description = Column(String(500), nullable=True)
    source_file_url = Column(String(200), nullable=True)

    status_history = relationship(
        "StatusHistoryModel",
        back_populates="communication",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        Index("ix_communications_type_status", "type_code", "current_status"),
    )

    def to_dict(self) -> Dict[str, Any]:
        """Convert model to dictionary."""
        return {
            "id": self.id,
            "title": self.title,
            "type_code": self.type_code,
            "current_status": self.current_status,
            "created_utc": self.created_utc.isoformat() if self.created_utc else None,
            "last_updated_utc": (
                self.last_updated_utc.isoformat() if self.last_updated_utc else None
            ),
            "description": self.description,
            "source_file_url": self.source_file_url,
        }


class StatusHistoryModel(Base):
    """Append-only status history entry. Rows are never updated."""

    __tablename__ = "communication_status_history"

    id = Column(Integer, primary_key=True, autoincrement=True)
    communication_id = Column(
        Integer,
        ForeignKey("communications.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    status_code = Column(String(50), nullable=False, index=True)
    occurred_utc = Column(DateTime(timezone=True), nullable=False, index=True)
    notes = Column(String(500), nullable=True)

    communication = relationship("CommunicationModel", back_populates="status_history")


class OutboxEventModel(Base):
    """Status-change event written in the same transaction as the change.

    No foreign key to communications: an event for a deleted communication
    must still be delivered.
    """

    __tablename__ = "event_outbox"

    event_id = Column(String(36), primary_key=True)
    communication_id = Column(Integer, nullable=False, index=True)
    event_type = Column(String(100), nullable=False)
    payload = Column(JSON, nullable=False)

    created_utc = Column(DateTime(timezone=True), nullable=False)
    delivered_utc = Column(DateTime(timezone=True), nullable=True)

    attempts = Column(Integer, nullable=False, default=0)
    last_error = Column(Text, nullable=True)

    __table_args__ = (
        Index("ix_event_outbox_pending", "delivered_utc", "created_utc"),
    )

    def to_dict(self) -> Dict[str, Any]:
        """Convert model to dictionary."""
        return {
            "event_id": self.event_id,
            "communication_id": self.communication_id,
            "event_type": self.event_type,
            "payload": self.payload,
            "created_utc": self.created_utc.isoformat() if self.created_utc else None,
            "delivered_utc": self.delivered_utc.isoformat() if self.delivered_utc else None,
            "attempts": self.attempts,
            "last_error": self.last_error,
        }
