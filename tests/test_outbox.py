"""
Tests for the outbox dispatcher.

A broker outage leaves committed events in the outbox; the dispatcher
publishes them once the broker is back.
"""

import pytest

from communication_lifecycle.catalog import TypeCatalog
from communication_lifecycle.db.models import OutboxEventModel
from communication_lifecycle.errors import PublishFailedError
from communication_lifecycle.lifecycle import (
    LifecycleEngine,
    SqlAlchemyLifecycleStore,
    TransitionValidator,
)
from communication_lifecycle.messaging import InMemoryEventPublisher, OutboxDispatcher


@pytest.fixture
def outage(session_factory):
    """Two communications whose events failed to publish. Returns their event ids."""
    publisher = InMemoryEventPublisher()
    publisher.available = False
    db = session_factory()
    try:
        engine = LifecycleEngine(
            SqlAlchemyLifecycleStore(db), TransitionValidator(TypeCatalog.default()), publisher
        )
        for title in ("first", "second"):
            with pytest.raises(PublishFailedError):
                engine.create_communication(title, "EOB", "ReadyForRelease")
        return [e.event_id for e in SqlAlchemyLifecycleStore(db).pending_events()]
    finally:
        db.close()


def _outbox_rows(session_factory):
    db = session_factory()
    try:
        return {row.event_id: (row.attempts, row.delivered_utc, row.last_error) for row in db.query(OutboxEventModel)}
    finally:
        db.close()


class TestOutboxDispatcher:
    """Tests for OutboxDispatcher.run_once."""

    def test_delivers_pending_events_in_order(self, session_factory, outage):
        """Test that pending events are published oldest first and marked delivered."""
        publisher = InMemoryEventPublisher()
        dispatcher = OutboxDispatcher(publisher, session_factory=session_factory, batch_size=10)

        assert dispatcher.run_once() == 2

        assert [e.event_id for e in publisher.events] == outage
        rows = _outbox_rows(session_factory)
        assert all(delivered is not None for _, delivered, _ in rows.values())
        assert dispatcher.run_once() == 0

    def test_failure_is_recorded_and_batch_stops(self, session_factory, outage):
        """Test that the first failure is counted and later events wait."""
        publisher = InMemoryEventPublisher()
        publisher.available = False
        dispatcher = OutboxDispatcher(publisher, session_factory=session_factory)

        assert dispatcher.run_once() == 0

        rows = _outbox_rows(session_factory)
        assert rows[str(outage[0])][0] == 1
        assert rows[str(outage[0])][2] == "Broker unavailable"
        assert rows[str(outage[1])][0] == 0

    def test_batch_size_limits_work(self, session_factory, outage):
        """Test that one run publishes at most batch_size events."""
        publisher = InMemoryEventPublisher()
        dispatcher = OutboxDispatcher(publisher, session_factory=session_factory, batch_size=1)

        assert dispatcher.run_once() == 1
        assert dispatcher.run_once() == 1
        assert dispatcher.run_once() == 0
        assert len(publisher.events) == 2

    def test_redelivered_events_keep_their_id(self, session_factory, outage):
        """Test that consumers can de-duplicate redelivered events."""
        publisher = InMemoryEventPublisher()
        OutboxDispatcher(publisher, session_factory=session_factory).run_once()

        assert {e.event_id for e in publisher.events} == set(outage)

    def test_stop(self, session_factory):
        """Test that stop() clears the running flag."""
        dispatcher = OutboxDispatcher(InMemoryEventPublisher(), session_factory=session_factory)
        dispatcher.running = True

        dispatcher.stop()

        assert dispatcher.running is False
