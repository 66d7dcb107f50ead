"""
Outbox dispatcher.

Every accepted status change writes its event to ``event_outbox`` in the same
transaction as the change. The engine publishes immediately and marks the row
delivered; rows left pending (broker down, process crash between commit and
publish) are drained here. Redelivery can duplicate an event, consumers
de-duplicate on ``event_id``.
"""

from __future__ import annotations

import signal
import threading
from typing import Callable, Optional

import structlog
from sqlalchemy.orm import Session

from ..config import get_settings
from ..db.base import get_session_local
from ..errors import LifecycleError, PublishFailedError
from ..lifecycle.store import SqlAlchemyLifecycleStore
from .publisher import EventPublisher

logger = structlog.get_logger(__name__)


class OutboxDispatcher:
    """Poll the outbox and publish pending events in creation order."""

    def __init__(
        self,
        publisher: EventPublisher,
        session_factory: Optional[Callable[[], Session]] = None,
        poll_interval: Optional[float] = None,
        batch_size: Optional[int] = None,
    ):
        settings = get_settings()
        self.publisher = publisher
        self.session_factory = session_factory or get_session_local()
        self.poll_interval = poll_interval or settings.outbox_poll_interval
        self.batch_size = batch_size or settings.outbox_batch_size
        self.running = False
        self._wakeup = threading.Event()

    def run_once(self) -> int:
        """Publish one batch of pending events.

        The batch stops at the first failure so events of one communication
        keep their order.

        Returns:
            Number of events delivered
        """
        db = self.session_factory()
        try:
            store = SqlAlchemyLifecycleStore(db)
            delivered = 0
            for event in store.pending_events(limit=self.batch_size):
                try:
                    self.publisher.publish(event)
                except PublishFailedError as e:
                    logger.warning(
                        "outbox_publish_failed",
                        event_id=str(event.event_id),
                        communication_id=event.communication_id,
                        error=e.message,
                    )
                    store.record_delivery_failure(event.event_id, e.message)
                    break
                store.mark_event_delivered(event.event_id)
                delivered += 1

            if delivered:
                logger.info("outbox_events_delivered", count=delivered)
            return delivered
        finally:
            db.close()

    def start(self, install_signal_handlers: bool = True) -> None:
        """Run until stopped."""
        self.running = True
        self._wakeup.clear()
        logger.info("outbox_dispatcher_starting", poll_interval=self.poll_interval, batch_size=self.batch_size)

        if install_signal_handlers:
            signal.signal(signal.SIGINT, self._signal_handler)
            signal.signal(signal.SIGTERM, self._signal_handler)

        try:
            while self.running:
                try:
                    delivered = self.run_once()
                except LifecycleError as e:
                    logger.error("outbox_dispatch_failed", error=e.message)
                    delivered = 0
                if delivered < self.batch_size:
                    self._wakeup.wait(self.poll_interval)
        finally:
            logger.info("outbox_dispatcher_stopped")

    def stop(self) -> None:
        """Signal the dispatcher to stop after the current batch."""
        self.running = False
        self._wakeup.set()

    def _signal_handler(self, signum, frame) -> None:
        logger.info("shutdown_signal_received", signal=signum)
        self.stop()
