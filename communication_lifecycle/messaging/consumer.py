"""
Event consumer.

Subscribes to the status-update queue with manual acknowledgements. A message
is acked only after the handler returns; a message that cannot be decoded or
whose handler raises is rejected without requeue. Handlers needing retries
implement them themselves.
"""

from __future__ import annotations

import signal
import threading
from typing import Callable, Optional

import pika
import pika.exceptions
import structlog
from pika.adapters.blocking_connection import BlockingChannel
from pydantic import ValidationError

from ..config import Settings
from ..lifecycle.events import StatusChangedEvent
from .publisher import TRANSPORT_ERRORS, connection_parameters, declare_topology

logger = structlog.get_logger(__name__)

EventHandler = Callable[[StatusChangedEvent], None]


def log_event(event: StatusChangedEvent) -> None:
    """Default handler: record the event in the log."""
    logger.info(
        "status_changed_event_received",
        event_id=str(event.event_id),
        communication_id=event.communication_id,
        old_status=event.old_status,
        status=event.new_status,
        event_type=event.event_type,
        timestamp_utc=event.timestamp_utc.isoformat(),
    )


class RabbitMQEventConsumer:
    """Consume StatusChangedEvents from RabbitMQ on a dedicated connection."""

    def __init__(
        self,
        parameters: pika.ConnectionParameters,
        exchange: str = "communication-events",
        queue: str = "communication-status-updates",
        routing_key: str = "status.changed",
        prefetch_count: int = 10,
        reconnect_delay: float = 5.0,
    ):
        self.parameters = parameters
        self.exchange = exchange
        self.queue = queue
        self.routing_key = routing_key
        self.prefetch_count = prefetch_count
        self.reconnect_delay = reconnect_delay

        self.running = False
        self._stopped = threading.Event()
        self._connection: Optional[pika.BlockingConnection] = None
        self._channel: Optional[BlockingChannel] = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "RabbitMQEventConsumer":
        return cls(
            connection_parameters(settings),
            exchange=settings.rabbitmq_exchange,
            queue=settings.rabbitmq_queue,
            routing_key=settings.rabbitmq_routing_key,
            prefetch_count=settings.consumer_prefetch_count,
            reconnect_delay=settings.consumer_reconnect_delay,
        )

    def _on_message(self, handler: EventHandler):
        def callback(channel: BlockingChannel, method, properties, body: bytes) -> None:
            try:
                event = StatusChangedEvent.from_json(body)
            except (ValidationError, ValueError) as e:
                logger.error(
                    "event_decode_failed",
                    delivery_tag=method.delivery_tag,
                    message_id=getattr(properties, "message_id", None),
                    error=str(e),
                )
                channel.basic_nack(delivery_tag=method.delivery_tag, requeue=False)
                return

            try:
                handler(event)
            except Exception as e:
                logger.exception(
                    "event_handler_failed",
                    event_id=str(event.event_id),
                    communication_id=event.communication_id,
                    error=str(e),
                )
                channel.basic_nack(delivery_tag=method.delivery_tag, requeue=False)
                return

            channel.basic_ack(delivery_tag=method.delivery_tag)

        return callback

    def consume(self, handler: EventHandler = log_event) -> None:
        """
        Open a connection and dispatch messages to ``handler`` until the
        connection drops or ``stop()`` is called.

        Raises:
            pika.exceptions.AMQPError: On connection loss
        """
        connection = pika.BlockingConnection(self.parameters)
        try:
            channel = connection.channel()
            declare_topology(channel, self.exchange, self.queue, self.routing_key)
            channel.basic_qos(prefetch_count=self.prefetch_count)
            channel.basic_consume(
                queue=self.queue,
                on_message_callback=self._on_message(handler),
                auto_ack=False,
            )
            self._connection, self._channel = connection, channel
            logger.info("event_consumer_started", queue=self.queue, prefetch_count=self.prefetch_count)
            channel.start_consuming()
        finally:
            self._connection, self._channel = None, None
            if connection.is_open:
                connection.close()

    def run(self, handler: EventHandler = log_event, install_signal_handlers: bool = True) -> None:
        """Consume until stopped, reconnecting after connection loss."""
        self.running = True
        self._stopped.clear()

        if install_signal_handlers:
            signal.signal(signal.SIGINT, self._signal_handler)
            signal.signal(signal.SIGTERM, self._signal_handler)

        try:
            while self.running:
                try:
                    self.consume(handler)
                except TRANSPORT_ERRORS as e:
                    if not self.running:
                        break
                    logger.warning(
                        "event_consumer_disconnected",
                        error=repr(e),
                        retry_in=self.reconnect_delay,
                    )
                    self._stopped.wait(self.reconnect_delay)
                else:
                    # start_consuming returned: stop() was requested
                    break
        finally:
            logger.info("event_consumer_stopped", queue=self.queue)

    def stop(self) -> None:
        """Ask the consumer to finish. Safe to call from another thread."""
        self.running = False
        self._stopped.set()
        connection, channel = self._connection, self._channel
        if connection is not None and channel is not None and connection.is_open:
            connection.add_callback_threadsafe(channel.stop_consuming)

    def _signal_handler(self, signum, frame) -> None:
        logger.info("shutdown_signal_received", signal=signum)
        self.stop()
