"""
Event publishers.

RabbitMQEventPublisher delivers StatusChangedEvents to a durable topic exchange
at-least-once: messages are persistent, publisher confirms are enabled, and a
closed transport is re-opened transparently before the next attempt.
"""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from typing import List, Optional

import pika
import pika.exceptions
import structlog
from pika.adapters.blocking_connection import BlockingChannel

from ..config import Settings, get_settings
from ..errors import PublishFailedError
from ..lifecycle.events import StatusChangedEvent

logger = structlog.get_logger(__name__)

# Failures that mean the transport is unusable and should be rebuilt
TRANSPORT_ERRORS = (pika.exceptions.AMQPError, OSError)


def connection_parameters(settings: Settings) -> pika.ConnectionParameters:
    """Build pika connection parameters from settings.

    The timeouts bound how long a publish can block on the network.
    """
    return pika.ConnectionParameters(
        host=settings.rabbitmq_host,
        port=settings.rabbitmq_port,
        virtual_host=settings.rabbitmq_virtual_host,
        credentials=pika.PlainCredentials(settings.rabbitmq_username, settings.rabbitmq_password),
        connection_attempts=1,
        socket_timeout=settings.broker_socket_timeout,
        stack_timeout=settings.broker_socket_timeout * 1.5,
        blocked_connection_timeout=settings.broker_blocked_connection_timeout,
    )


def declare_topology(channel: BlockingChannel, exchange: str, queue: str, routing_key: str) -> None:
    """Declare the durable exchange and queue and bind them. Idempotent."""
    channel.exchange_declare(exchange=exchange, exchange_type="topic", durable=True)
    channel.queue_declare(queue=queue, durable=True)
    channel.queue_bind(queue=queue, exchange=exchange, routing_key=routing_key)


class EventPublisher(ABC):
    """Hands StatusChangedEvents to the broker."""

    @abstractmethod
    def publish(self, event: StatusChangedEvent) -> None:
        """
        Publish an event.

        Raises:
            PublishFailedError: If the broker did not accept the event
        """

    def close(self) -> None:
        """Release any transport held by the publisher."""


class RabbitMQEventPublisher(EventPublisher):
    """
    Publisher backed by a lazily opened, shared pika BlockingConnection.

    pika connections are not thread-safe, so every use of the connection
    happens under a lock. Concurrent publishers serialize on it.
    """

    def __init__(
        self,
        parameters: pika.ConnectionParameters,
        exchange: str = "communication-events",
        queue: str = "communication-status-updates",
        routing_key: str = "status.changed",
        max_attempts: int = 2,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self.parameters = parameters
        self.exchange = exchange
        self.queue = queue
        self.routing_key = routing_key
        self.max_attempts = max_attempts

        self._lock = threading.Lock()
        self._connection: Optional[pika.BlockingConnection] = None
        self._channel: Optional[BlockingChannel] = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "RabbitMQEventPublisher":
        return cls(
            connection_parameters(settings),
            exchange=settings.rabbitmq_exchange,
            queue=settings.rabbitmq_queue,
            routing_key=settings.rabbitmq_routing_key,
            max_attempts=settings.publish_max_attempts,
        )

    def _ensure_channel(self) -> BlockingChannel:
        if (
            self._connection is not None
            and self._connection.is_open
            and self._channel is not None
            and self._channel.is_open
        ):
            return self._channel

        self._reset()
        connection = pika.BlockingConnection(self.parameters)
        try:
            channel = connection.channel()
            declare_topology(channel, self.exchange, self.queue, self.routing_key)
            channel.confirm_delivery()
        except TRANSPORT_ERRORS:
            connection.close()
            raise

        self._connection = connection
        self._channel = channel
        logger.info(
            "broker_connection_established",
            host=self.parameters.host,
            exchange=self.exchange,
            queue=self.queue,
        )
        return channel

    def _reset(self) -> None:
        connection, self._connection, self._channel = self._connection, None, None
        if connection is not None and connection.is_open:
            try:
                connection.close()
            except TRANSPORT_ERRORS as e:
                logger.debug("broker_connection_close_failed", error=str(e))

    def publish(self, event: StatusChangedEvent) -> None:
        body = event.to_json()
        properties = pika.BasicProperties(
            content_type="application/json",
            delivery_mode=pika.DeliveryMode.Persistent,
            message_id=str(event.event_id),
            timestamp=int(event.timestamp_utc.timestamp()),
            type=event.event_type,
        )

        last_error: Optional[BaseException] = None
        with self._lock:
            for attempt in range(1, self.max_attempts + 1):
                try:
                    channel = self._ensure_channel()
                    channel.basic_publish(
                        exchange=self.exchange,
                        routing_key=self.routing_key,
                        body=body,
                        properties=properties,
                        mandatory=True,
                    )
                except TRANSPORT_ERRORS as e:
                    last_error = e
                    logger.warning(
                        "event_publish_attempt_failed",
                        event_id=str(event.event_id),
                        communication_id=event.communication_id,
                        attempt=attempt,
                        max_attempts=self.max_attempts,
                        error=repr(e),
                    )
                    self._reset()
                    continue

                logger.info(
                    "event_published",
                    event_id=str(event.event_id),
                    communication_id=event.communication_id,
                    event_type=event.event_type,
                    status=event.new_status,
                )
                return

        raise PublishFailedError(
            f"Failed to publish event {event.event_id} after {self.max_attempts} attempt(s): "
            f"{last_error!r}",
            communication_id=event.communication_id,
        )

    def close(self) -> None:
        with self._lock:
            self._reset()


class InMemoryEventPublisher(EventPublisher):
    """
    Publisher that keeps events in a list.

    Used for local development and tests. Setting ``available`` to False
    simulates a broker outage.
    """

    def __init__(self) -> None:
        self.available = True
        self._events: List[StatusChangedEvent] = []
        self._lock = threading.Lock()

    @property
    def events(self) -> List[StatusChangedEvent]:
        with self._lock:
            return list(self._events)

    def publish(self, event: StatusChangedEvent) -> None:
        if not self.available:
            raise PublishFailedError(
                "Broker unavailable", communication_id=event.communication_id
            )
        with self._lock:
            self._events.append(event)
        logger.debug("event_recorded", event_id=str(event.event_id), event_type=event.event_type)

    def clear(self) -> None:
        with self._lock:
            self._events.clear()


def create_publisher(settings: Optional[Settings] = None) -> EventPublisher:
    """
    Create the publisher selected by ``settings.event_publisher``.

    Raises:
        ValueError: If the publisher kind is not supported
    """
    settings = settings or get_settings()
    if settings.event_publisher == "rabbitmq":
        return RabbitMQEventPublisher.from_settings(settings)
    if settings.event_publisher == "memory":
        return InMemoryEventPublisher()
    raise ValueError(f"Unsupported event publisher: {settings.event_publisher}")
